"""Protocol interfaces for I/O boundaries.

These protocols enable dependency injection for testability.
Production implementations wrap the LLM provider and the school
database; test fakes return canned data with zero network access.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class LLMService(Protocol):
    """Text-in, text-out completion service.

    Provider-specific response shapes are normalized to plain text
    before they re-enter the pipeline.
    """

    async def complete(self, prompt: str) -> str:
        """Return the model's full reply to *prompt*.

        Raises:
            LLMServiceError: If the call fails or times out.
        """
        ...

    def stream(self, prompt: str) -> AsyncIterator[str]:
        """Yield the model's reply to *prompt* in chunks."""
        ...


@runtime_checkable
class SqlExecutor(Protocol):
    """Executes read-only SQL against the school database.

    Returns a dict with keys: ``success``, ``columns``, ``rows``,
    ``row_count``, ``error``. ``error`` carries the database message
    verbatim.
    """

    async def execute(self, query: str) -> dict[str, Any]:
        """Execute a SQL query.

        Args:
            query: SELECT statement.

        Returns:
            Execution result dict with rows, columns, and status.
        """
        ...


@runtime_checkable
class ProgressReporter(Protocol):
    """Reports stage-level progress for streaming UI updates.

    Delivery is fire-and-forget: the pipeline never waits on it.
    """

    def emit(self, stage: str, message: str, **data: Any) -> None:
        """Publish a progress event.

        Args:
            stage: Stage name (``intent``, ``keywords``, ``retry``...).
            message: Human-readable status line.
            **data: Extra JSON-serializable payload.
        """
        ...


# ---------------------------------------------------------------------------
# Concrete implementations
# ---------------------------------------------------------------------------


class NoOpReporter:
    """ProgressReporter that silently discards all events.

    Useful in tests and non-SSE contexts where no streaming UI exists.
    """

    def emit(self, stage: str, message: str, **data: Any) -> None:
        """No-op."""


class QueueReporter:
    """ProgressReporter that pushes events onto an ``asyncio.Queue``.

    The SSE endpoint drains the queue while the pipeline runs.

    Args:
        queue: The asyncio queue to push event dicts onto.
    """

    def __init__(self, queue: asyncio.Queue[dict[str, Any]]) -> None:
        self._queue = queue
        self._started = time.time()

    def emit(self, stage: str, message: str, **data: Any) -> None:
        """Enqueue a ``progress`` event with elapsed time.

        Args:
            stage: Stage name.
            message: Human-readable status line.
            **data: Extra payload merged into the event.
        """
        self._queue.put_nowait({
            "type": "progress",
            "stage": stage,
            "message": message,
            "elapsed_ms": int((time.time() - self._started) * 1000),
            **data,
        })
