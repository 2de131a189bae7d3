"""Shared test fixtures for the school NLQ pipeline."""

import asyncio
import sys
from collections.abc import AsyncIterator, Iterable
from pathlib import Path
from typing import Any

import pytest

# Ensure src/backend/ is on the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src" / "backend"))

from config.settings import Settings
from entities.metadata_store import MetadataStore
from entities.pipeline import PipelineClients
from entities.shared.errors import LLMServiceError
from entities.shared.example_values import ExampleValuesProvider
from entities.shared.protocols import NoOpReporter

# ---------------------------------------------------------------------------
# Protocol fakes
# ---------------------------------------------------------------------------

SCHOOL_ID = "school-1"


class FakeLLM:
    """In-memory fake satisfying the ``LLMService`` protocol.

    Replies are consumed in order; an ``Exception`` instance in the list
    is raised instead of returned. When the script runs out, *default*
    is returned. Every prompt is recorded.
    """

    def __init__(self, replies: Iterable[str | Exception] = (), default: str = "") -> None:
        self.replies: list[str | Exception] = list(replies)
        self.default = default
        self.prompts: list[str] = []

    def _next(self) -> str:
        if not self.replies:
            return self.default
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self._next()

    async def stream(self, prompt: str) -> AsyncIterator[str]:
        self.prompts.append(prompt)
        text = self._next()
        for word in text.split(" "):
            yield word + " "


class FailingLLM(FakeLLM):
    """``LLMService`` whose every call fails."""

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        raise LLMServiceError("LLM call failed: connection refused")


class FakeSqlExecutor:
    """In-memory fake satisfying the ``SqlExecutor`` protocol.

    ``outcomes`` are consumed per call: a string is a database error,
    a list is the rows of a successful execution. When exhausted, *rows*
    is returned.
    """

    def __init__(
        self,
        outcomes: Iterable[str | list[dict[str, Any]]] = (),
        rows: list[dict[str, Any]] | None = None,
    ) -> None:
        self.outcomes: list[str | list[dict[str, Any]]] = list(outcomes)
        self.rows: list[dict[str, Any]] = rows or []
        self.calls: list[str] = []

    async def execute(self, query: str) -> dict[str, Any]:
        self.calls.append(query)
        outcome = self.outcomes.pop(0) if self.outcomes else self.rows
        if isinstance(outcome, str):
            return {"success": False, "columns": [], "rows": [], "row_count": 0, "error": outcome}
        return {
            "success": True,
            "columns": list(outcome[0]) if outcome else [],
            "rows": outcome,
            "row_count": len(outcome),
            "error": None,
        }


class HangingSqlExecutor:
    """``SqlExecutor`` whose queries never finish."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    async def execute(self, query: str) -> dict[str, Any]:
        self.calls.append(query)
        await asyncio.Event().wait()
        raise AssertionError("unreachable")


class SpyReporter:
    """Spy satisfying the ``ProgressReporter`` protocol.

    Captures every ``emit`` call for assertions.
    """

    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []

    def emit(self, stage: str, message: str, **data: Any) -> None:
        self.events.append({"stage": stage, "message": message, **data})

    def stages(self) -> list[str]:
        return [event["stage"] for event in self.events]

    def of(self, stage: str) -> list[dict[str, Any]]:
        return [event for event in self.events if event["stage"] == stage]


def make_clients(
    store: MetadataStore,
    settings: Settings,
    *,
    sql_llm: FakeLLM | None = None,
    chat_llm: FakeLLM | None = None,
    executor: FakeSqlExecutor | None = None,
    reporter: Any = None,
) -> PipelineClients:
    """Build a ``PipelineClients`` with fakes for all I/O."""
    executor = executor or FakeSqlExecutor()
    # Sample values come from their own executor so ``executor.calls`` only
    # records pipeline queries.
    return PipelineClients(
        store=store,
        sql_llm=sql_llm or FakeLLM(),
        chat_llm=chat_llm or FakeLLM(),
        sql_executor=executor,
        example_values=ExampleValuesProvider(FakeSqlExecutor()),
        settings=settings,
        reporter=reporter or NoOpReporter(),
    )


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def store() -> MetadataStore:
    """The bundled metadata, loaded once."""
    loaded = MetadataStore()
    loaded.load()
    return loaded


@pytest.fixture
def test_settings() -> Settings:
    """Return a ``Settings`` instance populated with safe test defaults."""
    return Settings(
        _env_file=None,
        openai_api_key=None,
        anthropic_api_key=None,
        azure_ai_project_endpoint="",
        llm_api_url=None,
        sql_connection_string="DSN=test",
        max_sql_attempts=3,
        sql_timeout_seconds=1.0,
    )


@pytest.fixture
def fake_sql_executor() -> FakeSqlExecutor:
    """Return an empty ``FakeSqlExecutor`` instance."""
    return FakeSqlExecutor()


@pytest.fixture
def spy_reporter() -> SpyReporter:
    """Return a fresh ``SpyReporter`` instance."""
    return SpyReporter()


@pytest.fixture
def noop_reporter() -> NoOpReporter:
    """Return a ``NoOpReporter`` from the protocols module."""
    return NoOpReporter()
