"""
Chat API routes with SSE streaming support.

``POST /api/chat/stream`` answers one chat message:
1. Folds a short answer to a clarification question into the question it answers
2. Routes the message to the NLQ pipeline or to a conversational reply
3. For data questions: streams pipeline progress, then the rows and a summary
4. For conversation: streams the reply token by token

Every stream ends with a ``done`` event whose ``type`` names the outcome.
"""

import asyncio
import json
import logging
import uuid
from collections.abc import AsyncGenerator
from typing import Any

from api.dependencies import get_assistant, get_clients
from entities.assistant import DataAssistant, merge_clarification
from entities.pipeline import PipelineClients, answer_query, execute_once
from entities.query_evaluator import evaluate_sql
from entities.shared.errors import NLQError, PipelineError
from entities.shared.protocols import QueueReporter
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from models import AwaitingClarification, ChatStreamRequest, ExecuteSqlRequest, QueryAnswer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

MISSING_SCHOOL_MESSAGE = "school_id is required. Please provide school_id in context."
INTERNAL_ERROR_MESSAGE = "An internal error occurred. Please try again."

_POLL_SECONDS = 0.05


def sse_event(event: str, data: dict[str, Any]) -> str:
    """Format one SSE frame."""
    return f"event: {event}\ndata: {json.dumps(data, default=str)}\n\n"


def _error_events(message: str, correlation_id: str | None = None) -> list[str]:
    payload: dict[str, Any] = {"message": message}
    if correlation_id:
        payload["correlation_id"] = correlation_id
    return [sse_event("error", payload), sse_event("done", {"type": "error"})]


def _sanitized_error_events(error: Exception) -> list[str]:
    """Log *error* with a correlation ID and return a client-safe error.

    Pipeline failures carry a human-readable message that is passed
    through. Anything else is reported generically so internal details
    are never leaked.
    """
    correlation_id = uuid.uuid4().hex[:12]
    if isinstance(error, NLQError):
        logger.warning("SSE error [%s]: %s", correlation_id, error)
        message = error.message if isinstance(error, PipelineError) else str(error)
        return _error_events(f"Error processing query: {message}", correlation_id)
    logger.error("SSE error [%s]: %s", correlation_id, error, exc_info=True)
    return _error_events(INTERNAL_ERROR_MESSAGE, correlation_id)


async def _drain_progress(
    task: "asyncio.Task[Any]",
    queue: "asyncio.Queue[dict[str, Any]]",
) -> AsyncGenerator[str, None]:
    """Yield progress frames from *queue* until *task* finishes."""
    while not task.done():
        try:
            event = await asyncio.wait_for(queue.get(), timeout=_POLL_SECONDS)
        except asyncio.TimeoutError:
            continue
        yield sse_event("progress", event)
    while not queue.empty():
        yield sse_event("progress", queue.get_nowait())


def _data_payload(answer: QueryAnswer, threshold: int) -> dict[str, Any]:
    """Rows for small results; a SQL reference the client fetches for large ones."""
    if answer.row_count > threshold:
        logger.info("Large result (%d rows), sending SQL reference", answer.row_count)
        return {
            "sql": answer.sql,
            "count": answer.row_count,
            "fetchViaApi": True,
            "summary": answer.summary,
        }
    return {
        "data": answer.rows,
        "columns": answer.columns,
        "count": answer.row_count,
        "sql": answer.sql,
        "summary": answer.summary,
    }


async def generate_data_response_stream(
    query: str,
    request: ChatStreamRequest,
    clients: PipelineClients,
) -> AsyncGenerator[str, None]:
    """Run the NLQ pipeline and stream its progress and outcome."""
    school_id = request.context.school_id
    if not school_id:
        for frame in _error_events(MISSING_SCHOOL_MESSAGE):
            yield frame
        return

    queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
    scoped = clients.with_reporter(QueueReporter(queue))
    task = asyncio.create_task(answer_query(query, request.pipeline_context(), scoped))

    try:
        async for frame in _drain_progress(task, queue):
            yield frame
        outcome = task.result()
    except Exception as e:
        for frame in _sanitized_error_events(e):
            yield frame
        return
    finally:
        if not task.done():
            task.cancel()

    if isinstance(outcome, AwaitingClarification):
        yield sse_event(
            "clarification",
            {"question": outcome.question, "options": outcome.options},
        )
        yield sse_event("done", {"type": "clarification_needed"})
        return

    yield sse_event("data", _data_payload(outcome, clients.settings.large_result_threshold))
    yield sse_event("done", {"type": "data_query"})


async def generate_conversation_stream(
    message: str,
    request: ChatStreamRequest,
    assistant: DataAssistant,
    clients: PipelineClients,
) -> AsyncGenerator[str, None]:
    """Stream a conversational reply token by token."""
    try:
        examples = await clients.example_values.get()
        async for chunk in assistant.stream_conversation(
            message, request.conversation_history, examples
        ):
            yield sse_event("token", {"token": chunk})
    except Exception as e:
        for frame in _sanitized_error_events(e):
            yield frame
        return
    yield sse_event("done", {"type": "conversation"})


async def generate_chat_stream(
    request: ChatStreamRequest,
    clients: PipelineClients,
    assistant: DataAssistant,
) -> AsyncGenerator[str, None]:
    """Route one chat message and stream the answer."""
    merged = merge_clarification(request.message, request.conversation_history)
    yield sse_event(
        "progress",
        {
            "type": "progress",
            "stage": "routing",
            "message": (
                "Processing your clarification..." if merged.is_clarification else "Analyzing query type..."
            ),
        },
    )

    try:
        decision = await assistant.route(merged.query)
    except Exception as e:
        for frame in _sanitized_error_events(e):
            yield frame
        return

    if decision.needs_data:
        async for frame in generate_data_response_stream(merged.query, request, clients):
            yield frame
    else:
        async for frame in generate_conversation_stream(request.message, request, assistant, clients):
            yield frame


@router.post("/stream")
async def chat_stream(
    request: ChatStreamRequest,
    clients: PipelineClients = Depends(get_clients),
    assistant: DataAssistant = Depends(get_assistant),
) -> StreamingResponse:
    """SSE streaming chat over the NLQ pipeline."""
    return StreamingResponse(
        generate_chat_stream(request, clients, assistant),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("/execute-sql")
async def execute_sql(
    request: ExecuteSqlRequest,
    clients: PipelineClients = Depends(get_clients),
) -> dict[str, Any]:
    """Run a SQL reference previously streamed with ``fetchViaApi``.

    The statement is re-checked for the caller's school before it runs.
    """
    school_id = request.context.school_id
    if not school_id:
        raise HTTPException(status_code=400, detail=MISSING_SCHOOL_MESSAGE)

    validation = evaluate_sql(request.sql, school_id, clients.settings.tenant_column)
    if not validation.valid:
        raise HTTPException(status_code=400, detail=", ".join(validation.errors))

    result = await execute_once(request.sql, clients)
    if not result.get("success"):
        logger.warning("execute-sql failed: %s", result.get("error"))
        raise HTTPException(status_code=500, detail=result.get("error") or "Database error")

    rows = result.get("rows") or []
    return {"data": rows, "count": len(rows)}
