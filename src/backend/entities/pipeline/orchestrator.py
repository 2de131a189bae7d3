"""NLQ pipeline: stage sequencing and the execute/regenerate loop.

``process_query`` runs intent → (clarify?) → keywords → disambiguation →
SQL generation → validation and returns either a ``PipelineResult`` or an
``AwaitingClarification`` sentinel. ``execute_with_retry`` runs the SQL,
regenerating it with the database error fed back on failure, for at most
``max_sql_attempts`` attempts in total. ``answer_query`` composes both and
summarizes the rows.

All I/O goes through ``PipelineClients``; no global state is read or written.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from entities.intent_classifier import classify_intent, describe_intent
from entities.keyword_extractor import extract_keywords, summarize_keywords
from entities.query_disambiguator import disambiguate, render_semantic_sql
from entities.query_evaluator import evaluate_semantic_query, evaluate_sql
from entities.shared.errors import NLQError, PipelineError, SQLExecutionError
from entities.shared.protocols import ProgressReporter
from entities.shared.response_formatter import analyze_data, format_response
from entities.shared.schema_context import get_schema_context
from entities.sql_generator import generate_sql
from models import (
    AwaitingClarification,
    PipelineContext,
    PipelineResult,
    QueryAnswer,
    QueryExecution,
    ValidationResult,
)

from .clients import PipelineClients

logger = logging.getLogger(__name__)


# ── Helpers ──────────────────────────────────────────────────────────────


def merge_validations(semantic: ValidationResult, sql: ValidationResult) -> ValidationResult:
    """Combine semantic-query and SQL-text findings into one result."""
    valid = semantic.valid and sql.valid
    errors = [*semantic.errors, *sql.errors]
    return ValidationResult(
        valid=valid,
        errors=errors,
        warnings=[*semantic.warnings, *sql.warnings],
        suggestions=[*semantic.suggestions, *sql.suggestions],
        message=(
            "Query validated successfully. Ready to execute."
            if valid
            else f"Query has issues: {', '.join(errors)}"
        ),
    )


def _fail(reporter: ProgressReporter, stage: str, exc: Exception) -> PipelineError:
    """Report *exc* on the progress channel and return it as a ``PipelineError``."""
    if isinstance(exc, PipelineError):
        error = exc
    else:
        error = PipelineError(stage, str(exc))
    reporter.emit("error", error.message, failed_stage=error.stage)
    return error


async def _generate(
    query: str,
    context: PipelineContext,
    clients: PipelineClients,
    *,
    structure_hint: str | None = None,
    previous_sql: str | None = None,
    previous_error: str | None = None,
    attempt: int = 1,
) -> str:
    settings = clients.settings
    examples = await clients.example_values.get()
    return await generate_sql(
        query,
        clients.sql_llm,
        tenant_id=context.tenant_id or "",
        schema=get_schema_context(),
        examples=examples,
        history=context.conversation_history,
        history_turns=settings.prompt_history_turns,
        placeholder=settings.tenant_placeholder,
        structure_hint=structure_hint,
        previous_sql=previous_sql,
        previous_error=previous_error,
        attempt=attempt,
    )


# ── Generation stages ────────────────────────────────────────────────────


async def process_query(
    query: str,
    context: PipelineContext,
    clients: PipelineClients,
) -> PipelineResult | AwaitingClarification:
    """Run the generation stages for one question.

    Args:
        query: The user's question (already merged with any clarification answer).
        context: Tenant id and conversation history.
        clients: Injectable I/O dependencies.

    Returns:
        ``PipelineResult`` with validated SQL, or ``AwaitingClarification``
        when the user must answer a follow-up question first.

    Raises:
        PipelineError: On any unrecoverable stage failure. An ``error``
            progress event is emitted before raising.
    """
    reporter = clients.reporter
    settings = clients.settings
    stage = "intent"

    try:
        intent = await classify_intent(
            query,
            clients.store,
            clients.chat_llm,
            context.conversation_history,
            confidence_threshold=settings.intent_confidence_threshold,
            history_turns=settings.intent_history_turns,
        )
        reporter.emit(
            "intent",
            describe_intent(intent),
            intent=intent.intent,
            domain=intent.domain,
            confidence=intent.confidence,
            needs_clarification=intent.needs_clarification,
        )

        if intent.needs_clarification:
            question = intent.clarification_question or "Could you clarify what you are looking for?"
            options = list(intent.clarification_options or [])
            reporter.emit("clarification", question, options=options)
            logger.info("Awaiting clarification for: %s", query[:100])
            return AwaitingClarification(question=question, options=options, intent=intent)

        stage = "keywords"
        keywords = extract_keywords(query, clients.store, intent)
        summary = summarize_keywords(keywords)
        reporter.emit(
            "keywords",
            f"Found key terms: {summary}",
            entities=keywords.entities,
            domain=keywords.domain,
            temporal=keywords.temporal,
            filters=keywords.filters,
        )

        stage = "disambiguation"
        semantic = disambiguate(
            query,
            keywords,
            intent,
            clients.store,
            context.tenant_id,
            tenant_column=settings.tenant_column,
        )
        preview = render_semantic_sql(semantic)
        reporter.emit(
            "disambiguation",
            f"Mapping to: {semantic.primary_table} with {len(semantic.joins)} join(s)",
            tables=[semantic.primary_table, *(j.table for j in semantic.joins)],
            conditions=semantic.conditions,
            preview=preview,
        )

        stage = "sql_generation"
        reporter.emit("sql_generation", "Generating SQL query...")
        try:
            sql = await _generate(query, context, clients, structure_hint=preview)
        except NLQError as exc:
            raise PipelineError(stage, f"Failed to generate SQL: {exc}") from exc
        reporter.emit("sql_generation", "Generated SQL query", sql=sql)

        stage = "validation"
        validation = merge_validations(
            evaluate_semantic_query(semantic, settings.tenant_column),
            evaluate_sql(sql, context.tenant_id, settings.tenant_column),
        )
        reporter.emit(
            "validation",
            validation.message,
            valid=validation.valid,
            errors=validation.errors,
            warnings=validation.warnings,
            suggestions=validation.suggestions,
        )
        if not validation.valid:
            raise PipelineError(
                stage,
                f"Query validation failed: {', '.join(validation.errors)}",
                sql=sql,
                validation=validation,
            )

    except NLQError as exc:
        logger.warning("Pipeline failed at %s: %s", stage, exc)
        error = _fail(reporter, stage, exc)
        if error is exc:
            raise
        raise error from exc
    except Exception as exc:
        logger.exception("Unexpected pipeline error at %s", stage)
        _fail(reporter, stage, exc)
        raise

    return PipelineResult(
        sql=sql,
        semantic_query=semantic,
        intent=intent,
        keywords=keywords,
        validation=validation,
    )


# ── Execution loop ───────────────────────────────────────────────────────


async def execute_once(sql: str, clients: PipelineClients) -> dict[str, Any]:
    """Run *sql* once under ``sql_timeout_seconds``; failures come back as a result dict."""
    timeout = clients.settings.sql_timeout_seconds
    try:
        return await asyncio.wait_for(clients.sql_executor.execute(sql), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("SQL execution timed out after %ss", timeout)
        return {"success": False, "error": f"Query execution timed out after {timeout:g}s"}
    except SQLExecutionError as exc:
        return {"success": False, "error": exc.error}


async def execute_with_retry(
    result: PipelineResult,
    query: str,
    context: PipelineContext,
    clients: PipelineClients,
) -> QueryExecution:
    """Execute generated SQL, regenerating it from the error on failure.

    Each failed attempt feeds the failing SQL and the verbatim database
    error back into the retry prompt. Regenerated SQL is validated again
    before it runs. There are never more than ``max_sql_attempts``
    executions.

    Args:
        result: Output of ``process_query``.
        query: The question the SQL answers.
        context: Tenant id and conversation history.
        clients: Injectable I/O dependencies.

    Returns:
        ``QueryExecution`` for the first attempt that succeeded.

    Raises:
        PipelineError: ``execution`` with the last database error after
            the final attempt; ``sql_generation`` or ``validation`` if a
            regeneration is unusable.
    """
    reporter = clients.reporter
    settings = clients.settings
    max_attempts = max(1, settings.max_sql_attempts)
    sql = result.sql
    attempt = 1

    while True:
        reporter.emit(
            "execution",
            f"Executing query (attempt {attempt}/{max_attempts})...",
            attempt=attempt,
        )
        outcome = await execute_once(sql, clients)
        if outcome.get("success"):
            rows: list[dict[str, Any]] = outcome.get("rows") or []
            logger.info("Query succeeded on attempt %d with %d rows", attempt, len(rows))
            return QueryExecution(
                sql=sql,
                columns=outcome.get("columns") or [],
                rows=rows,
                row_count=outcome.get("row_count", len(rows)),
                attempts=attempt,
            )

        error = outcome.get("error") or "Unknown database error"
        logger.warning("Attempt %d/%d failed: %s", attempt, max_attempts, error)
        if attempt >= max_attempts:
            raise _fail(reporter, "execution", PipelineError("execution", error, sql=sql))

        reporter.emit(
            "retry",
            f"Query failed, regenerating SQL (attempt {attempt + 1}/{max_attempts})",
            attempt=attempt + 1,
            error=error,
        )
        try:
            sql = await _generate(
                query,
                context,
                clients,
                previous_sql=sql,
                previous_error=error,
                attempt=attempt + 1,
            )
        except NLQError as exc:
            raise _fail(
                reporter,
                "sql_generation",
                PipelineError("sql_generation", f"Failed to regenerate SQL: {exc}", sql=sql),
            ) from exc

        validation = evaluate_sql(sql, context.tenant_id, settings.tenant_column)
        if not validation.valid:
            raise _fail(
                reporter,
                "validation",
                PipelineError(
                    "validation",
                    f"Query validation failed: {', '.join(validation.errors)}",
                    sql=sql,
                    validation=validation,
                ),
            )
        attempt += 1


# ── Composition ──────────────────────────────────────────────────────────


async def answer_query(
    query: str,
    context: PipelineContext,
    clients: PipelineClients,
) -> QueryAnswer | AwaitingClarification:
    """Generate, execute and summarize the answer to *query*.

    Returns:
        ``QueryAnswer`` with rows and summary, or ``AwaitingClarification``.

    Raises:
        PipelineError: On any unrecoverable failure.
    """
    result = await process_query(query, context, clients)
    if isinstance(result, AwaitingClarification):
        return result

    execution = await execute_with_retry(result, query, context, clients)
    analysis = analyze_data(query, execution.rows)
    summary = format_response(query, execution.rows, execution.row_count)
    if analysis.analysis:
        summary = f"{analysis.analysis}\n\n{summary}"

    return QueryAnswer(
        sql=execution.sql,
        rows=execution.rows,
        columns=execution.columns,
        row_count=execution.row_count,
        attempts=execution.attempts,
        summary=summary,
        analysis=analysis.analysis,
        intent=result.intent,
    )
