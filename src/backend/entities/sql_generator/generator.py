"""SQL generation.

Calls the LLM with the generation (or retry) prompt, rejects refusals,
sanitizes the reply into one SELECT statement and fills in the school id.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from entities.shared.errors import SQLGenerationError
from entities.shared.protocols import LLMService
from models import ConversationTurn

from .prompts import DEFAULT_PLACEHOLDER, build_generation_prompt, build_retry_prompt
from .sanitizer import is_refusal, sanitize_sql

logger = logging.getLogger(__name__)


def load_prompt() -> str:
    """Load the system instructions from prompt.md in this folder."""
    return (Path(__file__).parent / "prompt.md").read_text(encoding="utf-8")


def substitute_tenant(sql: str, tenant_id: str, placeholder: str = DEFAULT_PLACEHOLDER) -> str:
    """Replace every *placeholder* with the escaped *tenant_id*."""
    return sql.replace(placeholder, tenant_id.replace("'", "''"))


async def generate_sql(
    query: str,
    llm: LLMService,
    *,
    tenant_id: str,
    schema: str,
    examples: dict[str, Any],
    history: Sequence[ConversationTurn] = (),
    history_turns: int = 10,
    placeholder: str = DEFAULT_PLACEHOLDER,
    structure_hint: str | None = None,
    previous_sql: str | None = None,
    previous_error: str | None = None,
    attempt: int = 1,
) -> str:
    """Generate one tenant-scoped SELECT statement for *query*.

    When ``previous_sql`` and ``previous_error`` are given the retry
    prompt is used, feeding the failure back to the model.

    Args:
        query: The user's question.
        llm: Completion service.
        tenant_id: School id substituted into the SQL.
        schema: Schema description for the prompt.
        examples: Sample values for the prompt.
        history: Prior conversation turns.
        history_turns: Trailing turns to include in the prompt.
        placeholder: School id token used in the prompt.
        structure_hint: Draft SQL from disambiguation (first attempt only).
        previous_sql: SQL that failed on the previous attempt.
        previous_error: Verbatim database error for ``previous_sql``.
        attempt: 1-based attempt number.

    Returns:
        Sanitized SQL with the school id filled in.

    Raises:
        SQLGenerationError: The model refused or produced unusable output.
        LLMServiceError: The completion call failed.
    """
    if previous_sql is not None and previous_error is not None:
        prompt = build_retry_prompt(
            query,
            previous_sql=previous_sql,
            error=previous_error,
            attempt=attempt,
            schema=schema,
            examples=examples,
            history=history,
            history_turns=history_turns,
            placeholder=placeholder,
        )
    else:
        prompt = build_generation_prompt(
            query,
            schema=schema,
            examples=examples,
            history=history,
            history_turns=history_turns,
            placeholder=placeholder,
            structure_hint=structure_hint,
        )

    logger.info("Generating SQL (attempt %d) for: %s", attempt, query[:100])
    raw = await llm.complete(prompt)

    if is_refusal(raw):
        logger.warning("Model returned no SQL for: %s", query[:100])
        raise SQLGenerationError("The model did not return a SQL query", raw_output=raw)

    sql = substitute_tenant(sanitize_sql(raw), tenant_id, placeholder)
    logger.info("Generated SQL (attempt %d): %s", attempt, sql[:500])
    return sql
