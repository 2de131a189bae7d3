"""Tests for SQL generation: sanitizing, prompts, tenant substitution."""

from __future__ import annotations

import pytest
from entities.shared.errors import LLMServiceError, SQLGenerationError
from entities.sql_generator import (
    build_generation_prompt,
    build_retry_prompt,
    generate_sql,
    is_refusal,
    load_prompt,
    sanitize_sql,
    substitute_tenant,
)
from models import ConversationTurn

from tests.conftest import SCHOOL_ID, FakeLLM

_PLACEHOLDER = "<school_id_from_context>"
_COUNT_SQL = (
    "SELECT COUNT(DISTINCT s.id) AS count FROM students s "
    "JOIN attendances a ON s.id = a.student_id "
    f"WHERE s.school_id = '{_PLACEHOLDER}' AND a.date = CURRENT_DATE AND a.status = 'absent'"
)


async def _generate(llm: FakeLLM, **kwargs) -> str:
    return await generate_sql(
        "how many students are absent today",
        llm,
        tenant_id=kwargs.pop("tenant_id", SCHOOL_ID),
        schema="{}",
        examples={},
        **kwargs,
    )


# ── sanitize_sql ─────────────────────────────────────────────────────────


class TestSanitizeSql:
    def test_strips_fence_and_semicolon(self) -> None:
        assert sanitize_sql("```sql\nSELECT 1 FROM students;\n```") == "SELECT 1 FROM students"

    def test_drops_surrounding_prose(self) -> None:
        raw = "Here is your query:\nSELECT id FROM students; -- done\nHope it helps."
        assert sanitize_sql(raw) == "SELECT id FROM students"

    def test_keeps_only_first_statement(self) -> None:
        assert sanitize_sql("SELECT 1; DROP TABLE students") == "SELECT 1"

    def test_forbidden_keyword(self) -> None:
        with pytest.raises(SQLGenerationError, match="DELETE") as exc_info:
            sanitize_sql("SELECT delete FROM students")
        assert exc_info.value.raw_output == "SELECT delete FROM students"

    def test_keyword_inside_identifier_or_literal_is_allowed(self) -> None:
        sql = "SELECT s.created_at, s.updated_at FROM students s WHERE s.note = 'drop out'"
        assert sanitize_sql(sql) == sql

    def test_non_select_rejected(self) -> None:
        with pytest.raises(SQLGenerationError, match="Only SELECT"):
            sanitize_sql("WITH x AS (VALUES (1)) TABLE x")

    def test_refusal_detection(self) -> None:
        assert is_refusal("This is not a data query.")
        assert is_refusal("   ")
        assert is_refusal(None)
        assert not is_refusal("SELECT 1")


# ── Prompts ──────────────────────────────────────────────────────────────


class TestPrompts:
    def test_generation_prompt_sections(self) -> None:
        history = [
            ConversationTurn(role="user", content="show absent students"),
            ConversationTurn(role="assistant", content="3 students are absent today."),
        ]

        prompt = build_generation_prompt(
            "their contact numbers",
            schema='{"students": {}}',
            examples={"classes": [{"name": "5A"}]},
            history=history,
            structure_hint="SELECT ... FROM students s",
        )

        assert '## Database Schema\n{"students": {}}' in prompt
        assert '"name": "5A"' in prompt
        assert "User: show absent students\nAssistant: 3 students are absent today." in prompt
        assert "## Suggested Structure\nTables, joins and filters" in prompt
        assert "SELECT ... FROM students s" in prompt
        assert prompt.rstrip().endswith("then write the SQL:")
        assert f"'{_PLACEHOLDER}'" in prompt

    def test_generation_prompt_without_history_or_hint(self) -> None:
        prompt = build_generation_prompt("how many students", schema="{}", examples={})

        assert "## Conversation History" not in prompt
        assert "## Suggested Structure" not in prompt

    def test_history_is_trimmed(self) -> None:
        history = [ConversationTurn(role="user", content=f"message {i}") for i in range(12)]

        prompt = build_generation_prompt(
            "q", schema="{}", examples={}, history=history, history_turns=10
        )

        assert "message 2" in prompt
        assert "message 1\n" not in prompt
        assert "message 11" in prompt

    def test_retry_prompt_feeds_back_error(self) -> None:
        prompt = build_retry_prompt(
            "how many students are absent today",
            previous_sql="SELECT COUNT(*) FROM attendance",
            error='relation "attendance" does not exist',
            attempt=2,
            schema="{}",
            examples={},
        )

        assert "## Failed SQL (attempt 1)\nSELECT COUNT(*) FROM attendance" in prompt
        assert '## Database Error\nrelation "attendance" does not exist' in prompt
        assert '"how many students are absent today"' in prompt
        assert "Corrected SQL:" in prompt

    def test_system_prompt_loads(self) -> None:
        assert "SELECT" in load_prompt()


# ── generate_sql ─────────────────────────────────────────────────────────


class TestGenerateSql:
    async def test_substitutes_tenant(self) -> None:
        llm = FakeLLM([_COUNT_SQL])

        sql = await _generate(llm)

        assert _PLACEHOLDER not in sql
        assert "s.school_id = 'school-1'" in sql

    async def test_tenant_quote_is_escaped(self) -> None:
        llm = FakeLLM([_COUNT_SQL])

        sql = await _generate(llm, tenant_id="o'brien")

        assert "s.school_id = 'o''brien'" in sql

    async def test_refusal_raises(self) -> None:
        llm = FakeLLM(["This is not a data query."])

        with pytest.raises(SQLGenerationError, match="did not return a SQL query") as exc_info:
            await _generate(llm)
        assert exc_info.value.raw_output == "This is not a data query."

    async def test_empty_reply_raises(self) -> None:
        with pytest.raises(SQLGenerationError):
            await _generate(FakeLLM([""]))

    async def test_llm_failure_propagates(self) -> None:
        llm = FakeLLM([LLMServiceError("LLM call timed out after 30s")])

        with pytest.raises(LLMServiceError, match="timed out"):
            await _generate(llm)

    async def test_retry_prompt_used_with_previous_error(self) -> None:
        llm = FakeLLM([_COUNT_SQL])

        await _generate(
            llm,
            previous_sql="SELECT 1 FROM attendance",
            previous_error='relation "attendance" does not exist',
            attempt=2,
        )

        assert "## Database Error" in llm.prompts[0]

    async def test_structure_hint_in_first_prompt(self) -> None:
        llm = FakeLLM([_COUNT_SQL])

        await _generate(llm, structure_hint="SELECT COUNT(DISTINCT s.id) AS count FROM students s")

        assert "## Suggested Structure" in llm.prompts[0]


def test_substitute_tenant_replaces_every_occurrence() -> None:
    sql = f"WHERE s.school_id = '{_PLACEHOLDER}' AND a.school_id = '{_PLACEHOLDER}'"
    assert substitute_tenant(sql, "7") == "WHERE s.school_id = '7' AND a.school_id = '7'"
