"""Tests for static query evaluation.

``evaluate_sql`` and ``evaluate_semantic_query`` are pure: no I/O, no LLM.
"""

from __future__ import annotations

from entities.query_evaluator import evaluate_semantic_query, evaluate_sql
from models import JoinSpec, SemanticQuery

_SCOPED = "SELECT COUNT(DISTINCT s.id) AS count FROM students s WHERE s.school_id = 'school-1'"


def _semantic(**overrides) -> SemanticQuery:
    defaults: dict = {
        "primary_table": "students",
        "primary_alias": "s",
        "conditions": ["s.school_id = 'school-1'"],
        "is_count": True,
    }
    defaults.update(overrides)
    return SemanticQuery(**defaults)


# ── evaluate_sql ─────────────────────────────────────────────────────────


class TestEvaluateSql:
    def test_valid_count_query(self) -> None:
        result = evaluate_sql(_SCOPED, "school-1")

        assert result.valid is True
        assert result.errors == []
        assert result.message == "SQL query is valid and safe to execute."

    def test_non_select(self) -> None:
        result = evaluate_sql("UPDATE students SET name = 'x' WHERE school_id = '1'")

        assert result.valid is False
        assert "Only SELECT queries are allowed" in result.errors
        assert "Dangerous keyword detected: UPDATE" in result.errors

    def test_drop_is_rejected(self) -> None:
        result = evaluate_sql("DROP TABLE students")

        assert result.valid is False
        assert "Only SELECT queries are allowed" in result.errors
        assert "Dangerous keyword detected: DROP" in result.errors

    def test_multiple_statements(self) -> None:
        result = evaluate_sql(f"{_SCOPED}; SELECT 1")

        assert "Multiple statements detected (semicolon found within query)" in result.errors

    def test_trailing_semicolon_is_fine(self) -> None:
        assert evaluate_sql(f"{_SCOPED};").valid is True

    def test_missing_tenant_filter(self) -> None:
        result = evaluate_sql("SELECT * FROM students s")

        assert result.valid is False
        assert "Missing school_id filter - required for data isolation" in result.errors

    def test_wrong_tenant_literal(self) -> None:
        result = evaluate_sql(_SCOPED, "school-2")

        assert result.valid is False
        assert "Query is not scoped to the caller's school_id" in result.errors

    def test_tenant_column_in_literal_does_not_count(self) -> None:
        result = evaluate_sql("SELECT * FROM students s WHERE s.note = 'school_id'")
        assert result.valid is False

    def test_audit_columns_are_not_dangerous(self) -> None:
        sql = (
            "SELECT s.created_at, s.updated_at FROM students s "
            "WHERE s.school_id = 'school-1' ORDER BY s.created_at"
        )
        assert evaluate_sql(sql, "school-1").valid is True

    def test_keyword_inside_literal_is_ignored(self) -> None:
        sql = "SELECT * FROM students s WHERE s.school_id = 'school-1' AND s.remarks = 'drop'"
        assert evaluate_sql(sql, "school-1").valid is True

    def test_join_without_on(self) -> None:
        sql = "SELECT DISTINCT s.id FROM students s JOIN classes c WHERE s.school_id = '1'"

        result = evaluate_sql(sql)

        assert "JOIN statement missing ON condition" in result.errors

    def test_join_warnings_are_advisory(self) -> None:
        sql = (
            "SELECT * FROM students s JOIN fees f ON f.student_id = s.id "
            "WHERE s.school_id = 'school-1'"
        )

        result = evaluate_sql(sql, "school-1")

        assert result.valid is True
        assert "Using SELECT * with JOINs may return duplicate columns" in result.warnings
        assert "JOINs without DISTINCT may create duplicate rows" in result.warnings

    def test_is_deterministic(self) -> None:
        assert evaluate_sql(_SCOPED, "school-1") == evaluate_sql(_SCOPED, "school-1")


# ── evaluate_semantic_query ──────────────────────────────────────────────


class TestEvaluateSemanticQuery:
    def test_valid(self) -> None:
        result = evaluate_semantic_query(_semantic())

        assert result.valid is True
        assert result.message == "Query structure is valid. Ready to generate SQL."

    def test_missing_tenant_condition(self) -> None:
        result = evaluate_semantic_query(_semantic(conditions=[]))

        assert result.valid is False
        assert "Missing school_id filter - this is required for data isolation" in result.errors
        assert "No conditions specified - query may return all records" in result.warnings

    def test_join_without_on(self) -> None:
        joins = [JoinSpec(table="classes", alias="c", on=" ")]

        result = evaluate_semantic_query(_semantic(joins=joins))

        assert "Join to classes is missing ON condition" in result.errors

    def test_list_suggestions(self) -> None:
        joins = [JoinSpec(table="classes", alias="c", on="s.class_id = c.id")]

        result = evaluate_semantic_query(_semantic(is_count=False, joins=joins))

        assert result.valid is True
        assert "Consider using DISTINCT to avoid duplicate rows from joins" in result.suggestions
        assert "Consider adding ORDER BY for predictable result ordering" in result.suggestions
        assert "Consider adding LIMIT for better performance" in result.suggestions
