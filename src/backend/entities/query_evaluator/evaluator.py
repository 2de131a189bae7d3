"""Static, rule-based query evaluation.

Two pure validators:

* ``evaluate_semantic_query`` checks the intermediate representation
  before any SQL is generated.
* ``evaluate_sql`` checks generated SQL text before execution.

Only errors make a result invalid; warnings and suggestions are advisory.
No I/O, no LLM, suitable for direct unit testing.
"""

from __future__ import annotations

import logging
import re

from models import SemanticQuery, ValidationResult

logger = logging.getLogger(__name__)

DANGEROUS_KEYWORDS = [
    "DROP",
    "DELETE",
    "TRUNCATE",
    "ALTER",
    "CREATE",
    "INSERT",
    "UPDATE",
    "GRANT",
    "REVOKE",
]

_STRING_LITERAL = re.compile(r"'(?:[^']|'')*'")
_TABLE_CLAUSE = re.compile(r"\b(?:FROM|JOIN)\b")


def _mask_literals(sql: str) -> str:
    """Blank out string literals so their contents never match a keyword."""
    return _STRING_LITERAL.sub("''", sql)


def _has_word(text: str, word: str) -> bool:
    return re.search(rf"\b{re.escape(word)}\b", text, re.IGNORECASE) is not None


# ── Semantic query ───────────────────────────────────────────────────────


def evaluate_semantic_query(
    semantic: SemanticQuery,
    tenant_column: str = "school_id",
) -> ValidationResult:
    """Validate a ``SemanticQuery`` before SQL generation.

    Args:
        semantic: Output of disambiguation.
        tenant_column: Column that must appear in a condition.

    Returns:
        ``ValidationResult``.
    """
    errors: list[str] = []
    warnings: list[str] = []
    suggestions: list[str] = []

    if not semantic.primary_table:
        errors.append("Primary table is not specified")

    if not semantic.conditions:
        warnings.append("No conditions specified - query may return all records")
        suggestions.append("Consider adding filters to limit results")

    if not any(_has_word(c, tenant_column) for c in semantic.conditions):
        errors.append(f"Missing {tenant_column} filter - this is required for data isolation")

    for join in semantic.joins:
        if not join.on or not join.on.strip():
            errors.append(f"Join to {join.table} is missing ON condition")

    if not semantic.is_count:
        if semantic.joins and not any("DISTINCT" in f.upper() for f in semantic.select_fields):
            suggestions.append("Consider using DISTINCT to avoid duplicate rows from joins")
        if not semantic.order_by:
            suggestions.append("Consider adding ORDER BY for predictable result ordering")
        if semantic.limit is None:
            suggestions.append("Consider adding LIMIT for better performance")

    valid = not errors
    return ValidationResult(
        valid=valid,
        errors=errors,
        warnings=warnings,
        suggestions=suggestions,
        message=(
            "Query structure is valid. Ready to generate SQL."
            if valid
            else f"Query has {len(errors)} error(s) that must be fixed."
        ),
    )


# ── SQL text ─────────────────────────────────────────────────────────────


def _check_statement(masked_upper: str) -> list[str]:
    errors: list[str] = []
    if not masked_upper.lstrip().startswith("SELECT"):
        errors.append("Only SELECT queries are allowed")
    if ";" in masked_upper.strip().rstrip(";"):
        errors.append("Multiple statements detected (semicolon found within query)")
    return errors


def _check_security(masked: str) -> list[str]:
    return [
        f"Dangerous keyword detected: {keyword}"
        for keyword in DANGEROUS_KEYWORDS
        if _has_word(masked, keyword)
    ]


def _check_tenant(sql: str, masked: str, tenant_id: str | None, tenant_column: str) -> list[str]:
    errors: list[str] = []
    if not _has_word(masked, tenant_column):
        errors.append(f"Missing {tenant_column} filter - required for data isolation")
    elif tenant_id is not None:
        literal = "'" + tenant_id.replace("'", "''") + "'"
        if literal not in sql:
            errors.append(f"Query is not scoped to the caller's {tenant_column}")
    return errors


def _check_joins(masked_upper: str) -> tuple[list[str], list[str], list[str]]:
    errors: list[str] = []
    warnings: list[str] = []
    suggestions: list[str] = []

    join_count = len(re.findall(r"\bJOIN\b", masked_upper))
    on_count = len(re.findall(r"\bON\b", masked_upper))
    if join_count and on_count < join_count:
        errors.append("JOIN statement missing ON condition")

    if join_count and re.search(r"SELECT\s+(?:DISTINCT\s+)?\*", masked_upper):
        warnings.append("Using SELECT * with JOINs may return duplicate columns")
        suggestions.append("Consider selecting specific columns")

    if len(_TABLE_CLAUSE.findall(masked_upper)) > 1 and not _has_word(masked_upper, "WHERE"):
        warnings.append("Multiple tables without WHERE clause may create Cartesian product")
        suggestions.append("Add WHERE clause to filter results")

    if join_count and "DISTINCT" not in masked_upper and "COUNT" not in masked_upper:
        warnings.append("JOINs without DISTINCT may create duplicate rows")

    return errors, warnings, suggestions


def evaluate_sql(
    sql: str,
    tenant_id: str | None = None,
    tenant_column: str = "school_id",
) -> ValidationResult:
    """Validate generated SQL before execution.

    Args:
        sql: Candidate SQL statement.
        tenant_id: When given, the statement must contain it as a literal.
        tenant_column: Column that scopes rows to one school.

    Returns:
        ``ValidationResult``. Pure: the same input always yields the
        same result.
    """
    masked = _mask_literals(sql)
    masked_upper = masked.upper()

    errors = _check_statement(masked_upper)
    errors.extend(_check_security(masked))
    errors.extend(_check_tenant(sql, masked, tenant_id, tenant_column))
    join_errors, warnings, suggestions = _check_joins(masked_upper)
    errors.extend(join_errors)

    valid = not errors
    logger.info(
        "SQL evaluation: valid=%s, errors=%d, warnings=%d",
        valid,
        len(errors),
        len(warnings),
    )
    return ValidationResult(
        valid=valid,
        errors=errors,
        warnings=warnings,
        suggestions=suggestions,
        message=(
            "SQL query is valid and safe to execute."
            if valid
            else f"SQL query has {len(errors)} error(s) that must be fixed."
        ),
    )
