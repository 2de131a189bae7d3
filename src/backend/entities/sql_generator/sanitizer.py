"""Turn raw model output into a single read-only SELECT statement."""

from __future__ import annotations

import logging
import re

from entities.shared.errors import SQLGenerationError

logger = logging.getLogger(__name__)

FORBIDDEN_KEYWORDS = [
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

_FENCE_OPEN = re.compile(r"```sql\n?", re.IGNORECASE)
_FENCE = re.compile(r"```\n?")
_FIRST_SELECT = re.compile(r"(SELECT[\s\S]*?)(?:;|$)", re.IGNORECASE)
_TRAILING_SEMICOLONS = re.compile(r";+\s*$")
_FORBIDDEN_RE = re.compile(r"\b(" + "|".join(FORBIDDEN_KEYWORDS) + r")\b", re.IGNORECASE)
_STRING_LITERAL = re.compile(r"'(?:[^']|'')*'")

NOT_A_DATA_QUERY = "this is not a data query"


def sanitize_sql(raw: str) -> str:
    """Extract the first SELECT statement from *raw*.

    Strips markdown fences and trailing semicolons and drops any prose
    around the statement.

    Args:
        raw: Text returned by the model.

    Returns:
        The SELECT statement, without a trailing semicolon.

    Raises:
        SQLGenerationError: If a forbidden keyword appears or the result
            does not start with SELECT.
    """
    sql = _FENCE.sub("", _FENCE_OPEN.sub("", raw)).strip()

    match = _FIRST_SELECT.search(sql)
    if match:
        sql = match.group(1).strip()
    sql = _TRAILING_SEMICOLONS.sub("", sql).strip()

    forbidden = _FORBIDDEN_RE.search(_STRING_LITERAL.sub("''", sql))
    if forbidden:
        raise SQLGenerationError(
            f"Dangerous SQL keyword detected: {forbidden.group(1).upper()}",
            raw_output=raw,
        )

    if not sql.upper().startswith("SELECT"):
        logger.error("Model output does not start with SELECT: %s", sql[:200])
        raise SQLGenerationError(
            "Only SELECT queries are allowed. The generated SQL must start with SELECT.",
            raw_output=raw,
        )
    return sql


def is_refusal(raw: str | None) -> bool:
    """True when the model returned nothing or declined to write SQL."""
    return not raw or not raw.strip() or NOT_A_DATA_QUERY in raw.lower()
