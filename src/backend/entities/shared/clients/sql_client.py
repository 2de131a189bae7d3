"""
Async client for the school-records database.

Executes read-only SQL over ODBC with ``aioodbc`` and returns plain
JSON-safe dicts. Database errors are returned, not raised, with the
driver's message kept verbatim so it can be fed back to the model.
"""

import logging
import re
from typing import Any

import aioodbc

logger = logging.getLogger(__name__)


def _failure(error: str) -> dict[str, Any]:
    return {"success": False, "error": error, "columns": [], "rows": [], "row_count": 0}


def _json_safe(value: Any) -> Any:
    if value is None or isinstance(value, (int, float, str, bool)):
        return value
    return str(value)


class SchoolSqlClient:
    """
    Async context manager for school database queries.

    Usage:
        async with SchoolSqlClient(dsn) as client:
            result = await client.execute_query("SELECT name FROM classes")
    """

    # Keywords that are not allowed in queries for safety
    DANGEROUS_KEYWORDS = [
        "INSERT",
        "UPDATE",
        "DELETE",
        "DROP",
        "ALTER",
        "CREATE",
        "TRUNCATE",
        "GRANT",
        "REVOKE",
    ]

    _DANGEROUS_RE = re.compile(r"\b(" + "|".join(DANGEROUS_KEYWORDS) + r")\b")

    def __init__(self, dsn: str, read_only: bool = True):
        """
        Initialize the SQL client.

        Args:
            dsn: ODBC connection string.
            read_only: If True, only SELECT queries are allowed.
        """
        self.dsn = dsn
        self.read_only = read_only
        self._connection: aioodbc.Connection | None = None

    async def __aenter__(self):
        """Open the database connection."""
        if not self.dsn:
            raise ValueError("SQL_CONNECTION_STRING is required")
        self._connection = await aioodbc.connect(dsn=self.dsn, autocommit=True)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Close the database connection."""
        if self._connection:
            await self._connection.close()

    def validate_query(self, query: str) -> tuple[bool, str | None]:
        """
        Check that a query is read-only.

        Args:
            query: The SQL query to validate

        Returns:
            Tuple of (is_valid, error_message). error_message is None if valid.
        """
        query_upper = query.strip().upper()
        if not self.read_only:
            return True, None

        if not query_upper.startswith("SELECT"):
            return False, "Only SELECT queries are allowed. Query must start with SELECT."

        match = self._DANGEROUS_RE.search(query_upper)
        if match:
            return (
                False,
                f"Query contains forbidden keyword: {match.group(1)}. "
                "Only read-only SELECT queries are allowed.",
            )
        return True, None

    async def execute_query(self, query: str) -> dict[str, Any]:
        """
        Execute a SQL query and return results.

        Args:
            query: The SQL query to execute

        Returns:
            A dictionary containing:
            - success: Whether the query executed successfully
            - columns: List of column names in the result
            - rows: List of dictionaries, one per row
            - row_count: Number of rows returned
            - error: Database error message if the query failed
        """
        logger.info("Executing SQL query: %s", query[:200])

        is_valid, error = self.validate_query(query)
        if not is_valid:
            return _failure(error or "Invalid query")

        if not self._connection:
            return _failure("Database connection not established. Use 'async with'.")

        try:
            async with self._connection.cursor() as cursor:
                await cursor.execute(query)
                columns = [column[0] for column in cursor.description] if cursor.description else []
                raw_rows = await cursor.fetchall()
        except Exception as e:  # noqa: BLE001
            logger.error("SQL execution error: %s", e)
            return _failure(str(e))

        rows = [{col: _json_safe(row[i]) for i, col in enumerate(columns)} for row in raw_rows]
        logger.info("Query executed successfully. Returned %d rows.", len(rows))
        return {
            "success": True,
            "columns": columns,
            "rows": rows,
            "row_count": len(rows),
            "error": None,
        }
