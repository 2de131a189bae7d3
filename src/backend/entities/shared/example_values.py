"""
Sample database values used to ground SQL-generation prompts.

A handful of fixed SELECTs (class names, students, fee and exam types,
academic years, schools) are run through the ``SqlExecutor`` and cached
under one global key for a configurable TTL. There is no lock: two
concurrent refreshes both run and the last writer wins, which is fine
because the queries are idempotent. Failures are logged and yield ``{}``.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

from entities.shared.protocols import SqlExecutor

logger = logging.getLogger(__name__)

ATTENDANCE_STATUSES = ["present", "absent", "late", "excused"]


@dataclass
class _CacheEntry:
    values: dict[str, Any]
    loaded_at: float


def _sample_queries(limit: int) -> dict[str, str]:
    return {
        "classes": f"SELECT DISTINCT name, level FROM classes WHERE is_active = true LIMIT {limit}",
        "students": (
            "SELECT first_name, last_name, admission_number, roll_number "
            f"FROM students WHERE is_active = true LIMIT {limit}"
        ),
        "fee_types": f"SELECT DISTINCT fee_type FROM fees LIMIT {limit}",
        "exam_types": f"SELECT DISTINCT exam_type, name FROM exams LIMIT {limit}",
        "academic_years": (
            "SELECT DISTINCT academic_year FROM students ORDER BY academic_year DESC LIMIT 5"
        ),
        "schools": "SELECT name, code, city, state FROM schools WHERE is_active = true LIMIT 5",
    }


# Single-column results are flattened to a list of values.
_SCALAR_KEYS = {"fee_types": "fee_type", "academic_years": "academic_year"}


class ExampleValuesProvider:
    """Loads and caches example values for prompts.

    Args:
        executor: Read-only SQL executor.
        ttl_seconds: How long a loaded set stays fresh.
        rows_per_table: Sample rows per major table.
        timeout_seconds: Upper bound on each sample query.
    """

    CACHE_KEY = "examples"

    def __init__(
        self,
        executor: SqlExecutor,
        ttl_seconds: int = 300,
        rows_per_table: int = 10,
        timeout_seconds: float = 15.0,
    ):
        self._executor = executor
        self._ttl_seconds = ttl_seconds
        self._rows_per_table = rows_per_table
        self._timeout_seconds = timeout_seconds
        self._cache: dict[str, _CacheEntry] = {}

    def clear(self) -> None:
        self._cache.clear()

    async def get(self) -> dict[str, Any]:
        """Return cached example values, reloading them when stale.

        Returns:
            Mapping of category to sample rows or values; ``{}`` if the
            database could not be queried.
        """
        entry = self._cache.get(self.CACHE_KEY)
        if entry is not None and time.monotonic() - entry.loaded_at < self._ttl_seconds:
            return entry.values

        values = await self._load()
        if values:
            self._cache[self.CACHE_KEY] = _CacheEntry(values=values, loaded_at=time.monotonic())
        return values

    async def _load(self) -> dict[str, Any]:
        examples: dict[str, Any] = {}
        try:
            for key, query in _sample_queries(self._rows_per_table).items():
                result = await asyncio.wait_for(
                    self._executor.execute(query), timeout=self._timeout_seconds
                )
                if not result.get("success"):
                    logger.warning("Example query for %s failed: %s", key, result.get("error"))
                    return {}
                rows: list[dict[str, Any]] = result.get("rows", [])
                column = _SCALAR_KEYS.get(key)
                examples[key] = [row.get(column) for row in rows] if column else rows
        except asyncio.TimeoutError:
            logger.warning("Example query timed out after %ss", self._timeout_seconds)
            return {}
        except Exception:  # noqa: BLE001
            logger.warning("Failed to load example values", exc_info=True)
            return {}

        examples["attendance_statuses"] = list(ATTENDANCE_STATUSES)
        logger.info("Loaded example values for %d categories", len(examples))
        return examples
