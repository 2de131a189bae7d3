"""Pipeline client container and Protocol adapters for dependency injection.

``PipelineClients`` bundles every I/O dependency the NLQ pipeline needs.
Production code constructs it via ``create_pipeline_clients()`` from the
configured LLM provider and school database; tests construct it from
in-memory fakes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any

from config.settings import Settings
from entities.assistant import load_assistant_prompt
from entities.metadata_store import MetadataStore
from entities.shared.clients import SchoolSqlClient, create_chat_client, create_llm_service
from entities.shared.example_values import ExampleValuesProvider
from entities.shared.protocols import LLMService, NoOpReporter, ProgressReporter, SqlExecutor
from entities.sql_generator import load_prompt as load_sql_prompt

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol adapters
# ---------------------------------------------------------------------------


class SqlExecutorAdapter:
    """``SqlExecutor`` backed by ``SchoolSqlClient``.

    Each ``execute()`` call opens and closes a fresh database connection.

    Args:
        dsn: ODBC connection string.
    """

    def __init__(self, dsn: str) -> None:
        self._dsn = dsn

    async def execute(self, query: str) -> dict[str, Any]:
        """Execute a read-only SQL query.

        Args:
            query: SQL SELECT statement.

        Returns:
            Result dict with ``success``, ``columns``, ``rows``,
            ``row_count``, and ``error`` keys.
        """
        try:
            async with SchoolSqlClient(self._dsn, read_only=True) as client:
                return await client.execute_query(query)
        except Exception as exc:
            logger.exception("SQL execution error")
            return {
                "success": False,
                "error": str(exc),
                "columns": [],
                "rows": [],
                "row_count": 0,
            }


# ---------------------------------------------------------------------------
# PipelineClients dataclass
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PipelineClients:
    """Immutable bundle of all I/O dependencies for the NLQ pipeline.

    Args:
        store: Loaded, read-only metadata store.
        sql_llm: Completion service for SQL generation.
        chat_llm: Completion service for classification, routing and conversation.
        sql_executor: Read-only executor for the school database.
        example_values: Cached sample values for prompts.
        settings: Application settings (thresholds, attempts, timeouts).
        reporter: Progress reporter for streaming UI updates.
    """

    store: MetadataStore
    sql_llm: LLMService
    chat_llm: LLMService
    sql_executor: SqlExecutor
    example_values: ExampleValuesProvider
    settings: Settings
    reporter: ProgressReporter = NoOpReporter()

    def with_reporter(self, reporter: ProgressReporter) -> PipelineClients:
        """Copy of this bundle that reports to *reporter*."""
        return replace(self, reporter=reporter)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_pipeline_clients(
    settings: Settings,
    reporter: ProgressReporter | None = None,
    store: MetadataStore | None = None,
) -> PipelineClients:
    """Build a ``PipelineClients`` from application ``Settings``.

    Loads prompts from disk, creates one chat client shared by the SQL
    and chat agents, and wraps the database in a Protocol adapter.

    Args:
        settings: Centralised application configuration.
        reporter: Optional progress reporter. Defaults to ``NoOpReporter``.
        store: Pre-loaded metadata store. Loaded from settings if omitted.

    Returns:
        Fully-initialised ``PipelineClients`` ready for ``process_query()``.
    """
    if store is None:
        store = MetadataStore(settings.metadata_path)
        store.load()

    chat_client = create_chat_client(settings)
    sql_llm = create_llm_service(settings, "sql-generator", load_sql_prompt(), chat_client)
    chat_llm = create_llm_service(settings, "data-assistant", load_assistant_prompt(), chat_client)

    sql_executor = SqlExecutorAdapter(settings.sql_connection_string)
    example_values = ExampleValuesProvider(
        sql_executor,
        ttl_seconds=settings.example_values_ttl_seconds,
        rows_per_table=settings.example_rows_per_table,
        timeout_seconds=settings.sql_timeout_seconds,
    )

    return PipelineClients(
        store=store,
        sql_llm=sql_llm,
        chat_llm=chat_llm,
        sql_executor=sql_executor,
        example_values=example_values,
        settings=settings,
        reporter=reporter or NoOpReporter(),
    )
