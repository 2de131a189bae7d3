"""NLQ pipeline: composes the stages into one question-to-answer flow.

Usage:
    from entities.pipeline import answer_query, create_pipeline_clients

    clients = create_pipeline_clients(settings)
    outcome = await answer_query(question, context, clients)
"""

from .clients import PipelineClients, SqlExecutorAdapter, create_pipeline_clients
from .orchestrator import (
    answer_query,
    execute_once,
    execute_with_retry,
    merge_validations,
    process_query,
)

__all__ = [
    "PipelineClients",
    "SqlExecutorAdapter",
    "answer_query",
    "create_pipeline_clients",
    "execute_once",
    "execute_with_retry",
    "merge_validations",
    "process_query",
]
