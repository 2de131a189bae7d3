"""Clients for the LLM provider and the school database."""

from .llm_client import AgentLLMService, create_chat_client, create_llm_service, response_text
from .sql_client import SchoolSqlClient

__all__ = [
    "AgentLLMService",
    "SchoolSqlClient",
    "create_chat_client",
    "create_llm_service",
    "response_text",
]
