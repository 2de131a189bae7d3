"""Tests for the LLM and database adapters.

The ``ChatAgent`` and the ODBC connection are mocked; no provider or
database is contacted.
"""

from __future__ import annotations

import asyncio
from datetime import date
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from entities.pipeline import SqlExecutorAdapter, create_pipeline_clients
from entities.shared.clients import AgentLLMService, SchoolSqlClient, create_chat_client, response_text
from entities.shared.clients.llm_client import provider_name
from entities.shared.errors import LLMServiceError

_LLM_MODULE = "entities.shared.clients.llm_client"

# ── Helpers ──────────────────────────────────────────────────────────────


def _make_agent(response_text_value: str = "") -> MagicMock:
    """Return a mocked ``ChatAgent`` whose ``run()`` returns *response_text_value*."""
    agent = MagicMock()
    agent.name = "sql-generator"
    content = SimpleNamespace(text=response_text_value)
    agent.run = AsyncMock(return_value=SimpleNamespace(messages=[SimpleNamespace(contents=[content])]))
    return agent


def _make_connection(columns: list[str], rows: list[tuple]) -> tuple[MagicMock, AsyncMock]:
    cursor = AsyncMock()
    cursor.description = [(name,) for name in columns]
    cursor.fetchall = AsyncMock(return_value=rows)
    connection = MagicMock()
    connection.cursor.return_value.__aenter__ = AsyncMock(return_value=cursor)
    connection.cursor.return_value.__aexit__ = AsyncMock(return_value=False)
    return connection, cursor


# ── response_text ────────────────────────────────────────────────────────


def test_response_text_joins_message_contents() -> None:
    response = SimpleNamespace(
        messages=[
            SimpleNamespace(contents=[SimpleNamespace(text="SELECT "), SimpleNamespace(text=None)]),
            SimpleNamespace(contents=[SimpleNamespace(text="1")]),
        ]
    )
    assert response_text(response) == "SELECT 1"


def test_response_text_falls_back_to_text() -> None:
    assert response_text(SimpleNamespace(messages=[], text="hello")) == "hello"
    assert response_text(SimpleNamespace()) == ""


# ── AgentLLMService ──────────────────────────────────────────────────────


class TestAgentLLMService:
    async def test_complete_returns_stripped_text(self) -> None:
        agent = _make_agent("  SELECT 1  \n")

        reply = await AgentLLMService(agent, timeout_seconds=5).complete("prompt")

        assert reply == "SELECT 1"
        agent.run.assert_awaited_once_with("prompt")

    async def test_failure_is_wrapped(self) -> None:
        agent = _make_agent()
        agent.run = AsyncMock(side_effect=RuntimeError("rate limited"))

        with pytest.raises(LLMServiceError, match="LLM call failed: rate limited"):
            await AgentLLMService(agent, timeout_seconds=5).complete("prompt")

    async def test_timeout(self) -> None:
        async def slow_run(prompt: str):
            await asyncio.sleep(1)

        agent = _make_agent()
        agent.run = slow_run

        with pytest.raises(LLMServiceError, match="timed out after 0.01s"):
            await AgentLLMService(agent, timeout_seconds=0.01).complete("prompt")

    async def test_stream_skips_empty_updates(self) -> None:
        async def run_stream(prompt: str):
            for text in ("Hel", None, "lo"):
                yield SimpleNamespace(text=text)

        agent = _make_agent()
        agent.run_stream = run_stream

        chunks = [chunk async for chunk in AgentLLMService(agent, 5).stream("hi")]

        assert chunks == ["Hel", "lo"]

    async def test_stream_failure_is_wrapped(self) -> None:
        async def run_stream(prompt: str):
            yield SimpleNamespace(text="partial")
            raise ConnectionError("reset by peer")

        agent = _make_agent()
        agent.run_stream = run_stream

        with pytest.raises(LLMServiceError, match="LLM stream failed"):
            [chunk async for chunk in AgentLLMService(agent, 5).stream("hi")]

    async def test_stalled_stream_times_out(self) -> None:
        async def run_stream(prompt: str):
            yield SimpleNamespace(text="partial")
            await asyncio.Event().wait()

        agent = _make_agent()
        agent.run_stream = run_stream
        chunks: list[str] = []

        with pytest.raises(LLMServiceError, match="stalled for 0.01s"):
            async for chunk in AgentLLMService(agent, timeout_seconds=0.01).stream("hi"):
                chunks.append(chunk)

        assert chunks == ["partial"]


# ── Provider selection ───────────────────────────────────────────────────


class TestProviderSelection:
    def test_priority_order(self, test_settings) -> None:
        both = test_settings.model_copy(update={"openai_api_key": "sk-1", "anthropic_api_key": "ak-1"})
        anthropic = test_settings.model_copy(update={"anthropic_api_key": "ak-1"})
        azure = test_settings.model_copy(update={"azure_ai_project_endpoint": "https://p.example"})
        compatible = test_settings.model_copy(update={"llm_api_url": "http://llm:8080/v1"})

        assert provider_name(both) == "openai"
        assert provider_name(anthropic) == "anthropic"
        assert provider_name(azure) == "azure_ai"
        assert provider_name(compatible) == "openai_compatible"
        assert provider_name(test_settings) == "local"

    def test_openai_client(self, test_settings) -> None:
        settings = test_settings.model_copy(update={"openai_api_key": "sk-1", "llm_model": None})

        with patch(f"{_LLM_MODULE}.OpenAIChatClient") as client_cls:
            create_chat_client(settings)

        client_cls.assert_called_once_with(model_id="gpt-4o-mini", api_key="sk-1")

    def test_anthropic_client(self, test_settings) -> None:
        settings = test_settings.model_copy(
            update={"anthropic_api_key": "ak-1", "llm_model": "claude-sonnet"}
        )

        with patch(f"{_LLM_MODULE}.AnthropicClient") as client_cls:
            create_chat_client(settings)

        client_cls.assert_called_once_with(model_id="claude-sonnet", api_key="ak-1")

    def test_local_model_uses_openai_wire_format(self, test_settings) -> None:
        with patch(f"{_LLM_MODULE}.OpenAIChatClient") as client_cls:
            create_chat_client(test_settings)

        kwargs = client_cls.call_args.kwargs
        assert kwargs["api_key"] == "not-needed"
        assert kwargs["base_url"] == test_settings.local_llm_api_url


# ── SchoolSqlClient ──────────────────────────────────────────────────────


class TestSchoolSqlClient:
    def test_validate_query(self) -> None:
        client = SchoolSqlClient("DSN=test")

        assert client.validate_query("select * from students") == (True, None)
        ok, error = client.validate_query("DELETE FROM students")
        assert not ok
        assert "Only SELECT" in error
        ok, error = client.validate_query("SELECT 1; DROP TABLE students")
        assert not ok
        assert "DROP" in error

    def test_write_mode_skips_checks(self) -> None:
        assert SchoolSqlClient("DSN=test", read_only=False).validate_query("DELETE FROM x") == (
            True,
            None,
        )

    async def test_execute_returns_json_safe_rows(self) -> None:
        connection, cursor = _make_connection(
            ["first_name", "date_of_birth"], [("Asha", date(2012, 4, 1))]
        )
        client = SchoolSqlClient("DSN=test")
        client._connection = connection

        result = await client.execute_query("SELECT first_name, date_of_birth FROM students")

        assert result == {
            "success": True,
            "columns": ["first_name", "date_of_birth"],
            "rows": [{"first_name": "Asha", "date_of_birth": "2012-04-01"}],
            "row_count": 1,
            "error": None,
        }
        cursor.execute.assert_awaited_once()

    async def test_database_error_is_returned_verbatim(self) -> None:
        connection, cursor = _make_connection([], [])
        cursor.execute = AsyncMock(side_effect=RuntimeError('column "roll_no" does not exist'))
        client = SchoolSqlClient("DSN=test")
        client._connection = connection

        result = await client.execute_query("SELECT roll_no FROM students")

        assert result["success"] is False
        assert result["error"] == 'column "roll_no" does not exist'

    async def test_requires_connection(self) -> None:
        result = await SchoolSqlClient("DSN=test").execute_query("SELECT 1")

        assert result["success"] is False
        assert "async with" in result["error"]


async def test_adapter_reports_missing_dsn() -> None:
    result = await SqlExecutorAdapter("").execute("SELECT 1")

    assert result["success"] is False
    assert result["error"] == "SQL_CONNECTION_STRING is required"


# ── create_pipeline_clients ──────────────────────────────────────────────


def test_create_pipeline_clients_shares_one_chat_client(store, test_settings) -> None:
    with (
        patch("entities.pipeline.clients.create_chat_client") as make_chat_client,
        patch("entities.pipeline.clients.create_llm_service") as make_service,
    ):
        clients = create_pipeline_clients(test_settings, store=store)

    make_chat_client.assert_called_once_with(test_settings)
    names = [call.args[1] for call in make_service.call_args_list]
    assert names == ["sql-generator", "data-assistant"]
    assert all(call.args[3] is make_chat_client.return_value for call in make_service.call_args_list)
    assert isinstance(clients.sql_executor, SqlExecutorAdapter)
    assert clients.store is store
