"""LLM completion adapters built on ``agent_framework``.

``AgentLLMService`` wraps a ``ChatAgent`` so the pipeline sees a plain
text-in, text-out ``LLMService``. ``create_chat_client`` picks the chat
client from whichever provider credential is configured.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from agent_framework import ChatAgent
from agent_framework.anthropic import AnthropicClient
from agent_framework.openai import OpenAIChatClient
from agent_framework_azure_ai import AzureAIClient
from azure.identity.aio import DefaultAzureCredential
from config.settings import Settings
from entities.shared.errors import LLMServiceError

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_ANTHROPIC_MODEL = "claude-3-5-sonnet-20241022"


def response_text(response: Any) -> str:
    """Concatenate the text contents of an agent run response."""
    parts: list[str] = []
    for msg in getattr(response, "messages", None) or []:
        for content in getattr(msg, "contents", None) or []:
            text_value = getattr(content, "text", None)
            if text_value:
                parts.append(text_value)
    if parts:
        return "".join(parts)
    return getattr(response, "text", None) or ""


def provider_name(settings: Settings) -> str:
    """Name of the provider selected by *settings*, in priority order."""
    if settings.openai_api_key:
        return "openai"
    if settings.anthropic_api_key:
        return "anthropic"
    if settings.azure_ai_project_endpoint:
        return "azure_ai"
    if settings.llm_api_url:
        return "openai_compatible"
    return "local"


def create_chat_client(settings: Settings) -> Any:
    """Build the ``agent_framework`` chat client for the configured provider.

    Args:
        settings: Application settings.

    Returns:
        A chat client usable as ``ChatAgent(chat_client=...)``.
    """
    provider = provider_name(settings)
    logger.info("LLM provider: %s (model=%s)", provider, settings.llm_model or "default")

    if provider == "openai":
        return OpenAIChatClient(
            model_id=settings.llm_model or DEFAULT_OPENAI_MODEL,
            api_key=settings.openai_api_key,
        )
    if provider == "anthropic":
        return AnthropicClient(
            model_id=settings.llm_model or DEFAULT_ANTHROPIC_MODEL,
            api_key=settings.anthropic_api_key,
        )
    if provider == "azure_ai":
        credential = (
            DefaultAzureCredential(managed_identity_client_id=settings.azure_client_id)
            if settings.azure_client_id
            else DefaultAzureCredential()
        )
        return AzureAIClient(
            project_endpoint=settings.azure_ai_project_endpoint,
            credential=credential,
            model_deployment_name=settings.llm_model,
            use_latest_version=True,
        )

    # Self-hosted models speak the OpenAI wire format and ignore the key.
    base_url = settings.llm_api_url or settings.local_llm_api_url
    return OpenAIChatClient(
        model_id=settings.llm_model or DEFAULT_OPENAI_MODEL,
        api_key="not-needed",
        base_url=base_url,
    )


class AgentLLMService:
    """``LLMService`` backed by a ``ChatAgent``.

    Each call runs on a fresh thread; the pipeline passes any history it
    wants inside the prompt.

    Args:
        agent: Configured chat agent.
        timeout_seconds: Upper bound on a single completion.
    """

    def __init__(self, agent: ChatAgent, timeout_seconds: float) -> None:
        self._agent = agent
        self._timeout = timeout_seconds

    @property
    def name(self) -> str:
        return self._agent.name or "agent"

    async def complete(self, prompt: str) -> str:
        """Run the agent and return its reply as plain text.

        Raises:
            LLMServiceError: On failure or timeout.
        """
        try:
            response = await asyncio.wait_for(self._agent.run(prompt), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            logger.warning("%s: completion timed out after %ss", self.name, self._timeout)
            raise LLMServiceError(f"LLM call timed out after {self._timeout:g}s") from exc
        except Exception as exc:
            logger.exception("%s: completion failed", self.name)
            raise LLMServiceError(f"LLM call failed: {exc}") from exc

        text = response_text(response).strip()
        logger.debug("%s reply: %s", self.name, text[:500])
        return text

    async def stream(self, prompt: str) -> AsyncIterator[str]:
        """Yield reply chunks as the agent produces them.

        Each chunk must arrive within the completion timeout.

        Raises:
            LLMServiceError: If the stream stalls or fails before completing.
        """
        updates = self._agent.run_stream(prompt).__aiter__()
        try:
            while True:
                try:
                    update = await asyncio.wait_for(anext(updates), timeout=self._timeout)
                except StopAsyncIteration:
                    return
                if update.text:
                    yield update.text
        except asyncio.TimeoutError as exc:
            logger.warning("%s: stream stalled for %ss", self.name, self._timeout)
            raise LLMServiceError(f"LLM stream stalled for {self._timeout:g}s") from exc
        except Exception as exc:
            logger.exception("%s: streaming failed", self.name)
            raise LLMServiceError(f"LLM stream failed: {exc}") from exc


def create_llm_service(
    settings: Settings,
    name: str,
    instructions: str,
    chat_client: Any | None = None,
) -> AgentLLMService:
    """Create an ``AgentLLMService`` with its own ``ChatAgent``.

    Args:
        settings: Application settings (provider, temperature, timeout).
        name: Agent name, used in logs.
        instructions: System prompt for the agent.
        chat_client: Existing chat client to share between agents.

    Returns:
        Ready-to-use LLM service.
    """
    agent = ChatAgent(
        name=name,
        instructions=instructions,
        chat_client=chat_client or create_chat_client(settings),
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
    )
    return AgentLLMService(agent, settings.llm_timeout_seconds)
