"""DataAssistant: decides how to answer a chat message.

It routes each message either to the NL2SQL pipeline (data questions) or
to a short conversational reply, and folds answers to clarification
questions back into the question they answer.
"""

import json
import logging
import re
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from entities.shared.errors import LLMServiceError
from entities.shared.protocols import LLMService
from entities.shared.schema_context import get_schema_context
from entities.sql_generator.prompts import format_history
from models import ConversationTurn

logger = logging.getLogger(__name__)

_DATA_CUES = re.compile(
    r"\b(?:show|list|find|get|which|who|how many|count|what|when|where|give me|give|data|"
    r"students|fees|attendance|exams|results|absent|present|pending|unpaid)",
    re.IGNORECASE,
)

_CLARIFICATION_CUES = (
    re.compile(r"\?"),
    re.compile(
        r"\b(?:which|what|do you|are you|would you|can you|please|clarify|specify)\b", re.IGNORECASE
    ),
    re.compile(r"\b(?:subject|overall|performance|class|date|time|period)\b", re.IGNORECASE),
)

_MAX_ANSWER_LENGTH = 100
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True)
class RoutingDecision:
    """Whether a message needs data retrieval, and why."""

    needs_data: bool
    reason: str = ""
    source: str = "llm"  # "llm" or "fallback"


@dataclass(frozen=True)
class MergedQuery:
    """The question to run after clarification merging."""

    query: str
    is_clarification: bool = False


def load_assistant_prompt() -> str:
    """Load the DataAssistant instructions prompt."""
    prompt_path = Path(__file__).parent / "assistant_prompt.md"
    if not prompt_path.exists():
        raise FileNotFoundError(f"Prompt not found: {prompt_path}")
    return prompt_path.read_text(encoding="utf-8")


def looks_like_data_request(message: str) -> bool:
    """Rule-based routing used when the LLM cannot decide."""
    return _DATA_CUES.search(message) is not None


def merge_clarification(message: str, history: Sequence[ConversationTurn]) -> MergedQuery:
    """Treat a short reply to a clarification question as its answer.

    When the last turn is an assistant message that looks like a
    clarification question and *message* is short, the result is
    ``"{previous user question}. {message}"``.

    Args:
        message: The new user message.
        history: Prior turns, oldest first.

    Returns:
        ``MergedQuery`` with the query to run.
    """
    turns = [t for t in history if t.role and t.content]
    if len(turns) < 2:
        return MergedQuery(query=message)

    last, previous = turns[-1], turns[-2]
    asked = last.role == "assistant" and any(p.search(last.content) for p in _CLARIFICATION_CUES)
    if not asked or previous.role != "user" or len(message) >= _MAX_ANSWER_LENGTH:
        return MergedQuery(query=message)

    merged = f"{previous.content}. {message}"
    logger.info("Merged clarification answer into: %s", merged[:200])
    return MergedQuery(query=merged, is_clarification=True)


def _routing_prompt(message: str, schema: str) -> str:
    return (
        "Decide whether this message needs data from the school database or is a "
        "conversational question.\n"
        "\n"
        "## Database Schema\n"
        f"{schema}\n"
        "\n"
        "## Message\n"
        f"\"{message}\"\n"
        "\n"
        "needsData is true when the message asks for specific records or numbers (students, "
        "fees, attendance, exam results, counts, lists). It is false for greetings, "
        "explanations (\"what is attendance\"), help, or anything the database cannot answer.\n"
        "\n"
        "Respond with ONLY a JSON object:\n"
        '{"needsData": true, "reason": "<brief explanation>"}'
    )


def _conversation_prompt(
    message: str,
    schema: str,
    examples: dict[str, Any],
    history: Sequence[ConversationTurn],
    history_turns: int,
) -> str:
    rendered = format_history(history, history_turns)
    history_section = f"## Conversation History\n{rendered}\n\n" if rendered else ""
    return (
        "Answer briefly and directly. Do NOT write SQL; this is a conversational question.\n"
        "\n"
        "## Database Schema\n"
        f"{schema}\n"
        "\n"
        "## Example Values\n"
        f"{json.dumps(examples, indent=2, default=str)}\n"
        "\n"
        f"{history_section}"
        "## Question\n"
        f"\"{message}\"\n"
    )


class DataAssistant:
    """Routes chat messages and handles the conversational branch.

    Args:
        llm: Chat completion service (not the SQL generator).
        history_turns: History turns included in conversational prompts.
    """

    def __init__(self, llm: LLMService, history_turns: int = 10) -> None:
        self.llm = llm
        self.history_turns = history_turns

    async def route(self, message: str) -> RoutingDecision:
        """Decide whether *message* needs data retrieval.

        Falls back to a keyword regex when the call fails or the reply
        has no JSON object.
        """
        try:
            reply = await self.llm.complete(_routing_prompt(message, get_schema_context()))
        except LLMServiceError:
            logger.warning("Routing call failed, using keyword fallback", exc_info=True)
            return RoutingDecision(looks_like_data_request(message), "keyword fallback", "fallback")

        match = _JSON_OBJECT.search(reply or "")
        if match:
            try:
                parsed = json.loads(match.group())
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, dict):
                decision = RoutingDecision(
                    needs_data=parsed.get("needsData") is True,
                    reason=str(parsed.get("reason", "")),
                )
                logger.info("Routing: needs_data=%s (%s)", decision.needs_data, decision.reason)
                return decision

        logger.warning("Unparsable routing reply: %s", (reply or "")[:200])
        return RoutingDecision(looks_like_data_request(message), "keyword fallback", "fallback")

    async def stream_conversation(
        self,
        message: str,
        history: Sequence[ConversationTurn] = (),
        examples: dict[str, Any] | None = None,
    ) -> AsyncIterator[str]:
        """Stream a brief conversational answer chunk by chunk."""
        prompt = _conversation_prompt(
            message, get_schema_context(), examples or {}, history, self.history_turns
        )
        async for chunk in self.llm.stream(prompt):
            yield chunk
