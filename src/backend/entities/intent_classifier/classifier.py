"""Intent classification.

Two paths:

1. **Fast path**: a worked question pattern scores above the confidence
   threshold. Its intent and domain are returned with no LLM call.
2. **LLM path**: the model classifies the query from a JSON-only prompt.
   If the call fails or its reply cannot be parsed, a deterministic
   rule-based fallback produces the result instead. The fallback never
   raises, so classification problems never reach the caller.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from entities.metadata_store import MetadataStore
from entities.shared.protocols import LLMService
from entities.shared.query_shape import (
    find_list_actions,
    has_field_cue,
    infer_domain,
    is_count_query,
)
from models import ConversationTurn, IntentResult

logger = logging.getLogger(__name__)

_FALLBACK_CONFIDENCE_PARSE = 0.5
_FALLBACK_CONFIDENCE_CALL = 0.4

_INTENT_DESCRIPTIONS: dict[str, str] = {
    "count_absent_today": "count students who are absent today",
    "list_absent_today": "see students who are absent today",
    "list_pending_fees": "see students with pending fees",
    "count_pending_fees": "count students with pending fees",
    "list_students": "see student information",
    "count_students": "count students",
    "top_students_by_exam": "see top performing students",
    "failing_students": "see students who failed exams",
}


# ── Parse result ─────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ParsedIntent:
    """A JSON object recovered from the model's reply."""

    data: dict[str, Any]


@dataclass(frozen=True, slots=True)
class IntentParseError:
    """The model's reply held no usable JSON object."""

    raw: str
    reason: str


IntentParse = ParsedIntent | IntentParseError


def _first_json_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` span, ignoring braces in strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
            elif char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : index + 1]
        start = text.find("{", start + 1)
    return None


def parse_intent_response(text: str) -> IntentParse:
    """Leniently parse the classifier's reply.

    Tries the whole text first, then the first balanced JSON object
    (which also covers replies wrapped in a markdown fence).
    """
    stripped = text.strip()
    if not stripped:
        return IntentParseError(raw=text, reason="empty response")

    try:
        data = json.loads(stripped)
    except json.JSONDecodeError:
        candidate = _first_json_object(stripped)
        if candidate is None:
            return IntentParseError(raw=text, reason="no JSON object found")
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError as exc:
            return IntentParseError(raw=text, reason=f"invalid JSON: {exc.msg}")

    if not isinstance(data, dict):
        return IntentParseError(raw=text, reason="JSON value is not an object")
    return ParsedIntent(data=data)


# ── Rule-based fallback ─────────────────────────────────────────────────


def infer_intent(query: str) -> str:
    """Guess an intent label from cue words alone."""
    lowered = query.lower()
    if is_count_query(lowered):
        if "absent" in lowered:
            return "count_absent_today"
        if "student" in lowered:
            return "count_students"
        if "fee" in lowered:
            return "count_pending_fees"
        return "count_entities"

    if has_field_cue(lowered) or find_list_actions(lowered):
        if "absent" in lowered:
            return "list_absent_today"
        if "student" in lowered:
            return "list_students"
        if "fee" in lowered:
            return "list_pending_fees"
        return "list_entities"

    return "query_data"


def fallback_intent(query: str, confidence: float = _FALLBACK_CONFIDENCE_PARSE) -> IntentResult:
    """Build an ``IntentResult`` without the model. Never raises."""
    return IntentResult(
        intent=infer_intent(query),
        confidence=confidence,
        needs_clarification=False,
        domain=infer_domain(query),
        reasoning="rule-based fallback",
    )


def _coerce_confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return _FALLBACK_CONFIDENCE_PARSE
    return min(max(float(value), 0.0), 1.0)


def _coerce_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return isinstance(value, str) and value.strip().lower() == "true"


def align_with_query_shape(intent: str, query: str) -> str:
    """Turn a ``count_*`` label into its list form when *query* asks for rows."""
    if not intent.startswith("count_") or is_count_query(query):
        return intent
    return "list_" + intent[len("count_"):]


def _coerce_options(value: Any) -> list[str] | None:
    if not isinstance(value, list):
        return None
    options = [str(item) for item in value if item is not None]
    return options or None


def intent_from_parse(parsed: IntentParse, query: str, store: MetadataStore) -> IntentResult:
    """Turn a parse result into an ``IntentResult``.

    Missing or unknown fields are filled from the rule-based fallback.
    """
    if isinstance(parsed, IntentParseError):
        logger.warning("Could not parse intent response (%s): %s", parsed.reason, parsed.raw[:200])
        return fallback_intent(query, _FALLBACK_CONFIDENCE_PARSE)

    data = parsed.data
    domain = data.get("domain")
    if not isinstance(domain, str) or store.domain(domain) is None:
        domain = infer_domain(query)

    question = data.get("clarificationQuestion")
    return IntentResult(
        intent=align_with_query_shape(str(data.get("intent") or infer_intent(query)), query),
        confidence=_coerce_confidence(data.get("confidence")),
        needs_clarification=_coerce_flag(data.get("needsClarification", False)),
        clarification_question=question if isinstance(question, str) and question else None,
        clarification_options=_coerce_options(data.get("clarificationOptions")),
        domain=domain,
        reasoning=data.get("reasoning") if isinstance(data.get("reasoning"), str) else None,
    )


# ── Prompt ───────────────────────────────────────────────────────────────


def build_intent_prompt(
    query: str,
    store: MetadataStore,
    history: Sequence[ConversationTurn] = (),
    history_turns: int = 4,
) -> str:
    """Build the JSON-only classification prompt."""
    domain_list = "\n".join(f"- {d.domain}: {d.description}" for d in store.domains())
    cues = "\n".join(
        f'- "{phrase}" → {pattern.type}' for phrase, pattern in store.common.count_patterns.items()
    )
    recent = list(history)[-history_turns:] if history_turns > 0 else []
    context = (
        "\n".join(
            f"{'User' if turn.role == 'user' else 'Assistant'}: {turn.content}" for turn in recent
        )
        or "No previous conversation"
    )

    return f"""You are an intent classifier for a school records system. Analyze the user's query and determine:

1. What is the primary intent? (e.g., "count_students", "list_absent_today", "list_pending_fees")
2. Which domain does it belong to?
3. Is the query clear or does it need clarification?

CRITICAL: Distinguish between count queries and list queries:
- Count queries: ONLY "how many", "number of", "count" WITHOUT asking for specific fields
- List queries:
  * "which", "who", "list", "show", "find", "get", "give me"
  * ANY query that asks for SPECIFIC FIELDS (contact numbers, names, addresses, phone, parent) - these are ALWAYS list queries
  * "contact numbers of students absent today" → list query (wants contact fields, not a count)
  * "names of absent students" → list query
  * "how many students" → count query

RULE: If the query mentions specific fields to return, it is ALWAYS a list query, even if the word "count" appears.

PHRASE CUES:
{cues}

AVAILABLE DOMAINS:
{domain_list}

CONVERSATION CONTEXT:
{context}

USER QUERY: "{query}"

If the query looks like a short answer to a previous clarification question, interpret it together with the previous conversation.

Respond with a JSON object:
{{
  "intent": "primary_intent_name",
  "domain": "domain_name",
  "confidence": 0.0-1.0,
  "needsClarification": true/false,
  "clarificationQuestion": "question if needed",
  "clarificationOptions": ["option1", "option2"],
  "reasoning": "brief explanation"
}}

Return ONLY the JSON object, no other text."""


# ── Entry point ──────────────────────────────────────────────────────────


async def classify_intent(
    query: str,
    store: MetadataStore,
    llm: LLMService,
    history: Sequence[ConversationTurn] = (),
    *,
    confidence_threshold: float = 0.7,
    history_turns: int = 4,
) -> IntentResult:
    """Classify a query into an intent, a domain and a confidence.

    Args:
        query: Raw user question.
        store: Loaded metadata store.
        llm: Completion service for the LLM path.
        history: Prior conversation, oldest first.
        confidence_threshold: Pattern score above which the LLM is skipped.
        history_turns: Number of recent turns shown to the model.

    Returns:
        ``IntentResult``. Never raises for model failures.
    """
    match = store.find_matching_pattern(query)
    if match and match.score > confidence_threshold:
        logger.info(
            "Pattern match: intent=%s domain=%s score=%.2f",
            match.pattern.intent,
            match.domain,
            match.score,
        )
        return IntentResult(
            intent=align_with_query_shape(match.pattern.intent, query),
            confidence=match.score,
            needs_clarification=False,
            domain=match.domain,
        )

    prompt = build_intent_prompt(query, store, history, history_turns)
    try:
        response = await llm.complete(prompt)
    except Exception:  # noqa: BLE001
        logger.warning("Intent classification call failed; using rule-based fallback", exc_info=True)
        return fallback_intent(query, _FALLBACK_CONFIDENCE_CALL)

    result = intent_from_parse(parse_intent_response(response), query, store)
    logger.info(
        "LLM intent: intent=%s domain=%s confidence=%.2f clarify=%s",
        result.intent,
        result.domain,
        result.confidence,
        result.needs_clarification,
    )
    return result


def describe_intent(intent: IntentResult) -> str:
    """Human-readable sentence for the intent progress event."""
    if intent.needs_clarification and intent.clarification_question:
        return intent.clarification_question
    description = _INTENT_DESCRIPTIONS.get(intent.intent, "query the database")
    return f"I understand you want to {description}."
