"""Intent classification stage."""

from .classifier import (
    IntentParseError,
    ParsedIntent,
    classify_intent,
    describe_intent,
    fallback_intent,
    parse_intent_response,
)

__all__ = [
    "IntentParseError",
    "ParsedIntent",
    "classify_intent",
    "describe_intent",
    "fallback_intent",
    "parse_intent_response",
]
