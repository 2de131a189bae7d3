"""DataAssistant: routes chat messages between the NL2SQL pipeline and conversation.

Usage:
    from entities.assistant import DataAssistant

    assistant = DataAssistant(llm)
"""

from .assistant import (
    DataAssistant,
    MergedQuery,
    RoutingDecision,
    load_assistant_prompt,
    looks_like_data_request,
    merge_clarification,
)

__all__ = [
    "DataAssistant",
    "MergedQuery",
    "RoutingDecision",
    "load_assistant_prompt",
    "looks_like_data_request",
    "merge_clarification",
]
