"""Keyword extraction: entities, filters, time phrases and verbs.

A pure function of the query, the metadata store and (optionally) the
intent result. No network, no persistence.
"""

from __future__ import annotations

import logging

from entities.metadata_store import MetadataStore
from entities.shared.query_shape import extract_actions, find_modifiers, infer_domain
from models import ExtractedKeywords, IntentResult

logger = logging.getLogger(__name__)

_DEFAULT_ENTITY = "students"


def _append_unique(items: list[str], value: str) -> None:
    if value not in items:
        items.append(value)


def extract_keywords(
    query: str,
    store: MetadataStore,
    intent: IntentResult | None = None,
) -> ExtractedKeywords:
    """Pull structured keywords out of a question.

    Args:
        query: Raw user question.
        store: Loaded metadata store.
        intent: Classification result; its domain wins over inference.

    Returns:
        ``ExtractedKeywords`` with at least one entity.
    """
    lowered = query.lower()
    common = store.common

    entities = [name for name in common.common_entities if name in lowered]

    domain = intent.domain if intent and intent.domain else infer_domain(lowered)

    temporal = next((phrase for phrase in common.temporal_patterns if phrase in lowered), None)

    filters: list[str] = []
    domain_data = store.domain(domain)
    if domain_data:
        for term in domain_data.column_synonyms:
            if term in lowered:
                _append_unique(filters, term)
        for keyword in domain_data.keywords:
            if keyword.lower() in lowered:
                _append_unique(filters, keyword)

    keywords = ExtractedKeywords(
        entities=entities or [_DEFAULT_ENTITY],
        domain=domain,
        temporal=temporal,
        filters=filters,
        actions=extract_actions(lowered),
        modifiers=find_modifiers(lowered),
    )
    logger.info("Extracted keywords: %s", summarize_keywords(keywords))
    return keywords


def summarize_keywords(keywords: ExtractedKeywords) -> str:
    """Render keywords as a one-line summary for progress messages."""
    parts: list[str] = []
    if keywords.entities:
        parts.append(f"entities: {', '.join(keywords.entities)}")
    if keywords.domain:
        parts.append(f"domain: {keywords.domain}")
    if keywords.temporal:
        parts.append(f"time: {keywords.temporal}")
    if keywords.filters:
        parts.append(f"filters: {', '.join(keywords.filters)}")
    if keywords.actions:
        parts.append(f"actions: {', '.join(keywords.actions)}")
    return "; ".join(parts) if parts else "No keywords found"
