"""Query disambiguation: keywords + intent → ``SemanticQuery``.

Maps natural-language keywords onto tables, joins and predicates using
the metadata store. Aliases are tracked in an explicit table-name →
alias map and applied through ``predicates.apply_aliases``.
"""

from __future__ import annotations

import logging
import re

from entities.metadata_store import MetadataStore
from entities.shared.errors import ConfigurationError
from entities.shared.query_shape import is_count_query
from models import (
    DomainMetadata,
    ExtractedKeywords,
    IntentResult,
    JoinSpec,
    JoinTemplate,
    SemanticQuery,
)

from .predicates import apply_aliases

logger = logging.getLogger(__name__)

_DEFAULT_DOMAIN = "students"
_DEFAULT_TABLE = "students"
_DEFAULT_ENTITY = "students"
_RANKING_MODIFIERS = frozenset({"top", "best", "highest"})
_RANKING_LIMIT = 10

_STUDENT_FIELDS = ("id", "first_name", "last_name", "admission_number", "roll_number")
_CONTACT_FIELDS = (
    "father_phone",
    "mother_phone",
    "father_name",
    "mother_name",
    "emergency_contact_phone",
    "emergency_contact_name",
)
_ADDRESS_FIELDS = ("address", "city", "state")

_COMPARISON_PREFIX = re.compile(r"^\s*(?:[<>!]=?|=|<>|BETWEEN\b|IN\b|IS\b)", re.IGNORECASE)


def tenant_predicate(alias: str, tenant_id: str, tenant_column: str = "school_id") -> str:
    """Tenant-isolation predicate with the id quoted as a SQL literal."""
    escaped = tenant_id.replace("'", "''")
    return f"{alias}.{tenant_column} = '{escaped}'"


def _date_predicate(column_ref: str, temporal_sql: str) -> str:
    if _COMPARISON_PREFIX.match(temporal_sql):
        return f"{column_ref} {temporal_sql.strip()}"
    return f"{column_ref} = {temporal_sql.strip()}"


class _QueryBuilder:
    """Mutable working state while one ``SemanticQuery`` is assembled."""

    def __init__(self, query: SemanticQuery) -> None:
        self.query = query
        self.aliases: dict[str, str] = {query.primary_table: query.primary_alias}

    def has_table(self, table: str) -> bool:
        return table in self.aliases

    def add_join(self, template: JoinTemplate, store: MetadataStore) -> None:
        """Add *template*, anchored on whichever side is already present."""
        if template.to_table == self.query.primary_table:
            target, anchor = template.from_table, template.to_table
            alias = store.table_alias(target)
        else:
            target, anchor = template.to_table, template.from_table
            alias = template.alias or store.table_alias(target)

        if self.has_table(target):
            return
        if not self.has_table(anchor):
            logger.debug("Skipping join %s → %s: %s not in query", anchor, target, anchor)
            return

        self.aliases[target] = alias
        self.query.joins.append(
            JoinSpec(
                table=target,
                alias=alias,
                on=apply_aliases(template.on, self.aliases),
                type=template.type,
            )
        )

    def add_condition(self, sql: str) -> None:
        condition = apply_aliases(sql, self.aliases)
        if condition not in self.query.conditions:
            self.query.conditions.append(condition)


def disambiguate(
    query: str,
    keywords: ExtractedKeywords,
    intent: IntentResult | None,
    store: MetadataStore,
    tenant_id: str | None,
    *,
    tenant_column: str = "school_id",
) -> SemanticQuery:
    """Build the semantic representation of a question.

    Args:
        query: Raw user question.
        keywords: Output of keyword extraction.
        intent: Output of intent classification (domain fallback).
        store: Loaded metadata store.
        tenant_id: School the caller belongs to.
        tenant_column: Column holding the tenant id.

    Returns:
        ``SemanticQuery`` whose ``conditions[0]`` is the tenant predicate.

    Raises:
        ConfigurationError: If *tenant_id* is missing.
    """
    if not tenant_id:
        raise ConfigurationError("school_id is required in context")

    lowered = query.lower()
    domain = keywords.domain or (intent.domain if intent else None) or _DEFAULT_DOMAIN
    domain_data = store.domain(domain)

    primary_table = domain_data.table if domain_data else _DEFAULT_TABLE
    primary_alias = store.table_alias(primary_table)
    entity = keywords.entities[0] if keywords.entities else _DEFAULT_ENTITY
    entity_info = store.entity(entity)
    if entity_info:
        primary_table, primary_alias = entity_info.table, entity_info.alias

    builder = _QueryBuilder(
        SemanticQuery(
            primary_table=primary_table,
            primary_alias=primary_alias,
            conditions=[tenant_predicate(primary_alias, tenant_id, tenant_column)],
            is_count=is_count_query(query, keywords.actions),
        )
    )
    semantic = builder.query

    # Every join the domain defines.
    if domain_data:
        for template in domain_data.common_joins:
            builder.add_join(template, store)

    # Column synonyms.
    for term in keywords.filters:
        synonym = store.synonym(term, domain)
        if synonym:
            builder.add_condition(synonym.sql)

    # Time window against the domain's date column.
    if keywords.temporal:
        temporal_sql = store.temporal_pattern(keywords.temporal)
        if temporal_sql:
            column_ref = _date_column_ref(builder, domain_data)
            semantic.conditions.append(_date_predicate(column_ref, temporal_sql))

    # Business logic keyed by "{filter}_{entity}".
    for term in keywords.filters:
        logic = store.business_logic(f"{term}_{entity}", domain)
        if not logic:
            continue
        if logic.join:
            builder.add_join(logic.join, store)
        if logic.condition:
            builder.add_condition(logic.condition)

    semantic.select_fields = _select_fields(semantic, lowered)

    if _RANKING_MODIFIERS.intersection(keywords.modifiers):
        semantic.order_by = "count DESC" if semantic.is_count else f"{primary_alias}.id DESC"
        semantic.limit = _RANKING_LIMIT
    elif semantic.primary_table == "students" and not semantic.is_count:
        semantic.order_by = f"{primary_alias}.roll_number"

    logger.info(
        "Semantic query: primary=%s joins=%s conditions=%d count=%s",
        semantic.primary_table,
        [j.table for j in semantic.joins],
        len(semantic.conditions),
        semantic.is_count,
    )
    return semantic


def _date_column_ref(builder: _QueryBuilder, domain_data: DomainMetadata | None) -> str:
    """Qualified date column for the domain, or the primary alias's ``date``."""
    primary_alias = builder.query.primary_alias
    if domain_data is None:
        return f"{primary_alias}.date"
    column = domain_data.date_column
    if "." not in column:
        column = f"{domain_data.table}.{column}"
    table, _, name = column.partition(".")
    if builder.has_table(table):
        return apply_aliases(column, builder.aliases)
    return f"{primary_alias}.{name}"


def _select_fields(semantic: SemanticQuery, lowered: str) -> list[str]:
    alias = semantic.primary_alias
    if semantic.is_count:
        return [f"COUNT(DISTINCT {alias}.id) AS count"]

    fields: list[str] = []
    if semantic.primary_table == "students":
        fields.extend(f"{alias}.{name}" for name in _STUDENT_FIELDS)
        class_join = semantic.join_for("classes")
        if class_join:
            fields.append(f"{class_join.alias}.name AS class_name")
        if any(cue in lowered for cue in ("contact", "phone", "parent")):
            fields.extend(f"{alias}.{name}" for name in _CONTACT_FIELDS)
        if "address" in lowered or "location" in lowered:
            fields.extend(f"{alias}.{name}" for name in _ADDRESS_FIELDS)
    else:
        fields.append(f"{alias}.*")

    attendance_join = semantic.join_for("attendances")
    if attendance_join:
        fields.append(f"{attendance_join.alias}.status AS attendance_status")
        fields.append(f"{attendance_join.alias}.date AS attendance_date")

    fee_join = semantic.join_for("fees")
    if fee_join:
        fields.extend([
            f"{fee_join.alias}.amount",
            f"{fee_join.alias}.due_date",
            f"{fee_join.alias}.fee_type",
            f"{fee_join.alias}.status AS fee_status",
        ])
    return fields


def render_semantic_sql(semantic: SemanticQuery) -> str:
    """Render a ``SemanticQuery`` as SQL text for diagnostics."""
    lines = [
        f"SELECT {', '.join(semantic.select_fields) or '*'}",
        f"FROM {semantic.primary_table} {semantic.primary_alias}",
    ]
    lines.extend(f"{j.type} JOIN {j.table} {j.alias} ON {j.on}" for j in semantic.joins)
    if semantic.conditions:
        lines.append("WHERE " + "\n  AND ".join(semantic.conditions))
    if semantic.group_by:
        lines.append(f"GROUP BY {', '.join(semantic.group_by)}")
    if semantic.order_by:
        lines.append(f"ORDER BY {semantic.order_by}")
    if semantic.limit is not None:
        lines.append(f"LIMIT {semantic.limit}")
    return "\n".join(lines)
