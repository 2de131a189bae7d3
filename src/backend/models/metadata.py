"""
Metadata bundle models.

These models describe the JSON bundles under
``entities/metadata_store/data``: one ``common.json`` with cross-domain
vocabulary and one file per business domain.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

JoinType = Literal["INNER", "LEFT", "RIGHT"]


class TemporalPattern(BaseModel):
    """A time phrase and the SQL date expression it maps to."""

    model_config = ConfigDict(frozen=True)

    sql: str = Field(description="Date predicate or expression, e.g. 'CURRENT_DATE'")
    description: str = Field(default="")


class CountPattern(BaseModel):
    """A phrase that hints at a counting or listing question."""

    model_config = ConfigDict(frozen=True)

    type: str = Field(description="'count' or 'list'")
    description: str = Field(default="")


class EntityInfo(BaseModel):
    """A business entity and the table that stores it."""

    model_config = ConfigDict(frozen=True)

    table: str = Field(description="Relation name")
    alias: str = Field(description="Alias used in generated predicates")
    description: str = Field(default="")


class CommonMetadata(BaseModel):
    """Cross-domain vocabulary shared by every domain bundle."""

    model_config = ConfigDict(frozen=True)

    description: str = Field(default="")
    temporal_patterns: dict[str, TemporalPattern] = Field(default_factory=dict)
    count_patterns: dict[str, CountPattern] = Field(default_factory=dict)
    common_entities: dict[str, EntityInfo] = Field(
        default_factory=dict, description="Entity name → table/alias (insertion order is scan order)"
    )


class ColumnSynonym(BaseModel):
    """A user phrase mapped to a SQL predicate written against full table names."""

    model_config = ConfigDict(frozen=True)

    sql: str = Field(description="Predicate such as \"attendances.status = 'absent'\"")
    description: str = Field(default="")


class JoinTemplate(BaseModel):
    """A join the domain knows how to make."""

    model_config = ConfigDict(frozen=True)

    from_table: str = Field(description="Table the join starts from")
    to_table: str = Field(description="Table being joined")
    on: str = Field(description="Join condition written against full table names")
    alias: str = Field(default="", description="Preferred alias for the joined table")
    type: JoinType = Field(default="LEFT")


class BusinessLogic(BaseModel):
    """A named rule that a plain column synonym cannot express."""

    model_config = ConfigDict(frozen=True)

    condition: str | None = Field(default=None)
    join: JoinTemplate | None = Field(default=None)
    description: str = Field(default="")


class QuestionPattern(BaseModel):
    """A worked example question for a domain."""

    model_config = ConfigDict(frozen=True)

    pattern: str = Field(description="Template; parenthesized spans are wildcards")
    intent: str = Field(description="Intent label, e.g. 'count_absent_today'")
    variations: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    description: str = Field(default="")


class DomainMetadata(BaseModel):
    """Everything the pipeline knows about one business domain."""

    model_config = ConfigDict(frozen=True)

    domain: str
    description: str = Field(default="")
    table: str = Field(description="Target relation of the domain")
    date_column: str = Field(default="date", description="Column temporal phrases filter on")
    keywords: list[str] = Field(default_factory=list)
    column_synonyms: dict[str, ColumnSynonym] = Field(default_factory=dict)
    business_logic: dict[str, BusinessLogic] = Field(default_factory=dict)
    common_joins: list[JoinTemplate] = Field(default_factory=list)
    question_patterns: list[QuestionPattern] = Field(default_factory=list)


class PatternMatch(BaseModel):
    """Best worked-pattern match for a query."""

    model_config = ConfigDict(frozen=True)

    pattern: QuestionPattern
    domain: str
    score: float
