"""
NLQ pipeline models.

Request-scoped values passed between the pipeline stages: classification,
keyword extraction, disambiguation, validation and execution results.
"""

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, Field

from .metadata import JoinType


class ConversationTurn(BaseModel):
    """One message of prior conversation."""

    role: Literal["user", "assistant", "system"] = Field(default="user")
    content: str = Field(default="")


class PipelineContext(BaseModel):
    """Caller-supplied context for a single query."""

    tenant_id: str | None = Field(default=None, description="School the caller belongs to")
    conversation_history: list[ConversationTurn] = Field(default_factory=list)


class IntentResult(BaseModel):
    """Outcome of intent classification."""

    intent: str = Field(description="Intent label, e.g. 'count_absent_today'")
    confidence: float = Field(ge=0.0, le=1.0)
    needs_clarification: bool = Field(default=False)
    clarification_question: str | None = Field(default=None)
    clarification_options: list[str] | None = Field(default=None)
    domain: str | None = Field(default=None)
    reasoning: str | None = Field(default=None)


class ExtractedKeywords(BaseModel):
    """Entities, filters and verbs pulled out of a question."""

    entities: list[str] = Field(default_factory=lambda: ["students"])
    domain: str | None = Field(default=None)
    temporal: str | None = Field(default=None)
    filters: list[str] = Field(default_factory=list)
    actions: list[str] = Field(default_factory=list)
    modifiers: list[str] = Field(default_factory=list)


class JoinSpec(BaseModel):
    """A resolved join with aliases already applied."""

    table: str
    alias: str
    on: str
    type: JoinType = Field(default="LEFT")


class SemanticQuery(BaseModel):
    """Table, join and predicate representation between text and SQL."""

    primary_table: str
    primary_alias: str
    joins: list[JoinSpec] = Field(default_factory=list)
    conditions: list[str] = Field(
        default_factory=list, description="conditions[0] is always the tenant predicate"
    )
    select_fields: list[str] = Field(default_factory=list)
    order_by: str | None = Field(default=None)
    group_by: list[str] | None = Field(default=None)
    limit: int | None = Field(default=None)
    is_count: bool = Field(default=False)

    def join_for(self, table: str) -> JoinSpec | None:
        """Return the join onto *table*, if any."""
        return next((j for j in self.joins if j.table == table), None)


class ValidationResult(BaseModel):
    """Findings of a static query check. Only errors block execution."""

    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    message: str = Field(default="")


class PipelineResult(BaseModel):
    """Terminal success of the generation stages."""

    sql: str
    semantic_query: SemanticQuery
    intent: IntentResult
    keywords: ExtractedKeywords
    validation: ValidationResult


@dataclass(frozen=True)
class AwaitingClarification:
    """The pipeline stopped to ask the user a follow-up question."""

    question: str
    options: list[str] = field(default_factory=list)
    intent: IntentResult | None = None


class QueryExecution(BaseModel):
    """Rows returned by a successful execution attempt."""

    sql: str
    columns: list[str] = Field(default_factory=list)
    rows: list[dict[str, Any]] = Field(default_factory=list)
    row_count: int = Field(default=0)
    attempts: int = Field(default=1, description="1-based attempt that succeeded")


class QueryAnswer(BaseModel):
    """Executed rows plus a plain-language summary."""

    sql: str
    rows: list[dict[str, Any]] = Field(default_factory=list)
    columns: list[str] = Field(default_factory=list)
    row_count: int = Field(default=0)
    attempts: int = Field(default=1)
    summary: str = Field(default="")
    analysis: str | None = Field(default=None)
    intent: IntentResult | None = Field(default=None)
