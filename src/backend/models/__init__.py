"""
Shared models for the NLQ pipeline.

Metadata bundle models and the request-scoped values that flow between
pipeline stages are re-exported here.
"""

from .metadata import (
    BusinessLogic,
    ColumnSynonym,
    CommonMetadata,
    CountPattern,
    DomainMetadata,
    EntityInfo,
    JoinTemplate,
    JoinType,
    PatternMatch,
    QuestionPattern,
    TemporalPattern,
)
from .chat import ChatContext, ChatStreamRequest, ExecuteSqlRequest
from .pipeline import (
    AwaitingClarification,
    ConversationTurn,
    ExtractedKeywords,
    IntentResult,
    JoinSpec,
    PipelineContext,
    PipelineResult,
    QueryAnswer,
    QueryExecution,
    SemanticQuery,
    ValidationResult,
)

__all__ = [
    # Metadata bundles
    "BusinessLogic",
    "ColumnSynonym",
    "CommonMetadata",
    "CountPattern",
    "DomainMetadata",
    "EntityInfo",
    "JoinTemplate",
    "JoinType",
    "PatternMatch",
    "QuestionPattern",
    "TemporalPattern",
    # Chat API
    "ChatContext",
    "ChatStreamRequest",
    "ExecuteSqlRequest",
    # Pipeline values
    "AwaitingClarification",
    "ConversationTurn",
    "ExtractedKeywords",
    "IntentResult",
    "JoinSpec",
    "PipelineContext",
    "PipelineResult",
    "QueryAnswer",
    "QueryExecution",
    "SemanticQuery",
    "ValidationResult",
]
