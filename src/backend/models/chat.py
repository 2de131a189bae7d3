"""
Chat API request models.

The browser widget sends camelCase keys; fields accept either the alias
or the Python name.
"""

from pydantic import BaseModel, ConfigDict, Field

from .pipeline import ConversationTurn, PipelineContext


class ChatContext(BaseModel):
    """Caller context attached to a chat message."""

    model_config = ConfigDict(extra="allow")

    school_id: str | None = Field(default=None, description="School the caller belongs to")


class ChatStreamRequest(BaseModel):
    """Body of ``POST /api/chat/stream``."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(min_length=1, description="The user's message")
    context: ChatContext = Field(default_factory=ChatContext)
    conversation_history: list[ConversationTurn] = Field(
        default_factory=list, alias="conversationHistory"
    )

    def pipeline_context(self) -> PipelineContext:
        """Tenant id and history in the form the pipeline consumes."""
        return PipelineContext(
            tenant_id=self.context.school_id,
            conversation_history=self.conversation_history,
        )


class ExecuteSqlRequest(BaseModel):
    """Body of ``POST /api/chat/execute-sql`` for large result sets."""

    sql: str = Field(min_length=1)
    context: ChatContext = Field(default_factory=ChatContext)
