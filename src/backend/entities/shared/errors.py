"""Exception taxonomy for the NLQ pipeline.

Intent-classification failures are not represented here: they are
recovered by the rule-based fallback and never reach the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from models import ValidationResult


class NLQError(Exception):
    """Base class for every pipeline failure."""


class ConfigurationError(NLQError):
    """Missing tenant id or metadata bundle. Never retried."""


class LLMServiceError(NLQError):
    """The completion call failed, timed out, or no provider is configured."""


class SQLGenerationError(NLQError):
    """The model produced nothing usable as a SELECT statement.

    Args:
        message: Human-readable reason.
        raw_output: The text returned by the model, if any.
    """

    def __init__(self, message: str, raw_output: str | None = None) -> None:
        super().__init__(message)
        self.raw_output = raw_output


class SQLExecutionError(NLQError):
    """The database rejected a statement.

    The database message is kept verbatim so it can be fed back into
    the regeneration prompt.
    """

    def __init__(self, error: str, sql: str, attempt: int) -> None:
        super().__init__(error)
        self.error = error
        self.sql = sql
        self.attempt = attempt


class PipelineError(NLQError):
    """Terminal orchestrator failure.

    Args:
        stage: Stage that failed (``intent``, ``sql_generation``, ``execution``...).
        message: Human-readable message, safe to show the user.
        sql: Last SQL produced, for diagnostics.
        validation: Validation findings when the failure was a rejected query.
    """

    def __init__(
        self,
        stage: str,
        message: str,
        sql: str | None = None,
        validation: ValidationResult | None = None,
    ) -> None:
        super().__init__(message)
        self.stage = stage
        self.message = message
        self.sql = sql
        self.validation = validation

    def __str__(self) -> str:
        return f"[{self.stage}] {self.message}"
