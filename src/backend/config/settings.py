"""Centralized application settings loaded from environment variables.

All configuration is defined once here. Other modules should import
``get_settings()`` rather than calling ``os.getenv()`` directly.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application-wide configuration backed by environment variables.

    Field names are **lowercased** versions of the env-var names.
    ``pydantic-settings`` maps them automatically (case-insensitive).

    Example::

        settings = Settings()  # reads .env + real env
        api_key = settings.openai_api_key
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -- LLM provider ------------------------------------------------------
    # The first configured credential selects the provider, in field order.

    openai_api_key: str | None = None
    """OpenAI API key. Selects the OpenAI provider when set."""

    anthropic_api_key: str | None = None
    """Anthropic API key. Selects the Anthropic provider when set."""

    azure_ai_project_endpoint: str = ""
    """Foundry project endpoint URL. Selects Azure AI when set."""

    azure_client_id: str | None = None
    """Managed-identity client ID (None → system-assigned)."""

    llm_api_url: str | None = None
    """Base URL of an OpenAI-compatible endpoint (self-hosted models)."""

    local_llm_api_url: str = "http://localhost:11434/v1"
    """Fallback OpenAI-compatible endpoint when nothing else is configured."""

    llm_model: str | None = None
    """Model override. Falls back to the provider default."""

    llm_temperature: float = 0.1
    """Sampling temperature for SQL generation and classification."""

    llm_max_tokens: int = 500
    """Completion token cap for OpenAI-style providers."""

    llm_timeout_seconds: float = 30.0
    """Upper bound on a single completion call."""

    # -- School database ---------------------------------------------------

    sql_connection_string: str = ""
    """ODBC connection string for the school-records database."""

    sql_timeout_seconds: float = 15.0
    """Upper bound on a single query execution."""

    # -- NLQ pipeline ------------------------------------------------------

    metadata_path: str | None = None
    """Directory of metadata bundles. None → bundled package data."""

    tenant_column: str = "school_id"
    """Column that scopes every row to one school."""

    tenant_placeholder: str = "<school_id_from_context>"
    """Token in prompt examples replaced with the caller's tenant id."""

    intent_confidence_threshold: float = 0.7
    """Pattern-match score above which the LLM classifier is skipped."""

    intent_history_turns: int = 4
    """History turns included in the classification prompt."""

    prompt_history_turns: int = 10
    """History turns included in SQL-generation prompts."""

    max_sql_attempts: int = 3
    """Total execute/regenerate attempts before giving up."""

    example_values_ttl_seconds: int = 300
    """TTL (seconds) for the example-values cache."""

    example_rows_per_table: int = 10
    """Sample rows fetched per major table for prompts."""

    # -- Operational -------------------------------------------------------

    large_result_threshold: int = 100
    """Row count above which the API streams a SQL reference instead of rows."""

    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    """Origins allowed to call the chat API."""


def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    Uses ``lru_cache`` semantics via a module-level singleton so the
    ``.env`` file is read at most once per process.

    Returns:
        The global ``Settings`` object.
    """
    return _settings


_settings = Settings()
