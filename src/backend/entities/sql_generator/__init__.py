"""LLM-backed SQL generation."""

from .generator import generate_sql, load_prompt, substitute_tenant
from .prompts import DEFAULT_PLACEHOLDER, build_generation_prompt, build_retry_prompt
from .sanitizer import FORBIDDEN_KEYWORDS, is_refusal, sanitize_sql

__all__ = [
    "DEFAULT_PLACEHOLDER",
    "FORBIDDEN_KEYWORDS",
    "build_generation_prompt",
    "build_retry_prompt",
    "generate_sql",
    "is_refusal",
    "load_prompt",
    "sanitize_sql",
    "substitute_tenant",
]
