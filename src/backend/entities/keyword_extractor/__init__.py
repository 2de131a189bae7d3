"""Keyword extraction stage."""

from .extractor import extract_keywords, summarize_keywords

__all__ = ["extract_keywords", "summarize_keywords"]
