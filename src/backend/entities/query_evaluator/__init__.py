"""Static query evaluation."""

from .evaluator import DANGEROUS_KEYWORDS, evaluate_semantic_query, evaluate_sql

__all__ = ["DANGEROUS_KEYWORDS", "evaluate_semantic_query", "evaluate_sql"]
