"""Query disambiguation stage."""

from .disambiguator import disambiguate, render_semantic_sql, tenant_predicate
from .predicates import apply_aliases

__all__ = ["apply_aliases", "disambiguate", "render_semantic_sql", "tenant_predicate"]
