"""Read-only store of the NLQ metadata bundles.

The store is constructed once at process start and passed to every
stage that needs it. Bundles are parsed lazily on first access and kept
until ``reset()`` is called.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from entities.shared.errors import ConfigurationError
from models import (
    BusinessLogic,
    ColumnSynonym,
    CommonMetadata,
    DomainMetadata,
    EntityInfo,
    PatternMatch,
)
from pydantic import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_METADATA_PATH = Path(__file__).resolve().parent / "data"

_COMMON_FILE = "common.json"
_REGEX_PATTERN_SCORE = 0.7
_PARENTHESIZED = re.compile(r"\([^)]+\)")

# Used when an entity is not declared in common.json.
_DEFAULT_ALIASES: dict[str, str] = {
    "students": "s",
    "classes": "c",
    "attendances": "a",
    "fees": "f",
    "exams": "e",
    "exam_results": "er",
    "staff": "st",
    "subjects": "sub",
}


def _read_json(path: Path) -> dict:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Malformed metadata file {path.name}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Metadata file {path.name} must contain a JSON object")
    return data


class MetadataStore:
    """Common and per-domain NLQ metadata.

    Args:
        path: Directory holding ``common.json`` and one JSON file per
            domain. Defaults to the bundled package data.
    """

    def __init__(self, path: Path | str | None = None) -> None:
        self._path = Path(path) if path else DEFAULT_METADATA_PATH
        self._common: CommonMetadata | None = None
        self._domains: dict[str, DomainMetadata] | None = None

    # -- loading -----------------------------------------------------------

    def load(self) -> tuple[CommonMetadata, dict[str, DomainMetadata]]:
        """Parse every bundle once and return the cached result.

        Raises:
            ConfigurationError: If ``common.json`` is missing or any
                bundle fails to parse.
        """
        if self._common is not None and self._domains is not None:
            return self._common, self._domains

        common_path = self._path / _COMMON_FILE
        if not common_path.exists():
            raise ConfigurationError(f"{_COMMON_FILE} metadata file is required (looked in {self._path})")

        try:
            common = CommonMetadata.model_validate(_read_json(common_path))
            domains: dict[str, DomainMetadata] = {}
            for file in sorted(self._path.glob("*.json")):
                if file.name == _COMMON_FILE:
                    continue
                domain = DomainMetadata.model_validate(_read_json(file))
                domains[domain.domain] = domain
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid metadata bundle: {exc}") from exc

        logger.info(
            "Loaded NLQ metadata from %s: %d domains (%s)",
            self._path,
            len(domains),
            ", ".join(domains),
        )
        self._common, self._domains = common, domains
        return common, domains

    def reset(self) -> None:
        """Drop the cached bundles; the next access re-reads the files."""
        self._common = None
        self._domains = None

    # -- lookups -----------------------------------------------------------

    @property
    def common(self) -> CommonMetadata:
        return self.load()[0]

    def domains(self) -> list[DomainMetadata]:
        return list(self.load()[1].values())

    def domain(self, name: str | None) -> DomainMetadata | None:
        if not name:
            return None
        return self.load()[1].get(name)

    def _search_domains(self, domain: str | None) -> list[DomainMetadata]:
        """Named domain first, then every domain in load order."""
        preferred = self.domain(domain)
        rest = [d for d in self.domains() if d is not preferred]
        return [preferred, *rest] if preferred else rest

    def synonym(self, term: str, domain: str | None = None) -> ColumnSynonym | None:
        """Resolve a column synonym, preferring *domain*."""
        key = term.lower()
        for data in self._search_domains(domain):
            if key in data.column_synonyms:
                return data.column_synonyms[key]
        return None

    def business_logic(self, key: str, domain: str | None = None) -> BusinessLogic | None:
        """Resolve a business-logic rule, preferring *domain*."""
        for data in self._search_domains(domain):
            if key in data.business_logic:
                return data.business_logic[key]
        return None

    def temporal_pattern(self, term: str) -> str | None:
        """Return the SQL date expression for a time phrase."""
        pattern = self.common.temporal_patterns.get(term.lower())
        return pattern.sql if pattern else None

    def entity(self, name: str) -> EntityInfo | None:
        return self.common.common_entities.get(name.lower())

    def table_alias(self, table: str) -> str:
        """Alias for *table*: declared entity alias, else the default map."""
        for info in self.common.common_entities.values():
            if info.table == table:
                return info.alias
        return _DEFAULT_ALIASES.get(table, table[:1])

    # -- pattern matching --------------------------------------------------

    def find_matching_pattern(self, query: str) -> PatternMatch | None:
        """Score every worked question pattern against *query*.

        * exact (case-insensitive) match on a variation → 1.0, returned at once;
        * substring overlap with a variation → ``min(len) / max(len)``;
        * keyword overlap → ``matched / total``;
        * loose regex from the pattern template → 0.7.

        The best score across all domains wins; ties keep the first found.
        """
        lowered = query.lower().strip()
        if not lowered:
            return None

        best: PatternMatch | None = None
        best_score = 0.0

        def consider(score: float, pattern, domain: str) -> None:
            nonlocal best, best_score
            if score > best_score:
                best_score = score
                best = PatternMatch(pattern=pattern, domain=domain, score=score)

        for data in self.domains():
            for pattern in data.question_patterns:
                for variation in pattern.variations:
                    candidate = variation.lower()
                    if lowered == candidate:
                        return PatternMatch(pattern=pattern, domain=data.domain, score=1.0)
                    if candidate and (candidate in lowered or lowered in candidate):
                        consider(
                            min(len(lowered), len(candidate)) / max(len(lowered), len(candidate)),
                            pattern,
                            data.domain,
                        )

                if pattern.keywords:
                    matched = sum(1 for kw in pattern.keywords if kw.lower() in lowered)
                    if matched:
                        consider(matched / len(pattern.keywords), pattern, data.domain)

                try:
                    loose = re.compile(_PARENTHESIZED.sub(".*", pattern.pattern), re.IGNORECASE)
                except re.error:
                    logger.debug("Skipping unparsable pattern template: %s", pattern.pattern)
                    continue
                if loose.search(query):
                    consider(_REGEX_PATTERN_SCORE, pattern, data.domain)

        return best
