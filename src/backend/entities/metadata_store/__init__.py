"""NLQ metadata store: common vocabulary and per-domain bundles."""

from .store import DEFAULT_METADATA_PATH, MetadataStore

__all__ = ["DEFAULT_METADATA_PATH", "MetadataStore"]
