"""Tag resolution package."""

from ledgerview.tags.registry import (
    TagRegistry,
    TagResolution,
    UnresolvedTagError,
    normalize_labels,
    resolve_tags,
)

__all__ = [
    "TagRegistry",
    "TagResolution",
    "UnresolvedTagError",
    "normalize_labels",
    "resolve_tags",
]
