"""Tag defaults, ignore rules and tag diffing."""

from natgw_lifecycle.tagging.diff import TagDiff, TagDiffApplier, diff_tags
from natgw_lifecycle.tagging.manager import DefaultTagsConfig, IgnoreTagsConfig, TagManager

__all__ = [
    "TagDiff",
    "TagDiffApplier",
    "diff_tags",
    "DefaultTagsConfig",
    "IgnoreTagsConfig",
    "TagManager",
]
