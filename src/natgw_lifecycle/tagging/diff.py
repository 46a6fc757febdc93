"""Minimal tag add/remove operations between two tag sets."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, FrozenSet

from natgw_lifecycle.utils.logging import get_logger

if TYPE_CHECKING:
    from natgw_lifecycle.provisioners.client import RemoteClient

logger = get_logger(__name__)


@dataclass(frozen=True)
class TagDiff:
    """Tags to set (new or changed values) and tag keys to remove."""
    to_set: Dict[str, str] = field(default_factory=dict)
    to_remove: FrozenSet[str] = frozenset()

    def is_empty(self) -> bool:
        return not self.to_set and not self.to_remove

    def apply_to(self, tags: Dict[str, str]) -> Dict[str, str]:
        """Return the tag set obtained by applying this diff to ``tags``."""
        result = {k: v for k, v in tags.items() if k not in self.to_remove}
        result.update(self.to_set)
        return result


def diff_tags(old: Dict[str, str], new: Dict[str, str]) -> TagDiff:
    """Compute the minimal diff that turns ``old`` into ``new``."""
    old = old or {}
    new = new or {}
    to_set = {k: v for k, v in new.items() if k not in old or old[k] != v}
    to_remove = frozenset(k for k in old if k not in new)
    return TagDiff(to_set=to_set, to_remove=to_remove)


class TagDiffApplier:
    """Applies a TagDiff with at most one tag call and one untag call."""

    def __init__(self, client: "RemoteClient"):
        self.client = client

    def apply(self, object_id: str, diff: TagDiff) -> int:
        """Apply the diff to a remote object.

        Returns:
            Number of remote calls issued
        """
        calls = 0

        if diff.to_remove:
            logger.debug(
                f"Removing tags from {object_id}: {sorted(diff.to_remove)}",
                extra={'nat_gateway_id': object_id, 'operation': 'update'},
            )
            self.client.untag_object(object_id, diff.to_remove)
            calls += 1

        if diff.to_set:
            logger.debug(
                f"Setting tags on {object_id}: {sorted(diff.to_set)}",
                extra={'nat_gateway_id': object_id, 'operation': 'update'},
            )
            self.client.tag_object(object_id, diff.to_set)
            calls += 1

        return calls
