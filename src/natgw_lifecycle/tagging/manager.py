"""Tag management: provider default tags, ignored tags and validation."""

from typing import Dict, Iterable, List, Optional
from natgw_lifecycle.utils.logging import get_logger

logger = get_logger(__name__)

# Tags under this prefix are written by AWS itself and cannot be managed
AWS_RESERVED_PREFIX = "aws:"


class DefaultTagsConfig:
    """Tags applied to every gateway unless the gateway overrides them."""

    def __init__(self, tags: Optional[Dict[str, str]] = None):
        self.tags = dict(tags or {})

    def merge_tags(self, tags: Dict[str, str]) -> Dict[str, str]:
        """Overlay resource tags on the defaults; resource values win."""
        merged = dict(self.tags)
        merged.update(tags)
        return merged

    def remove_default_config(self, tags: Dict[str, str]) -> Dict[str, str]:
        """Drop tags that are present only because of the defaults.

        A key whose value differs from its default was set on the resource and is kept.
        """
        return {k: v for k, v in tags.items() if self.tags.get(k) != v}


class IgnoreTagsConfig:
    """Tags that are managed outside this tool and never reported or diffed."""

    def __init__(self, keys: Optional[Iterable[str]] = None, key_prefixes: Optional[Iterable[str]] = None):
        self.keys = set(keys or ())
        self.key_prefixes = tuple(key_prefixes or ())

    def is_ignored(self, key: str) -> bool:
        return key in self.keys or (bool(self.key_prefixes) and key.startswith(self.key_prefixes))

    def filter(self, tags: Dict[str, str]) -> Dict[str, str]:
        return {k: v for k, v in tags.items() if not self.is_ignored(k)}


class TagManager:
    """Applies default-tag merging and ignore filtering before tags reach the reconciler."""

    def __init__(
        self,
        default_tags: Optional[DefaultTagsConfig] = None,
        ignore_tags: Optional[IgnoreTagsConfig] = None,
    ):
        self.default_tags = default_tags or DefaultTagsConfig()
        self.ignore_tags = ignore_tags or IgnoreTagsConfig()

    def desired_tags_all(self, tags: Dict[str, str]) -> Dict[str, str]:
        """Full tag set a gateway should carry: defaults merged with its own tags."""
        return self.ignore_tags.filter(self.default_tags.merge_tags(tags))

    def observed_tags_all(self, remote_tags: Dict[str, str]) -> Dict[str, str]:
        """Remote tags without AWS system tags and ignored tags."""
        tags = {k: v for k, v in remote_tags.items() if not k.startswith(AWS_RESERVED_PREFIX)}
        return self.ignore_tags.filter(tags)

    def resource_tags(self, tags_all: Dict[str, str]) -> Dict[str, str]:
        """Tags attributable to the gateway itself rather than the defaults."""
        return self.default_tags.remove_default_config(tags_all)

    def validate_tags(self, tags: Dict[str, str]) -> List[str]:
        """Validate tags against AWS requirements.

        Args:
            tags: Dictionary of tags to validate

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        for key, value in tags.items():
            if not key:
                errors.append("Tag key cannot be empty")
            elif len(key) > 128:
                errors.append(f"Tag key exceeds 128 characters: {key}")
            elif key.startswith(AWS_RESERVED_PREFIX):
                errors.append(f"Tag key cannot start with 'aws:' (reserved): {key}")

            if not isinstance(value, str):
                errors.append(f"Tag value must be a string for key '{key}': {value}")
            elif len(value) > 256:
                errors.append(f"Tag value exceeds 256 characters for key '{key}'")

        # AWS limit is 50 tags per resource
        if len(tags) > 50:
            errors.append(f"Too many tags: {len(tags)} (AWS limit is 50 per resource)")

        return errors
