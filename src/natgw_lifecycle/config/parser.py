"""YAML configuration parser for NAT gateway definitions."""

import re
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, ValidationError

from .models import GatewayConfig, ProjectConfig, TagsConfig, WaiterConfig

GATEWAY_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9-]{0,62}$")


class ConfigValidationError(Exception):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, errors: Optional[List[Dict]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self.message)

    def __str__(self) -> str:
        """Format validation errors for display."""
        if not self.errors:
            return self.message

        error_lines = [self.message, ""]
        for error in self.errors:
            location = " -> ".join(str(loc) for loc in error.get("loc", []))
            msg = error.get("msg", "Unknown error")
            error_lines.append(f"  - {location}: {msg}")

        return "\n".join(error_lines)


class Config:
    """Configuration manager for natgw.yaml files."""

    def __init__(self, config_path: str):
        """Initialize configuration manager.

        Args:
            config_path: Path to natgw.yaml configuration file
        """
        self.config_path = Path(config_path)
        self.data: Dict = {}
        self.project: Optional[ProjectConfig] = None
        self.tags: TagsConfig = TagsConfig()
        self.waiter: WaiterConfig = WaiterConfig()
        self.max_workers: int = 4
        self.gateways: Dict[str, GatewayConfig] = {}

    def load(self) -> "Config":
        """Load and validate configuration from YAML file.

        Returns:
            Self for method chaining

        Raises:
            ConfigValidationError: If configuration is invalid
            FileNotFoundError: If configuration file doesn't exist
        """
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Failed to parse YAML: {e}")

        return self.load_dict(data)

    def load_dict(self, data: Dict) -> "Config":
        """Validate and parse an already-loaded configuration mapping."""
        if not isinstance(data, dict):
            raise ConfigValidationError("Configuration must be a mapping")

        self.data = data

        validation_errors = self.validate()
        if validation_errors:
            raise ConfigValidationError(
                f"Configuration validation failed with {len(validation_errors)} error(s)",
                validation_errors,
            )

        self.project = ProjectConfig(**self.data["project"])
        self.tags = TagsConfig(**self.data.get("tags", {}))
        self.waiter = WaiterConfig(**self.data.get("waiter", {}))
        self.max_workers = self.data.get("max_workers", 4)
        self.gateways = {
            name: GatewayConfig(**gateway_data)
            for name, gateway_data in (self.data.get("gateways") or {}).items()
        }

        return self

    def validate(self) -> List[Dict]:
        """Validate configuration against schema.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if "project" not in self.data:
            errors.append({"loc": ["project"], "msg": "Required field 'project' is missing"})
        else:
            errors.extend(self._check(ProjectConfig, self.data["project"], ["project"]))

        if "tags" in self.data:
            errors.extend(self._check(TagsConfig, self.data["tags"], ["tags"]))

        if "waiter" in self.data:
            errors.extend(self._check(WaiterConfig, self.data["waiter"], ["waiter"]))

        max_workers = self.data.get("max_workers", 4)
        if not isinstance(max_workers, int) or isinstance(max_workers, bool) or not 1 <= max_workers <= 64:
            errors.append({"loc": ["max_workers"], "msg": "max_workers must be an integer between 1 and 64"})

        gateways = self.data.get("gateways") or {}
        if not isinstance(gateways, dict):
            errors.append({"loc": ["gateways"], "msg": "Gateways must be a dictionary"})
        else:
            for name, gateway_data in gateways.items():
                if not isinstance(name, str) or not GATEWAY_NAME_PATTERN.match(name):
                    errors.append({
                        "loc": ["gateways", name],
                        "msg": "Gateway name must start with a letter and contain only lowercase letters, digits and hyphens",
                    })
                errors.extend(self._check(GatewayConfig, gateway_data, ["gateways", name]))

            if not errors:
                errors.extend(self._check_merged_tags(gateways))

        return errors

    def _check_merged_tags(self, gateways: Dict) -> List[Dict]:
        """Check each gateway's tags after the defaults are merged in."""
        tag_manager = TagsConfig(**self.data.get("tags", {})).tag_manager()
        errors = []
        for name, gateway_data in gateways.items():
            merged = tag_manager.desired_tags_all(gateway_data.get("tags") or {})
            for message in tag_manager.validate_tags(merged):
                errors.append({"loc": ["gateways", name, "tags"], "msg": message})
        return errors

    @staticmethod
    def _check(model: type[BaseModel], data, location: List) -> List[Dict]:
        if not isinstance(data, dict):
            return [{"loc": location, "msg": "Must be a mapping"}]
        try:
            model(**data)
        except ValidationError as e:
            return [
                {"loc": location + list(error["loc"]), "msg": error["msg"]}
                for error in e.errors()
            ]
        return []

    def get_gateways(self, names: Optional[List[str]] = None) -> Dict[str, GatewayConfig]:
        """Get gateway configurations, optionally restricted to ``names``.

        Raises:
            ConfigValidationError: If a requested gateway is not defined
        """
        if not names:
            return dict(self.gateways)

        unknown = [name for name in names if name not in self.gateways]
        if unknown:
            available = ", ".join(sorted(self.gateways)) or "(none)"
            raise ConfigValidationError(
                f"Gateway(s) not defined: {', '.join(unknown)}. Available gateways: {available}"
            )
        return {name: self.gateways[name] for name in names}
