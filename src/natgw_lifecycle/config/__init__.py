"""Configuration module for natgw.yaml parsing and validation."""

from .models import (
    GatewayConfig,
    IgnoreTagsModel,
    ProjectConfig,
    TagsConfig,
    WaiterConfig,
)
from .parser import Config, ConfigValidationError

__all__ = [
    "Config",
    "ConfigValidationError",
    "GatewayConfig",
    "IgnoreTagsModel",
    "ProjectConfig",
    "TagsConfig",
    "WaiterConfig",
]
