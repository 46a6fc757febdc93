"""Pydantic models for configuration schema."""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from natgw_lifecycle.provisioners.models import ConnectivityType, ResourceDescriptor
from natgw_lifecycle.provisioners.nat_gateway import CREATED_CLASSIFIER, DELETED_CLASSIFIER
from natgw_lifecycle.provisioners.waiter import PollPolicy, StateClassifier
from natgw_lifecycle.tagging.manager import DefaultTagsConfig, IgnoreTagsConfig, TagManager


def _validate_tag_map(v: Dict[str, str]) -> Dict[str, str]:
    for key, value in v.items():
        if not key or not isinstance(key, str):
            raise ValueError(f"Tag key must be a non-empty string: {key}")
        if not isinstance(value, str):
            raise ValueError(f"Tag value must be a string for key '{key}': {value}")
        if len(key) > 128:
            raise ValueError(f"Tag key exceeds 128 characters: {key}")
        if len(value) > 256:
            raise ValueError(f"Tag value exceeds 256 characters for key '{key}'")
        if key.startswith("aws:"):
            raise ValueError(f"Tag key cannot start with 'aws:' (reserved): {key}")
    return v


class ProjectConfig(BaseModel):
    """Project-level configuration."""

    name: str = Field(..., min_length=1, max_length=64, pattern="^[a-z0-9-]+$")
    region: str = Field(..., pattern="^[a-z]{2}(-gov)?-[a-z]+-[0-9]$")
    profile: Optional[str] = None


class IgnoreTagsModel(BaseModel):
    """Tags managed outside this tool."""

    keys: List[str] = Field(default_factory=list)
    key_prefixes: List[str] = Field(default_factory=list)


class TagsConfig(BaseModel):
    """Provider-wide tag settings."""

    default: Dict[str, str] = Field(default_factory=dict)
    ignore: IgnoreTagsModel = Field(default_factory=IgnoreTagsModel)

    @field_validator("default")
    @classmethod
    def validate_default(cls, v: Dict[str, str]) -> Dict[str, str]:
        """Validate default tag keys and values."""
        return _validate_tag_map(v)

    def tag_manager(self) -> TagManager:
        return TagManager(
            default_tags=DefaultTagsConfig(self.default),
            ignore_tags=IgnoreTagsConfig(self.ignore.keys, self.ignore.key_prefixes),
        )


class WaiterConfig(BaseModel):
    """Polling configuration for create and delete waits."""

    create_timeout: float = Field(600, gt=0, description="Seconds to wait for a gateway to become available")
    delete_timeout: float = Field(1800, gt=0, description="Seconds to wait for a gateway to be deleted")
    interval: float = Field(5.0, gt=0, le=300)
    max_interval: float = Field(30.0, gt=0, le=600)
    backoff: float = Field(1.5, ge=1.0, le=4.0)
    jitter: float = Field(0.1, ge=0, le=1.0)
    max_transient_errors: int = Field(3, ge=0, le=50)
    not_found_checks: int = Field(20, ge=0, le=200)

    @model_validator(mode="after")
    def validate_intervals(self):
        """Validate that the interval bounds are consistent."""
        if self.max_interval < self.interval:
            raise ValueError("max_interval must be greater than or equal to interval")
        return self

    def _policy(self, classifier: StateClassifier, timeout: float) -> PollPolicy:
        return PollPolicy(
            classifier=classifier,
            timeout=timeout,
            interval=self.interval,
            max_interval=self.max_interval,
            backoff=self.backoff,
            jitter=self.jitter,
            max_transient_errors=self.max_transient_errors,
            not_found_checks=self.not_found_checks,
        )

    def create_policy(self) -> PollPolicy:
        return self._policy(CREATED_CLASSIFIER, self.create_timeout)

    def delete_policy(self) -> PollPolicy:
        return self._policy(DELETED_CLASSIFIER, self.delete_timeout)


class GatewayConfig(BaseModel):
    """Desired state of one NAT gateway."""

    subnet_id: str = Field(..., pattern="^subnet-[0-9a-zA-Z]+$")
    allocation_id: Optional[str] = Field(None, pattern="^eipalloc-[0-9a-zA-Z]+$")
    connectivity_type: ConnectivityType = ConnectivityType.PUBLIC
    tags: Dict[str, str] = Field(default_factory=dict)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: Dict[str, str]) -> Dict[str, str]:
        """Validate tag keys and values."""
        return _validate_tag_map(v)

    @model_validator(mode="after")
    def validate_connectivity(self):
        """Private gateways cannot be associated with an Elastic IP."""
        if self.connectivity_type == ConnectivityType.PRIVATE and self.allocation_id:
            raise ValueError("allocation_id is not supported for private NAT gateways")
        return self

    def to_descriptor(self) -> ResourceDescriptor:
        return ResourceDescriptor(
            subnet_id=self.subnet_id,
            allocation_id=self.allocation_id,
            connectivity_type=self.connectivity_type,
            tags=dict(self.tags),
        )
