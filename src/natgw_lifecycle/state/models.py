"""State file data models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

from natgw_lifecycle.provisioners.models import ConnectivityType, ReconciledState


class GatewayStatus(str, Enum):
    """Whether a tracked gateway finished its last create successfully."""
    CREATED = "created"
    TAINTED = "tainted"  # create call succeeded but the wait did not


class TrackedGateway(BaseModel):
    """A NAT gateway owned by this project, keyed by its declarative name."""

    name: str = Field(..., description="Declarative gateway name")
    nat_gateway_id: str = Field(..., description="EC2 NAT gateway ID")
    status: GatewayStatus = GatewayStatus.CREATED
    subnet_id: Optional[str] = None
    connectivity_type: ConnectivityType = ConnectivityType.PUBLIC
    allocation_id: Optional[str] = None
    network_interface_id: Optional[str] = None
    private_ip: Optional[str] = None
    public_ip: Optional[str] = None
    tags: Dict[str, str] = Field(default_factory=dict)
    tags_all: Dict[str, str] = Field(default_factory=dict)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_reconciled(cls, name: str, reconciled: ReconciledState) -> "TrackedGateway":
        return cls(
            name=name,
            nat_gateway_id=reconciled.id,
            subnet_id=reconciled.subnet_id,
            connectivity_type=reconciled.connectivity_type,
            allocation_id=reconciled.allocation_id,
            network_interface_id=reconciled.network_interface_id,
            private_ip=reconciled.private_ip,
            public_ip=reconciled.public_ip,
            tags=dict(reconciled.tags),
            tags_all=dict(reconciled.tags_all),
        )

    @classmethod
    def tainted(cls, name: str, nat_gateway_id: str, subnet_id: Optional[str] = None) -> "TrackedGateway":
        return cls(name=name, nat_gateway_id=nat_gateway_id, status=GatewayStatus.TAINTED, subnet_id=subnet_id)

    def to_reconciled(self) -> ReconciledState:
        return ReconciledState(
            id=self.nat_gateway_id,
            subnet_id=self.subnet_id,
            connectivity_type=self.connectivity_type,
            allocation_id=self.allocation_id,
            network_interface_id=self.network_interface_id,
            private_ip=self.private_ip,
            public_ip=self.public_ip,
            tags=dict(self.tags),
            tags_all=dict(self.tags_all),
        )


class State(BaseModel):
    """Represents the complete set of tracked gateways for a project."""

    version: str = Field("1.0", description="State file format version")
    project_name: str = Field(..., description="Project name")
    region: str = Field(..., description="AWS region")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), description="Last update timestamp"
    )
    gateways: Dict[str, TrackedGateway] = Field(
        default_factory=dict, description="Tracked gateways, keyed by declarative name"
    )

    def put_gateway(self, gateway: TrackedGateway) -> None:
        self.gateways[gateway.name] = gateway
        self.timestamp = datetime.now(timezone.utc)

    def remove_gateway(self, name: str) -> Optional[TrackedGateway]:
        removed = self.gateways.pop(name, None)
        self.timestamp = datetime.now(timezone.utc)
        return removed

    def get_gateway(self, name: str) -> Optional[TrackedGateway]:
        return self.gateways.get(name)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "State":
        return cls.model_validate(data)
