"""Desired-state, remote-object and reconciled-state models for NAT gateways."""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional

from natgw_lifecycle.utils.errors import ErrorContext, MalformedResponseError


class ConnectivityType(str, Enum):
    """Whether the gateway provides public or private connectivity."""
    PUBLIC = "public"
    PRIVATE = "private"


class NatGatewayState(str, Enum):
    """Lifecycle states reported by the EC2 API."""
    PENDING = "pending"
    FAILED = "failed"
    AVAILABLE = "available"
    DELETING = "deleting"
    DELETED = "deleted"

    @classmethod
    def parse(cls, label: str, nat_gateway_id: Optional[str] = None) -> "NatGatewayState":
        """Parse a state label, rejecting labels outside the known set."""
        try:
            return cls(label.lower())
        except (AttributeError, ValueError):
            raise MalformedResponseError(
                f"NAT gateway reported unknown state {label!r}",
                context=ErrorContext(nat_gateway_id=nat_gateway_id, operation='describe'),
            ) from None


@dataclass
class ResourceDescriptor:
    """Desired state of a single NAT gateway.

    ``allocation_id``, ``connectivity_type`` and ``subnet_id`` are immutable once
    the gateway exists; changing them means destroying and recreating it.
    """
    subnet_id: str
    allocation_id: Optional[str] = None
    connectivity_type: ConnectivityType = ConnectivityType.PUBLIC
    tags: Dict[str, str] = field(default_factory=dict)

    IMMUTABLE_FIELDS = ('subnet_id', 'connectivity_type', 'allocation_id')

    def replacement_reasons(self, current: "ReconciledState") -> List[str]:
        """List the immutable fields that differ from the reconciled state.

        An unset ``allocation_id`` is not compared, since the provider assigns
        one for public gateways created without it.
        """
        reasons = []
        for name in self.IMMUTABLE_FIELDS:
            desired, actual = getattr(self, name), getattr(current, name)
            if name == 'allocation_id' and not desired:
                continue
            if name == 'connectivity_type':
                desired, actual = ConnectivityType(desired), ConnectivityType(actual)
            if desired != actual:
                reasons.append(name)
        return reasons


@dataclass(frozen=True)
class NatGatewayAddress:
    """One IP address association of a NAT gateway."""
    allocation_id: Optional[str] = None
    network_interface_id: Optional[str] = None
    private_ip: Optional[str] = None
    public_ip: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "NatGatewayAddress":
        return cls(
            allocation_id=data.get('AllocationId'),
            network_interface_id=data.get('NetworkInterfaceId'),
            private_ip=data.get('PrivateIp'),
            public_ip=data.get('PublicIp'),
        )


@dataclass
class NatGateway:
    """The provider's view of a live NAT gateway."""
    id: str
    state: NatGatewayState
    addresses: List[NatGatewayAddress] = field(default_factory=list)
    tags: Dict[str, str] = field(default_factory=dict)
    subnet_id: Optional[str] = None
    vpc_id: Optional[str] = None
    connectivity_type: Optional[ConnectivityType] = None
    failure_code: Optional[str] = None
    failure_message: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "NatGateway":
        """Build from a ``DescribeNatGateways`` / ``CreateNatGateway`` response item.

        Raises:
            MalformedResponseError: If the id or state is missing or unknown
        """
        nat_gateway_id = data.get('NatGatewayId')
        if not nat_gateway_id:
            raise MalformedResponseError("NAT gateway response is missing NatGatewayId")

        if 'State' not in data:
            raise MalformedResponseError(
                "NAT gateway response is missing State",
                context=ErrorContext(nat_gateway_id=nat_gateway_id, operation='describe'),
            )

        connectivity_type = data.get('ConnectivityType')

        return cls(
            id=nat_gateway_id,
            state=NatGatewayState.parse(data['State'], nat_gateway_id),
            addresses=[NatGatewayAddress.from_api(a) for a in data.get('NatGatewayAddresses', [])],
            tags={tag['Key']: tag['Value'] for tag in data.get('Tags', [])},
            subnet_id=data.get('SubnetId'),
            vpc_id=data.get('VpcId'),
            connectivity_type=ConnectivityType(connectivity_type) if connectivity_type else None,
            failure_code=data.get('FailureCode'),
            failure_message=data.get('FailureMessage'),
        )

    @property
    def primary_address(self) -> NatGatewayAddress:
        """The authoritative address: always the first entry.

        Raises:
            MalformedResponseError: If the gateway reports no addresses
        """
        if not self.addresses:
            raise MalformedResponseError(
                f"NAT gateway {self.id} has no addresses",
                context=ErrorContext(nat_gateway_id=self.id, operation='read'),
                suggestions=['Check the gateway in the EC2 console; the API response is incomplete'],
            )
        return self.addresses[0]

    @property
    def failure_reason(self) -> Optional[str]:
        if self.failure_code and self.failure_message:
            return f"{self.failure_code}: {self.failure_message}"
        return self.failure_code or self.failure_message


@dataclass
class ReconciledState:
    """Declarative view of a gateway after reconciliation."""
    id: str
    subnet_id: str
    connectivity_type: ConnectivityType
    allocation_id: Optional[str] = None
    network_interface_id: Optional[str] = None
    private_ip: Optional[str] = None
    public_ip: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)
    tags_all: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['connectivity_type'] = ConnectivityType(self.connectivity_type).value
        return data
