"""Single point-in-time state probe for a remote object."""

from dataclasses import dataclass
from enum import Enum
from typing import Union

from natgw_lifecycle.provisioners.client import RemoteClient
from natgw_lifecycle.provisioners.models import NatGateway
from natgw_lifecycle.utils.errors import ErrorContext, MalformedResponseError, NotFoundError
from natgw_lifecycle.utils.logging import get_logger

logger = get_logger(__name__)


class AbsenceReason(Enum):
    """How the remote system signalled that an object is absent."""
    EMPTY_RESPONSE = "empty_response"
    NOT_FOUND_ERROR = "not_found_error"


@dataclass(frozen=True)
class Absent:
    """Probe result for an object the remote system does not report."""
    object_id: str
    reason: AbsenceReason


ProbeResult = Union[NatGateway, Absent]


class StateProber:
    """Binds a NAT gateway id to a remote client and queries it once per call.

    Absence and query failure are kept apart: an empty describe result or a
    not-found error code yields ``Absent``; every other error propagates.
    """

    def __init__(self, client: RemoteClient, nat_gateway_id: str):
        self.client = client
        self.object_id = nat_gateway_id

    def probe(self) -> ProbeResult:
        try:
            gateways = self.client.describe_objects([self.object_id])
        except NotFoundError as e:
            # Kept distinct from the empty response so divergence shows up in logs
            logger.warning(
                f"Describe of NAT gateway {self.object_id} failed with {e.code}; treating as absent",
                extra={'nat_gateway_id': self.object_id, 'operation': 'probe'},
            )
            return Absent(self.object_id, AbsenceReason.NOT_FOUND_ERROR)

        if not gateways:
            # Eventual consistency: a freshly created gateway may not be visible yet
            logger.debug(
                f"Describe of NAT gateway {self.object_id} returned no results",
                extra={'nat_gateway_id': self.object_id, 'operation': 'probe'},
            )
            return Absent(self.object_id, AbsenceReason.EMPTY_RESPONSE)

        for gateway in gateways:
            if gateway.id == self.object_id:
                return gateway

        raise MalformedResponseError(
            f"Describe of NAT gateway {self.object_id} returned only other gateways: "
            f"{', '.join(g.id for g in gateways)}",
            context=ErrorContext(nat_gateway_id=self.object_id, operation='probe'),
        )
