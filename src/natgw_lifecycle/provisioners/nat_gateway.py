"""NAT gateway lifecycle: create, read, update and delete against EC2."""

import threading
from typing import Dict, Optional

from natgw_lifecycle.provisioners.client import CreateRequest, RemoteClient
from natgw_lifecycle.provisioners.models import (
    ConnectivityType,
    NatGateway,
    NatGatewayState,
    ReconciledState,
    ResourceDescriptor,
)
from natgw_lifecycle.provisioners.prober import Absent, StateProber
from natgw_lifecycle.provisioners.waiter import (
    Cancelled,
    Failed,
    PollPolicy,
    StateClassifier,
    Succeeded,
    TimedOut,
    Waiter,
    WaitOutcome,
)
from natgw_lifecycle.tagging.diff import TagDiff, TagDiffApplier, diff_tags
from natgw_lifecycle.tagging.manager import TagManager
from natgw_lifecycle.utils.errors import (
    ErrorContext,
    NotFoundError,
    WaitCancelledError,
    WaitFailedError,
    WaitTimeoutError,
    error_handler,
)
from natgw_lifecycle.utils.logging import get_logger

logger = get_logger(__name__)

CREATE_TIMEOUT = 10 * 60
DELETE_TIMEOUT = 30 * 60

CREATED_CLASSIFIER = StateClassifier(
    success=frozenset({NatGatewayState.AVAILABLE.value}),
    failure=frozenset({NatGatewayState.FAILED.value}),
    pending=frozenset({NatGatewayState.PENDING.value}),
)

DELETED_CLASSIFIER = StateClassifier(
    success=frozenset({NatGatewayState.DELETED.value}),
    failure=frozenset({NatGatewayState.FAILED.value}),
    pending=frozenset({NatGatewayState.DELETING.value}),
    absent_is_success=True,
)

# States in which a gateway is dropped from tracked state on read
GONE_STATES = frozenset({
    NatGatewayState.DELETED,
    NatGatewayState.DELETING,
    NatGatewayState.FAILED,
})


def default_create_policy() -> PollPolicy:
    return PollPolicy(classifier=CREATED_CLASSIFIER, timeout=CREATE_TIMEOUT)


def default_delete_policy() -> PollPolicy:
    return PollPolicy(classifier=DELETED_CLASSIFIER, timeout=DELETE_TIMEOUT)


class NatGatewayReconciler:
    """Reconciles one NAT gateway at a time against the EC2 control plane.

    The reconciler holds no per-gateway state. Callers own the mapping from
    their declarative names to gateway ids and must not run two operations
    on the same id concurrently; different ids can be reconciled from
    different threads through the same instance.
    """

    def __init__(
        self,
        client: RemoteClient,
        waiter: Optional[Waiter] = None,
        tag_manager: Optional[TagManager] = None,
        create_policy: Optional[PollPolicy] = None,
        delete_policy: Optional[PollPolicy] = None,
    ):
        """Initialize reconciler.

        Args:
            client: Remote client issuing the EC2 calls
            waiter: Waiter used after create and delete
            tag_manager: Default-tag and ignore-tag handling
            create_policy: Poll policy for the create wait
            delete_policy: Poll policy for the delete wait
        """
        self.client = client
        self.waiter = waiter or Waiter()
        self.tag_manager = tag_manager or TagManager()
        self.create_policy = create_policy or default_create_policy()
        self.delete_policy = delete_policy or default_delete_policy()
        self.tag_applier = TagDiffApplier(client)

    def create(
        self,
        descriptor: ResourceDescriptor,
        cancel_event: Optional[threading.Event] = None,
    ) -> ReconciledState:
        """Create a NAT gateway and wait for it to become available.

        Args:
            descriptor: Desired state of the gateway
            cancel_event: Set to abort the wait

        Returns:
            Reconciled state of the available gateway

        Raises:
            RemoteError: If the create call fails (no gateway id was assigned)
            WaitFailedError, WaitTimeoutError, WaitCancelledError: If the wait does
                not succeed
            NatGatewayError: Any failure after the create call returned, e.g. a
                describe error or a malformed response. From that point on
                ``error.context.nat_gateway_id`` carries the assigned id so the
                caller can read or delete the gateway later
        """
        request = CreateRequest(
            subnet_id=descriptor.subnet_id,
            allocation_id=descriptor.allocation_id or None,
            connectivity_type=ConnectivityType(descriptor.connectivity_type) if descriptor.connectivity_type else None,
            tags=self.tag_manager.desired_tags_all(descriptor.tags),
        )

        logger.info(f"Creating NAT gateway in subnet {descriptor.subnet_id}", extra={'operation': 'create'})
        nat_gateway_id = self.client.create_object(request)
        logger.info(
            f"Created NAT gateway {nat_gateway_id}, waiting for it to become available",
            extra={'nat_gateway_id': nat_gateway_id, 'operation': 'create'},
        )

        try:
            outcome = self.waiter.wait(
                StateProber(self.client, nat_gateway_id), self.create_policy, cancel_event
            )
            gateway = self._raise_for_outcome(outcome, nat_gateway_id, 'create')
            state = self._to_state(gateway)
        except Exception as e:
            # The gateway exists from here on; every error must carry its id
            error = error_handler.translate(
                e, ErrorContext(nat_gateway_id=nat_gateway_id, operation='create')
            )
            error.context.nat_gateway_id = error.context.nat_gateway_id or nat_gateway_id
            if error is e:
                raise
            raise error from e

        if not state.subnet_id:
            state.subnet_id = descriptor.subnet_id
        return state

    def read(self, nat_gateway_id: str) -> Optional[ReconciledState]:
        """Read the current state of a NAT gateway with a single probe.

        Returns:
            Reconciled state, or None when the gateway is gone and should be
            dropped from tracked state

        Raises:
            MalformedResponseError: If the gateway reports no addresses
            RemoteError: If the describe call fails for a reason other than absence
        """
        result = StateProber(self.client, nat_gateway_id).probe()

        if isinstance(result, Absent):
            logger.info(
                f"NAT gateway {nat_gateway_id} not found ({result.reason.value}), removing from state",
                extra={'nat_gateway_id': nat_gateway_id, 'operation': 'read'},
            )
            return None

        if result.state in GONE_STATES:
            logger.info(
                f"NAT gateway {nat_gateway_id} is {result.state.value}, removing from state",
                extra={'nat_gateway_id': nat_gateway_id, 'operation': 'read', 'state': result.state.value},
            )
            return None

        return self._to_state(result)

    def update(self, nat_gateway_id: str, old_tags: Dict[str, str], new_tags: Dict[str, str]) -> TagDiff:
        """Bring the gateway's tags from ``old_tags`` to ``new_tags``.

        Tags are the only mutable attribute; only the delta is sent.

        Returns:
            The applied diff
        """
        diff = diff_tags(old_tags, new_tags)
        if diff.is_empty():
            logger.debug(
                f"NAT gateway {nat_gateway_id} tags are up to date",
                extra={'nat_gateway_id': nat_gateway_id, 'operation': 'update'},
            )
            return diff

        logger.info(
            f"Updating NAT gateway {nat_gateway_id} tags: "
            f"{len(diff.to_set)} to set, {len(diff.to_remove)} to remove",
            extra={'nat_gateway_id': nat_gateway_id, 'operation': 'update'},
        )
        self.tag_applier.apply(nat_gateway_id, diff)
        return diff

    def delete(self, nat_gateway_id: str, cancel_event: Optional[threading.Event] = None) -> None:
        """Delete a NAT gateway and wait until it is gone.

        Deleting a gateway that does not exist succeeds without waiting.

        Raises:
            RemoteError: If the delete call fails for a reason other than absence
            WaitFailedError, WaitTimeoutError, WaitCancelledError: If the wait does not succeed
        """
        logger.info(f"Deleting NAT gateway {nat_gateway_id}", extra={'nat_gateway_id': nat_gateway_id, 'operation': 'delete'})
        try:
            self.client.delete_object(nat_gateway_id)
        except NotFoundError:
            logger.info(
                f"NAT gateway {nat_gateway_id} already deleted",
                extra={'nat_gateway_id': nat_gateway_id, 'operation': 'delete'},
            )
            return

        outcome = self.waiter.wait(
            StateProber(self.client, nat_gateway_id), self.delete_policy, cancel_event
        )
        self._raise_for_outcome(outcome, nat_gateway_id, 'delete')
        logger.info(f"Deleted NAT gateway {nat_gateway_id}", extra={'nat_gateway_id': nat_gateway_id, 'operation': 'delete'})

    def _raise_for_outcome(self, outcome: WaitOutcome, nat_gateway_id: str, operation: str):
        context = ErrorContext(nat_gateway_id=nat_gateway_id, operation=operation)

        if isinstance(outcome, Succeeded):
            return outcome.value

        if isinstance(outcome, Failed):
            raise WaitFailedError(
                f"error waiting for NAT gateway ({nat_gateway_id}) {operation}: {outcome.reason}",
                reason=outcome.reason,
                context=context,
                cause=outcome.error,
            )

        if isinstance(outcome, TimedOut):
            raise WaitTimeoutError(
                f"timeout while waiting for NAT gateway ({nat_gateway_id}) {operation} "
                f"(last state: '{outcome.last_state}', waited {outcome.elapsed:.0f}s)",
                last_state=outcome.last_state,
                context=context,
                suggestions=['Run the operation again; the gateway may still be converging'],
            )

        if isinstance(outcome, Cancelled):
            raise WaitCancelledError(
                f"wait for NAT gateway ({nat_gateway_id}) {operation} cancelled: {outcome.reason}",
                context=context,
            )

        raise TypeError(f"Unknown wait outcome: {outcome!r}")

    def _to_state(self, gateway: NatGateway) -> ReconciledState:
        address = gateway.primary_address
        tags_all = self.tag_manager.observed_tags_all(gateway.tags)

        return ReconciledState(
            id=gateway.id,
            subnet_id=gateway.subnet_id,
            connectivity_type=gateway.connectivity_type or ConnectivityType.PUBLIC,
            allocation_id=address.allocation_id,
            network_interface_id=address.network_interface_id,
            private_ip=address.private_ip,
            public_ip=address.public_ip,
            tags=self.tag_manager.resource_tags(tags_all),
            tags_all=tags_all,
        )
