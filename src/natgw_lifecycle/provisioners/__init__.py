"""NAT gateway lifecycle: remote client, state prober, waiter and reconciler."""

from .models import (
    ConnectivityType,
    NatGateway,
    NatGatewayAddress,
    NatGatewayState,
    ReconciledState,
    ResourceDescriptor,
)
from .client import CreateRequest, EC2NatGatewayClient, RemoteClient
from .prober import Absent, AbsenceReason, StateProber
from .waiter import (
    Cancelled,
    Classification,
    Failed,
    PollPolicy,
    StateClassifier,
    Succeeded,
    TimedOut,
    Waiter,
    WaitOutcome,
)
from .nat_gateway import (
    CREATED_CLASSIFIER,
    DELETED_CLASSIFIER,
    NatGatewayReconciler,
)

__all__ = [
    'ConnectivityType',
    'NatGateway',
    'NatGatewayAddress',
    'NatGatewayState',
    'ReconciledState',
    'ResourceDescriptor',
    'CreateRequest',
    'EC2NatGatewayClient',
    'RemoteClient',
    'Absent',
    'AbsenceReason',
    'StateProber',
    'Cancelled',
    'Classification',
    'Failed',
    'PollPolicy',
    'StateClassifier',
    'Succeeded',
    'TimedOut',
    'Waiter',
    'WaitOutcome',
    'CREATED_CLASSIFIER',
    'DELETED_CLASSIFIER',
    'NatGatewayReconciler',
]
