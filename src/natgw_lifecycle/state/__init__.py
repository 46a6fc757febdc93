"""State management module for tracking owned NAT gateways."""

from .manager import StateLockError, StateManager, StateNotFoundError
from .models import GatewayStatus, State, TrackedGateway

__all__ = [
    "GatewayStatus",
    "State",
    "StateLockError",
    "StateManager",
    "StateNotFoundError",
    "TrackedGateway",
]
