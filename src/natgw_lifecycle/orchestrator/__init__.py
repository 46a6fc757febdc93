"""Orchestration of many independent NAT gateways: planning and parallel execution."""

from natgw_lifecycle.orchestrator.executor import (
    ExecutionResult,
    ExecutionStatus,
    GatewayExecutionResult,
    ProgressCallback,
    ReconcileExecutor,
)
from natgw_lifecycle.orchestrator.planner import (
    ChangeType,
    GatewayChange,
    ReconcilePlan,
    ReconcilePlanner,
)

__all__ = [
    "ChangeType",
    "ExecutionResult",
    "ExecutionStatus",
    "GatewayChange",
    "GatewayExecutionResult",
    "ProgressCallback",
    "ReconcileExecutor",
    "ReconcilePlan",
    "ReconcilePlanner",
]
