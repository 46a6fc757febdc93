"""Plan executor running independent gateways in parallel."""

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, Optional

from natgw_lifecycle.orchestrator.planner import ChangeType, GatewayChange, ReconcilePlan
from natgw_lifecycle.provisioners.models import ReconciledState
from natgw_lifecycle.provisioners.nat_gateway import NatGatewayReconciler
from natgw_lifecycle.state.manager import StateManager
from natgw_lifecycle.state.models import TrackedGateway
from natgw_lifecycle.utils.errors import (
    ErrorContext,
    NatGatewayError,
    WaitCancelledError,
    error_handler,
)
from natgw_lifecycle.utils.logging import get_logger

logger = get_logger(__name__)


class ExecutionStatus(Enum):
    """Status of execution."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"


@dataclass
class GatewayExecutionResult:
    """Result of executing the change for a single gateway."""

    name: str
    change_type: ChangeType
    status: ExecutionStatus
    state: Optional[ReconciledState] = None
    error: Optional[NatGatewayError] = None
    duration: float = 0.0  # seconds

    def is_success(self) -> bool:
        return self.status in (ExecutionStatus.SUCCESS, ExecutionStatus.SKIPPED)

    def is_failed(self) -> bool:
        return self.status in (ExecutionStatus.FAILED, ExecutionStatus.CANCELLED)


@dataclass
class ExecutionResult:
    """Result of executing a whole plan."""

    status: ExecutionStatus
    results: Dict[str, GatewayExecutionResult] = field(default_factory=dict)
    duration: float = 0.0  # seconds

    def is_success(self) -> bool:
        return self.status == ExecutionStatus.SUCCESS

    def get_failed(self) -> Dict[str, GatewayExecutionResult]:
        return {name: r for name, r in self.results.items() if r.is_failed()}


# Type alias for progress callback: (gateway name, status, message)
ProgressCallback = Callable[[str, ExecutionStatus, Optional[str]], None]


class ReconcileExecutor:
    """Executes reconcile plans, one worker thread per gateway.

    Each gateway's change runs start to finish on one thread, so operations
    on the same gateway id never overlap. ``cancel`` aborts every in-flight
    wait within one poll interval.
    """

    def __init__(
        self,
        reconciler: NatGatewayReconciler,
        state_manager: StateManager,
        max_workers: int = 4
    ):
        """Initialize executor.

        Args:
            reconciler: Reconciler used for every gateway
            state_manager: Loaded state manager, updated after every change
            max_workers: Maximum number of gateways reconciled concurrently
        """
        self.reconciler = reconciler
        self.state_manager = state_manager
        self.max_workers = max_workers
        self.cancel_event = threading.Event()

    def cancel(self) -> None:
        """Abort in-flight waits and skip changes that have not started."""
        logger.warning("Cancellation requested, stopping in-flight waits")
        self.cancel_event.set()

    def execute(
        self,
        plan: ReconcilePlan,
        parallel: bool = True,
        progress_callback: Optional[ProgressCallback] = None
    ) -> ExecutionResult:
        """Execute every pending change in the plan.

        Args:
            plan: Plan to execute
            parallel: Whether to reconcile gateways concurrently
            progress_callback: Optional callback for progress updates

        Returns:
            ExecutionResult with one entry per pending change
        """
        start_time = datetime.now(timezone.utc)
        changes = plan.pending_changes()
        results: Dict[str, GatewayExecutionResult] = {}

        logger.info(f"Executing {len(changes)} change(s) (parallel={parallel})")

        if parallel and len(changes) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                futures = {
                    pool.submit(self._execute_change, change, progress_callback): change.name
                    for change in changes
                }
                for future in as_completed(futures):
                    result = future.result()
                    results[result.name] = result
        else:
            for change in changes:
                results[change.name] = self._execute_change(change, progress_callback)

        duration = (datetime.now(timezone.utc) - start_time).total_seconds()
        failed = sum(1 for r in results.values() if r.is_failed())

        if failed:
            logger.error(f"Reconciliation finished with {failed}/{len(results)} failed gateway(s)")
            status = ExecutionStatus.FAILED
        else:
            logger.info(f"Reconciliation finished: {len(results)} gateway(s) in {duration:.1f}s")
            status = ExecutionStatus.SUCCESS

        return ExecutionResult(status=status, results=results, duration=duration)

    def _execute_change(
        self,
        change: GatewayChange,
        progress_callback: Optional[ProgressCallback]
    ) -> GatewayExecutionResult:
        start_time = datetime.now(timezone.utc)

        def finish(status: ExecutionStatus, state=None, error=None) -> GatewayExecutionResult:
            if progress_callback:
                progress_callback(change.name, status, str(error) if error else None)
            return GatewayExecutionResult(
                name=change.name,
                change_type=change.change_type,
                status=status,
                state=state,
                error=error,
                duration=(datetime.now(timezone.utc) - start_time).total_seconds(),
            )

        if self.cancel_event.is_set():
            return finish(ExecutionStatus.SKIPPED)

        if progress_callback:
            progress_callback(change.name, ExecutionStatus.IN_PROGRESS, change.reason)

        try:
            if change.change_type == ChangeType.CREATE:
                state = self._create(change)
            elif change.change_type == ChangeType.REPLACE:
                state = self._replace(change)
            elif change.change_type == ChangeType.UPDATE:
                state = self._update(change)
            elif change.change_type == ChangeType.DELETE:
                state = self._delete(change)
            else:
                return finish(ExecutionStatus.SKIPPED)
        except WaitCancelledError as e:
            e.context.gateway_name = change.name
            return finish(ExecutionStatus.CANCELLED, error=e)
        except Exception as e:
            error = error_handler.translate(
                e, ErrorContext(nat_gateway_id=change.nat_gateway_id, operation=change.change_type.value)
            )
            error.context.gateway_name = change.name
            error_handler.log_error(error)
            return finish(ExecutionStatus.FAILED, error=error)

        return finish(ExecutionStatus.SUCCESS, state=state)

    def _create(self, change: GatewayChange) -> ReconciledState:
        try:
            state = self.reconciler.create(change.desired, self.cancel_event)
        except NatGatewayError as e:
            # Any id in the error belongs to a gateway that exists but is not
            # known to be healthy; keep it so the next run replaces it.
            if e.context.nat_gateway_id:
                self.state_manager.put_gateway(
                    TrackedGateway.tainted(change.name, e.context.nat_gateway_id, change.desired.subnet_id)
                )
            raise

        self.state_manager.put_gateway(TrackedGateway.from_reconciled(change.name, state))
        return state

    def _replace(self, change: GatewayChange) -> ReconciledState:
        # The replacement reuses the subnet and allocation, so the old gateway goes first
        self.reconciler.delete(change.nat_gateway_id, self.cancel_event)
        self.state_manager.remove_gateway(change.name)
        return self._create(change)

    def _update(self, change: GatewayChange) -> Optional[ReconciledState]:
        self.reconciler.update(change.nat_gateway_id, change.current.tags_all, change.desired_tags_all)

        state = self.reconciler.read(change.nat_gateway_id)
        if state is None:
            self.state_manager.remove_gateway(change.name)
            logger.warning(f"Gateway {change.name} disappeared during update; it will be recreated on the next run")
            return None

        self.state_manager.put_gateway(TrackedGateway.from_reconciled(change.name, state))
        return state

    def _delete(self, change: GatewayChange) -> None:
        self.reconciler.delete(change.nat_gateway_id, self.cancel_event)
        self.state_manager.remove_gateway(change.name)
        return None
