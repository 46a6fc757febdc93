"""Planner that compares declared gateways with tracked state."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from natgw_lifecycle.provisioners.models import ReconciledState, ResourceDescriptor
from natgw_lifecycle.provisioners.nat_gateway import NatGatewayReconciler
from natgw_lifecycle.state.models import GatewayStatus, State
from natgw_lifecycle.tagging.diff import TagDiff, diff_tags
from natgw_lifecycle.utils.logging import get_logger

logger = get_logger(__name__)


class ChangeType(Enum):
    """Type of change for a gateway."""
    CREATE = "create"
    REPLACE = "replace"
    UPDATE = "update"
    DELETE = "delete"
    NO_CHANGE = "no_change"


@dataclass
class GatewayChange:
    """Represents a change to one declared gateway."""

    name: str
    change_type: ChangeType
    desired: Optional[ResourceDescriptor] = None
    current: Optional[ReconciledState] = None
    nat_gateway_id: Optional[str] = None
    desired_tags_all: Dict[str, str] = field(default_factory=dict)
    tag_diff: Optional[TagDiff] = None
    reason: Optional[str] = None


@dataclass
class ReconcilePlan:
    """Changes for every declared or tracked gateway, keyed by name."""

    changes: Dict[str, GatewayChange] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def add_change(self, change: GatewayChange) -> None:
        self.changes[change.name] = change

    def get_changes_by_type(self, change_type: ChangeType) -> List[GatewayChange]:
        return [change for change in self.changes.values() if change.change_type == change_type]

    def pending_changes(self) -> List[GatewayChange]:
        return [c for c in self.changes.values() if c.change_type != ChangeType.NO_CHANGE]

    def has_changes(self) -> bool:
        return bool(self.pending_changes())

    def get_summary(self) -> Dict[str, int]:
        """Get a summary of changes by type."""
        summary = {change_type.value: 0 for change_type in ChangeType}
        for change in self.changes.values():
            summary[change.change_type.value] += 1
        return summary


class ReconcilePlanner:
    """Creates apply and destroy plans.

    Planning an apply refreshes every tracked gateway with a single read, so
    gateways deleted out of band are recreated and drifted immutable fields
    are replaced.
    """

    def __init__(self, reconciler: NatGatewayReconciler):
        self.reconciler = reconciler

    def create_plan(
        self,
        desired: Dict[str, ResourceDescriptor],
        state: State,
        refresh: bool = True
    ) -> ReconcilePlan:
        """Plan the changes that bring tracked gateways to the desired set.

        Args:
            desired: Declared gateways keyed by name
            state: Tracked gateways
            refresh: Read each tracked gateway instead of trusting the state file

        Returns:
            ReconcilePlan with one change per declared or tracked gateway
        """
        plan = ReconcilePlan()
        tag_manager = self.reconciler.tag_manager

        for name, descriptor in desired.items():
            desired_tags_all = tag_manager.desired_tags_all(descriptor.tags)
            tracked = state.get_gateway(name)

            if tracked is None:
                plan.add_change(GatewayChange(
                    name=name,
                    change_type=ChangeType.CREATE,
                    desired=descriptor,
                    desired_tags_all=desired_tags_all,
                    reason="not yet created",
                ))
                continue

            if tracked.status == GatewayStatus.TAINTED:
                plan.add_change(GatewayChange(
                    name=name,
                    change_type=ChangeType.REPLACE,
                    desired=descriptor,
                    nat_gateway_id=tracked.nat_gateway_id,
                    desired_tags_all=desired_tags_all,
                    reason="previous create did not complete",
                ))
                continue

            current = self.reconciler.read(tracked.nat_gateway_id) if refresh else tracked.to_reconciled()

            if current is None:
                plan.add_change(GatewayChange(
                    name=name,
                    change_type=ChangeType.CREATE,
                    desired=descriptor,
                    nat_gateway_id=tracked.nat_gateway_id,
                    desired_tags_all=desired_tags_all,
                    reason=f"{tracked.nat_gateway_id} no longer exists",
                ))
                continue

            replacement_reasons = descriptor.replacement_reasons(current)
            if replacement_reasons:
                plan.add_change(GatewayChange(
                    name=name,
                    change_type=ChangeType.REPLACE,
                    desired=descriptor,
                    current=current,
                    nat_gateway_id=current.id,
                    desired_tags_all=desired_tags_all,
                    reason=f"{', '.join(replacement_reasons)} cannot be changed in place",
                ))
                continue

            tag_diff = diff_tags(current.tags_all, desired_tags_all)
            plan.add_change(GatewayChange(
                name=name,
                change_type=ChangeType.NO_CHANGE if tag_diff.is_empty() else ChangeType.UPDATE,
                desired=descriptor,
                current=current,
                nat_gateway_id=current.id,
                desired_tags_all=desired_tags_all,
                tag_diff=tag_diff,
                reason=None if tag_diff.is_empty() else "tags changed",
            ))

        for name, tracked in state.gateways.items():
            if name not in desired:
                plan.add_change(GatewayChange(
                    name=name,
                    change_type=ChangeType.DELETE,
                    nat_gateway_id=tracked.nat_gateway_id,
                    reason="no longer declared",
                ))

        logger.info(f"Planned changes: {plan.get_summary()}")
        return plan

    def create_destruction_plan(self, state: State, names: Optional[List[str]] = None) -> ReconcilePlan:
        """Plan deletion of tracked gateways (all of them unless ``names`` is given)."""
        plan = ReconcilePlan()
        for name, tracked in state.gateways.items():
            if names and name not in names:
                continue
            plan.add_change(GatewayChange(
                name=name,
                change_type=ChangeType.DELETE,
                nat_gateway_id=tracked.nat_gateway_id,
                reason="destroy requested",
            ))
        return plan
