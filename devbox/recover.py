"""Recovery for workstations stuck on unavailable spot capacity.

Derives search constraints from the instance's current type, looks for
cheaper-to-get alternatives in the same zone (its volumes cannot leave it),
and optionally resizes to the cheapest one.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

from loguru import logger

from devbox.aws.ec2 import describe_instance
from devbox.constants import RECOVERY_CANDIDATE_LIMIT, InstanceState
from devbox.discovery import CapacityDiscoveryEngine, describe_instance_types
from devbox.exceptions import InvalidStateError, NotFoundError
from devbox.resize import InstanceResizeOrchestrator
from devbox.types import HardwareProfile, RecoveryPlan, SearchConstraints

if TYPE_CHECKING:
    from mypy_boto3_ec2 import EC2Client

log = logger.bind(component="recover")


def default_constraints(
    current: HardwareProfile,
    zone: str,
    *,
    min_vcpus: int | None = None,
    min_memory_gib: float | None = None,
    max_price: float | None = None,
) -> SearchConstraints:
    """Half the current vCPU and memory, same architecture, GPU need and zone."""
    return SearchConstraints(
        min_vcpus=min_vcpus if min_vcpus is not None else current.vcpus // 2,
        min_memory_gib=(
            min_memory_gib if min_memory_gib is not None else current.memory_gib / 2
        ),
        architecture=current.architecture,
        require_gpu=current.has_gpu,
        zone=zone,
        max_price=max_price if max_price and max_price > 0 else None,
    )


class RecoveryPlanner:
    """Plans, and optionally executes, a resize onto available capacity."""

    def __init__(
        self,
        ec2: EC2Client,
        discovery: CapacityDiscoveryEngine,
        resizer: InstanceResizeOrchestrator,
        *,
        default_max_price: float,
    ) -> None:
        self._ec2 = ec2
        self._discovery = discovery
        self._resizer = resizer
        self._default_max_price = default_max_price

    def plan(
        self,
        instance_id: str,
        *,
        min_vcpus: int | None = None,
        min_memory_gib: float | None = None,
        max_price: float | None = None,
        limit: int = RECOVERY_CANDIDATE_LIMIT,
    ) -> RecoveryPlan:
        inst = describe_instance(self._ec2, instance_id)
        if inst.state == InstanceState.TERMINATED:
            raise InvalidStateError(inst.id, inst.state, "recover")

        profiles = describe_instance_types(self._ec2, [inst.instance_type])
        if not profiles:
            raise NotFoundError("instance type", inst.instance_type)
        current = profiles[0]

        constraints = default_constraints(
            current,
            inst.zone,
            min_vcpus=min_vcpus,
            min_memory_gib=min_memory_gib,
            max_price=max_price if max_price else self._default_max_price,
        )
        log.info(
            "{id} is {type} ({vcpus} vCPU, {mem:.0f} GiB) in {zone}",
            id=inst.id,
            type=inst.instance_type,
            vcpus=current.vcpus,
            mem=current.memory_gib,
            zone=inst.zone,
        )

        offers = self._discovery.find_candidates(constraints)
        # Volumes are zone-locked, so nothing outside the instance's zone is usable
        offers = [o for o in offers if o.zone == inst.zone][:limit]
        if not offers:
            log.warning("No spot capacity matches in {zone}", zone=inst.zone)

        return RecoveryPlan(
            instance=inst,
            current=current,
            constraints=constraints,
            candidates=tuple(offers),
        )

    def recover(
        self,
        instance_id: str,
        *,
        auto_confirm: bool = False,
        min_vcpus: int | None = None,
        min_memory_gib: float | None = None,
        max_price: float | None = None,
    ) -> RecoveryPlan:
        """Plan a recovery and, with auto_confirm, resize to the cheapest candidate."""
        plan = self.plan(
            instance_id,
            min_vcpus=min_vcpus,
            min_memory_gib=min_memory_gib,
            max_price=max_price,
        )
        if not auto_confirm or plan.best is None:
            return plan

        log.info(
            "Resizing {id} to cheapest candidate {type} at ${price:.4f}/hr",
            id=instance_id,
            type=plan.best.instance_type,
            price=plan.best.price,
        )
        outcome = self._resizer.resize(instance_id, plan.best.instance_type)
        return replace(plan, outcome=outcome)
