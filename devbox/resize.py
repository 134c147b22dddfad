"""Instance type changes for on-demand and spot workstations.

On-demand instances are resized in place: stop, change the type attribute,
start. EC2 does not allow changing the type of a spot instance, so those
are replaced: a new persistent spot instance is launched with the original's
launch parameters, and the original is only touched once the replacement
has reached running. From that checkpoint on nothing is rolled back;
a fatal failure raises MigrationStepError describing what already happened,
and non-critical failures are returned as degradations.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from botocore.exceptions import ClientError
from loguru import logger

from devbox.aws.ec2 import describe_instance, describe_spot_request, fetch_user_data
from devbox.aws.errors import error_message
from devbox.config import Timings
from devbox.constants import InstanceState, VolumeState
from devbox.exceptions import (
    DevboxError,
    InvalidStateError,
    MigrationStepError,
    NotFoundError,
    ReplacementLaunchError,
)
from devbox.retry import ConsistencyRetrier
from devbox.types import (
    ComputeResource,
    Degradation,
    LaunchSpec,
    ResizeOutcome,
    VolumeAttachment,
    user_tags,
)
from devbox.userdata import patch_user_data
from devbox.wait import wait_instance_state, wait_volume_state

if TYPE_CHECKING:
    from mypy_boto3_ec2 import EC2Client

    from devbox.aws.dns import DnsUpdater

log = logger.bind(component="resize")

_STOPPABLE = frozenset({InstanceState.RUNNING, InstanceState.PENDING})
_RESIZABLE = _STOPPABLE | {InstanceState.STOPPED}


class MigrationStep(StrEnum):
    """Steps of the spot replace-and-migrate path, in order."""

    LAUNCH_REPLACEMENT = "launch-replacement"
    CONFIRM_CAPACITY = "confirm-capacity"
    QUIESCE_REPLACEMENT = "quiesce-replacement"
    PUSH_BOOT_CONFIG = "push-boot-config"
    STOP_ORIGINAL = "stop-original"
    RETIRE_MARKET_REQUEST = "retire-market-request"
    DETACH_FROM_ORIGINAL = "detach-from-original"
    TERMINATE_ORIGINAL = "terminate-original"
    ATTACH_TO_REPLACEMENT = "attach-to-replacement"
    START_REPLACEMENT = "start-replacement"
    UPDATE_DNS = "update-dns"


@dataclass(slots=True)
class _Migration:
    """What a replace-and-migrate run has done so far."""

    original_id: str
    replacement_id: str
    detached: list[str] = field(default_factory=list)
    request_cancelled: bool = False
    original_terminated: bool = False

    @contextmanager
    def fatal(self, step: MigrationStep) -> Iterator[None]:
        log.info(
            "{step}: {orig} -> {new}", step=step, orig=self.original_id, new=self.replacement_id
        )
        try:
            yield
        except (ClientError, DevboxError) as e:
            log.error("{step} failed: {err}", step=step, err=e)
            raise MigrationStepError(
                step,
                original_id=self.original_id,
                replacement_id=self.replacement_id,
                detached=self.detached,
                request_cancelled=self.request_cancelled,
                original_terminated=self.original_terminated,
                reason=error_message(e),
            ) from e


@contextmanager
def _best_effort(
    step: MigrationStep,
    resource_id: str,
    degradations: list[Degradation],
) -> Iterator[None]:
    try:
        yield
    except (ClientError, DevboxError) as e:
        message = error_message(e)
        log.warning(
            "{step} failed for {id}, continuing: {err}", step=step, id=resource_id, err=message
        )
        degradations.append(Degradation(step=str(step), resource_id=resource_id, message=message))


class InstanceResizeOrchestrator:
    """Changes an instance's type, replacing spot instances when needed.

    Args:
        ec2: EC2 client for the instance's region.
        timings: Poll and retry timings.
        default_max_price: Spot bid used when the original request has none.
        dns: Optional DNS updater run best-effort after the instance is back.
    """

    def __init__(
        self,
        ec2: EC2Client,
        *,
        timings: Timings,
        default_max_price: str,
        dns: DnsUpdater | None = None,
    ) -> None:
        self._ec2 = ec2
        self._timings = timings
        self._retrier = ConsistencyRetrier.from_timings(timings)
        self._default_max_price = default_max_price
        self._dns = dns

    def resize(self, instance_id: str, new_type: str) -> ResizeOutcome:
        inst = describe_instance(self._ec2, instance_id)

        if inst.instance_type == new_type:
            log.info("{id} is already {type}", id=inst.id, type=new_type)
            return ResizeOutcome(
                original_id=inst.id,
                instance_id=inst.id,
                old_type=inst.instance_type,
                new_type=new_type,
                path="noop",
            )

        if inst.state not in _RESIZABLE:
            raise InvalidStateError(inst.id, inst.state, "resize")

        if inst.is_spot:
            return self._replace_and_migrate(inst, new_type)
        return self._resize_in_place(inst, new_type)

    # -------------------------------------------------------------------------
    # Shared lifecycle steps
    # -------------------------------------------------------------------------

    def _stop(self, inst: ComputeResource) -> None:
        if inst.state == InstanceState.STOPPED:
            return
        if inst.state == InstanceState.STOPPING:
            wait_instance_state(self._ec2, inst.id, InstanceState.STOPPED, self._timings)
            return
        if inst.state not in _STOPPABLE:
            raise InvalidStateError(inst.id, inst.state, "stop")
        log.info("Stopping {id}", id=inst.id)
        self._ec2.stop_instances(InstanceIds=[inst.id])
        wait_instance_state(self._ec2, inst.id, InstanceState.STOPPED, self._timings)

    def _start(self, instance_id: str) -> None:
        log.info("Starting {id}", id=instance_id)
        self._retrier.call(
            lambda: self._ec2.start_instances(InstanceIds=[instance_id]),
            operation=f"start {instance_id}",
        )
        wait_instance_state(self._ec2, instance_id, InstanceState.RUNNING, self._timings)

    def _update_dns(self, instance_id: str) -> list[Degradation]:
        degradations: list[Degradation] = []
        if self._dns is None:
            return degradations
        with _best_effort(MigrationStep.UPDATE_DNS, instance_id, degradations):
            self._dns.update(instance_id)
        return degradations

    # -------------------------------------------------------------------------
    # In-place path
    # -------------------------------------------------------------------------

    def _resize_in_place(self, inst: ComputeResource, new_type: str) -> ResizeOutcome:
        log.info(
            "Resizing {id} in place: {old} -> {new}",
            id=inst.id,
            old=inst.instance_type,
            new=new_type,
        )
        self._stop(inst)
        self._ec2.modify_instance_attribute(InstanceId=inst.id, InstanceType={"Value": new_type})
        self._start(inst.id)
        return ResizeOutcome(
            original_id=inst.id,
            instance_id=inst.id,
            old_type=inst.instance_type,
            new_type=new_type,
            path="in-place",
            degradations=tuple(self._update_dns(inst.id)),
        )

    # -------------------------------------------------------------------------
    # Replace-and-migrate path
    # -------------------------------------------------------------------------

    def _bid_price(self, inst: ComputeResource) -> str:
        if inst.spot_request_id:
            try:
                request = describe_spot_request(self._ec2, inst.spot_request_id)
            except NotFoundError:
                log.warning("Spot request {id} is gone, using default bid", id=inst.spot_request_id)
            else:
                if request.max_price:
                    return request.max_price
        return self._default_max_price

    def capture_launch_spec(self, inst: ComputeResource, new_type: str) -> LaunchSpec:
        """Read everything needed to launch an equivalent instance. Read-only."""
        user_data = fetch_user_data(self._ec2, inst.id)
        if user_data is None:
            log.warning("{id} has no user data, replacement boots without it", id=inst.id)
        else:
            user_data = patch_user_data(user_data, inst.name)

        return LaunchSpec(
            image_id=inst.image_id,
            instance_type=new_type,
            zone=inst.zone,
            max_price=self._bid_price(inst),
            user_data=user_data,
            key_name=inst.key_name,
            subnet_id=inst.subnet_id,
            security_group_ids=inst.security_group_ids,
            iam_profile_arn=inst.iam_profile_arn,
            tags=user_tags(inst.tags),
        )

    def _launch_replacement(self, inst: ComputeResource, spec: LaunchSpec) -> str:
        log.info(
            "{step}: {type} in {zone}",
            step=MigrationStep.LAUNCH_REPLACEMENT,
            type=spec.instance_type,
            zone=spec.zone,
        )
        try:
            resp = self._ec2.run_instances(**spec.run_instances_args())
        except ClientError as e:
            raise ReplacementLaunchError(inst.id, None, error_message(e)) from e

        replacement_id = resp["Instances"][0]["InstanceId"]
        log.info("{step}: waiting for {id}", step=MigrationStep.CONFIRM_CAPACITY, id=replacement_id)
        try:
            wait_instance_state(self._ec2, replacement_id, InstanceState.RUNNING, self._timings)
        except DevboxError as e:
            raise ReplacementLaunchError(inst.id, replacement_id, str(e)) from e
        return replacement_id

    def _replace_and_migrate(self, inst: ComputeResource, new_type: str) -> ResizeOutcome:
        log.info(
            "Replacing spot instance {id}: {old} -> {new}",
            id=inst.id,
            old=inst.instance_type,
            new=new_type,
        )
        spec = self.capture_launch_spec(inst, new_type)
        volumes = inst.data_volumes
        for att in volumes:
            log.info("Will migrate {vol} at {dev}", vol=att.volume_id, dev=att.device)

        replacement_id = self._launch_replacement(inst, spec)

        # Capacity confirmed: the original may be modified from here on
        run = _Migration(original_id=inst.id, replacement_id=replacement_id)
        degradations: list[Degradation] = []

        with run.fatal(MigrationStep.QUIESCE_REPLACEMENT):
            self._ec2.stop_instances(InstanceIds=[replacement_id])
            wait_instance_state(self._ec2, replacement_id, InstanceState.STOPPED, self._timings)

        if spec.user_data is not None:
            with _best_effort(MigrationStep.PUSH_BOOT_CONFIG, replacement_id, degradations):
                self._ec2.modify_instance_attribute(
                    InstanceId=replacement_id,
                    UserData={"Value": spec.user_data},
                )

        with run.fatal(MigrationStep.STOP_ORIGINAL):
            self._stop(describe_instance(self._ec2, inst.id))

        if inst.spot_request_id:
            with run.fatal(MigrationStep.RETIRE_MARKET_REQUEST):
                self._ec2.cancel_spot_instance_requests(
                    SpotInstanceRequestIds=[inst.spot_request_id]
                )
            run.request_cancelled = True

        with run.fatal(MigrationStep.DETACH_FROM_ORIGINAL):
            for att in volumes:
                self._ec2.detach_volume(VolumeId=att.volume_id, InstanceId=inst.id)
                run.detached.append(att.volume_id)
            for att in volumes:
                wait_volume_state(self._ec2, att.volume_id, VolumeState.AVAILABLE, self._timings)

        with run.fatal(MigrationStep.TERMINATE_ORIGINAL):
            self._ec2.terminate_instances(InstanceIds=[inst.id])
            wait_instance_state(self._ec2, inst.id, InstanceState.TERMINATED, self._timings)
        run.original_terminated = True

        migrated: list[VolumeAttachment] = []
        for att in volumes:
            with _best_effort(MigrationStep.ATTACH_TO_REPLACEMENT, att.volume_id, degradations):
                self._ec2.attach_volume(
                    VolumeId=att.volume_id,
                    InstanceId=replacement_id,
                    Device=att.device,
                )
                migrated.append(VolumeAttachment(att.volume_id, att.device, replacement_id))
        for att in migrated:
            with _best_effort(MigrationStep.ATTACH_TO_REPLACEMENT, att.volume_id, degradations):
                wait_volume_state(self._ec2, att.volume_id, VolumeState.IN_USE, self._timings)

        with run.fatal(MigrationStep.START_REPLACEMENT):
            self._start(replacement_id)

        degradations.extend(self._update_dns(replacement_id))
        log.info("{old} replaced by {new} ({type})", old=inst.id, new=replacement_id, type=new_type)
        return ResizeOutcome(
            original_id=inst.id,
            instance_id=replacement_id,
            old_type=inst.instance_type,
            new_type=new_type,
            path="replace",
            migrated_volumes=tuple(migrated),
            degradations=tuple(degradations),
        )
