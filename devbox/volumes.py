"""Cross-region volume relocation.

Snapshot in the source region, copy the snapshot into the target region,
materialize a new volume from the copy. Nothing is cleaned up on failure;
the error names the stage and whatever was created before it.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from botocore.exceptions import ClientError
from loguru import logger

from devbox.aws.ec2 import describe_volume, resolve_volume
from devbox.aws.errors import error_message
from devbox.config import Timings
from devbox.constants import VolumeState
from devbox.exceptions import DevboxError, RelocationError
from devbox.types import (
    Degradation,
    RelocationOutcome,
    StorageVolume,
    tag_specification,
    user_tags,
)
from devbox.wait import wait_snapshot_completed, wait_volume_state

if TYPE_CHECKING:
    from devbox.aws.clients import AWSClients

log = logger.bind(component="volumes")

# Volume types that accept provisioned IOPS / throughput on creation
_IOPS_TYPES = frozenset({"io1", "io2", "gp3"})
_THROUGHPUT_TYPES = frozenset({"gp3"})


class RelocationStage(StrEnum):
    DESCRIBE_SOURCE = "describe-source"
    SNAPSHOT_SOURCE = "snapshot-source"
    COPY_SNAPSHOT = "copy-snapshot"
    CREATE_VOLUME = "create-volume"
    CLEANUP = "cleanup"


def default_zone(region: str) -> str:
    return f"{region}a"


def create_volume_args(source: StorageVolume, snapshot_id: str, zone: str) -> dict[str, Any]:
    """CreateVolume parameters replicating source's size, performance and tags."""
    args: dict[str, Any] = {
        "AvailabilityZone": zone,
        "SnapshotId": snapshot_id,
        "Size": source.size_gb,
        "VolumeType": source.volume_type,
    }
    if source.iops is not None and source.volume_type in _IOPS_TYPES:
        args["Iops"] = source.iops
    if source.throughput is not None and source.volume_type in _THROUGHPUT_TYPES:
        args["Throughput"] = source.throughput
    if specs := tag_specification("volume", user_tags(source.tags)):
        args["TagSpecifications"] = specs
    return args


@dataclass(slots=True)
class _Relocation:
    volume_id: str
    source_snapshot_id: str | None = None
    target_snapshot_id: str | None = None
    new_volume_id: str | None = None

    @contextmanager
    def stage(self, stage: RelocationStage) -> Iterator[None]:
        try:
            yield
        except (ClientError, DevboxError) as e:
            log.error("{stage} failed for {id}: {err}", stage=stage, id=self.volume_id, err=e)
            raise RelocationError(
                stage,
                volume_id=self.volume_id,
                source_snapshot_id=self.source_snapshot_id,
                target_snapshot_id=self.target_snapshot_id,
                new_volume_id=self.new_volume_id,
                reason=error_message(e),
            ) from e


class VolumeRelocationOrchestrator:
    """Moves an EBS volume to another region through snapshot replication."""

    def __init__(self, clients: AWSClients, *, timings: Timings) -> None:
        self._clients = clients
        self._timings = timings

    def relocate(
        self,
        volume_ref: str,
        target_region: str,
        *,
        target_zone: str | None = None,
        cleanup: bool = False,
    ) -> RelocationOutcome:
        """Copy a volume into target_region.

        Args:
            volume_ref: Volume id, or the value of its Name tag.
            target_region: Region to move the volume into.
            target_zone: Zone for the new volume. Defaults to zone "a" of
                target_region.
            cleanup: Delete both intermediate snapshots once the new volume
                is available.

        Returns:
            The new volume and the snapshots that produced it. Snapshot
            deletion failures are reported as degradations.

        Raises:
            RelocationError: A stage failed. Later stages did not run.
        """
        source_region = self._clients.region
        src = self._clients.ec2()
        dst = self._clients.ec2(target_region)
        zone = target_zone or default_zone(target_region)

        volume_id = resolve_volume(src, volume_ref)
        run = _Relocation(volume_id)

        with run.stage(RelocationStage.DESCRIBE_SOURCE):
            source = describe_volume(src, volume_id)

        with run.stage(RelocationStage.SNAPSHOT_SOURCE):
            log.info("Snapshotting {id} in {region}", id=volume_id, region=source_region)
            snap = src.create_snapshot(
                VolumeId=volume_id,
                Description=f"devbox move: {volume_id} -> {target_region}",
            )
            source_snapshot_id = run.source_snapshot_id = snap["SnapshotId"]
            wait_snapshot_completed(src, source_snapshot_id, source_region, self._timings)

        with run.stage(RelocationStage.COPY_SNAPSHOT):
            log.info("Copying {snap} to {region}", snap=source_snapshot_id, region=target_region)
            copied = dst.copy_snapshot(
                SourceRegion=source_region,
                SourceSnapshotId=source_snapshot_id,
                Description=f"devbox move: {volume_id} from {source_region}",
            )
            target_snapshot_id = run.target_snapshot_id = copied["SnapshotId"]
            wait_snapshot_completed(dst, target_snapshot_id, target_region, self._timings)

        with run.stage(RelocationStage.CREATE_VOLUME):
            log.info("Creating volume in {zone}", zone=zone)
            created = dst.create_volume(**create_volume_args(source, target_snapshot_id, zone))
            new_volume_id = run.new_volume_id = created["VolumeId"]
            wait_volume_state(dst, new_volume_id, VolumeState.AVAILABLE, self._timings)

        log.info("Moved {old} to {new} in {zone}", old=volume_id, new=new_volume_id, zone=zone)

        degradations: list[Degradation] = []
        if cleanup:
            degradations = self._delete_snapshots(
                (src, source_snapshot_id),
                (dst, target_snapshot_id),
            )

        return RelocationOutcome(
            source_volume_id=volume_id,
            volume_id=new_volume_id,
            region=target_region,
            zone=zone,
            source_snapshot_id=source_snapshot_id,
            target_snapshot_id=target_snapshot_id,
            snapshots_deleted=cleanup and not degradations,
            degradations=tuple(degradations),
        )

    @staticmethod
    def _delete_snapshots(*targets: tuple[Any, str]) -> list[Degradation]:
        degradations: list[Degradation] = []
        for ec2, snapshot_id in targets:
            try:
                ec2.delete_snapshot(SnapshotId=snapshot_id)
            except ClientError as e:
                log.warning("Could not delete snapshot {id}: {err}", id=snapshot_id, err=e)
                degradations.append(
                    Degradation(str(RelocationStage.CLEANUP), snapshot_id, error_message(e))
                )
            else:
                log.info("Deleted snapshot {id}", id=snapshot_id)
        return degradations
