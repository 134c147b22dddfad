"""Read-side EC2 helpers.

Each helper performs one describe call and returns a parsed snapshot from
devbox.types. Missing resources raise NotFoundError whether EC2 reports them
with an empty result or with a ``*.NotFound`` error code.
"""

from __future__ import annotations

import base64
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from botocore.exceptions import ClientError

from devbox.aws.errors import is_not_found
from devbox.constants import NAME_TAG
from devbox.exceptions import ConfigurationError, NotFoundError
from devbox.types import ComputeResource, MarketRequest, StorageSnapshot, StorageVolume

if TYPE_CHECKING:
    from mypy_boto3_ec2 import EC2Client


def _describe[T](kind: str, identity: str, call: Callable[[], list[T]]) -> T:
    try:
        items = call()
    except ClientError as e:
        if is_not_found(e):
            raise NotFoundError(kind, identity) from e
        raise
    if not items:
        raise NotFoundError(kind, identity)
    return items[0]


def describe_instance(ec2: EC2Client, instance_id: str) -> ComputeResource:
    def call() -> list[dict[str, Any]]:
        resp = ec2.describe_instances(InstanceIds=[instance_id])
        return [i for r in resp.get("Reservations", []) for i in r.get("Instances", [])]

    return ComputeResource.from_api(_describe("instance", instance_id, call))


def describe_volume(ec2: EC2Client, volume_id: str) -> StorageVolume:
    raw = _describe(
        "volume",
        volume_id,
        lambda: ec2.describe_volumes(VolumeIds=[volume_id]).get("Volumes", []),
    )
    return StorageVolume.from_api(raw)


def describe_snapshot(ec2: EC2Client, snapshot_id: str, region: str) -> StorageSnapshot:
    raw = _describe(
        "snapshot",
        snapshot_id,
        lambda: ec2.describe_snapshots(SnapshotIds=[snapshot_id]).get("Snapshots", []),
    )
    return StorageSnapshot.from_api(raw, region)


def describe_spot_request(ec2: EC2Client, request_id: str) -> MarketRequest:
    raw = _describe(
        "spot request",
        request_id,
        lambda: ec2.describe_spot_instance_requests(
            SpotInstanceRequestIds=[request_id],
        ).get("SpotInstanceRequests", []),
    )
    return MarketRequest.from_api(raw)


def fetch_user_data(ec2: EC2Client, instance_id: str) -> bytes | None:
    """Return the instance's raw boot configuration, or None if it has none."""
    try:
        resp = ec2.describe_instance_attribute(InstanceId=instance_id, Attribute="userData")
    except ClientError as e:
        if is_not_found(e):
            raise NotFoundError("instance", instance_id) from e
        raise
    encoded = resp.get("UserData", {}).get("Value")
    if not encoded:
        return None
    return base64.b64decode(encoded)


def resolve_volume(ec2: EC2Client, ref: str) -> str:
    """Resolve a volume id or Name tag to a volume id."""
    if ref.startswith("vol-"):
        return ref
    resp = ec2.describe_volumes(Filters=[{"Name": f"tag:{NAME_TAG}", "Values": [ref]}])
    ids = [v["VolumeId"] for v in resp.get("Volumes", [])]
    match ids:
        case []:
            raise NotFoundError("volume named", ref)
        case [volume_id]:
            return volume_id
        case _:
            raise ConfigurationError(
                f"Multiple volumes named {ref!r}: {', '.join(ids)}. Use a volume id."
            )
