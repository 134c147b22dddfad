"""Data model for instances, volumes, snapshots and capacity offers.

Everything here is an immutable snapshot of what the control plane reported
at the moment it was read. Nothing is cached between operations; the
orchestrators re-read before every decision.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Literal

from devbox.constants import (
    DEFAULT_ARCHITECTURE,
    NAME_TAG,
    RESERVED_TAG_PREFIX,
    ROOT_DEVICE,
    ROOT_VOLUME_GB,
    ROOT_VOLUME_TYPE,
    InstanceState,
    MarketMode,
    SnapshotState,
    SpotRequestState,
    VolumeState,
)

type Tags = Mapping[str, str]
type ResizePath = Literal["noop", "in-place", "replace"]


def parse_tags(raw: list[dict[str, str]] | None) -> Tags:
    return MappingProxyType({t["Key"]: t["Value"] for t in raw or []})


def user_tags(tags: Tags) -> dict[str, str]:
    """Drop provider-reserved tags, which cannot be set on new resources."""
    return {k: v for k, v in tags.items() if not k.startswith(RESERVED_TAG_PREFIX)}


def tag_specification(resource_type: str, tags: Tags) -> list[dict[str, Any]]:
    if not tags:
        return []
    return [
        {
            "ResourceType": resource_type,
            "Tags": [{"Key": k, "Value": v} for k, v in tags.items()],
        }
    ]


# =============================================================================
# Compute
# =============================================================================


@dataclass(frozen=True, slots=True)
class VolumeAttachment:
    volume_id: str
    device: str
    instance_id: str = ""


@dataclass(frozen=True, slots=True)
class ComputeResource:
    """An EC2 instance as reported by DescribeInstances."""

    id: str
    instance_type: str
    state: InstanceState
    zone: str
    market: MarketMode
    spot_request_id: str | None = None
    root_device: str = ROOT_DEVICE
    attachments: tuple[VolumeAttachment, ...] = ()
    image_id: str = ""
    key_name: str | None = None
    subnet_id: str | None = None
    security_group_ids: tuple[str, ...] = ()
    iam_profile_arn: str | None = None
    public_ip: str | None = None
    tags: Tags = field(default_factory=dict)

    @property
    def is_spot(self) -> bool:
        return self.market is MarketMode.SPOT

    @property
    def name(self) -> str | None:
        return self.tags.get(NAME_TAG)

    @property
    def data_volumes(self) -> tuple[VolumeAttachment, ...]:
        """Attachments that are not the boot device."""
        return tuple(a for a in self.attachments if a.device != self.root_device)

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> ComputeResource:
        spot_request_id = raw.get("SpotInstanceRequestId") or None
        market = MarketMode.SPOT if spot_request_id else MarketMode.ON_DEMAND
        attachments = tuple(
            VolumeAttachment(
                volume_id=m["Ebs"]["VolumeId"],
                device=m["DeviceName"],
                instance_id=raw["InstanceId"],
            )
            for m in raw.get("BlockDeviceMappings", [])
            if m.get("Ebs", {}).get("VolumeId")
        )
        profile = raw.get("IamInstanceProfile") or {}
        return cls(
            id=raw["InstanceId"],
            instance_type=raw["InstanceType"],
            state=InstanceState(raw["State"]["Name"]),
            zone=raw.get("Placement", {}).get("AvailabilityZone", ""),
            market=market,
            spot_request_id=spot_request_id,
            root_device=raw.get("RootDeviceName") or ROOT_DEVICE,
            attachments=attachments,
            image_id=raw.get("ImageId", ""),
            key_name=raw.get("KeyName") or None,
            subnet_id=raw.get("SubnetId") or None,
            security_group_ids=tuple(g["GroupId"] for g in raw.get("SecurityGroups", [])),
            iam_profile_arn=profile.get("Arn") or None,
            public_ip=raw.get("PublicIpAddress") or None,
            tags=parse_tags(raw.get("Tags")),
        )


@dataclass(frozen=True, slots=True)
class MarketRequest:
    """A spot instance request."""

    id: str
    state: SpotRequestState
    max_price: str | None = None
    launch_spec: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> MarketRequest:
        return cls(
            id=raw["SpotInstanceRequestId"],
            state=SpotRequestState(raw["State"]),
            max_price=raw.get("SpotPrice") or None,
            launch_spec=MappingProxyType(raw.get("LaunchSpecification", {})),
        )


# =============================================================================
# Storage
# =============================================================================


@dataclass(frozen=True, slots=True)
class StorageVolume:
    """An EBS volume as reported by DescribeVolumes."""

    id: str
    size_gb: int
    volume_type: str
    zone: str
    state: VolumeState
    iops: int | None = None
    throughput: int | None = None
    attachment: VolumeAttachment | None = None
    tags: Tags = field(default_factory=dict)

    @property
    def name(self) -> str | None:
        return self.tags.get(NAME_TAG)

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> StorageVolume:
        attached = [
            a for a in raw.get("Attachments", []) if a.get("State") in ("attaching", "attached")
        ]
        attachment = (
            VolumeAttachment(
                volume_id=raw["VolumeId"],
                device=attached[0]["Device"],
                instance_id=attached[0]["InstanceId"],
            )
            if attached
            else None
        )
        return cls(
            id=raw["VolumeId"],
            size_gb=raw["Size"],
            volume_type=raw.get("VolumeType", ""),
            zone=raw.get("AvailabilityZone", ""),
            state=VolumeState(raw["State"]),
            iops=raw.get("Iops"),
            throughput=raw.get("Throughput"),
            attachment=attachment,
            tags=parse_tags(raw.get("Tags")),
        )


@dataclass(frozen=True, slots=True)
class StorageSnapshot:
    """An EBS snapshot. Snapshots are scoped to one region."""

    id: str
    volume_id: str
    state: SnapshotState
    region: str
    progress: str = ""
    message: str = ""

    @classmethod
    def from_api(cls, raw: dict[str, Any], region: str) -> StorageSnapshot:
        return cls(
            id=raw["SnapshotId"],
            volume_id=raw.get("VolumeId", ""),
            state=SnapshotState(raw["State"]),
            region=region,
            progress=raw.get("Progress", ""),
            message=raw.get("StateMessage", ""),
        )


# =============================================================================
# Capacity
# =============================================================================


def _primary_architecture(archs: list[str]) -> str:
    # 32-bit i386 is listed first on older x86 types
    native = [a for a in archs if a != "i386"]
    return (native or archs or [DEFAULT_ARCHITECTURE])[0]


@dataclass(frozen=True, slots=True)
class HardwareProfile:
    """Catalog data for one instance type."""

    name: str
    vcpus: int
    memory_mib: int
    architecture: str = DEFAULT_ARCHITECTURE
    has_gpu: bool = False
    network: str = ""

    @property
    def memory_gib(self) -> float:
        return self.memory_mib / 1024

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> HardwareProfile:
        archs = raw.get("ProcessorInfo", {}).get("SupportedArchitectures", [])
        return cls(
            name=raw["InstanceType"],
            vcpus=raw.get("VCpuInfo", {}).get("DefaultVCpus", 0),
            memory_mib=raw.get("MemoryInfo", {}).get("SizeInMiB", 0),
            architecture=_primary_architecture(archs),
            has_gpu=bool(raw.get("GpuInfo", {}).get("Gpus")),
            network=raw.get("NetworkInfo", {}).get("NetworkPerformance", ""),
        )


@dataclass(frozen=True, slots=True)
class SearchConstraints:
    """Hardware and market filters for a capacity search.

    Attributes:
        min_vcpus: Minimum vCPU count.
        min_memory_gib: Minimum memory in GiB.
        architecture: CPU architecture, e.g. ``x86_64`` or ``arm64``.
        require_gpu: Only keep types with at least one GPU.
        zone: Restrict offers to one availability zone.
        max_price: Drop offers priced above this hourly ceiling.
    """

    min_vcpus: int = 0
    min_memory_gib: float = 0
    architecture: str = DEFAULT_ARCHITECTURE
    require_gpu: bool = False
    zone: str | None = None
    max_price: float | None = None


@dataclass(frozen=True, slots=True)
class CandidateOffer:
    """A hardware profile priced in one zone."""

    profile: HardwareProfile
    zone: str
    price: float

    @property
    def instance_type(self) -> str:
        return self.profile.name


# =============================================================================
# Launch
# =============================================================================


@dataclass(frozen=True, slots=True)
class LaunchSpec:
    """Everything needed to recreate an equivalent spot instance."""

    image_id: str
    instance_type: str
    zone: str
    max_price: str
    user_data: bytes | None = None
    key_name: str | None = None
    subnet_id: str | None = None
    security_group_ids: tuple[str, ...] = ()
    iam_profile_arn: str | None = None
    tags: Tags = field(default_factory=dict)

    def run_instances_args(self) -> dict[str, Any]:
        args: dict[str, Any] = {
            "ImageId": self.image_id,
            "InstanceType": self.instance_type,
            "MinCount": 1,
            "MaxCount": 1,
            "InstanceMarketOptions": {
                "MarketType": "spot",
                "SpotOptions": {
                    "SpotInstanceType": "persistent",
                    "InstanceInterruptionBehavior": "stop",
                    "MaxPrice": self.max_price,
                },
            },
            "BlockDeviceMappings": [
                {
                    "DeviceName": ROOT_DEVICE,
                    "Ebs": {
                        "VolumeSize": ROOT_VOLUME_GB,
                        "VolumeType": ROOT_VOLUME_TYPE,
                        "DeleteOnTermination": True,
                    },
                }
            ],
        }
        if self.security_group_ids:
            args["SecurityGroupIds"] = list(self.security_group_ids)
        if self.subnet_id:
            args["SubnetId"] = self.subnet_id
        else:
            args["Placement"] = {"AvailabilityZone": self.zone}
        if self.key_name:
            args["KeyName"] = self.key_name
        if self.iam_profile_arn:
            args["IamInstanceProfile"] = {"Arn": self.iam_profile_arn}
        if self.user_data:
            # botocore base64-encodes RunInstances UserData
            args["UserData"] = self.user_data
        if specs := tag_specification("instance", self.tags):
            args["TagSpecifications"] = specs
        return args


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True, slots=True)
class Degradation:
    """A non-critical step that failed without aborting the operation."""

    step: str
    resource_id: str
    message: str


@dataclass(frozen=True, slots=True)
class ResizeOutcome:
    original_id: str
    instance_id: str
    old_type: str
    new_type: str
    path: ResizePath
    migrated_volumes: tuple[VolumeAttachment, ...] = ()
    degradations: tuple[Degradation, ...] = ()

    @property
    def replaced(self) -> bool:
        return self.instance_id != self.original_id

    @property
    def degraded(self) -> bool:
        return bool(self.degradations)


@dataclass(frozen=True, slots=True)
class RecoveryPlan:
    instance: ComputeResource
    current: HardwareProfile
    constraints: SearchConstraints
    candidates: tuple[CandidateOffer, ...]
    outcome: ResizeOutcome | None = None

    @property
    def best(self) -> CandidateOffer | None:
        return self.candidates[0] if self.candidates else None


@dataclass(frozen=True, slots=True)
class RelocationOutcome:
    source_volume_id: str
    volume_id: str
    region: str
    zone: str
    source_snapshot_id: str
    target_snapshot_id: str
    snapshots_deleted: bool = False
    degradations: tuple[Degradation, ...] = ()
