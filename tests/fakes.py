"""In-memory EC2 and Route53 control plane.

Speaks the subset of the boto3 client API that devbox uses, records every
call, and lets tests inject failures per operation. State transitions are
immediate except snapshots (pending for a configurable number of polls) and
new volumes (creating until described once).
"""

from __future__ import annotations

import base64
import itertools
from collections import defaultdict, deque
from collections.abc import Iterator
from datetime import UTC, datetime
from typing import Any

from botocore.exceptions import ClientError, WaiterError

MUTATING_OPS = frozenset({
    "run_instances",
    "stop_instances",
    "start_instances",
    "terminate_instances",
    "modify_instance_attribute",
    "cancel_spot_instance_requests",
    "detach_volume",
    "attach_volume",
    "create_volume",
    "create_snapshot",
    "copy_snapshot",
    "delete_snapshot",
    "change_resource_record_sets",
})

_WAITER_TARGETS = {
    "instance_running": "running",
    "instance_stopped": "stopped",
    "instance_terminated": "terminated",
}

_WAITER_FAILURES = {
    "instance_running": {"shutting-down", "terminated", "stopping"},
    "instance_stopped": {"pending", "terminated"},
    "instance_terminated": {"pending", "stopping"},
}


def client_error(code: str, message: str = "", operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message or code}}, operation)


def _b64(value: str | bytes) -> str:
    # botocore accepts UserData as str or bytes and base64-encodes it
    return base64.b64encode(value.encode() if isinstance(value, str) else value).decode()


def _tags(tag_specs: list[dict[str, Any]] | None, resource_type: str) -> list[dict[str, str]]:
    for spec in tag_specs or []:
        if spec["ResourceType"] == resource_type:
            return list(spec["Tags"])
    return []


def instance_type(
    name: str,
    vcpus: int,
    memory_gib: int,
    *,
    arch: str = "x86_64",
    gpus: int = 0,
    spot: bool = True,
    current: bool = True,
    network: str = "Up to 12.5 Gigabit",
) -> dict[str, Any]:
    raw: dict[str, Any] = {
        "InstanceType": name,
        "CurrentGeneration": current,
        "SupportedUsageClasses": ["on-demand", "spot"] if spot else ["on-demand"],
        "VCpuInfo": {"DefaultVCpus": vcpus},
        "MemoryInfo": {"SizeInMiB": memory_gib * 1024},
        "ProcessorInfo": {"SupportedArchitectures": [arch]},
        "NetworkInfo": {"NetworkPerformance": network},
    }
    if gpus:
        raw["GpuInfo"] = {"Gpus": [{"Name": "T4", "Manufacturer": "NVIDIA", "Count": gpus}]}
    return raw


class FakeCloud:
    """Regions share one id sequence, as ids are globally unique in EC2."""

    def __init__(self) -> None:
        self.regions: dict[str, FakeEC2] = {}
        self._seq = itertools.count(1)

    def new_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._seq):08x}"

    def ec2(self, region: str) -> FakeEC2:
        if region not in self.regions:
            self.regions[region] = FakeEC2(self, region)
        return self.regions[region]


class _Paginator:
    def __init__(self, pages: Any) -> None:
        self._pages = pages

    def paginate(self, **kwargs: Any) -> Iterator[dict[str, Any]]:
        return self._pages(**kwargs)


class _Waiter:
    def __init__(self, ec2: FakeEC2, name: str) -> None:
        self._ec2 = ec2
        self._name = name

    def wait(self, InstanceIds: list[str], WaiterConfig: dict[str, Any] | None = None) -> None:  # noqa: N803
        self._ec2.calls.append(
            (f"wait_{self._name}", {"InstanceIds": list(InstanceIds), "WaiterConfig": WaiterConfig})
        )
        target = _WAITER_TARGETS[self._name]
        for instance_id in InstanceIds:
            inst = self._ec2.instances.get(instance_id)
            if inst is None:
                raise WaiterError(
                    name=self._name,
                    reason="An error occurred (InvalidInstanceID.NotFound)",
                    last_response={},
                )
            state = inst["State"]["Name"]
            if state == target:
                continue
            last_response = {"Reservations": [{"Instances": [inst]}]}
            if state in _WAITER_FAILURES[self._name]:
                raise WaiterError(
                    name=self._name,
                    reason=f'Waiter encountered a terminal failure state: matched "{state}"',
                    last_response=last_response,
                )
            raise WaiterError(
                name=self._name,
                reason="Max attempts exceeded",
                last_response=last_response,
            )


class FakeEC2:
    """One region of the fake control plane."""

    def __init__(self, cloud: FakeCloud, region: str) -> None:
        self.cloud = cloud
        self.region = region
        self.instances: dict[str, dict[str, Any]] = {}
        self.volumes: dict[str, dict[str, Any]] = {}
        self.snapshots: dict[str, dict[str, Any]] = {}
        self.spot_requests: dict[str, dict[str, Any]] = {}
        self.user_data: dict[str, str] = {}
        self.instance_types: list[dict[str, Any]] = []
        self.spot_prices: list[dict[str, Any]] = []
        self.subnet_zones: dict[str, str] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.failures: dict[str, deque[BaseException]] = defaultdict(deque)
        self.launch_stuck = False
        self.snapshot_polls = 1
        self.snapshot_error: str | None = None

    # -- test helpers ---------------------------------------------------------

    def fail(self, op: str, exc: BaseException, times: int = 1) -> None:
        self.failures[op].extend([exc] * times)

    def _record(self, op: str, kwargs: dict[str, Any]) -> None:
        self.calls.append((op, kwargs))
        if self.failures[op]:
            raise self.failures[op].popleft()

    def ops(self) -> list[str]:
        return [op for op, _ in self.calls]

    def mutations(self) -> list[str]:
        return [op for op, _ in self.calls if op in MUTATING_OPS]

    def index(self, op: str, **match: Any) -> int:
        """Position of the first call to op whose kwargs contain match."""
        for i, (name, kwargs) in enumerate(self.calls):
            if name == op and all(kwargs.get(k) == v for k, v in match.items()):
                return i
        raise AssertionError(f"{op} {match} was never called")

    def live_instances(self) -> list[str]:
        return [i for i, inst in self.instances.items() if inst["State"]["Name"] != "terminated"]

    def add_volume(
        self,
        *,
        size: int = 100,
        volume_type: str = "gp3",
        zone: str = "us-east-2a",
        iops: int | None = 3000,
        throughput: int | None = 125,
        tags: dict[str, str] | None = None,
        volume_id: str | None = None,
    ) -> str:
        volume_id = volume_id or self.cloud.new_id("vol")
        raw: dict[str, Any] = {
            "VolumeId": volume_id,
            "Size": size,
            "VolumeType": volume_type,
            "AvailabilityZone": zone,
            "State": "available",
            "Attachments": [],
            "Tags": [{"Key": k, "Value": v} for k, v in (tags or {}).items()],
        }
        if iops is not None:
            raw["Iops"] = iops
        if throughput is not None:
            raw["Throughput"] = throughput
        self.volumes[volume_id] = raw
        return volume_id

    def _attach(self, volume_id: str, instance_id: str, device: str) -> None:
        vol = self.volumes[volume_id]
        vol["State"] = "in-use"
        vol["Attachments"] = [
            {"VolumeId": volume_id, "InstanceId": instance_id, "Device": device, "State": "attached"}
        ]
        self.instances[instance_id]["BlockDeviceMappings"].append(
            {"DeviceName": device, "Ebs": {"VolumeId": volume_id, "Status": "attached"}}
        )

    def add_instance(
        self,
        instance_type: str = "m6i.large",
        *,
        state: str = "running",
        spot: bool = False,
        spot_price: str | None = "0.50",
        zone: str = "us-east-2a",
        data_volumes: dict[str, str] | None = None,
        tags: dict[str, str] | None = None,
        user_data: str | bytes | None = None,
        public_ip: str | None = "203.0.113.10",
    ) -> str:
        """Add an instance with a root volume and the given data volumes.

        data_volumes maps device path to volume id; the volumes are created.
        """
        instance_id = self.cloud.new_id("i")
        raw: dict[str, Any] = {
            "InstanceId": instance_id,
            "InstanceType": instance_type,
            "State": {"Name": state},
            "Placement": {"AvailabilityZone": zone},
            "RootDeviceName": "/dev/xvda",
            "BlockDeviceMappings": [],
            "ImageId": "ami-0nixos",
            "KeyName": "dev-boxes",
            "SubnetId": "subnet-1",
            "SecurityGroups": [{"GroupId": "sg-1", "GroupName": "dev-instance"}],
            "IamInstanceProfile": {"Arn": "arn:aws:iam::123:instance-profile/dev"},
            "Tags": [{"Key": k, "Value": v} for k, v in (tags or {}).items()],
        }
        if public_ip:
            raw["PublicIpAddress"] = public_ip
        self.subnet_zones.setdefault("subnet-1", zone)
        if spot:
            request_id = self.cloud.new_id("sir")
            self.spot_requests[request_id] = {
                "SpotInstanceRequestId": request_id,
                "State": "active",
                "SpotPrice": spot_price,
                "Type": "persistent",
                "InstanceId": instance_id,
            }
            raw["SpotInstanceRequestId"] = request_id
            raw["InstanceLifecycle"] = "spot"
        self.instances[instance_id] = raw

        root = self.add_volume(size=75, zone=zone)
        self._attach(root, instance_id, "/dev/xvda")
        for device, volume_id in (data_volumes or {}).items():
            if volume_id not in self.volumes:
                self.add_volume(volume_id=volume_id, zone=zone)
            self._attach(volume_id, instance_id, device)
        if user_data is not None:
            self.user_data[instance_id] = _b64(user_data)
        return instance_id

    def add_price(self, instance_type: str, zone: str, price: str, timestamp: datetime | None = None) -> None:
        self.spot_prices.append({
            "InstanceType": instance_type,
            "AvailabilityZone": zone,
            "SpotPrice": price,
            "ProductDescription": "Linux/UNIX",
            "Timestamp": timestamp or datetime.now(UTC),
        })

    def raw_user_data(self, instance_id: str) -> bytes | None:
        encoded = self.user_data.get(instance_id)
        return base64.b64decode(encoded) if encoded else None

    def decoded_user_data(self, instance_id: str) -> str | None:
        raw = self.raw_user_data(instance_id)
        return raw.decode() if raw is not None else None

    # -- instances ------------------------------------------------------------

    def _instance(self, instance_id: str) -> dict[str, Any]:
        if instance_id not in self.instances:
            raise client_error("InvalidInstanceID.NotFound", f"The instance ID '{instance_id}' does not exist")
        return self.instances[instance_id]

    def describe_instances(self, InstanceIds: list[str]) -> dict[str, Any]:  # noqa: N803
        self._record("describe_instances", {"InstanceIds": InstanceIds})
        found = [self._instance(i) for i in InstanceIds]
        return {"Reservations": [{"Instances": found}] if found else []}

    def stop_instances(self, InstanceIds: list[str]) -> dict[str, Any]:  # noqa: N803
        self._record("stop_instances", {"InstanceIds": InstanceIds})
        for i in InstanceIds:
            self._instance(i)["State"] = {"Name": "stopped"}
        return {}

    def start_instances(self, InstanceIds: list[str]) -> dict[str, Any]:  # noqa: N803
        self._record("start_instances", {"InstanceIds": InstanceIds})
        for i in InstanceIds:
            self._instance(i)["State"] = {"Name": "running"}
        return {}

    def terminate_instances(self, InstanceIds: list[str]) -> dict[str, Any]:  # noqa: N803
        self._record("terminate_instances", {"InstanceIds": InstanceIds})
        for i in InstanceIds:
            inst = self._instance(i)
            inst["State"] = {"Name": "terminated"}
            for mapping in inst["BlockDeviceMappings"]:
                self.volumes.pop(mapping["Ebs"]["VolumeId"], None)
            inst["BlockDeviceMappings"] = []
        return {}

    def modify_instance_attribute(self, InstanceId: str, **kwargs: Any) -> dict[str, Any]:  # noqa: N803
        self._record("modify_instance_attribute", {"InstanceId": InstanceId, **kwargs})
        inst = self._instance(InstanceId)
        if "InstanceType" in kwargs:
            if inst["State"]["Name"] != "stopped":
                raise client_error("IncorrectInstanceState", f"{InstanceId} is not stopped")
            if inst.get("SpotInstanceRequestId"):
                raise client_error("UnsupportedOperation", "spot instance type cannot change")
            inst["InstanceType"] = kwargs["InstanceType"]["Value"]
        if "UserData" in kwargs:
            value = kwargs["UserData"]["Value"]
            self.user_data[InstanceId] = _b64(value)
        return {}

    def describe_instance_attribute(self, InstanceId: str, Attribute: str) -> dict[str, Any]:  # noqa: N803
        self._record("describe_instance_attribute", {"InstanceId": InstanceId, "Attribute": Attribute})
        self._instance(InstanceId)
        encoded = self.user_data.get(InstanceId)
        return {"InstanceId": InstanceId, "UserData": {"Value": encoded} if encoded else {}}

    def run_instances(self, **kwargs: Any) -> dict[str, Any]:
        self._record("run_instances", kwargs)
        instance_id = self.cloud.new_id("i")
        placement = kwargs.get("Placement", {}).get("AvailabilityZone")
        zone = placement or self.subnet_zones.get(kwargs.get("SubnetId", ""), f"{self.region}a")
        raw: dict[str, Any] = {
            "InstanceId": instance_id,
            "InstanceType": kwargs["InstanceType"],
            "State": {"Name": "pending" if self.launch_stuck else "running"},
            "Placement": {"AvailabilityZone": zone},
            "RootDeviceName": "/dev/xvda",
            "BlockDeviceMappings": [],
            "ImageId": kwargs["ImageId"],
            "SecurityGroups": [{"GroupId": g} for g in kwargs.get("SecurityGroupIds", [])],
            "Tags": _tags(kwargs.get("TagSpecifications"), "instance"),
            "PublicIpAddress": f"198.51.100.{len(self.instances) + 1}",
        }
        for key in ("KeyName", "SubnetId", "IamInstanceProfile"):
            if key in kwargs:
                raw[key] = kwargs[key]
        market = kwargs.get("InstanceMarketOptions")
        if market and market["MarketType"] == "spot":
            request_id = self.cloud.new_id("sir")
            self.spot_requests[request_id] = {
                "SpotInstanceRequestId": request_id,
                "State": "active",
                "SpotPrice": market["SpotOptions"].get("MaxPrice"),
                "Type": market["SpotOptions"].get("SpotInstanceType", "one-time"),
                "InstanceId": instance_id,
            }
            raw["SpotInstanceRequestId"] = request_id
        self.instances[instance_id] = raw
        root = self.add_volume(size=75, zone=zone)
        self._attach(root, instance_id, "/dev/xvda")
        if "UserData" in kwargs:
            self.user_data[instance_id] = _b64(kwargs["UserData"])
        return {"Instances": [dict(raw)]}

    def get_waiter(self, name: str) -> _Waiter:
        return _Waiter(self, name)

    # -- spot requests --------------------------------------------------------

    def describe_spot_instance_requests(self, SpotInstanceRequestIds: list[str]) -> dict[str, Any]:  # noqa: N803
        self._record("describe_spot_instance_requests", {"SpotInstanceRequestIds": SpotInstanceRequestIds})
        for request_id in SpotInstanceRequestIds:
            if request_id not in self.spot_requests:
                raise client_error("InvalidSpotInstanceRequestID.NotFound")
        return {"SpotInstanceRequests": [self.spot_requests[r] for r in SpotInstanceRequestIds]}

    def cancel_spot_instance_requests(self, SpotInstanceRequestIds: list[str]) -> dict[str, Any]:  # noqa: N803
        self._record("cancel_spot_instance_requests", {"SpotInstanceRequestIds": SpotInstanceRequestIds})
        for request_id in SpotInstanceRequestIds:
            self.spot_requests[request_id]["State"] = "cancelled"
        return {}

    # -- volumes --------------------------------------------------------------

    def describe_volumes(
        self,
        VolumeIds: list[str] | None = None,  # noqa: N803
        Filters: list[dict[str, Any]] | None = None,  # noqa: N803
    ) -> dict[str, Any]:
        self._record("describe_volumes", {"VolumeIds": VolumeIds, "Filters": Filters})
        if VolumeIds is not None:
            for volume_id in VolumeIds:
                if volume_id not in self.volumes:
                    raise client_error("InvalidVolume.NotFound", f"The volume '{volume_id}' does not exist.")
            found = [self.volumes[v] for v in VolumeIds]
        else:
            found = list(self.volumes.values())
        for f in Filters or []:
            key = f["Name"].removeprefix("tag:")
            found = [
                v for v in found
                if any(t["Key"] == key and t["Value"] in f["Values"] for t in v["Tags"])
            ]
        result = [dict(v) for v in found]
        for v in found:
            if v["State"] == "creating":
                v["State"] = "available"
        return {"Volumes": result}

    def detach_volume(self, VolumeId: str, InstanceId: str) -> dict[str, Any]:  # noqa: N803
        self._record("detach_volume", {"VolumeId": VolumeId, "InstanceId": InstanceId})
        vol = self.volumes[VolumeId]
        if not vol["Attachments"] or vol["Attachments"][0]["InstanceId"] != InstanceId:
            raise client_error("IncorrectState", f"{VolumeId} is not attached to {InstanceId}")
        vol["State"] = "available"
        vol["Attachments"] = []
        inst = self.instances[InstanceId]
        inst["BlockDeviceMappings"] = [
            m for m in inst["BlockDeviceMappings"] if m["Ebs"]["VolumeId"] != VolumeId
        ]
        return {}

    def attach_volume(self, VolumeId: str, InstanceId: str, Device: str) -> dict[str, Any]:  # noqa: N803
        self._record("attach_volume", {"VolumeId": VolumeId, "InstanceId": InstanceId, "Device": Device})
        vol = self.volumes[VolumeId]
        inst = self._instance(InstanceId)
        if vol["State"] != "available":
            raise client_error("VolumeInUse", f"{VolumeId} is {vol['State']}")
        if vol["AvailabilityZone"] != inst["Placement"]["AvailabilityZone"]:
            raise client_error("InvalidVolume.ZoneMismatch", f"{VolumeId} is in another zone")
        self._attach(VolumeId, InstanceId, Device)
        return {}

    def create_volume(self, **kwargs: Any) -> dict[str, Any]:
        self._record("create_volume", kwargs)
        snapshot_id = kwargs.get("SnapshotId")
        if snapshot_id and snapshot_id not in self.snapshots:
            raise client_error("InvalidSnapshot.NotFound")
        volume_id = self.add_volume(
            size=kwargs["Size"],
            volume_type=kwargs["VolumeType"],
            zone=kwargs["AvailabilityZone"],
            iops=kwargs.get("Iops"),
            throughput=kwargs.get("Throughput"),
            tags={t["Key"]: t["Value"] for t in _tags(kwargs.get("TagSpecifications"), "volume")},
        )
        self.volumes[volume_id]["State"] = "creating"
        self.volumes[volume_id]["SnapshotId"] = snapshot_id
        return {"VolumeId": volume_id, "State": "creating"}

    # -- snapshots ------------------------------------------------------------

    def _new_snapshot(self, volume_id: str, description: str) -> str:
        snapshot_id = self.cloud.new_id("snap")
        self.snapshots[snapshot_id] = {
            "SnapshotId": snapshot_id,
            "VolumeId": volume_id,
            "Description": description,
            "State": "pending",
            "Progress": "0%",
            "_polls": self.snapshot_polls,
        }
        return snapshot_id

    def create_snapshot(self, VolumeId: str, Description: str = "") -> dict[str, Any]:  # noqa: N803
        self._record("create_snapshot", {"VolumeId": VolumeId, "Description": Description})
        if VolumeId not in self.volumes:
            raise client_error("InvalidVolume.NotFound")
        snapshot_id = self._new_snapshot(VolumeId, Description)
        return {"SnapshotId": snapshot_id, "State": "pending"}

    def copy_snapshot(self, SourceRegion: str, SourceSnapshotId: str, Description: str = "") -> dict[str, Any]:  # noqa: N803
        self._record(
            "copy_snapshot",
            {"SourceRegion": SourceRegion, "SourceSnapshotId": SourceSnapshotId, "Description": Description},
        )
        source = self.cloud.ec2(SourceRegion).snapshots.get(SourceSnapshotId)
        if source is None:
            raise client_error("InvalidSnapshot.NotFound")
        if source["State"] != "completed":
            raise client_error("IncorrectState", f"{SourceSnapshotId} is {source['State']}")
        snapshot_id = self._new_snapshot(source["VolumeId"], Description)
        return {"SnapshotId": snapshot_id}

    def describe_snapshots(self, SnapshotIds: list[str]) -> dict[str, Any]:  # noqa: N803
        self._record("describe_snapshots", {"SnapshotIds": SnapshotIds})
        result = []
        for snapshot_id in SnapshotIds:
            snap = self.snapshots.get(snapshot_id)
            if snap is None:
                raise client_error("InvalidSnapshot.NotFound")
            if snap["State"] == "pending":
                if self.snapshot_error is not None:
                    snap["State"] = "error"
                    snap["StateMessage"] = self.snapshot_error
                elif snap["_polls"] <= 0:
                    snap["State"] = "completed"
                    snap["Progress"] = "100%"
                else:
                    snap["_polls"] -= 1
                    snap["Progress"] = "50%"
            result.append({k: v for k, v in snap.items() if not k.startswith("_")})
        return {"Snapshots": result}

    def delete_snapshot(self, SnapshotId: str) -> dict[str, Any]:  # noqa: N803
        self._record("delete_snapshot", {"SnapshotId": SnapshotId})
        if SnapshotId not in self.snapshots:
            raise client_error("InvalidSnapshot.NotFound")
        del self.snapshots[SnapshotId]
        return {}

    # -- catalog --------------------------------------------------------------

    def _instance_type_pages(self, Filters: list[dict[str, Any]] | None = None) -> Iterator[dict[str, Any]]:  # noqa: N803
        self._record("describe_instance_types", {"Filters": Filters})
        matching = list(self.instance_types)
        for f in Filters or []:
            values = f["Values"]
            match f["Name"]:
                case "supported-usage-class":
                    matching = [t for t in matching if set(values) & set(t["SupportedUsageClasses"])]
                case "current-generation":
                    matching = [t for t in matching if str(t["CurrentGeneration"]).lower() in values]
                case "processor-info.supported-architecture":
                    matching = [
                        t for t in matching
                        if set(values) & set(t["ProcessorInfo"]["SupportedArchitectures"])
                    ]
        # Two pages, so callers must follow pagination
        half = (len(matching) + 1) // 2
        yield {"InstanceTypes": matching[:half]}
        yield {"InstanceTypes": matching[half:]}

    def _spot_price_pages(self, **kwargs: Any) -> Iterator[dict[str, Any]]:
        self._record("describe_spot_price_history", kwargs)
        types = set(kwargs.get("InstanceTypes", []))
        start = kwargs.get("StartTime")
        zone = kwargs.get("AvailabilityZone")
        products = set(kwargs.get("ProductDescriptions", []))
        for obs in self.spot_prices:
            if types and obs["InstanceType"] not in types:
                continue
            if start is not None and obs["Timestamp"] < start:
                continue
            if zone and obs["AvailabilityZone"] != zone:
                continue
            if products and obs["ProductDescription"] not in products:
                continue
            yield {"SpotPriceHistory": [obs]}

    def get_paginator(self, name: str) -> _Paginator:
        match name:
            case "describe_instance_types":
                return _Paginator(self._instance_type_pages)
            case "describe_spot_price_history":
                return _Paginator(self._spot_price_pages)
        raise NotImplementedError(name)

    def describe_instance_types(self, InstanceTypes: list[str]) -> dict[str, Any]:  # noqa: N803
        self._record("describe_instance_types", {"InstanceTypes": InstanceTypes})
        return {"InstanceTypes": [t for t in self.instance_types if t["InstanceType"] in InstanceTypes]}


class FakeRoute53:
    def __init__(self, zones: dict[str, str] | None = None) -> None:
        self.zones = zones if zones is not None else {"frob.io.": "/hostedzone/Z1"}
        self.changes: list[dict[str, Any]] = []
        self.failures: deque[BaseException] = deque()

    def list_hosted_zones_by_name(self, DNSName: str, MaxItems: str = "100") -> dict[str, Any]:  # noqa: N803
        names = sorted(n for n in self.zones if n >= DNSName)[: int(MaxItems)]
        return {"HostedZones": [{"Name": n, "Id": self.zones[n]} for n in names]}

    def change_resource_record_sets(self, HostedZoneId: str, ChangeBatch: dict[str, Any]) -> dict[str, Any]:  # noqa: N803
        if self.failures:
            raise self.failures.popleft()
        self.changes.append({"HostedZoneId": HostedZoneId, **ChangeBatch})
        return {"ChangeInfo": {"Status": "PENDING"}}


class FakeClients:
    """Stands in for devbox.aws.AWSClients."""

    def __init__(self, cloud: FakeCloud, region: str, route53: FakeRoute53) -> None:
        self.cloud = cloud
        self.region = region
        self.route53 = route53

    def ec2(self, region: str | None = None) -> FakeEC2:
        return self.cloud.ec2(region or self.region)
