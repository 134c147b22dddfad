"""Spot capacity discovery.

Joins the EC2 instance-type catalog against recent spot price history to
produce priced candidate offers. An empty result is a valid answer, never
an error.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, timedelta
from itertools import batched
from typing import TYPE_CHECKING, Any

from loguru import logger
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from devbox.aws.errors import is_throttling
from devbox.constants import (
    SPOT_PRICE_BATCH_SIZE,
    SPOT_PRICE_WINDOW_SECONDS,
    SPOT_PRODUCT_DESCRIPTION,
    SortKey,
)
from devbox.types import CandidateOffer, HardwareProfile, SearchConstraints

if TYPE_CHECKING:
    from mypy_boto3_ec2 import EC2Client

log = logger.bind(component="discovery")

type PriceKey = tuple[str, str]

_catalog_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception(is_throttling),
    reraise=True,
)


@_catalog_retry
def fetch_instance_types(ec2: EC2Client, architecture: str) -> list[HardwareProfile]:
    """Current-generation, spot-capable instance types for one architecture."""
    paginator = ec2.get_paginator("describe_instance_types")
    pages = paginator.paginate(
        Filters=[
            {"Name": "supported-usage-class", "Values": ["spot"]},
            {"Name": "current-generation", "Values": ["true"]},
            {"Name": "processor-info.supported-architecture", "Values": [architecture]},
        ]
    )
    return [
        HardwareProfile.from_api(raw) for page in pages for raw in page.get("InstanceTypes", [])
    ]


@_catalog_retry
def describe_instance_types(ec2: EC2Client, names: Sequence[str]) -> list[HardwareProfile]:
    if not names:
        return []
    resp = ec2.describe_instance_types(InstanceTypes=list(names))
    return [HardwareProfile.from_api(raw) for raw in resp.get("InstanceTypes", [])]


def matches(profile: HardwareProfile, constraints: SearchConstraints) -> bool:
    if profile.vcpus < constraints.min_vcpus:
        return False
    if profile.memory_mib < int(constraints.min_memory_gib * 1024):
        return False
    return profile.has_gpu or not constraints.require_gpu


@_catalog_retry
def fetch_spot_prices(
    ec2: EC2Client,
    instance_types: Iterable[str],
    *,
    zone: str | None = None,
    now: datetime | None = None,
) -> dict[PriceKey, float]:
    """Latest spot price per (instance type, zone) within the trailing window."""
    start = (now or datetime.now(UTC)) - timedelta(seconds=SPOT_PRICE_WINDOW_SECONDS)
    latest: dict[PriceKey, dict[str, Any]] = {}
    paginator = ec2.get_paginator("describe_spot_price_history")

    for batch in batched(instance_types, SPOT_PRICE_BATCH_SIZE):
        params: dict[str, Any] = {
            "InstanceTypes": list(batch),
            "StartTime": start,
            "ProductDescriptions": [SPOT_PRODUCT_DESCRIPTION],
        }
        if zone:
            params["AvailabilityZone"] = zone
        for page in paginator.paginate(**params):
            for obs in page.get("SpotPriceHistory", []):
                if zone and obs["AvailabilityZone"] != zone:
                    continue
                key = (obs["InstanceType"], obs["AvailabilityZone"])
                seen = latest.get(key)
                if seen is None or obs["Timestamp"] > seen["Timestamp"]:
                    latest[key] = obs

    return {key: float(obs["SpotPrice"]) for key, obs in latest.items()}


def sort_offers(
    offers: Iterable[CandidateOffer], key: SortKey = SortKey.PRICE
) -> list[CandidateOffer]:
    match key:
        case SortKey.VCPU:
            return sorted(offers, key=lambda o: (o.profile.vcpus, o.price, o.instance_type))
        case SortKey.MEMORY:
            return sorted(offers, key=lambda o: (o.profile.memory_mib, o.price, o.instance_type))
        case _:
            return sorted(offers, key=lambda o: (o.price, o.instance_type, o.zone))


class CapacityDiscoveryEngine:
    """Ranks spot offers that satisfy hardware constraints."""

    def __init__(self, ec2: EC2Client) -> None:
        self._ec2 = ec2

    def find_candidates(
        self,
        constraints: SearchConstraints,
        *,
        sort_by: SortKey = SortKey.PRICE,
    ) -> list[CandidateOffer]:
        profiles = [
            p
            for p in fetch_instance_types(self._ec2, constraints.architecture)
            if matches(p, constraints)
        ]
        log.info(
            "{n} instance types match {c.min_vcpus}+ vCPU, {c.min_memory_gib}+ GiB, "
            "{c.architecture}",
            n=len(profiles),
            c=constraints,
        )
        return self._price(profiles, constraints.zone, constraints.max_price, sort_by)

    def lookup(
        self,
        instance_types: Sequence[str],
        *,
        zone: str | None = None,
        max_price: float | None = None,
        sort_by: SortKey = SortKey.PRICE,
    ) -> list[CandidateOffer]:
        """Price specific instance types without hardware filtering."""
        profiles = describe_instance_types(self._ec2, instance_types)
        return self._price(profiles, zone, max_price, sort_by)

    def _price(
        self,
        profiles: Sequence[HardwareProfile],
        zone: str | None,
        max_price: float | None,
        sort_by: SortKey,
    ) -> list[CandidateOffer]:
        if not profiles:
            return []
        by_name = {p.name: p for p in profiles}
        prices = fetch_spot_prices(self._ec2, by_name, zone=zone)
        offers = [
            CandidateOffer(profile=by_name[itype], zone=az, price=price)
            for (itype, az), price in prices.items()
            if itype in by_name
        ]
        if max_price is not None and max_price > 0:
            offers = [o for o in offers if o.price <= max_price]
        log.debug("{n} priced offers after zone and price filters", n=len(offers))
        return sort_offers(offers, sort_by)
