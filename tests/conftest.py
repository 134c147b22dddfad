from __future__ import annotations

import pytest
from fakes import FakeClients, FakeCloud, FakeEC2, FakeRoute53

from devbox.config import Timings

REGION = "us-east-2"


@pytest.fixture
def timings() -> Timings:
    return Timings(
        instance_interval=1,
        instance_timeout=1,
        volume_interval=0,
        volume_timeout=1,
        snapshot_interval=0,
        snapshot_timeout=1,
        retry_attempts=3,
        retry_delay=0,
    )


@pytest.fixture
def cloud() -> FakeCloud:
    return FakeCloud()


@pytest.fixture
def ec2(cloud: FakeCloud) -> FakeEC2:
    return cloud.ec2(REGION)


@pytest.fixture
def route53() -> FakeRoute53:
    return FakeRoute53()


@pytest.fixture
def clients(cloud: FakeCloud, route53: FakeRoute53) -> FakeClients:
    return FakeClients(cloud, REGION, route53)
