"""Centralized constants and enums for devbox.

All magic strings and timing defaults are defined here so the orchestrators
and the fake control plane used in tests agree on them.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Final

# =============================================================================
# Lifecycle States
# =============================================================================


class InstanceState(StrEnum):
    """EC2 instance state names."""

    PENDING = "pending"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    SHUTTING_DOWN = "shutting-down"
    TERMINATED = "terminated"


class VolumeState(StrEnum):
    """EBS volume state names."""

    CREATING = "creating"
    AVAILABLE = "available"
    IN_USE = "in-use"
    DELETING = "deleting"
    DELETED = "deleted"
    ERROR = "error"


class SnapshotState(StrEnum):
    """EBS snapshot state names."""

    PENDING = "pending"
    COMPLETED = "completed"
    ERROR = "error"


class SpotRequestState(StrEnum):
    """Spot instance request state names."""

    OPEN = "open"
    ACTIVE = "active"
    CLOSED = "closed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class MarketMode(StrEnum):
    """How an instance is billed."""

    ON_DEMAND = "on-demand"
    SPOT = "spot"


class SortKey(StrEnum):
    """Orderings accepted by the capacity search."""

    PRICE = "price"
    VCPU = "vcpu"
    MEMORY = "mem"


# =============================================================================
# Tags
# =============================================================================

NAME_TAG: Final = "Name"
RESERVED_TAG_PREFIX: Final = "aws:"


# =============================================================================
# Replacement Launch
# =============================================================================

ROOT_DEVICE: Final = "/dev/xvda"
ROOT_VOLUME_GB: Final = 75
ROOT_VOLUME_TYPE: Final = "gp3"
DEFAULT_HOSTNAME: Final = "dev-workstation"

# Error code the start call returns while a persistent spot request catches up
INCORRECT_SPOT_REQUEST_STATE: Final = "IncorrectSpotRequestState"


# =============================================================================
# Capacity Discovery
# =============================================================================

SPOT_PRICE_BATCH_SIZE: Final = 100
SPOT_PRICE_WINDOW_SECONDS: Final = 3600
SPOT_PRODUCT_DESCRIPTION: Final = "Linux/UNIX"
DEFAULT_ARCHITECTURE: Final = "x86_64"
RECOVERY_CANDIDATE_LIMIT: Final = 10


# =============================================================================
# DNS
# =============================================================================

DNS_RECORD_TTL: Final = 60


# =============================================================================
# Timing Defaults (seconds)
# =============================================================================

INSTANCE_POLL_INTERVAL: Final = 5.0
INSTANCE_TIMEOUT: Final = 300.0
VOLUME_POLL_INTERVAL: Final = 5.0
VOLUME_TIMEOUT: Final = 120.0
SNAPSHOT_POLL_INTERVAL: Final = 15.0
SNAPSHOT_TIMEOUT: Final = 1800.0
CONSISTENCY_RETRY_ATTEMPTS: Final = 6
CONSISTENCY_RETRY_DELAY: Final = 10.0
