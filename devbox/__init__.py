"""devbox - resize, recover and relocate a cloud workstation.

Example:

    from devbox import DevboxConfig, build_injector, InstanceResizeOrchestrator

    injector = build_injector(DevboxConfig(region="us-east-2"))
    outcome = injector.get(InstanceResizeOrchestrator).resize("i-0abc", "m7i.2xlarge")
    for d in outcome.degradations:
        print(d.step, d.message)
"""

from devbox.app import DevboxModule, build_injector
from devbox.config import DevboxConfig, Timings, resolve_config
from devbox.discovery import CapacityDiscoveryEngine
from devbox.exceptions import (
    ConfigurationError,
    DevboxError,
    InvalidStateError,
    MigrationStepError,
    NotFoundError,
    PollTimeoutError,
    RelocationError,
    ReplacementLaunchError,
    TerminalProviderError,
    TransientError,
)
from devbox.logging import LogConfig
from devbox.recover import RecoveryPlanner
from devbox.resize import InstanceResizeOrchestrator, MigrationStep
from devbox.types import (
    CandidateOffer,
    Degradation,
    RecoveryPlan,
    RelocationOutcome,
    ResizeOutcome,
    SearchConstraints,
)
from devbox.volumes import VolumeRelocationOrchestrator

__version__ = "0.1.0"

__all__ = [
    "CandidateOffer",
    "CapacityDiscoveryEngine",
    "ConfigurationError",
    "Degradation",
    "DevboxConfig",
    "DevboxError",
    "DevboxModule",
    "InstanceResizeOrchestrator",
    "InvalidStateError",
    "LogConfig",
    "MigrationStep",
    "MigrationStepError",
    "NotFoundError",
    "PollTimeoutError",
    "RecoveryPlan",
    "RecoveryPlanner",
    "RelocationError",
    "RelocationOutcome",
    "ReplacementLaunchError",
    "ResizeOutcome",
    "SearchConstraints",
    "TerminalProviderError",
    "Timings",
    "TransientError",
    "VolumeRelocationOrchestrator",
    "build_injector",
    "resolve_config",
]
