"""State polling against the EC2 control plane.

``poll_until`` is the generic combinator. Volumes and snapshots have no
blocking waiter in the API and are polled through it; instance transitions
use the botocore waiters, with their failures translated into the same
error types.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from botocore.exceptions import WaiterError
from loguru import logger

from devbox.aws.ec2 import describe_snapshot, describe_volume
from devbox.config import Timings
from devbox.constants import InstanceState, SnapshotState, VolumeState
from devbox.exceptions import PollTimeoutError, TerminalProviderError
from devbox.types import StorageSnapshot, StorageVolume

if TYPE_CHECKING:
    from mypy_boto3_ec2 import EC2Client

log = logger.bind(component="wait")

_INSTANCE_WAITERS: dict[InstanceState, str] = {
    InstanceState.RUNNING: "instance_running",
    InstanceState.STOPPED: "instance_stopped",
    InstanceState.TERMINATED: "instance_terminated",
}


def poll_until[T](
    poll_fn: Callable[[], T],
    ready_check: Callable[[T], bool],
    *,
    terminal_check: Callable[[T], bool] | None = None,
    state_of: Callable[[T], str] = str,
    diagnostic: Callable[[T], str] | None = None,
    on_poll: Callable[[T], None] | None = None,
    timeout: float = 300.0,
    interval: float = 5.0,
    description: str = "resource",
    target: str = "ready",
) -> T:
    """Poll until poll_fn returns something that passes ready_check.

    Args:
        poll_fn: Reads the current resource state.
        ready_check: Returns True when the resource reached the target.
        terminal_check: Returns True when the resource reached a failure
            state it will never leave.
        state_of: Renders the observed state for error messages.
        diagnostic: Extracts provider diagnostic text on terminal failure.
        on_poll: Called with every observation that is not yet ready.
        timeout: Maximum time to wait in seconds.
        interval: Time between polls in seconds.
        description: Description for error messages.
        target: Name of the target state for error messages.

    Returns:
        The observation that passed ready_check.

    Raises:
        PollTimeoutError: If timeout is exceeded. Carries the last state seen.
        TerminalProviderError: If the resource reached a terminal state.
    """
    start = time.monotonic()
    last_state: str | None = None

    while True:
        result = poll_fn()
        last_state = state_of(result)

        if ready_check(result):
            return result

        if terminal_check is not None and terminal_check(result):
            message = diagnostic(result) if diagnostic is not None else ""
            raise TerminalProviderError(description, last_state, message)

        if on_poll is not None:
            on_poll(result)

        if time.monotonic() - start >= timeout:
            raise PollTimeoutError(description, target, last_state, timeout)

        time.sleep(interval)


def wait_volume_state(
    ec2: EC2Client,
    volume_id: str,
    target: VolumeState,
    timings: Timings,
) -> StorageVolume:
    return poll_until(
        lambda: describe_volume(ec2, volume_id),
        lambda v: v.state == target,
        terminal_check=lambda v: v.state == VolumeState.ERROR,
        state_of=lambda v: str(v.state),
        timeout=timings.volume_timeout,
        interval=timings.volume_interval,
        description=f"volume {volume_id}",
        target=str(target),
    )


def _log_snapshot_progress(snapshot: StorageSnapshot) -> None:
    log.info(
        "Snapshot {id} in {region}: {state} {progress}",
        id=snapshot.id,
        region=snapshot.region,
        state=snapshot.state,
        progress=snapshot.progress,
    )


def wait_snapshot_completed(
    ec2: EC2Client,
    snapshot_id: str,
    region: str,
    timings: Timings,
) -> StorageSnapshot:
    return poll_until(
        lambda: describe_snapshot(ec2, snapshot_id, region),
        lambda s: s.state == SnapshotState.COMPLETED,
        terminal_check=lambda s: s.state == SnapshotState.ERROR,
        state_of=lambda s: str(s.state),
        diagnostic=lambda s: s.message,
        on_poll=_log_snapshot_progress,
        timeout=timings.snapshot_timeout,
        interval=timings.snapshot_interval,
        description=f"snapshot {snapshot_id} in {region}",
        target=str(SnapshotState.COMPLETED),
    )


def _last_instance_state(last_response: dict[str, Any] | None) -> str | None:
    for reservation in (last_response or {}).get("Reservations", []):
        for inst in reservation.get("Instances", []):
            return inst.get("State", {}).get("Name")
    return None


def wait_instance_state(
    ec2: EC2Client,
    instance_id: str,
    target: InstanceState,
    timings: Timings,
) -> None:
    """Block on the botocore waiter for target.

    Raises:
        PollTimeoutError: If the waiter ran out of attempts.
        TerminalProviderError: If the waiter hit a failure state or an error.
    """
    interval = timings.instance_interval
    max_attempts = max(1, math.ceil(timings.instance_timeout / interval))
    description = f"instance {instance_id}"
    log.debug("Waiting for {desc} to be {target}", desc=description, target=target)
    try:
        ec2.get_waiter(_INSTANCE_WAITERS[target]).wait(
            InstanceIds=[instance_id],
            WaiterConfig={"Delay": interval, "MaxAttempts": max_attempts},
        )
    except WaiterError as e:
        last_state = _last_instance_state(e.last_response)
        reason = str(e.kwargs.get("reason", ""))
        if "Max attempts exceeded" in reason:
            raise PollTimeoutError(
                description, str(target), last_state, timings.instance_timeout
            ) from e
        raise TerminalProviderError(description, last_state or "unknown", reason) from e
