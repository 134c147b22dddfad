"""Exception hierarchy for devbox.

All devbox-specific exceptions inherit from DevboxError, so callers can
catch every failure of an orchestration with a single except clause.
Provider errors that are not classified here propagate as botocore
``ClientError``.
"""

from __future__ import annotations

from collections.abc import Sequence


class DevboxError(Exception):
    """Base exception for all devbox errors."""


class ConfigurationError(DevboxError):
    """Raised for invalid configuration or ambiguous references."""


class NotFoundError(DevboxError):
    """Raised when a referenced resource does not exist."""

    def __init__(self, kind: str, identity: str) -> None:
        self.kind = kind
        self.identity = identity
        super().__init__(f"{kind} {identity} not found")


class InvalidStateError(DevboxError):
    """Raised when a resource is in a state the operation cannot start from."""

    def __init__(self, resource_id: str, state: str, operation: str) -> None:
        self.resource_id = resource_id
        self.state = state
        self.operation = operation
        super().__init__(f"Cannot {operation} {resource_id} while it is {state}")


class TransientError(DevboxError):
    """Raised when a consistency-lag error outlives its retry budget."""

    def __init__(self, operation: str, attempts: int) -> None:
        self.operation = operation
        self.attempts = attempts
        super().__init__(f"{operation} still inconsistent after {attempts} attempts")


class PollTimeoutError(DevboxError):
    """Raised when a polled resource does not reach its target state in time."""

    def __init__(
        self,
        description: str,
        target: str,
        last_state: str | None,
        timeout: float,
    ) -> None:
        self.description = description
        self.target = target
        self.last_state = last_state
        self.timeout = timeout
        super().__init__(
            f"Timeout waiting for {description} to become {target} after {timeout:.1f}s "
            f"(last state: {last_state or 'unknown'})"
        )


class TerminalProviderError(DevboxError):
    """Raised when the provider reports an explicit failure state."""

    def __init__(self, description: str, state: str, message: str = "") -> None:
        self.description = description
        self.state = state
        self.message = message
        detail = f": {message}" if message else ""
        super().__init__(f"{description} entered {state} state{detail}")


class ReplacementLaunchError(DevboxError):
    """Raised when the replacement fails before the capacity checkpoint.

    The original instance, its spot request and its volumes are untouched.
    ``replacement_id`` is set when the replacement was created but never
    reached running, so the operator can remove it.
    """

    def __init__(self, original_id: str, replacement_id: str | None, reason: str) -> None:
        self.original_id = original_id
        self.replacement_id = replacement_id
        self.reason = reason
        launched = f" (replacement {replacement_id} left behind)" if replacement_id else ""
        super().__init__(
            f"Replacement launch failed, {original_id} still intact{launched}: {reason}"
        )


class MigrationStepError(DevboxError):
    """Raised when a fatal step fails after the capacity checkpoint.

    Nothing is rolled back. The attributes describe what had already
    happened so the operator can reconcile by hand.
    """

    def __init__(
        self,
        step: str,
        *,
        original_id: str,
        replacement_id: str,
        detached: Sequence[str] = (),
        request_cancelled: bool = False,
        original_terminated: bool = False,
        reason: str = "",
    ) -> None:
        self.step = step
        self.original_id = original_id
        self.replacement_id = replacement_id
        self.detached = tuple(detached)
        self.request_cancelled = request_cancelled
        self.original_terminated = original_terminated
        self.reason = reason
        super().__init__(
            f"Migration failed at {step}: {reason} "
            f"[original={original_id} replacement={replacement_id} "
            f"request_cancelled={request_cancelled} detached={list(self.detached)} "
            f"original_terminated={original_terminated}]"
        )


class RelocationError(DevboxError):
    """Raised when a volume relocation stage fails.

    Intermediate snapshots and volumes are left in place; re-running the
    relocation is the recovery path.
    """

    def __init__(
        self,
        stage: str,
        *,
        volume_id: str,
        source_snapshot_id: str | None = None,
        target_snapshot_id: str | None = None,
        new_volume_id: str | None = None,
        reason: str = "",
    ) -> None:
        self.stage = stage
        self.volume_id = volume_id
        self.source_snapshot_id = source_snapshot_id
        self.target_snapshot_id = target_snapshot_id
        self.new_volume_id = new_volume_id
        self.reason = reason
        left = [i for i in (source_snapshot_id, target_snapshot_id, new_volume_id) if i]
        leftovers = f" (left behind: {', '.join(left)})" if left else ""
        super().__init__(f"Moving {volume_id} failed at {stage}: {reason}{leftovers}")
