"""TOML-based configuration.

Loads ~/.config/devbox/config.toml (global) and devbox.toml (project),
merges them, and builds a DevboxConfig. The resulting object is passed
explicitly to every component; nothing here is process-wide state.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, get_type_hints

from devbox import constants
from devbox.exceptions import ConfigurationError

type RawConfig = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".config" / "devbox" / "config.toml"
PROJECT_CONFIG_NAME = "devbox.toml"


@dataclass(frozen=True, slots=True)
class Timings:
    """Poll cadence, wait deadlines and retry budget, in seconds.

    Attributes:
        instance_interval: Delay between instance state checks.
        instance_timeout: Deadline for stop, start and terminate.
        volume_interval: Delay between volume state checks.
        volume_timeout: Deadline for attach, detach and create.
        snapshot_interval: Delay between snapshot progress checks.
        snapshot_timeout: Deadline for snapshot creation and copy.
        retry_attempts: Attempts for calls hit by consistency lag.
        retry_delay: Fixed delay between those attempts.
    """

    instance_interval: float = constants.INSTANCE_POLL_INTERVAL
    instance_timeout: float = constants.INSTANCE_TIMEOUT
    volume_interval: float = constants.VOLUME_POLL_INTERVAL
    volume_timeout: float = constants.VOLUME_TIMEOUT
    snapshot_interval: float = constants.SNAPSHOT_POLL_INTERVAL
    snapshot_timeout: float = constants.SNAPSHOT_TIMEOUT
    retry_attempts: int = constants.CONSISTENCY_RETRY_ATTEMPTS
    retry_delay: float = constants.CONSISTENCY_RETRY_DELAY

    def __post_init__(self) -> None:
        if self.retry_attempts < 1:
            raise ConfigurationError("retry_attempts must be at least 1")
        if self.instance_interval <= 0:
            raise ConfigurationError("instance_interval must be positive")
        for f in fields(self):
            if getattr(self, f.name) < 0:
                raise ConfigurationError(f"{f.name} must not be negative")


@dataclass(frozen=True, slots=True)
class DevboxConfig:
    """Workstation defaults.

    Attributes:
        region: Home region of the workstation.
        endpoint_url: Override for the AWS endpoint (LocalStack and friends).
        dns_name: Record pointed at the workstation after a resize.
        dns_zone: Hosted zone holding ``dns_name``. Empty disables DNS updates.
        default_max_price: Spot bid when the original request has none, and
            the recovery price ceiling.
        timings: Poll and retry timings.
    """

    region: str = "us-east-2"
    endpoint_url: str | None = None
    dns_name: str = "dev.frob.io"
    dns_zone: str = "frob.io."
    default_max_price: str = "2.00"
    timings: Timings = field(default_factory=Timings)

    @property
    def default_max_price_value(self) -> float:
        try:
            return float(self.default_max_price)
        except ValueError as e:
            raise ConfigurationError(
                f"default_max_price is not a number: {self.default_max_price!r}"
            ) from e


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    project_cfg = _read_toml(project_path)
    return _deep_merge(global_cfg, project_cfg)


def _check_keys(cls: type, raw: RawConfig, section: str) -> None:
    known = {f.name for f in fields(cls)}
    if unknown := sorted(set(raw) - known):
        raise ConfigurationError(
            f"Unknown {section} keys: {', '.join(unknown)}. Valid: {', '.join(sorted(known))}"
        )


def _check_types(cls: type, raw: RawConfig, section: str) -> None:
    hints = get_type_hints(cls)
    for key, value in raw.items():
        expected = hints[key]
        if expected is float:
            expected = int | float
        if isinstance(value, bool) or not isinstance(value, expected):
            name = getattr(expected, "__name__", str(expected))
            raise ConfigurationError(
                f"{section} key {key} must be {name}, got {type(value).__name__}: {value!r}"
            )


def build_config(raw: RawConfig, **overrides: Any) -> DevboxConfig:
    """Build a DevboxConfig from merged TOML plus non-None overrides.

    A numeric ``default_max_price`` is accepted and kept as its decimal string.
    """
    raw = dict(raw)
    raw_timings = raw.pop("timings", {})
    if not isinstance(raw_timings, dict):
        raise ConfigurationError("timings must be a table")
    _check_keys(DevboxConfig, raw, "config")
    _check_keys(Timings, raw_timings, "timings")
    raw.update({k: v for k, v in overrides.items() if v is not None})
    price = raw.get("default_max_price")
    if isinstance(price, int | float) and not isinstance(price, bool):
        raw["default_max_price"] = str(price)
    _check_types(DevboxConfig, raw, "config")
    _check_types(Timings, raw_timings, "timings")
    return DevboxConfig(**raw, timings=Timings(**raw_timings))


def resolve_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
    **overrides: Any,
) -> DevboxConfig:
    return build_config(
        load_config(project_dir=project_dir, global_path=global_path),
        **overrides,
    )
