"""Log sinks for the devbox CLI.

Every module logs through ``logger.bind(component=...)`` (resize, volumes,
discovery, ...). Nothing is emitted until a caller opts in: ``devbox.cli``
does so per invocation from its ``-v`` and ``--log-file`` flags, and removes
its sinks again before returning.

Example:
    handler_ids = setup_logging(LogConfig.for_cli(verbose=True, log_file="resize.log"))
    try:
        InstanceResizeOrchestrator(...).resize("i-0abc", "m6i.2xlarge")
    finally:
        teardown_logging(handler_ids)
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Literal

from loguru import logger

logger.disable("devbox")

type LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> "
    "<level>{level: <7}</level> "
    "<cyan>[{extra[component]}]</cyan> "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS Z} {level: <7} [{extra[component]}] "
    "{name}:{function}:{line} {message}"
)


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Where devbox log records go.

    Attributes:
        level: Console threshold. The log file always records DEBUG.
        file: Log file path, or None for console only.
        console: Write to stderr, leaving stdout to tables and results.
        rotation: When to roll the log file over.
        retention: How many rolled files to keep.
    """

    level: LogLevel = "INFO"
    file: str | None = None
    console: bool = True
    rotation: str = "50 MB"
    retention: int = 10

    @classmethod
    def for_cli(cls, *, verbose: bool, log_file: str | None) -> LogConfig:
        return cls(level="DEBUG" if verbose else "INFO", file=log_file)


def setup_logging(config: LogConfig) -> list[int]:
    """Turn devbox records on and return the sink ids to pass to teardown_logging."""
    logger.enable("devbox")
    logger.configure(extra={"component": "devbox"})
    handler_ids: list[int] = []

    if config.console:
        handler_ids.append(
            logger.add(
                sys.stderr,
                level=config.level,
                format=CONSOLE_FORMAT,
                colorize=True,
                filter="devbox",
            )
        )

    if config.file:
        handler_ids.append(
            logger.add(
                config.file,
                level="DEBUG",
                format=FILE_FORMAT,
                rotation=config.rotation,
                retention=config.retention,
                compression="zip",
                diagnose=False,  # tracebacks would carry boto3 request params
                filter="devbox",
            )
        )

    return handler_ids


def teardown_logging(handler_ids: list[int]) -> None:
    for hid in handler_ids:
        logger.remove(hid)
    logger.disable("devbox")
