"""Logging for converge, on loguru.

The library logs nothing until a harness or test session calls
``setup_logging``. Lifecycle code binds its context instead of formatting it
into messages::

    logger.bind(component="lifecycle", marker="TEST:ci", resource_id=1234, step="await_active")

and every sink renders that context the same way, so one grep for a guest
id or a marker follows a run end to end::

    12:00:01.5 | INFO     | lifecycle | TEST:ci #1234 await_active | Guest is RUNNING
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, TypeAlias

from loguru import logger

logger.disable("converge")

LogLevel: TypeAlias = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"]

_TEMPLATE = "{extra[component]: <9} | {extra[_run]}{message}\n{exception}"


def _run_context(extra: dict[str, Any]) -> str:
    parts = [str(extra[key]) for key in ("marker", "kind") if extra.get(key)]
    if extra.get("resource_id") is not None:
        parts.append(f"#{extra['resource_id']}")
    if extra.get("step"):
        parts.append(str(extra["step"]))
    return f"{' '.join(parts)} | " if parts else ""


def _formatter(prefix: str):
    def fmt(record: Any) -> str:
        extra = record["extra"]
        extra.setdefault("component", record["name"].rsplit(".", 1)[-1])
        extra["_run"] = _run_context(extra)
        return prefix + _TEMPLATE

    return fmt


CONSOLE_PREFIX = "<green>{time:HH:mm:ss.S}</green> | <level>{level: <8}</level> | "
FILE_PREFIX = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Where converge logs go.

    Attributes:
        level: Minimum console level. The file always gets DEBUG, so every
            probe tick of a failed run can be read back.
        file: Log file path, or None for no file.
        console: Whether to log to stderr.
        rotation: File rotation policy (e.g., "50 MB", "1 day").
        retention: Number of rotated files to keep.
    """

    level: LogLevel = "INFO"
    file: str | None = ".converge/converge.log"
    console: bool = True
    rotation: str = "50 MB"
    retention: int = 10


def setup_logging(config: LogConfig) -> list[int]:
    """Enable converge logging and add its sinks. Returns handler ids for teardown_logging."""
    logger.enable("converge")
    handler_ids: list[int] = []

    if config.console:
        handler_ids.append(logger.add(
            sys.stderr,
            level=config.level,
            format=_formatter(CONSOLE_PREFIX),
            colorize=True,
            filter="converge",
        ))

    if config.file:
        Path(config.file).parent.mkdir(parents=True, exist_ok=True)
        handler_ids.append(logger.add(
            config.file,
            level="DEBUG",
            format=_formatter(FILE_PREFIX),
            filter="converge",
            rotation=config.rotation,
            retention=config.retention,
            diagnose=False,
        ))

    return handler_ids


def teardown_logging(handler_ids: list[int]) -> None:
    """Remove the sinks added by setup_logging and silence converge again."""
    for hid in handler_ids:
        logger.remove(hid)
    logger.disable("converge")
