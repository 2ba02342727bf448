"""structlog logger construction for cloudsvc.

Two output modes:
- ``stdout``: human console output (colored when attached to a TTY)
- ``gcp_logging``: JSON lines in the Cloud Logging structured format,
  picked up by the platform agent from stdout

The logger is built explicitly and handed to every component that logs.
Nothing here touches ``structlog.configure`` or the stdlib root logger.
"""

from __future__ import annotations

import contextlib
import logging
import sys
from collections.abc import Iterator
from pathlib import Path
from typing import Any, TextIO

import structlog
from structlog.typing import EventDict, FilteringBoundLogger, Processor, WrappedLogger

from cloudsvc.config.models import GcpConfig
from cloudsvc.errors import LoggingConfigError

OUTPUT_STDOUT = "stdout"
OUTPUT_GCP = "gcp_logging"
OUTPUTS = (OUTPUT_STDOUT, OUTPUT_GCP)

# Above CRITICAL: every event is dropped.
_DISABLED = logging.CRITICAL + 10

LEVELS: dict[str, int] = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "panic": logging.CRITICAL,
    "disabled": _DISABLED,
}

# structlog method names -> Cloud Logging severities.
_SEVERITIES: dict[str, str] = {
    "debug": "DEBUG",
    "info": "INFO",
    "warning": "WARNING",
    "warn": "WARNING",
    "error": "ERROR",
    "exception": "ERROR",
    "critical": "CRITICAL",
    "fatal": "CRITICAL",
}

GCP_LABELS_KEY = "logging.googleapis.com/labels"


def parse_level(name: str) -> int:
    """Map a level name from the settings file to a stdlib level number.

    Raises:
        LoggingConfigError: *name* is not one of :data:`LEVELS`.
    """
    try:
        return LEVELS[name.strip().lower()]
    except KeyError:
        msg = f"invalid log level {name!r}; expected one of: {', '.join(LEVELS)}"
        raise LoggingConfigError(msg) from None


def _drop_all(_logger: WrappedLogger, _method: str, _event: EventDict) -> EventDict:
    raise structlog.DropEvent


class CloudLoggingFormatter:
    """Reshape an event dict into a Cloud Logging structured entry."""

    def __init__(self, service_name: str, project_id: str) -> None:
        self._labels = {"service": service_name, "project_id": project_id}

    def __call__(
        self, _logger: WrappedLogger, method_name: str, event_dict: EventDict
    ) -> EventDict:
        level = event_dict.pop("level", method_name)
        event_dict["severity"] = _SEVERITIES.get(level, "DEFAULT")
        event_dict["message"] = event_dict.pop("event", "")
        labels = dict(self._labels)
        service = event_dict.pop("service", None)
        if service is not None:
            labels["service"] = str(service)
        event_dict[GCP_LABELS_KEY] = labels
        event_dict["serviceContext"] = {"service": labels["service"]}
        return event_dict


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _stdout_processors(stream: TextIO) -> list[Processor]:
    isatty = getattr(stream, "isatty", None)
    colors = bool(isatty and isatty())
    return [
        *_shared_processors(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(colors=colors),
    ]


def _gcp_processors(service_name: str, gcp: GcpConfig) -> list[Processor]:
    if not gcp.project_id:
        msg = "failed to create gcp logging writer: gcp.project_id is required"
        raise LoggingConfigError(msg)
    if gcp.service_account_path and not Path(gcp.service_account_path).is_file():
        msg = (
            "failed to create gcp logging writer: service account file "
            f"{gcp.service_account_path} not found"
        )
        raise LoggingConfigError(msg)
    return [
        *_shared_processors(),
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="time"),
        structlog.processors.format_exc_info,
        CloudLoggingFormatter(service_name, gcp.project_id),
        structlog.processors.JSONRenderer(),
    ]


def build_logger(
    service_name: str,
    *,
    level: str,
    output: str,
    gcp: GcpConfig | None = None,
    stream: TextIO | None = None,
) -> FilteringBoundLogger:
    """Build the process logger.

    Args:
        service_name: Bound to every event as ``service``.
        level: Minimum severity emitted (see :data:`LEVELS`).
        output: Destination sink, one of :data:`OUTPUTS`.
        gcp: Required when *output* is ``gcp_logging``.
        stream: Where lines are written (default: stdout).

    Raises:
        LoggingConfigError: unknown level or output, or the sink could not
            be constructed.
    """
    min_level = parse_level(level)
    target = stream if stream is not None else sys.stdout

    processors: list[Processor]
    if output == OUTPUT_STDOUT:
        processors = _stdout_processors(target)
    elif output == OUTPUT_GCP:
        processors = _gcp_processors(service_name, gcp or GcpConfig())
    else:
        msg = f"invalid log output value {output!r}; expected one of: {', '.join(OUTPUTS)}"
        raise LoggingConfigError(msg)

    if min_level > logging.CRITICAL:
        processors = [_drop_all]
        min_level = logging.CRITICAL

    logger: Any = structlog.wrap_logger(
        structlog.PrintLogger(file=target),
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        context_class=dict,
        cache_logger_on_first_use=True,
    )
    bound: FilteringBoundLogger = logger.bind(service=service_name)
    return bound


class StructlogHandler(logging.Handler):
    """stdlib handler that re-emits records through a structlog logger.

    Third-party libraries (uvicorn) log through the stdlib. Routing their
    records here keeps the process output in one format, so ``gcp_logging``
    stays pure JSON lines.
    """

    def __init__(self, logger: FilteringBoundLogger, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self._log = logger

    def emit(self, record: logging.LogRecord) -> None:
        try:
            # Custom stdlib levels (uvicorn's TRACE=5) fold onto the standard ones.
            level = min(logging.CRITICAL, record.levelno - record.levelno % 10)
            if level < logging.DEBUG:
                return
            fields: dict[str, Any] = {"logger": record.name}
            if record.exc_info:
                fields["exc_info"] = record.exc_info
            self._log.log(level, record.getMessage(), **fields)
        except Exception:
            self.handleError(record)


@contextlib.contextmanager
def forward_stdlib(name: str, logger: FilteringBoundLogger) -> Iterator[StructlogHandler]:
    """Route the stdlib logger *name* (and its children) to *logger* while active."""
    target = logging.getLogger(name)
    handler = StructlogHandler(logger)
    previous_propagate = target.propagate
    target.addHandler(handler)
    target.propagate = False
    try:
        yield handler
    finally:
        target.removeHandler(handler)
        target.propagate = previous_propagate
