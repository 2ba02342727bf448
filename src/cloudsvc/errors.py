"""Exception hierarchy for cloudsvc.

Startup errors (settings, logging) are fatal and surface through the CLI.
Runtime errors of the HTTP runner are carried inside a RunOutcome instead
of being raised.
"""

from __future__ import annotations


class CloudSvcError(Exception):
    """Base class for all cloudsvc errors."""


class SettingsError(CloudSvcError):
    """The settings file is missing, unreadable, or invalid."""


class LoggingConfigError(CloudSvcError):
    """The logger section names an unknown level or output, or the sink failed."""


class InvalidTransitionError(CloudSvcError):
    """A server attempted a state transition the lifecycle does not allow."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"invalid server state transition: {current} -> {target}")
        self.current = current
        self.target = target


class ShutdownTimeoutError(CloudSvcError, TimeoutError):
    """In-flight requests did not drain within the shutdown bound."""

    def __init__(self, timeout: float, pending: int = 0) -> None:
        super().__init__(
            f"failed to shutdown server: {pending} connection(s) still active after {timeout:g}s"
        )
        self.timeout = timeout
        self.pending = pending


class WriteTimeoutError(CloudSvcError, TimeoutError):
    """A response write started after the write deadline had passed."""


class ReadTimeoutError(CloudSvcError, TimeoutError):
    """The request body did not arrive before the read deadline."""
