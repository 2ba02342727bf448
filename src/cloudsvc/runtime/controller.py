"""Translate SIGINT/SIGTERM into a single LifetimeToken cancellation.

Loop-based handlers (``loop.add_signal_handler``) are used where the event
loop supports them. On loops without that support (Windows proactor) the
controller falls back to ``signal.signal`` and hands the cancellation back
to the loop thread.
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Callable, Sequence
from typing import Any

from structlog.typing import FilteringBoundLogger

from cloudsvc.runtime.token import LifetimeToken

TERMINATION_SIGNALS: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)


class LifecycleController:
    """Owns the process lifetime token and the termination signal handlers.

    Usage::

        controller = LifecycleController(logger)
        lifetime = controller.start()
        try:
            outcome = await server.run(lifetime)
        finally:
            controller.stop()
    """

    def __init__(
        self,
        logger: FilteringBoundLogger,
        *,
        signals: Sequence[signal.Signals] = TERMINATION_SIGNALS,
    ) -> None:
        self._log = logger
        self._signals = tuple(signals)
        self._token: LifetimeToken | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_handlers: list[signal.Signals] = []
        self._previous_handlers: dict[signal.Signals, Callable[..., Any] | int | None] = {}

    @property
    def token(self) -> LifetimeToken | None:
        return self._token

    def start(self) -> LifetimeToken:
        """Register the signal handlers and return the lifetime token.

        Must be called from a coroutine running on the loop that will
        observe the token. A second call returns the same token.
        """
        if self._token is not None:
            return self._token

        loop = asyncio.get_running_loop()
        self._loop = loop
        self._token = LifetimeToken()

        for sig in self._signals:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
                self._loop_handlers.append(sig)
            except NotImplementedError:
                self._previous_handlers[sig] = signal.signal(sig, self._on_signal_threadsafe)

        mode = "loop" if self._loop_handlers else "fallback"
        self._log.debug(
            "signal_handlers_registered",
            signals=[s.name for s in self._signals],
            mode=mode,
        )
        return self._token

    def stop(self) -> None:
        """Unregister the handlers installed by :meth:`start`."""
        if self._loop is not None:
            for sig in self._loop_handlers:
                self._loop.remove_signal_handler(sig)
        self._loop_handlers.clear()

        for sig, previous in self._previous_handlers.items():
            signal.signal(sig, previous if previous is not None else signal.SIG_DFL)
        self._previous_handlers.clear()

    def _on_signal(self, signum: int) -> None:
        if self._token is None:
            raise RuntimeError("controller not started")
        name = signal.Signals(signum).name
        if self._token.cancel(name):
            self._log.info("shutdown_signal_received", signal=name)
        else:
            self._log.info("shutdown_signal_ignored", signal=name, reason=self._token.reason)

    def _on_signal_threadsafe(self, signum: int, _frame: Any) -> None:
        if self._loop is None:
            raise RuntimeError("controller not started")
        self._loop.call_soon_threadsafe(self._on_signal, signum)
