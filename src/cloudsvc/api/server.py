"""HTTP server runner with bounded graceful shutdown.

``Server.run(lifetime)`` binds the configured address, serves until the
lifetime token is cancelled, then drains in-flight requests within a fixed
bound and reports exactly one RunOutcome.

Two tasks cooperate:

* the listener task (uvicorn), whose completion is the "listener stopped"
  signal;
* the watcher task, which races that signal against the lifetime token and
  only engages the shutdown path when the token wins, after the listener
  has finished starting. Its result is the shutdown coordination result
  that ``run`` returns.
"""

from __future__ import annotations

import asyncio
import contextlib
import functools
import socket
from collections.abc import Callable, Generator
from typing import Any

import uvicorn
from pydantic import BaseModel, Field, field_validator
from structlog.typing import FilteringBoundLogger

from cloudsvc.api.app import create_app
from cloudsvc.api.protocol import DeadlineH11Protocol
from cloudsvc.config.logging import forward_stdlib
from cloudsvc.domain.lifecycle import TERMINAL_STATES, ServerState, advance
from cloudsvc.domain.outcome import RunOutcome
from cloudsvc.errors import ShutdownTimeoutError
from cloudsvc.runtime.token import LifetimeToken

# --- Fixed server policy ---

DEFAULT_ADDR = "0.0.0.0:8080"
HTTP_READ_TIMEOUT = 10.0
HTTP_WRITE_TIMEOUT = 10.0
OPERATION_TIMEOUT = 10.0
SHUTDOWN_TIMEOUT = 60.0

LISTEN_BACKLOG = 2048


def split_addr(addr: str) -> tuple[str, int]:
    """Split ``host:port`` (or ``[v6]:port``) into its parts.

    An empty host means all interfaces.
    """
    host, sep, port = addr.rpartition(":")
    if not sep:
        raise ValueError(f"address {addr!r} is missing a port")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port_num = int(port)
    except ValueError:
        raise ValueError(f"address {addr!r} has a non-numeric port") from None
    if not 0 <= port_num <= 65535:
        raise ValueError(f"address {addr!r} has an out-of-range port")
    return host or "0.0.0.0", port_num


class ServerConfig(BaseModel):
    """Immutable server configuration.

    Attributes:
        addr: ``host:port`` to bind. Port 0 picks a free port.
        read_timeout: Seconds to receive a request body; also the idle
            keep-alive timeout.
        write_timeout: Seconds from request arrival to the last response write.
        timeout: Overall operation timeout (carried, not used by the runner).
        shutdown_timeout: Upper bound on graceful shutdown.
    """

    model_config = {"frozen": True}

    addr: str = DEFAULT_ADDR
    read_timeout: float = Field(default=HTTP_READ_TIMEOUT, gt=0)
    write_timeout: float = Field(default=HTTP_WRITE_TIMEOUT, gt=0)
    timeout: float = Field(default=OPERATION_TIMEOUT, gt=0)
    shutdown_timeout: float = Field(default=SHUTDOWN_TIMEOUT, gt=0)

    @field_validator("addr")
    @classmethod
    def validate_addr(cls, v: str) -> str:
        split_addr(v)
        return v

    @property
    def host(self) -> str:
        return split_addr(self.addr)[0]

    @property
    def port(self) -> int:
        return split_addr(self.addr)[1]


def bind_socket(host: str, port: int) -> socket.socket:
    """Bind and listen on *host*:*port*, raising OSError on failure."""
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen(LISTEN_BACKLOG)
    except OSError:
        sock.close()
        raise
    return sock


class _Listener(uvicorn.Server):
    """uvicorn server that leaves signals to the lifecycle controller."""

    def __init__(self, config: uvicorn.Config, on_started: Callable[[], None]) -> None:
        super().__init__(config)
        self._on_started = on_started

    @contextlib.contextmanager
    def capture_signals(self) -> Generator[None, None, None]:
        yield

    async def startup(self, sockets: list[socket.socket] | None = None) -> None:
        await super().startup(sockets=sockets)
        if not self.should_exit:
            self._on_started()


class Server:
    """Runs the HTTP listener for one service lifetime.

    A Server is single-use: ``run`` may be called once.
    """

    def __init__(
        self,
        config: ServerConfig,
        logger: FilteringBoundLogger,
        *,
        app: Any = None,
    ) -> None:
        self.config = config
        self._log = logger
        self._app = app or create_app(
            logger,
            read_timeout=config.read_timeout,
            write_timeout=config.write_timeout,
        )
        self._state = ServerState.IDLE
        self._settled = asyncio.Event()
        self._bound: tuple[str, int] | None = None

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def bound_address(self) -> tuple[str, int] | None:
        """``(host, port)`` actually bound, once the socket is open."""
        return self._bound

    async def wait_serving(self) -> bool:
        """Wait until the listener serves or the run ends; True if serving."""
        await self._settled.wait()
        return self._state is ServerState.SERVING

    async def run(self, lifetime: LifetimeToken) -> RunOutcome:
        """Serve until *lifetime* is cancelled, then shut down within the bound.

        Never raises for bind, serve, or shutdown failures; those are
        reported through the returned outcome.
        """
        self._advance(ServerState.STARTING)

        try:
            sock = bind_socket(self.config.host, self.config.port)
        except OSError as exc:
            self._log.error("http_start_failed", addr=self.config.addr, error=str(exc))
            return self._finish(RunOutcome.start_failed(exc))

        self._bound = sock.getsockname()[:2]
        self._log.info("http_serving", addr=self.config.addr, port=self._bound[1])

        listener = _Listener(self._uvicorn_config(), on_started=self._mark_serving)
        serving = asyncio.create_task(listener.serve(sockets=[sock]), name="cloudsvc-http-listener")
        watcher = asyncio.create_task(
            self._watch(listener, serving, lifetime), name="cloudsvc-shutdown-watcher"
        )
        try:
            with forward_stdlib("uvicorn", self._log):
                outcome = await watcher
        except asyncio.CancelledError:
            watcher.cancel()
            serving.cancel()
            raise
        return self._finish(outcome)

    def _uvicorn_config(self) -> uvicorn.Config:
        return uvicorn.Config(
            self._app,
            http=functools.partial(DeadlineH11Protocol, header_timeout=self.config.read_timeout),
            lifespan="off",
            log_config=None,
            log_level="warning",
            access_log=False,
            timeout_keep_alive=max(1, int(self.config.read_timeout)),
            timeout_graceful_shutdown=None,
        )

    async def _watch(
        self,
        listener: _Listener,
        serving: asyncio.Task[None],
        lifetime: LifetimeToken,
    ) -> RunOutcome:
        cancelled = asyncio.ensure_future(lifetime.wait())
        try:
            await asyncio.wait({serving, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancelled.cancel()
        if serving.done():
            return self._listener_exit(serving)

        # Never shut down a listener that has not finished starting.
        if self._state is ServerState.STARTING:
            started = asyncio.ensure_future(self._settled.wait())
            try:
                await asyncio.wait({serving, started}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                started.cancel()
            if serving.done():
                return self._listener_exit(serving)

        return await self._shutdown(listener, serving, lifetime.reason)

    async def _shutdown(
        self,
        listener: _Listener,
        serving: asyncio.Task[None],
        reason: str | None,
    ) -> RunOutcome:
        self._advance(ServerState.SHUTTING_DOWN)
        bound = self.config.shutdown_timeout
        self._log.info("http_shutdown_started", reason=reason, timeout=bound)

        listener.should_exit = True
        try:
            # shield: on timeout the drain keeps going, only the wait ends.
            await asyncio.wait_for(asyncio.shield(serving), bound)
        except TimeoutError:
            cause = ShutdownTimeoutError(bound, len(listener.server_state.connections))
            self._log.error("http_shutdown_failed", error=str(cause))
            return RunOutcome.shutdown_failed(cause)
        except Exception as exc:
            self._log.error("http_shutdown_failed", error=f"failed to shutdown server: {exc}")
            return RunOutcome.shutdown_failed(exc)
        return RunOutcome.closed()

    def _listener_exit(self, serving: asyncio.Task[None]) -> RunOutcome:
        """Classify a listener that stopped without being asked to."""
        exc = None if serving.cancelled() else serving.exception()
        if exc is None and self._state is ServerState.SERVING:
            return RunOutcome.closed()
        if exc is None:
            exc = RuntimeError("listener exited before it started serving")
        self._log.error("http_start_failed", addr=self.config.addr, error=str(exc))
        return RunOutcome.start_failed(exc)

    def _mark_serving(self) -> None:
        self._advance(ServerState.SERVING)
        self._settled.set()

    def _finish(self, outcome: RunOutcome) -> RunOutcome:
        target = ServerState.CLOSED if outcome.ok else ServerState.FAILED
        if self._state not in TERMINAL_STATES:
            self._advance(target)
        self._settled.set()
        if outcome.ok:
            self._log.info("http_closed", addr=self.config.addr)
        return outcome

    def _advance(self, target: ServerState) -> None:
        self._state = advance(self._state, target)
