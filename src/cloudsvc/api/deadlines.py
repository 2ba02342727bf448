"""Per-request read and write deadlines as a pure ASGI middleware.

uvicorn has no per-request read/write timeouts, so they are enforced here:

* read: the request body must be fully received within ``read_timeout``
  of the request arriving, otherwise the client gets a 408 (if nothing has
  been sent yet).
* write: every response message must be sent within ``write_timeout`` of
  the request arriving, otherwise the connection is dropped without a
  response.

Dropping a connection needs the server's cooperation: the HTTP protocol
puts an abort callable in ``scope["extensions"][ABORT_EXTENSION]``. Without
one (test clients, other servers) the breach is raised to the caller.

Handlers are never cancelled by a deadline. A slow handler keeps running
and keeps its connection open, so graceful shutdown still waits for it.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from starlette.types import ASGIApp, Message, Receive, Scope, Send
from structlog.typing import FilteringBoundLogger

from cloudsvc.errors import ReadTimeoutError, WriteTimeoutError

ABORT_EXTENSION = "cloudsvc.abort"


class DeadlineMiddleware:
    def __init__(
        self,
        app: ASGIApp,
        *,
        read_timeout: float,
        write_timeout: float,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        if read_timeout <= 0 or write_timeout <= 0:
            raise ValueError("read_timeout and write_timeout must be positive")
        self.app = app
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout
        self._log = logger

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        loop = asyncio.get_running_loop()
        arrived = loop.time()
        read_deadline = arrived + self.read_timeout
        write_deadline = arrived + self.write_timeout
        body_complete = False
        response_started = False

        async def timed_receive() -> Message:
            nonlocal body_complete
            # Once the body is in, receive() only reports disconnects.
            if body_complete:
                return await receive()
            remaining = read_deadline - loop.time()
            if remaining <= 0:
                raise ReadTimeoutError(f"request body not received within {self.read_timeout:g}s")
            try:
                message = await asyncio.wait_for(receive(), remaining)
            except TimeoutError:
                raise ReadTimeoutError(
                    f"request body not received within {self.read_timeout:g}s"
                ) from None
            if message["type"] != "http.request" or not message.get("more_body", False):
                body_complete = True
            return message

        async def timed_send(message: Message) -> None:
            nonlocal response_started
            if loop.time() > write_deadline:
                raise WriteTimeoutError(
                    f"response not written within {self.write_timeout:g}s of the request"
                )
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, timed_receive, timed_send)
        except ReadTimeoutError as exc:
            if response_started:
                self._drop(scope, "http_read_timeout", exc)
                return
            self._warn("http_read_timeout", scope, exc)
            await send(
                {
                    "type": "http.response.start",
                    "status": 408,
                    "headers": [(b"content-length", b"0"), (b"connection", b"close")],
                }
            )
            await send({"type": "http.response.body", "body": b""})
        except WriteTimeoutError as exc:
            self._drop(scope, "http_write_timeout", exc)

    def _drop(self, scope: Scope, event: str, exc: Exception) -> None:
        abort: Callable[[], None] | None = (scope.get("extensions") or {}).get(ABORT_EXTENSION)
        if abort is None:
            raise exc
        self._warn(event, scope, exc)
        abort()

    def _warn(self, event: str, scope: Scope, exc: Exception) -> None:
        if self._log is not None:
            self._log.warning(
                event, method=scope.get("method"), path=scope.get("path"), error=str(exc)
            )
