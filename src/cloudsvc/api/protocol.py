"""uvicorn HTTP/1.1 protocol with a header read deadline.

uvicorn only times out idle keep-alive connections. A client that connects
and then trickles (or never finishes) its request headers would hold the
connection forever. ``DeadlineH11Protocol`` closes any connection whose
request headers are not complete within ``header_timeout`` of the
connection opening, or of the first byte of a follow-up request.

Each request scope also carries an abort callable under
:data:`~cloudsvc.api.deadlines.ABORT_EXTENSION`, which the deadline
middleware uses to drop the connection instead of answering.
"""

from __future__ import annotations

import asyncio
from typing import Any

import h11
from uvicorn.protocols.http.h11_impl import H11Protocol

from cloudsvc.api.deadlines import ABORT_EXTENSION


class DeadlineH11Protocol(H11Protocol):
    def __init__(self, *args: Any, header_timeout: float, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.header_timeout = header_timeout
        self._header_timer: asyncio.TimerHandle | None = None

    def connection_made(self, transport: asyncio.Transport) -> None:
        super().connection_made(transport)
        self._arm_header_timer()

    def connection_lost(self, exc: Exception | None) -> None:
        self._disarm_header_timer()
        super().connection_lost(exc)

    def data_received(self, data: bytes) -> None:
        super().data_received(data)
        if self.conn.their_state is h11.IDLE:
            self._arm_header_timer()
        else:
            self._disarm_header_timer()

    def handle_events(self) -> None:
        previous = self.cycle
        super().handle_events()
        # The new cycle's task has not run yet, so its scope can still be extended.
        if self.cycle is not None and self.cycle is not previous:
            self.cycle.scope.setdefault("extensions", {})[ABORT_EXTENSION] = self.abort_connection

    def abort_connection(self) -> None:
        """Close the connection without sending (the rest of) a response."""
        if self.cycle is not None and not self.cycle.response_complete:
            self.cycle.disconnected = True
        if not self.transport.is_closing():
            self.transport.close()

    def _arm_header_timer(self) -> None:
        if self._header_timer is None and not self.transport.is_closing():
            self._header_timer = self.loop.call_later(self.header_timeout, self._header_timer_fired)

    def _disarm_header_timer(self) -> None:
        if self._header_timer is not None:
            self._header_timer.cancel()
            self._header_timer = None

    def _header_timer_fired(self) -> None:
        self._header_timer = None
        if self.conn.their_state is h11.IDLE and not self.transport.is_closing():
            self.transport.close()
