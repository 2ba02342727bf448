"""LifetimeToken: one-way cancellation shared across the process.

Created once at process start and passed explicitly to everything that must
observe shutdown. Cancellation never resets and the first reason wins.
"""

from __future__ import annotations

import asyncio


class LifetimeToken:
    """A cancellable signal meaning "begin graceful shutdown".

    Not thread-safe: cancel it from the event loop thread (signal handlers
    hand off to the loop with ``call_soon_threadsafe``).
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    def __repr__(self) -> str:
        state = f"cancelled reason={self._reason!r}" if self.cancelled else "active"
        return f"<LifetimeToken {state}>"

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        """Why the token was cancelled (signal name, "manual", ...), else None."""
        return self._reason

    def cancel(self, reason: str = "manual") -> bool:
        """Cancel the token.

        Returns True for the call that performed the cancellation and False
        for every later call, which has no effect.
        """
        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()
        return True

    async def wait(self) -> str | None:
        """Block until the token is cancelled; return the reason."""
        await self._event.wait()
        return self._reason
