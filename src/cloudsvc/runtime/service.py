"""Process entry point: wire the lifetime token to the HTTP server runner."""

from __future__ import annotations

from structlog.typing import FilteringBoundLogger

from cloudsvc.api.server import Server, ServerConfig
from cloudsvc.domain.outcome import RunOutcome
from cloudsvc.runtime.controller import LifecycleController


async def run_service(
    logger: FilteringBoundLogger,
    config: ServerConfig | None = None,
) -> RunOutcome:
    """Run the server until SIGINT/SIGTERM and return its outcome.

    The lifetime token is cancelled on the way out whatever happened, and
    the signal handlers are removed again.
    """
    controller = LifecycleController(logger)
    lifetime = controller.start()
    try:
        server = Server(config or ServerConfig(), logger)
        return await server.run(lifetime)
    finally:
        lifetime.cancel("exit")
        controller.stop()
