"""FastAPI application factory.

All routes are mounted under ``/api``. The logger is stored on
``app.state`` so handlers log through the same explicitly built handle as
the rest of the process.
"""

from __future__ import annotations

from fastapi import FastAPI
from structlog.typing import FilteringBoundLogger

from cloudsvc import __version__
from cloudsvc.api.deadlines import DeadlineMiddleware
from cloudsvc.api.health import router as health_router

API_PREFIX = "/api"


def create_app(
    logger: FilteringBoundLogger,
    *,
    read_timeout: float | None = None,
    write_timeout: float | None = None,
) -> FastAPI:
    """Create the ASGI application.

    Args:
        logger: Handle used by request handlers.
        read_timeout: Seconds allowed to receive the request body.
        write_timeout: Seconds from request arrival to the last response write.
            Deadlines are only enforced when both timeouts are given.
    """
    app = FastAPI(
        title="cloudsvc",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.logger = logger
    app.include_router(health_router, prefix=API_PREFIX)

    if read_timeout is not None and write_timeout is not None:
        app.add_middleware(
            DeadlineMiddleware,
            read_timeout=read_timeout,
            write_timeout=write_timeout,
            logger=logger,
        )
    return app
