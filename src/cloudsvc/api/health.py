"""Health check route.

Liveness probe only: the process answers, so it is alive.
"""

from fastapi import APIRouter, Request, Response, status

router = APIRouter(tags=["health"])


@router.get("/healthcheck", status_code=status.HTTP_200_OK)
async def healthcheck(request: Request) -> Response:
    """Return 200 with an empty body."""
    client = request.client.host if request.client else None
    request.app.state.logger.debug("healthcheck", client=client)
    return Response(status_code=status.HTTP_200_OK)
