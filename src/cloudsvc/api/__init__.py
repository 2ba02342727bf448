"""HTTP layer: FastAPI application, deadlines, and the server runner."""

from cloudsvc.api.app import create_app
from cloudsvc.api.server import Server, ServerConfig

__all__ = ["Server", "ServerConfig", "create_app"]
