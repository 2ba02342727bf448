"""Tests for the ASGI application and the health route."""

from __future__ import annotations

from fastapi.testclient import TestClient

from cloudsvc.api.app import API_PREFIX, create_app
from cloudsvc.api.deadlines import DeadlineMiddleware


class TestHealthcheck:
    def test_returns_200_empty_body(self, quiet_logger) -> None:
        client = TestClient(create_app(quiet_logger))
        resp = client.get("/api/healthcheck")
        assert resp.status_code == 200
        assert resp.content == b""

    def test_logs_at_debug(self, log_capture) -> None:
        client = TestClient(create_app(log_capture.logger))
        client.get("/api/healthcheck")
        entry = log_capture.find("healthcheck")
        assert entry["severity"] == "DEBUG"

    def test_with_deadlines(self, quiet_logger) -> None:
        app = create_app(quiet_logger, read_timeout=5.0, write_timeout=5.0)
        resp = TestClient(app).get("/api/healthcheck")
        assert resp.status_code == 200

    def test_unknown_route(self, quiet_logger) -> None:
        resp = TestClient(create_app(quiet_logger)).get("/healthcheck")
        assert resp.status_code == 404

    def test_post_not_allowed(self, quiet_logger) -> None:
        resp = TestClient(create_app(quiet_logger)).post("/api/healthcheck")
        assert resp.status_code == 405


class TestCreateApp:
    def test_prefix(self) -> None:
        assert API_PREFIX == "/api"

    def test_docs_disabled(self, quiet_logger) -> None:
        client = TestClient(create_app(quiet_logger))
        assert client.get("/docs").status_code == 404
        assert client.get("/openapi.json").status_code == 404

    def test_logger_on_state(self, quiet_logger) -> None:
        app = create_app(quiet_logger)
        assert app.state.logger is quiet_logger

    def test_deadline_middleware_only_with_both_timeouts(self, quiet_logger) -> None:
        def classes(app) -> list[type]:
            return [m.cls for m in app.user_middleware]

        assert DeadlineMiddleware not in classes(create_app(quiet_logger, read_timeout=1.0))
        assert DeadlineMiddleware in classes(
            create_app(quiet_logger, read_timeout=1.0, write_timeout=1.0)
        )
