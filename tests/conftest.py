"""Shared pytest fixtures and test helpers for cloudsvc tests."""

from __future__ import annotations

import json
import os
from io import StringIO
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner
from structlog.typing import FilteringBoundLogger

from cloudsvc.config.logging import build_logger
from cloudsvc.config.models import GcpConfig


class LogCapture:
    """A JSON logger writing into a buffer, plus helpers to read it back."""

    def __init__(self, level: str = "debug") -> None:
        self.stream = StringIO()
        self.logger: FilteringBoundLogger = build_logger(
            "test-svc",
            level=level,
            output="gcp_logging",
            gcp=GcpConfig(project_id="test-project"),
            stream=self.stream,
        )

    def entries(self) -> list[dict[str, Any]]:
        return [json.loads(line) for line in self.stream.getvalue().splitlines() if line]

    def messages(self) -> list[str]:
        return [entry["message"] for entry in self.entries()]

    def find(self, message: str) -> dict[str, Any]:
        for entry in self.entries():
            if entry["message"] == message:
                return entry
        raise AssertionError(f"no {message!r} log entry in {self.messages()}")


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def quiet_logger() -> FilteringBoundLogger:
    """Logger that drops every event."""
    return build_logger("test-svc", level="disabled", output="stdout", stream=StringIO())


@pytest.fixture
def log_capture() -> LogCapture:
    """JSON logger at debug level whose lines can be inspected."""
    return LogCapture()


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """A minimal valid config.toml that keeps the logger silent."""
    path = tmp_path / "config.toml"
    path.write_text(
        '[service]\nname = "test-svc"\n\n[logger]\nlevel = "disabled"\noutput = "stdout"\n'
    )
    return path


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep CLOUDSVC_* variables from the outer shell out of the tests."""
    for key in list(os.environ):
        if key.startswith("CLOUDSVC_"):
            monkeypatch.delenv(key)
