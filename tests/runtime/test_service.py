"""End-to-end tests for run_service: signal in, outcome out."""

from __future__ import annotations

import asyncio
import os
import socket
import signal

import anyio
import pytest

from cloudsvc.api.server import ServerConfig
from cloudsvc.domain.outcome import OutcomeKind
from cloudsvc.runtime.service import run_service

pytestmark = pytest.mark.skipif(os.name != "posix", reason="POSIX signals required")


async def _wait_for_log(log_capture, message: str, timeout: float = 5.0) -> None:
    with anyio.fail_after(timeout):
        while message not in log_capture.messages():
            await asyncio.sleep(0.01)


class TestRunService:
    def test_sigterm_closes_cleanly(self, log_capture) -> None:
        async def _run():
            task = asyncio.create_task(
                run_service(log_capture.logger, ServerConfig(addr="127.0.0.1:0"))
            )
            await _wait_for_log(log_capture, "http_serving")
            os.kill(os.getpid(), signal.SIGTERM)
            return await asyncio.wait_for(task, 10)

        outcome = anyio.run(_run)
        assert outcome.kind is OutcomeKind.CLOSED
        assert outcome.exit_code == 0
        messages = log_capture.messages()
        assert messages.index("shutdown_signal_received") < messages.index("http_shutdown_started")
        assert messages[-1] == "http_closed"
        assert log_capture.find("http_shutdown_started")["reason"] == "SIGTERM"

    def test_bind_failure_reports_start_failed(self, log_capture) -> None:
        blocker = socket.socket()
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        port = blocker.getsockname()[1]
        try:
            outcome = anyio.run(
                run_service, log_capture.logger, ServerConfig(addr=f"127.0.0.1:{port}")
            )
        finally:
            blocker.close()
        assert outcome.kind is OutcomeKind.START_FAILED
        assert outcome.exit_code == 1
        assert "http_shutdown_started" not in log_capture.messages()

    def test_handlers_removed_after_run(self, quiet_logger) -> None:
        async def _run() -> bool:
            task = asyncio.create_task(run_service(quiet_logger, ServerConfig(addr="127.0.0.1:0")))
            await asyncio.sleep(0.2)
            os.kill(os.getpid(), signal.SIGINT)
            await asyncio.wait_for(task, 10)
            loop = asyncio.get_running_loop()
            return loop.remove_signal_handler(signal.SIGTERM)

        assert anyio.run(_run) is False
