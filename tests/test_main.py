"""Tests for the application lifespan: resource wiring and worker shutdown."""

import asyncio
import logging

from fastapi.testclient import TestClient

import main
from conftest import FakePlaid, FakeRedis, make_teller_client
from ledger_worker.core.queue import JobQueue
from ledger_worker.core.settings import Settings
from ledger_worker.core.utils import LOGGER_NAMESPACE
from ledger_worker.workers.job_runner import JobRunner


class RecordingRunner(JobRunner):
    """Records whether stop() was called from inside the running event loop."""

    stopped_on_loop: list[bool] = []

    def stop(self, wait: bool = True) -> None:
        try:
            asyncio.get_running_loop()
            on_loop = True
        except RuntimeError:
            on_loop = False
        RecordingRunner.stopped_on_loop.append(on_loop)
        super().stop(wait=wait)


def test_lifespan_stops_workers_off_the_event_loop(monkeypatch, tmp_path) -> None:
    """Test shutdown waits for the worker pool in a thread, keeping the event loop free."""
    settings = Settings(
        database_url="sqlite://",
        log_file=str(tmp_path / "worker.log"),
        worker_count=1,
        dequeue_timeout_seconds=1,
    )
    monkeypatch.setattr(main, "get_settings", lambda: settings)
    monkeypatch.setattr(main.JobQueue, "from_settings", classmethod(lambda cls, _: JobQueue(FakeRedis(), "q")))
    monkeypatch.setattr(main.TellerClient, "from_settings", classmethod(lambda cls, _: make_teller_client({})))
    monkeypatch.setattr(main.PlaidClient, "from_settings", classmethod(lambda cls, _: FakePlaid()))
    monkeypatch.setattr(main, "JobRunner", RecordingRunner)
    RecordingRunner.stopped_on_loop.clear()

    try:
        with TestClient(main.app) as client:
            response = client.get("/health")
            if response.status_code != 200:  # noqa: PLR2004
                msg = f"Expected status 200, got {response.status_code}"
                raise AssertionError(msg)
            if not main.app.state.runner.running:
                msg = "Expected the worker pool to be running"
                raise AssertionError(msg)
    finally:
        base = logging.getLogger(LOGGER_NAMESPACE)
        for handler in [h for h in base.handlers if isinstance(h, logging.FileHandler)]:
            base.removeHandler(handler)
            handler.close()

    if RecordingRunner.stopped_on_loop != [False]:
        msg = f"Expected one stop() call off the event loop, got {RecordingRunner.stopped_on_loop}"
        raise AssertionError(msg)
