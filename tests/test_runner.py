"""Tests for the background event loop runner."""

import asyncio
import logging
import time

import pytest

from triager.webhook import BackgroundRunner


@pytest.fixture
def runner():
    r = BackgroundRunner()
    r.start()
    yield r
    r.stop()


def test_submit_runs_coroutine_on_loop(runner: BackgroundRunner) -> None:
    async def work() -> int:
        await asyncio.sleep(0)
        return 42

    assert runner.submit(work()).result(timeout=2) == 42


def test_run_waits_for_result(runner: BackgroundRunner) -> None:
    async def work() -> str:
        return "done"

    assert runner.run(work(), timeout=2) == "done"


def test_failure_is_logged_not_raised(runner: BackgroundRunner, caplog: pytest.LogCaptureFixture) -> None:
    async def boom() -> None:
        raise RuntimeError("kaboom")

    with caplog.at_level(logging.ERROR, logger="triager.webhook.runner"):
        future = runner.submit(boom())
        with pytest.raises(RuntimeError):
            future.result(timeout=2)
        # done callbacks run right after the result is set
        for _ in range(50):
            if "kaboom" in caplog.text:
                break
            time.sleep(0.01)
    assert "Background task failed: kaboom" in caplog.text


def test_start_is_idempotent_and_stop_resets() -> None:
    r = BackgroundRunner()
    r.start()
    loop = r.loop
    r.start()
    assert r.loop is loop
    assert r.running
    r.stop()
    assert not r.running
    with pytest.raises(RuntimeError):
        _ = r.loop
