"""Background event loop for webhook processing.

The HTTP server acknowledges deliveries on its own threads; triage work is
handed to one asyncio loop running on a daemon thread so that slow model and
tracker calls never delay the acknowledgement.
"""

import asyncio
import logging
import threading
from concurrent.futures import Future
from typing import Any, Coroutine

LOG = logging.getLogger("triager.webhook.runner")


class BackgroundRunner:
    """Owns an event loop on a daemon thread; submit() schedules coroutines on it."""

    def __init__(self, name: str = "triager-loop") -> None:
        self._name = name
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._ready = threading.Event()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            raise RuntimeError("BackgroundRunner is not started")
        return self._loop

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._ready.clear()
        self._thread = threading.Thread(target=self._run_loop, name=self._name, daemon=True)
        self._thread.start()
        self._ready.wait()
        LOG.debug("Background loop started")

    def _run_loop(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._ready.set()
        try:
            loop.run_forever()
        finally:
            loop.close()

    def submit(self, coro: Coroutine[Any, Any, Any]) -> Future:
        """Schedule coro on the loop; exceptions are logged, not raised."""
        future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        future.add_done_callback(self._log_failure)
        return future

    def run(self, coro: Coroutine[Any, Any, Any], timeout: float | None = None) -> Any:
        """Run coro on the loop and wait for its result (startup and shutdown)."""
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result(timeout)

    @staticmethod
    def _log_failure(future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            LOG.error("Background task failed: %s", exc, exc_info=exc)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the loop and join the thread."""
        if self._loop is None or self._thread is None:
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout)
        self._thread = None
        self._loop = None
        LOG.debug("Background loop stopped")
