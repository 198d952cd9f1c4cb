"""Background event loop for synchronous integrations.

pytest hooks and the command line run synchronously, while the reporter is
async. The ``EventLoopRunner`` owns one asyncio loop in a dedicated thread
and lets those callers schedule coroutines on it.
"""

import asyncio
import logging
import threading
from collections.abc import Coroutine
from concurrent.futures import Future
from typing import Any

logger = logging.getLogger(__name__)


class EventLoopRunner:
    """Run an asyncio event loop in a dedicated thread.

    Stopping the runner lets tasks that are still in flight finish before the
    loop closes; uploads that already started are never cancelled.
    """

    def __init__(self) -> None:
        """Initialize the runner."""
        self.loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._ready: threading.Event = threading.Event()
        self._started = False

    def start(self) -> None:
        """Start the event loop thread.

        Raises:
            RuntimeError: If already started or if the loop fails to start.
        """
        if self._started:
            raise RuntimeError("EventLoopRunner already started")

        self._ready.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="omnireporter-event-loop",
            daemon=False,
        )
        self._thread.start()

        if not self._ready.wait(timeout=5.0):
            raise RuntimeError("Reporter event loop failed to start within timeout")

        self._started = True
        logger.debug("EventLoopRunner started")

    def stop(self, timeout: float = 30.0) -> None:
        """Stop the loop once in-flight tasks are done.

        Args:
            timeout: Maximum time to wait for the loop thread to finish.

        Raises:
            RuntimeError: If not started.
        """
        if not self._started or self.loop is None:
            raise RuntimeError("EventLoopRunner not started")

        self.loop.call_soon_threadsafe(self.loop.stop)

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Reporter event loop did not stop within timeout")

        self._started = False
        logger.debug("EventLoopRunner stopped")

    def schedule(self, coroutine: Coroutine[Any, Any, Any]) -> Future[Any]:
        """Schedule a coroutine on the loop from any thread.

        Returns:
            Future that will be completed when the coroutine finishes.

        Raises:
            RuntimeError: If the loop is not running.
        """
        if not self.is_running():
            coroutine.close()
            raise RuntimeError("Reporter event loop not running")

        return asyncio.run_coroutine_threadsafe(coroutine, self.loop)

    def run(
        self, coroutine: Coroutine[Any, Any, Any], timeout: float | None = None
    ) -> Any:
        """Run a coroutine on the loop and block until it returns.

        Raises:
            concurrent.futures.TimeoutError: If ``timeout`` elapses first.
        """
        return self.schedule(coroutine).result(timeout=timeout)

    def _run_loop(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self.loop = loop
        loop.call_soon(self._ready.set)

        try:
            loop.run_forever()
        finally:
            pending = [task for task in asyncio.all_tasks(loop) if not task.done()]
            if pending:
                logger.info(
                    "Waiting for %d in-flight reporter tasks to finish", len(pending)
                )
                loop.run_until_complete(
                    asyncio.gather(*pending, return_exceptions=True)
                )
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    def is_running(self) -> bool:
        """Check if the event loop is running."""
        return self._started and self.loop is not None and self.loop.is_running()
