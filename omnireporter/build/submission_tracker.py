"""Wait-group for in-flight test case submissions."""

from __future__ import annotations

import asyncio
import logging
import threading

from omnireporter.models import BuildSummary

logger = logging.getLogger(__name__)


class SubmissionTracker:
    """Track outstanding submissions and wait for all of them to settle.

    ``register`` may be called from any thread; the lock is held only for the
    list append. Registered submissions stay in the tracker after they are
    done, so any number of waiters see the same set and a cancelled waiter
    loses nothing. ``wait_all`` never raises on a failed submission, it only
    counts it: failures were already reported where they happened.
    """

    def __init__(self) -> None:
        """Initialize an empty tracker."""
        self._lock = threading.Lock()
        self._submissions: list[asyncio.Future] = []

    def register(self, submission: asyncio.Future) -> None:
        """Add a submission task or future to the waiting set."""
        with self._lock:
            self._submissions.append(submission)

    @property
    def pending_count(self) -> int:
        """Number of registered submissions that have not settled yet."""
        return len(self._unsettled())

    def _unsettled(self) -> list[asyncio.Future]:
        with self._lock:
            return [s for s in self._submissions if not s.done()]

    def summary(self) -> BuildSummary:
        """Count the settled submissions by outcome."""
        with self._lock:
            settled = [s for s in self._submissions if s.done()]
        failed = sum(1 for s in settled if s.cancelled() or s.exception() is not None)
        return BuildSummary(succeeded=len(settled) - failed, failed=failed)

    async def wait_all(self) -> BuildSummary:
        """Wait until every registered submission reached a terminal state.

        Submissions registered while waiting are picked up as well. Waiting
        does not cancel anything, even if the waiter itself is cancelled.

        Returns:
            Counts of succeeded and failed submissions.
        """
        while True:
            unsettled = self._unsettled()
            if not unsettled:
                break
            logger.debug("Waiting for %d test case submissions", len(unsettled))
            await asyncio.wait(unsettled)

        return self.summary()
