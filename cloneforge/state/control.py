"""
Control Channel
===============
Per-job control signals set out-of-band by API handlers and observed
cooperatively by the job runner.

Signals:
    paused    : suspend at the next checkpoint until released
    accepted  : stop iterating after the current pass and deploy as-is
    cancelled : abort at the next checkpoint (wins over accepted)

Every mutation sets an asyncio.Event, so a runner that is waiting (inside a
pause, or while a stage call is in flight) wakes immediately instead of
waiting out the poll interval. Only the owning runner waits on a given
ControlSignals instance.

Lifecycle: ``ControlChannel.open`` when the job's task starts,
``ControlChannel.discard`` when the job reaches a terminal state or is deleted.
"""
import asyncio
import logging
import threading
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class ControlSignals:
    """The {paused, accepted, cancelled} triple for one job."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        self._paused = False
        self._accepted = False
        self._cancelled = False
        self._requested_iterations = 0
        self._changed = asyncio.Event()

    # -------------------------------------------------------------------
    # Read side (runner)
    # -------------------------------------------------------------------
    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def accepted(self) -> bool:
        return self._accepted

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def released(self) -> bool:
        """True when a pause no longer holds the runner."""
        return not self._paused or self._accepted or self._cancelled

    def take_requested_iterations(self) -> int:
        """Return and reset the number of extra passes requested while running."""
        count, self._requested_iterations = self._requested_iterations, 0
        return count

    async def wait_changed(self, timeout: Optional[float] = None) -> bool:
        """Wait for any signal mutation. Returns False on timeout."""
        try:
            await asyncio.wait_for(self._changed.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        self._changed.clear()
        return True

    async def wait_until_released(self, poll_interval: float) -> None:
        """Interruptible pause wait: wakes on any signal, re-checks every poll_interval."""
        while not self.released:
            await self.wait_changed(timeout=poll_interval)

    # -------------------------------------------------------------------
    # Write side (API handlers)
    # -------------------------------------------------------------------
    def _notify(self) -> None:
        self._changed.set()

    def pause(self) -> None:
        self._paused = True
        self._notify()

    def resume(self) -> None:
        self._paused = False
        self._notify()

    def accept(self) -> None:
        self._accepted = True
        self._notify()

    def cancel(self) -> None:
        self._cancelled = True
        self._notify()

    def request_iteration(self) -> None:
        self._requested_iterations += 1
        self._paused = False
        self._notify()


class ControlChannel:
    """Registry of ControlSignals keyed by job id."""

    def __init__(self) -> None:
        self._signals: Dict[str, ControlSignals] = {}
        self._lock = threading.Lock()

    def open(self, job_id: str) -> ControlSignals:
        """Return the job's signals, creating them if absent."""
        with self._lock:
            signals = self._signals.get(job_id)
            if signals is None:
                signals = ControlSignals(job_id)
                self._signals[job_id] = signals
            return signals

    def get(self, job_id: str) -> Optional[ControlSignals]:
        with self._lock:
            return self._signals.get(job_id)

    def discard(self, job_id: str) -> None:
        with self._lock:
            if self._signals.pop(job_id, None) is not None:
                logger.debug("Control signals discarded for %s", job_id)

    def __contains__(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._signals

    def __len__(self) -> int:
        with self._lock:
            return len(self._signals)
