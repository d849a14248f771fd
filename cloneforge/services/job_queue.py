"""
Job Queue
=========
Owns the asyncio task of every running job (one task per job).

The queue only schedules and cancels; what a task does is the runner's
business. Finished tasks remove themselves. Callers must be on the event
loop (FastAPI ``async def`` handlers, the lifespan hook, tests).
"""
import asyncio
import logging
from typing import Awaitable, Dict, Optional

logger = logging.getLogger(__name__)


class JobQueue:

    def __init__(self) -> None:
        self._tasks: Dict[str, asyncio.Task] = {}

    def submit(self, job_id: str, work: Awaitable) -> asyncio.Task:
        """Schedule ``work`` for ``job_id``. Only one live task per job."""
        current = self._tasks.get(job_id)
        if current is not None and not current.done():
            raise RuntimeError(f"Job {job_id} already has a running task")

        task = asyncio.ensure_future(work)
        self._tasks[job_id] = task
        task.add_done_callback(lambda t, jid=job_id: self._on_done(jid, t))
        logger.info("Job %s submitted (%d active)", job_id, self.active_count)
        return task

    def _on_done(self, job_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(job_id) is task:
            del self._tasks[job_id]
        if task.cancelled():
            logger.info("Job %s task cancelled", job_id)
        elif task.exception() is not None:
            logger.error("Job %s task crashed: %s", job_id, task.exception())

    def get(self, job_id: str) -> Optional[asyncio.Task]:
        return self._tasks.get(job_id)

    def is_running(self, job_id: str) -> bool:
        task = self._tasks.get(job_id)
        return task is not None and not task.done()

    async def wait(self, job_id: str, timeout: Optional[float] = None) -> bool:
        """Wait for the job's task to settle. False on timeout."""
        task = self._tasks.get(job_id)
        if task is None:
            return True
        done, _ = await asyncio.wait({task}, timeout=timeout)
        return bool(done)

    async def cancel(self, job_id: str, timeout: Optional[float] = 5.0) -> bool:
        """Hard-cancel the job's task and wait for it to unwind."""
        task = self._tasks.get(job_id)
        if task is None or task.done():
            return False
        task.cancel()
        await asyncio.wait({task}, timeout=timeout)
        return True

    async def shutdown(self, timeout: float = 5.0) -> None:
        tasks = [t for t in self._tasks.values() if not t.done()]
        if not tasks:
            return
        logger.info("Cancelling %d running job(s)", len(tasks))
        for task in tasks:
            task.cancel()
        await asyncio.wait(tasks, timeout=timeout)

    @property
    def active_count(self) -> int:
        return sum(1 for t in self._tasks.values() if not t.done())
