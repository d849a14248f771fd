"""
Job Registry
============
In-memory, non-persistent store of Job records keyed by job id.

Constructed once and injected into the runner and the job service; nothing
in the package reaches for a module-level job map. Insert / lookup / delete
are guarded by a lock so handlers running in a worker thread and the event
loop can share it.
"""
import threading
from typing import Dict, List, Optional

from cloneforge.core.errors import NotFoundError
from cloneforge.models.job import Job


class JobRegistry:

    def __init__(self) -> None:
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.RLock()

    def add(self, job: Job) -> Job:
        with self._lock:
            if job.id in self._jobs:
                raise ValueError(f"Job {job.id} already registered")
            self._jobs[job.id] = job
        return job

    def get(self, job_id: str) -> Job:
        """Live record (runner side). Raises NotFoundError."""
        with self._lock:
            job = self._jobs.get(job_id)
        if job is None:
            raise NotFoundError(f"Job not found: {job_id}")
        return job

    def find(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.get(job_id)

    def list_recent(self, limit: int) -> List[Job]:
        """Most-recent-first, at most ``limit`` records."""
        with self._lock:
            jobs = list(self._jobs.values())
        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return jobs[:max(0, limit)]

    def remove(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.pop(job_id, None)

    def __contains__(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._jobs

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)
