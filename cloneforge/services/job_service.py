"""
Job Service
===========
Job lifecycle operations behind the HTTP API.

    create    → validate, register, submit the runner to the queue
    get/list  → deep-copy snapshots (callers never see the live record)
    pause / continue / accept / cancel → set control signals
    iterate   → one more pass on a complete (or paused) job
    delete    → cancel if running, best-effort teardown, forget the job

The service never advances a job's status itself; the runner owns that.
The one exception is cancelling a job that has no live task, which is
finalised here directly.

Must be used from the event loop thread (control signals wrap asyncio
events and the queue creates tasks).
"""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set

from cloneforge.agents.collaborators import StageCollaborators, build_collaborators
from cloneforge.agents.orchestrator import JobRunner, mark_cancelled
from cloneforge.core.config import (
    ANTHROPIC_API_KEY,
    JOB_LIST_LIMIT,
    MAX_ITERATIONS,
    PAUSE_POLL_INTERVAL,
)
from cloneforge.core.constants import ITERABLE_STATUSES, JobStatus
from cloneforge.core.errors import ConfigError, PreconditionError, ValidationError
from cloneforge.models.job import Job, JobInput
from cloneforge.services.job_queue import JobQueue
from cloneforge.services.results_writer import ResultsWriter
from cloneforge.state.control import ControlChannel, ControlSignals
from cloneforge.state.registry import JobRegistry

logger = logging.getLogger(__name__)

CollaboratorFactory = Callable[[str, Optional[str], Optional[str]], StageCollaborators]


@dataclass(frozen=True)
class _Credentials:
    api_key: str
    github_owner: Optional[str] = None
    render_api_key: Optional[str] = None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class JobService:

    def __init__(
        self,
        registry: JobRegistry,
        control: ControlChannel,
        queue: JobQueue,
        collaborator_factory: CollaboratorFactory = build_collaborators,
        results_writer: Optional[ResultsWriter] = None,
        default_api_key: Optional[str] = ANTHROPIC_API_KEY,
        max_iterations: int = MAX_ITERATIONS,
        poll_interval: float = PAUSE_POLL_INTERVAL,
        list_limit: int = JOB_LIST_LIMIT,
        cancel_grace_seconds: float = 5.0,
    ) -> None:
        if max_iterations < 1:
            raise ConfigError(f"MAX_ITERATIONS must be >= 1, got {max_iterations}")
        self.registry = registry
        self.control = control
        self.queue = queue
        self.collaborator_factory = collaborator_factory
        self.results_writer = results_writer
        self.default_api_key = default_api_key
        self.max_iterations = max_iterations
        self.poll_interval = poll_interval
        self.list_limit = list_limit
        self.cancel_grace_seconds = cancel_grace_seconds
        self._credentials: Dict[str, _Credentials] = {}
        # jobs with a re-iteration being submitted
        self._reiterating: Set[str] = set()

    # -------------------------------------------------------------------
    # Create / read
    # -------------------------------------------------------------------
    async def create(
        self,
        target_name: Optional[str],
        custom_name: Optional[str] = None,
        description: Optional[str] = None,
        source_url: Optional[str] = None,
        api_key: Optional[str] = None,
        github_owner: Optional[str] = None,
        render_api_key: Optional[str] = None,
    ) -> Job:
        name = _clean(target_name)
        if not name:
            raise ValidationError("target_name is required")

        key = _clean(api_key) or self.default_api_key
        if not key:
            raise ConfigError("Anthropic API key required (request body or ANTHROPIC_API_KEY)")

        job = Job(
            input=JobInput(
                target_name=name,
                custom_name=_clean(custom_name),
                description=_clean(description),
                source_url=_clean(source_url),
            ),
            max_iterations=self.max_iterations,
        )
        self.registry.add(job)
        self._credentials[job.id] = _Credentials(key, _clean(github_owner), _clean(render_api_key))
        self.control.open(job.id)

        snapshot = job.snapshot()
        self.queue.submit(job.id, self._runner(job.id).run(job.id))
        logger.info("Created %s for %s", job.id, name)
        return snapshot

    def get(self, job_id: str) -> Job:
        return self.registry.get(job_id).snapshot()

    def list(self) -> List[Job]:
        return [job.snapshot() for job in self.registry.list_recent(self.list_limit)]

    # -------------------------------------------------------------------
    # Control
    # -------------------------------------------------------------------
    def _live_signals(self, job_id: str) -> ControlSignals:
        job = self.registry.get(job_id)
        if job.is_terminal:
            raise PreconditionError(f"Job {job_id} is already {job.status.value}")
        return self.control.open(job_id)

    def pause(self, job_id: str) -> Job:
        self._live_signals(job_id).pause()
        logger.info("Pause requested for %s", job_id)
        return self.get(job_id)

    def resume(self, job_id: str) -> Job:
        self._live_signals(job_id).resume()
        logger.info("Continue requested for %s", job_id)
        return self.get(job_id)

    def accept(self, job_id: str) -> Job:
        self._live_signals(job_id).accept()
        logger.info("Accept requested for %s", job_id)
        return self.get(job_id)

    async def cancel(self, job_id: str) -> Job:
        signals = self._live_signals(job_id)
        signals.cancel()
        logger.info("Cancel requested for %s", job_id)

        if not self.queue.is_running(job_id):
            mark_cancelled(self.registry.get(job_id))
            self.control.discard(job_id)
        elif not await self.queue.wait(job_id, timeout=self.cancel_grace_seconds):
            logger.warning("Job %s did not stop within %.1fs; cancelling its task",
                           job_id, self.cancel_grace_seconds)
            await self.queue.cancel(job_id)
        return self.get(job_id)

    async def iterate(self, job_id: str) -> Job:
        job = self.registry.get(job_id)
        if job.status not in ITERABLE_STATUSES:
            raise PreconditionError(
                f"Job {job_id} is {job.status.value}; only complete or paused jobs can iterate"
            )
        if job.analysis is None:
            raise PreconditionError(f"Job {job_id} has no analysis to iterate on")

        if job.status == JobStatus.PAUSED:
            # The live runner picks the extra pass up and is released by it
            self.control.open(job_id).request_iteration()
            logger.info("Extra pass requested for paused job %s", job_id)
            return self.get(job_id)

        # Held from here until the re-iteration task settles
        if job_id in self._reiterating:
            raise PreconditionError(f"Job {job_id} is already iterating")
        self._reiterating.add(job_id)
        try:
            # Complete: the previous task may still be writing its results
            await self.queue.wait(job_id, timeout=self.cancel_grace_seconds)
            job = self.registry.get(job_id)
            if job.status != JobStatus.COMPLETE or self.queue.is_running(job_id):
                raise PreconditionError(f"Job {job_id} is {job.status.value}; it is no longer idle")
            self.control.open(job_id)
            task = self.queue.submit(job_id, self._runner(job_id).reiterate(job_id))
        except BaseException:
            self._reiterating.discard(job_id)
            raise
        task.add_done_callback(lambda _t, jid=job_id: self._reiterating.discard(jid))
        logger.info("Re-iteration submitted for %s", job_id)
        return self.get(job_id)

    # -------------------------------------------------------------------
    # Delete
    # -------------------------------------------------------------------
    async def delete(self, job_id: str) -> List[str]:
        """Forget the job. Returns teardown errors (empty when fully cleaned up)."""
        job = self.registry.get(job_id)
        errors: List[str] = []

        if self.queue.is_running(job_id):
            signals = self.control.get(job_id)
            if signals is not None:
                signals.cancel()
            await self.queue.cancel(job_id, timeout=self.cancel_grace_seconds)

        if job.deployment is not None:
            errors.extend(await self._teardown(job_id, job))

        self.control.discard(job_id)
        self.registry.remove(job_id)
        self._credentials.pop(job_id, None)
        logger.info("Deleted %s (%d teardown error(s))", job_id, len(errors))
        return errors

    async def _teardown(self, job_id: str, job: Job) -> List[str]:
        creds = self._credentials.get(job_id)
        collaborators = self.collaborator_factory(
            creds.api_key if creds else (self.default_api_key or ""),
            creds.github_owner if creds else None,
            creds.render_api_key if creds else None,
        )
        try:
            return list(await collaborators.deployer.teardown(job.deployment))
        except Exception as e:
            logger.error("Teardown failed for %s: %s", job_id, e)
            return [f"teardown: {e}"]
        finally:
            await collaborators.aclose()

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _runner(self, job_id: str) -> JobRunner:
        creds = self._credentials[job_id]
        collaborators = self.collaborator_factory(creds.api_key, creds.github_owner, creds.render_api_key)
        return JobRunner(
            self.registry,
            self.control,
            collaborators,
            results_writer=self.results_writer,
            poll_interval=self.poll_interval,
        )
