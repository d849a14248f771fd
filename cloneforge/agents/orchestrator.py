"""
Orchestrator Agent
==================
The job runner: drives one job through

    Research → [Generate → Test → (Fix → Test) → Verify]* → Deploy
             → PostDeployVerify → Complete

and is the only writer of the job's record and status.

Loop exit (checked after each pass's verification, in this order):
    1. cancelled         → abort (cancel beats accept)
    2. parity passes     → deploy
    3. accepted          → deploy as-is
    4. count == max      → deploy anyway (never-passing jobs still ship)

Control signals:
    - Observed before each pass, before and after every stage call, and
      while a stage is in flight (a signal change wakes the runner).
    - cancel  → the in-flight stage task is cancelled, status ``cancelled``.
    - pause   → status flips to ``paused`` at once; a stage already running
                finishes, but its result is recorded only after release.
    - accept  → recorded (``accepted_at``), honoured at the end of the pass.

Bookkeeping:
    - iteration_count increments before the pass's work starts
    - one IterationHistory entry per completed pass; a pass interrupted by
      cancel or failure leaves no entry
    - every pass after the first hands the previous pre-deploy parity report
      to the Generator as feedback

Fault tolerance:
    - Any exception from a required stage → ``failed`` with the message in
      ``error``. No automatic retries.
    - Post-deploy stages are best-effort: failures are logged and ignored.
    - The results file is written whatever the outcome.
"""
import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import Awaitable, Optional, TypeVar

from cloneforge.agents.collaborators import StageCollaborators
from cloneforge.core.config import PAUSE_POLL_INTERVAL
from cloneforge.core.constants import (
    CANCELLED_MESSAGE,
    MAX_HISTORY_MISSING_FEATURES,
    JobStatus,
)
from cloneforge.core.errors import JobCancelledError
from cloneforge.models.iteration_history import IterationHistory
from cloneforge.models.job import Job
from cloneforge.models.parity import PreDeployParity
from cloneforge.services.results_writer import ResultsWriter
from cloneforge.state.control import ControlChannel, ControlSignals
from cloneforge.state.registry import JobRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Progress milestones (percent)
# ---------------------------------------------------------------------------
_PCT_RESEARCH = 5
_PCT_LOOP_START = 10
_PCT_LOOP_END = 80
_PCT_DEPLOY = 85
_PCT_POST_DEPLOY = 92
_PCT_COMPLETE = 100


def project_slug(job: Job) -> str:
    """Stable per-job directory / repository name, e.g. ``taskflow-x7k2pq``."""
    base = job.input.custom_name or (job.analysis.name if job.analysis else "") or job.input.target_name
    base = re.sub(r"[^a-z0-9]+", "-", base.lower()).strip("-") or "app"
    return f"{base[:40]}-{job.id[-6:]}"


def mark_cancelled(job: Job) -> None:
    """Terminal ``cancelled`` with the standard message (no-op once terminal)."""
    if job.is_terminal:
        return
    job.paused = False
    job.error = CANCELLED_MESSAGE
    job.transition_to(JobStatus.CANCELLED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobRunner:
    """
    Runs one job. Construct one per job with that job's collaborators.

    Parameters
    ----------
    registry : JobRegistry
        Where the job record lives.
    control : ControlChannel
        Source of the job's pause / accept / cancel signals.
    collaborators : StageCollaborators
        Stage implementations (real, or mocks in tests).
    results_writer : ResultsWriter or None
        Writes the final record; None disables persistence.
    poll_interval : float
        Fallback poll period of interruptible waits, seconds.
    """

    def __init__(
        self,
        registry: JobRegistry,
        control: ControlChannel,
        collaborators: StageCollaborators,
        results_writer: Optional[ResultsWriter] = None,
        poll_interval: float = PAUSE_POLL_INTERVAL,
    ) -> None:
        self.registry = registry
        self.control = control
        self.collaborators = collaborators
        self.results_writer = results_writer
        self.poll_interval = poll_interval
        self._resume_status: Optional[JobStatus] = None

    # -------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------
    async def run(self, job_id: str) -> Job:
        """Full pipeline for a freshly created job."""
        job = self.registry.get(job_id)
        signals = self.control.open(job_id)
        return await self._execute(job, signals, research=True)

    async def reiterate(self, job_id: str) -> Job:
        """Manual "iterate again" on a complete job: one more pass, then redeploy."""
        job = self.registry.get(job_id)
        signals = self.control.open(job_id)
        job.max_iterations += 1
        job.touch()
        self._log(job, "Manual iteration requested (max_iterations=%d)", job.max_iterations)
        return await self._execute(job, signals, research=False, passes=1)

    async def _execute(self, job: Job, signals: ControlSignals, research: bool,
                       passes: Optional[int] = None) -> Job:
        try:
            if research:
                if signals.cancelled:
                    raise JobCancelledError()
                await self._research(job, signals)

            # None: run up to max_iterations
            ceiling = None if passes is None else job.iteration_count + passes
            while True:
                await self._iterate(job, signals, ceiling)
                await self._deploy(job, signals)
                self._set_status(job, JobStatus.COMPLETE, "complete", "Done", _PCT_COMPLETE)
                self._log(job, "Complete after %d pass(es)", job.iteration_count)

                # "iterate" on a job paused after the loop had already exited
                extra = signals.take_requested_iterations()
                if not extra:
                    break
                job.max_iterations += extra
                ceiling = job.iteration_count + extra
                self._log(job, "Running %d more pass(es) on request", extra)

        except JobCancelledError:
            self._log(job, "Cancelled")
            mark_cancelled(job)

        except asyncio.CancelledError:
            # Task cancelled from outside (delete / shutdown)
            self._log(job, "Runner task cancelled")
            mark_cancelled(job)
            raise

        except Exception as e:
            logger.error("[%s] Failed: %s", job.id, e, exc_info=True)
            if not job.is_terminal:
                job.paused = False
                job.error = str(e) or e.__class__.__name__
                job.transition_to(JobStatus.FAILED)

        finally:
            self.control.discard(job.id)
            if self.results_writer is not None:
                self.results_writer.write_job(job)
            await self._close_collaborators(job)

        return job

    async def _close_collaborators(self, job: Job) -> None:
        try:
            await self.collaborators.aclose()
        except Exception as e:
            logger.warning("[%s] Could not close collaborators: %s", job.id, e)

    # -------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------
    async def _research(self, job: Job, signals: ControlSignals) -> None:
        self._set_status(job, JobStatus.RESEARCHING, "research", "Analyzing target product", _PCT_RESEARCH)
        self._log(job, "Researching %s", job.input.target_name)
        job.analysis = await self._stage(job, signals, self.collaborators.researcher.analyze(job.input))
        job.touch()
        self._log(job, "Analysis: %d features, %d entities",
                  len(job.analysis.core_features), len(job.analysis.entities))

    async def _iterate(self, job: Job, signals: ControlSignals, ceiling: Optional[int] = None) -> None:
        """
        Generate, test, fix and verify until parity, accept or the ceiling.

        ``ceiling`` bounds the pass number for a manual re-entry; without it
        the loop runs up to ``job.max_iterations``.
        """
        c = self.collaborators
        slug = project_slug(job)
        feedback = job.parity if isinstance(job.parity, PreDeployParity) else None

        while True:
            ceiling = self._extend(job, signals, ceiling)
            job.iteration_count += 1
            n = job.iteration_count
            first = n == 1
            pct = self._loop_pct(job, n)

            self._set_status(
                job,
                JobStatus.GENERATING if first else JobStatus.ITERATING,
                "generation" if first else "iteration",
                f"Pass {n}/{job.max_iterations}: generating code",
                pct,
            )
            self._log(job, "--- Pass %d/%d ---", n, job.max_iterations)

            generation = await self._stage(job, signals, c.generator.generate(job.analysis, slug, feedback))
            job.generation = generation
            job.touch()
            output_dir = generation.output_dir

            self._set_status(job, JobStatus.TESTING, "testing", f"Pass {n}: running tests", pct + 2)
            tests = await self._stage(job, signals, c.tester.run(output_dir))
            job.tests = tests
            job.fixes = []
            job.touch()

            if not tests.passed:
                self._set_status(job, JobStatus.FIXING, "fixing",
                                 f"Pass {n}: fixing {len(tests.failed_checks)} failed check(s)", pct + 4)
                job.fixes = await self._stage(job, signals, c.tester.fix(output_dir, tests))
                job.touch()

                self._set_status(job, JobStatus.TESTING, "testing", f"Pass {n}: re-running tests", pct + 6)
                tests = await self._stage(job, signals, c.tester.run(output_dir))
                job.tests = tests
                job.touch()

            self._set_status(job, JobStatus.VERIFYING, "verifying", f"Pass {n}: checking parity", pct + 8)
            parity = await self._stage(job, signals, c.verifier.check_parity(job.analysis, output_dir))
            job.parity = parity
            job.record_iteration(IterationHistory(
                version=n,
                parity_score=parity.overall,
                file_count=generation.file_count,
                tests_passed=tests.passed,
                fixes_applied=sum(1 for f in job.fixes if f.applied),
                completed_at=_utcnow(),
                missing_features=parity.missing_features[:MAX_HISTORY_MISSING_FEATURES],
            ))
            self._log(job, "Pass %d parity %d%% (passes=%s, tests=%s)",
                      n, parity.overall, parity.passes_threshold, tests.passed)
            feedback = parity

            if signals.cancelled:
                raise JobCancelledError()
            if parity.passes_threshold:
                self._log(job, "Parity threshold reached on pass %d", n)
                return
            if signals.accepted:
                self._log(job, "Accepted by user on pass %d", n)
                return
            ceiling = self._extend(job, signals, ceiling)
            if ceiling is not None and n >= ceiling:
                self._log(job, "Requested pass(es) done at pass %d", n)
                return
            if n >= job.max_iterations:
                self._log(job, "Iteration ceiling reached (%d) without passing", job.max_iterations)
                return

    @staticmethod
    def _extend(job: Job, signals: ControlSignals, ceiling: Optional[int]) -> Optional[int]:
        extra = signals.take_requested_iterations()
        job.max_iterations += extra
        return ceiling if ceiling is None else ceiling + extra

    async def _deploy(self, job: Job, signals: ControlSignals) -> None:
        c = self.collaborators
        self._set_status(job, JobStatus.DEPLOYING, "deploying", "Publishing the project", _PCT_DEPLOY)
        deployment = await self._stage(
            job, signals, c.deployer.deploy(job.generation.output_dir, project_slug(job), job.deployment)
        )
        if job.deployment is not None:
            deployment.absorb(job.deployment)
        job.deployment = deployment
        job.touch()
        self._log(job, "Deployed: %s", deployment.deployed_urls or deployment.github_url or "local only")

        self._set_status(job, JobStatus.POST_DEPLOY_VERIFYING, "post_deploy",
                         "Verifying the live app", _PCT_POST_DEPLOY)
        url = deployment.frontend_url
        if not url:
            self._log(job, "No live URL; skipping post-deploy checks")
            return
        await self._post_deploy(job, signals, url)

    async def _post_deploy(self, job: Job, signals: ControlSignals, url: str) -> None:
        """Browser, visual and differentiation checks. Failures are logged only."""
        c = self.collaborators
        output_dir = job.generation.output_dir
        target_url = job.input.source_url

        if c.browser_verifier is not None:
            report = await self._best_effort(job, signals, "browser parity",
                                             c.browser_verifier.verify(url, job.analysis))
            if report is not None:
                job.post_deploy_parity = report
                job.touch()

        if not target_url:
            return

        if c.visual_verifier is not None:
            report = await self._best_effort(job, signals, "visual parity",
                                             c.visual_verifier.compare(target_url, url, output_dir))
            if report is not None:
                job.visual_parity = report
                job.touch()

        if c.differentiation is not None:
            report = await self._best_effort(job, signals, "differentiation",
                                             c.differentiation.check(target_url, url, output_dir))
            if report is not None:
                job.differentiation = report
                job.touch()

    async def _best_effort(self, job: Job, signals: ControlSignals, name: str, coro: Awaitable[T]) -> Optional[T]:
        try:
            return await self._stage(job, signals, coro)
        except JobCancelledError:
            raise
        except Exception as e:
            logger.warning("[%s] Post-deploy %s failed (ignored): %s", job.id, name, e)
            # A pause raised while the failed stage ran still has to be honoured
            await self.checkpoint(job, signals)
            return None

    # -------------------------------------------------------------------
    # Control signals
    # -------------------------------------------------------------------
    async def _stage(self, job: Job, signals: ControlSignals, coro: Awaitable[T]) -> T:
        """
        Await one collaborator call while watching the control signals.

        Cancel aborts the call; pause flips the status immediately and holds
        the result until release.
        """
        try:
            await self.checkpoint(job, signals)
        except BaseException:
            # Never leave the un-awaited coroutine behind
            close = getattr(coro, "close", None)
            if close is not None:
                close()
            raise

        task = asyncio.ensure_future(coro)
        try:
            while not task.done():
                self._observe(job, signals)
                if signals.cancelled:
                    task.cancel()
                    await asyncio.wait({task})
                    raise JobCancelledError()
                if signals.released:
                    self._mark_resumed(job)
                else:
                    self._mark_paused(job)

                waiter = asyncio.ensure_future(signals.wait_changed(self.poll_interval))
                try:
                    await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
                finally:
                    waiter.cancel()

            result = task.result()
        finally:
            if not task.done():
                task.cancel()

        await self.checkpoint(job, signals)
        return result

    async def checkpoint(self, job: Job, signals: ControlSignals) -> None:
        """Raise on cancel; hold while paused (interruptible); restore status on release."""
        self._observe(job, signals)
        if signals.cancelled:
            raise JobCancelledError()
        if not signals.released:
            self._mark_paused(job)
            self._log(job, "Paused")
            await signals.wait_until_released(self.poll_interval)
            self._observe(job, signals)
            if signals.cancelled:
                raise JobCancelledError()
            self._log(job, "Released")
        self._mark_resumed(job)

    def _observe(self, job: Job, signals: ControlSignals) -> None:
        if signals.accepted and job.accepted_at is None:
            job.accepted_at = _utcnow()
            job.touch()
            self._log(job, "Accept recorded")

    def _mark_paused(self, job: Job) -> None:
        if job.status == JobStatus.PAUSED:
            return
        self._resume_status = job.status
        job.paused = True
        job.transition_to(JobStatus.PAUSED)

    def _mark_resumed(self, job: Job) -> None:
        if job.status != JobStatus.PAUSED:
            return
        job.paused = False
        job.transition_to(self._resume_status)
        self._resume_status = None

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _set_status(self, job: Job, status: JobStatus, stage: str, step: str, percentage: int) -> None:
        job.transition_to(status)
        job.progress.stage = stage
        job.progress.step = step
        job.progress.percentage = min(_PCT_COMPLETE, percentage)
        job.touch()

    @staticmethod
    def _loop_pct(job: Job, n: int) -> int:
        span = _PCT_LOOP_END - _PCT_LOOP_START
        return _PCT_LOOP_START + int(span * (n - 1) / max(1, job.max_iterations))

    @staticmethod
    def _log(job: Job, msg: str, *args) -> None:
        logger.info("[%s] " + msg, job.id, *args)
