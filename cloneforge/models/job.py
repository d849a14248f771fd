"""
Job Model
=========
Pydantic models for one clone-generation request and its observable state.

JobInput is immutable; everything else on Job is written by the runner that
owns the job. API handlers read snapshots (``model_copy(deep=True)``) and
never write here.

Status changes go through ``Job.transition_to`` which enforces the pipeline
edges in ``ALLOWED_TRANSITIONS``; a terminal job cannot move backward (the
only exit from ``complete`` is a manual re-iteration).
"""
import random
import string
import time
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cloneforge.core.constants import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    JobStatus,
)
from cloneforge.core.errors import PreconditionError
from cloneforge.models.analysis import SaaSAnalysis
from cloneforge.models.deployment import DeployResult
from cloneforge.models.generation import GenerationResult
from cloneforge.models.iteration_history import IterationHistory
from cloneforge.models.parity import (
    DifferentiationReport,
    ParityReport,
    VisualParityReport,
)
from cloneforge.models.test_result import BugFix, TestResult

_BASE36 = string.digits + string.ascii_lowercase


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_job_id() -> str:
    """``job_<epoch millis>_<6 base36 chars>``"""
    suffix = "".join(random.choices(_BASE36, k=6))
    return f"job_{int(time.time() * 1000)}_{suffix}"


class JobInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    target_name: str
    custom_name: Optional[str] = None
    description: Optional[str] = None
    source_url: Optional[str] = None

    @field_validator("target_name")
    @classmethod
    def _strip_target(cls, v: str) -> str:
        return v.strip()


class Progress(BaseModel):
    stage: str = "pending"
    step: str = ""
    percentage: int = 0


class Job(BaseModel):
    id: str = Field(default_factory=new_job_id)
    status: JobStatus = JobStatus.PENDING
    input: JobInput

    analysis: Optional[SaaSAnalysis] = None
    generation: Optional[GenerationResult] = None
    tests: Optional[TestResult] = None
    fixes: List[BugFix] = []
    parity: Optional[ParityReport] = None
    post_deploy_parity: Optional[ParityReport] = None
    visual_parity: Optional[VisualParityReport] = None
    differentiation: Optional[DifferentiationReport] = None

    iteration_count: int = 0
    max_iterations: int = 5
    deployment: Optional[DeployResult] = None
    error: Optional[str] = None

    paused: bool = False
    accepted_at: Optional[datetime] = None
    progress: Progress = Field(default_factory=Progress)
    iterations: List[IterationHistory] = []

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def touch(self) -> None:
        self.updated_at = _utcnow()

    def transition_to(self, status: JobStatus) -> None:
        """Move to ``status`` if the pipeline allows it, else PreconditionError."""
        if status == self.status:
            return
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise PreconditionError(
                f"Invalid transition {self.status.value} -> {status.value} for job {self.id}"
            )
        self.status = status
        self.touch()

    def record_iteration(self, entry: IterationHistory) -> None:
        self.iterations.append(entry)
        self.touch()

    def snapshot(self) -> "Job":
        """Deep copy for external readers."""
        return self.model_copy(deep=True)
