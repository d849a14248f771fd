"""
Iteration History Model
=======================
Pydantic model representing one complete pass of the clone loop.

Represents one loop cycle: Generate → Test → Fix → Verify.

Fields:
    version         : pass number (1-based, equals job.iteration_count at append)
    parity_score    : pre-deploy parity achieved by this pass
    file_count      : number of files the Generator produced
    tests_passed    : final test outcome of the pass (after the fix retest)
    fixes_applied   : fixes the Tester actually applied
    completed_at    : UTC timestamp when verification finished
    missing_features: up to 5 feature names still missing

Entries are frozen and only ever appended, so operators can see whether
iterating is converging or thrashing.
"""
from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict


class IterationHistory(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: int
    parity_score: int
    file_count: int = 0
    tests_passed: bool = False
    fixes_applied: int = 0
    completed_at: datetime
    missing_features: List[str] = []
