"""
Test Result Models
==================
Contract between the Tester and the runner.

TestResult:
    passed      : overall verdict (type check, build and anti-gating scan must pass)
    tests       : one TestCase per executed check
    lint_errors : raw lint output (lint failures do not fail the run)
    type_errors : raw type-check output
    suggestions : human hints (forbidden phrases found, broken deps, ...)

BugFix:
    One replacement proposed by the LLM and whether it could be applied.
"""
from typing import List, Optional

from pydantic import BaseModel


class TestCase(BaseModel):
    __test__ = False  # keep pytest from collecting this model

    name: str
    passed: bool
    error: Optional[str] = None


class TestResult(BaseModel):
    __test__ = False

    passed: bool = True
    tests: List[TestCase] = []
    lint_errors: List[str] = []
    type_errors: List[str] = []
    suggestions: List[str] = []

    @property
    def failed_checks(self) -> List[str]:
        return [t.name for t in self.tests if not t.passed]

    def error_messages(self) -> List[str]:
        """All error text worth sending to the fixer, in priority order."""
        errors = list(self.type_errors) + list(self.lint_errors)
        errors += [t.error for t in self.tests if not t.passed and t.error]
        return [e for e in errors if e]


class BugFix(BaseModel):
    file: str
    issue: str = ""
    fix: str = ""
    applied: bool = False
