"""
Tester
======
Runs the generated project's checks and proposes / applies minimal fixes.

Checks (each in its own sandbox container, see executor.build_executor):
    1. pnpm install    : only when node_modules is missing
    2. TypeScript (web): ``pnpm exec tsc --noEmit`` in apps/web
    3. ESLint          : ``pnpm lint`` (failures are reported, never fatal)
    4. Build           : ``pnpm build``
    5. Anti-gating scan: forbidden paywall / "coming soon" phrases in apps/web/src

``passed`` is False when install, type check, build or the scan fail.

Fixing:
    The LLM answers with a JSON array of ``{file, issue, originalCode,
    fixedCode}``. Each replacement is applied only when the original snippet
    is found verbatim in a file inside the project; otherwise it is reported
    with ``applied=False``. Malformed LLM output → no fixes.

The Tester does NOT:
    - Decide whether to iterate (that's the runner's job)
    - Score parity (that's the verifier's job)
"""
import asyncio
import logging
import os
from typing import List, Optional

from cloneforge.core.config import DOCKER_IMAGE, TEST_TIMEOUT_SECONDS
from cloneforge.core.constants import FORBIDDEN_PATTERNS
from cloneforge.executor.build_executor import ExecutionResult, run_in_container
from cloneforge.llm.client import ClaudeClient
from cloneforge.llm.prompts import FIX_SYSTEM_PROMPT, build_fix_prompt
from cloneforge.models.test_result import BugFix, TestCase, TestResult
from cloneforge.utils.ignore_rules import is_test_file
from cloneforge.utils.path_utils import iter_source_files, resolve_inside, to_relative

logger = logging.getLogger(__name__)

WEB_APP_DIR = "apps/web"
WEB_SRC_DIR = "apps/web/src"


class Tester:
    """
    Parameters
    ----------
    client : ClaudeClient
        Used by ``fix`` only.
    docker_image : str
        Sandbox image (needs node + corepack).
    timeout_seconds : int
        Per-command container timeout.
    """

    def __init__(
        self,
        client: ClaudeClient,
        docker_image: str = DOCKER_IMAGE,
        timeout_seconds: int = TEST_TIMEOUT_SECONDS,
    ) -> None:
        self.client = client
        self.docker_image = docker_image
        self.timeout_seconds = timeout_seconds

    # -------------------------------------------------------------------
    # Sandbox
    # -------------------------------------------------------------------
    async def _exec(self, output_dir: str, label: str, command: str, working_dir: str = "") -> ExecutionResult:
        return await asyncio.to_thread(
            run_in_container,
            workspace_path=os.path.abspath(output_dir),
            command=command,
            label=label,
            timeout_seconds=self.timeout_seconds,
            docker_image=self.docker_image,
            working_dir=working_dir,
        )

    @staticmethod
    def _failure_text(execution: ExecutionResult) -> str:
        return execution.error or execution.log_excerpt or f"exit code {execution.exit_code}"

    # -------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------
    async def run(self, output_dir: str) -> TestResult:
        logger.info("Running tests in %s", output_dir)
        result = TestResult()

        # 1. Dependencies
        if not os.path.isdir(os.path.join(output_dir, "node_modules")):
            install = await self._exec(output_dir, "Install", "pnpm install")
            if not install.succeeded:
                logger.error("Dependency install failed for %s", output_dir)
                result.passed = False
                result.suggestions.append("Check package.json for invalid dependencies")
                result.tests.append(TestCase(name="Install", passed=False, error=self._failure_text(install)))

        # 2. TypeScript
        tsc = await self._exec(output_dir, "TypeScript (web)", "pnpm exec tsc --noEmit", WEB_APP_DIR)
        if tsc.succeeded:
            result.tests.append(TestCase(name="TypeScript (web)", passed=True))
        else:
            result.passed = False
            result.type_errors.append(self._failure_text(tsc))
            result.tests.append(TestCase(name="TypeScript (web)", passed=False, error="Type check failed"))

        # 3. Lint
        lint = await self._exec(output_dir, "ESLint", "pnpm lint")
        if lint.succeeded:
            result.tests.append(TestCase(name="ESLint", passed=True))
        else:
            result.lint_errors.append(self._failure_text(lint))
            result.tests.append(TestCase(name="ESLint", passed=False, error="Lint reported problems"))

        # 4. Build
        build = await self._exec(output_dir, "Build", "pnpm build")
        if build.succeeded:
            result.tests.append(TestCase(name="Build", passed=True))
        else:
            result.passed = False
            result.tests.append(TestCase(name="Build", passed=False, error=self._failure_text(build)))

        # 5. Anti-gating
        findings = scan_forbidden_patterns(output_dir)
        result.suggestions.extend(findings)
        result.tests.append(TestCase(
            name="Anti-gating scan",
            passed=not findings,
            error="Found forbidden patterns" if findings else None,
        ))
        if findings:
            result.passed = False

        logger.info("Tests complete: %s (%s)", "PASSED" if result.passed else "FAILED", output_dir)
        return result

    async def fix(self, output_dir: str, test_result: TestResult) -> List[BugFix]:
        if test_result.passed:
            logger.info("No bugs to fix")
            return []

        errors = test_result.error_messages()
        if not errors:
            return []

        logger.info("Asking for fixes for %d error(s)", len(errors))
        suggestions = await self.client.complete_json(
            build_fix_prompt(errors),
            system=FIX_SYSTEM_PROMPT,
            stage="fixing",
        )
        if not isinstance(suggestions, list):
            logger.error("Failed to parse fix suggestions")
            return []

        fixes: List[BugFix] = []
        for suggestion in suggestions:
            fix = apply_replacement(output_dir, suggestion)
            if fix is not None:
                fixes.append(fix)

        logger.info(
            "Fixes proposed=%d applied=%d", len(fixes), sum(1 for f in fixes if f.applied)
        )
        return fixes


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def scan_forbidden_patterns(output_dir: str) -> List[str]:
    """One finding per (pattern, file) in the web app's sources, tests excluded."""
    findings: List[str] = []
    for path in iter_source_files(os.path.join(output_dir, WEB_SRC_DIR)):
        if is_test_file(path):
            continue
        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                lower = f.read().lower()
        except OSError as e:
            logger.warning("Could not read %s: %s", path, e)
            continue
        rel = to_relative(path, output_dir)
        for pattern in FORBIDDEN_PATTERNS:
            if pattern in lower:
                findings.append(f'Found "{pattern}" in {rel}')
    return findings


def apply_replacement(output_dir: str, suggestion: object) -> Optional[BugFix]:
    """
    Apply one ``{file, issue, originalCode, fixedCode}`` suggestion in place.

    Returns None for suggestions that name no file or a file that does not
    exist inside the project.
    """
    if not isinstance(suggestion, dict) or not suggestion.get("file"):
        return None

    rel = str(suggestion["file"])
    issue = str(suggestion.get("issue", ""))
    original = suggestion.get("originalCode") or ""
    fixed = suggestion.get("fixedCode") or ""

    path = resolve_inside(output_dir, rel)
    if path is None or not os.path.isfile(path):
        logger.debug("Skipping fix for unknown file %s", rel)
        return None

    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
    except UnicodeDecodeError:
        logger.warning("Not a UTF-8 text file, fix skipped: %s", rel)
        return BugFix(file=rel, issue=issue, fix="Skipped: not a UTF-8 text file", applied=False)

    if original and original in content:
        with open(path, "w", encoding="utf-8") as f:
            f.write(content.replace(original, fixed, 1))
        logger.info("Fixed: %s", rel)
        return BugFix(file=rel, issue=issue, fix="Applied code replacement", applied=True)

    return BugFix(file=rel, issue=issue, fix=str(fixed), applied=False)
