"""
Tester Tests
============
Sandbox checks (run_in_container mocked), anti-gating scan and the
fix-replacement helper.
"""
import asyncio
import os
from unittest.mock import AsyncMock, MagicMock, patch

from cloneforge.agents.tester import Tester, apply_replacement, scan_forbidden_patterns
from cloneforge.executor.build_executor import ExecutionResult
from cloneforge.models.test_result import TestCase, TestResult


def _write(root, rel, content):
    path = os.path.join(root, rel)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)
    return path


def _exec(exit_code=0, log=""):
    return ExecutionResult(label="", command="", exit_code=exit_code, full_log=log, log_excerpt=log)


# ---------------------------------------------------------------------------
# Anti-gating scan
# ---------------------------------------------------------------------------
def test_scan_finds_forbidden_phrases_in_sources(tmp_path):
    _write(str(tmp_path), "apps/web/src/app/page.tsx", "<p>Upgrade to Pro to unlock this</p>")
    _write(str(tmp_path), "apps/web/src/app/ok.tsx", "<p>Everything works</p>")

    findings = scan_forbidden_patterns(str(tmp_path))

    assert 'Found "unlock" in apps/web/src/app/page.tsx' in findings
    assert 'Found "upgrade to" in apps/web/src/app/page.tsx' in findings
    assert not any("ok.tsx" in f for f in findings)


def test_scan_skips_tests_and_node_modules(tmp_path):
    _write(str(tmp_path), "apps/web/src/app/page.test.tsx", "expect(trial).toBe(true)")
    _write(str(tmp_path), "apps/web/src/node_modules/pkg/index.js", "paywall")
    assert scan_forbidden_patterns(str(tmp_path)) == []


# ---------------------------------------------------------------------------
# Replacements
# ---------------------------------------------------------------------------
def test_apply_replacement_edits_file_in_place(tmp_path):
    path = _write(str(tmp_path), "apps/web/src/app/page.tsx", "const x: number = 'a';\n")

    fix = apply_replacement(str(tmp_path), {
        "file": "apps/web/src/app/page.tsx",
        "issue": "type mismatch",
        "originalCode": "const x: number = 'a';",
        "fixedCode": "const x: number = 1;",
    })

    assert fix.applied is True
    assert fix.issue == "type mismatch"
    with open(path, encoding="utf-8") as f:
        assert f.read() == "const x: number = 1;\n"


def test_apply_replacement_reports_unmatched_code(tmp_path):
    _write(str(tmp_path), "a.ts", "let y = 2;\n")
    fix = apply_replacement(str(tmp_path), {"file": "a.ts", "originalCode": "missing", "fixedCode": "z"})
    assert fix.applied is False
    assert fix.fix == "z"


def test_apply_replacement_skips_non_utf8_files(tmp_path):
    path = tmp_path / "public" / "logo.png"
    os.makedirs(path.parent)
    path.write_bytes(b"\x89PNG\r\n\x1a\n\xff\xfe\x00")

    fix = apply_replacement(str(tmp_path), {
        "file": "public/logo.png", "issue": "bad image", "originalCode": "x", "fixedCode": "y",
    })

    assert fix.applied is False
    assert fix.file == "public/logo.png"
    assert path.read_bytes() == b"\x89PNG\r\n\x1a\n\xff\xfe\x00"


def test_fix_survives_suggestion_for_binary_file(tmp_path):
    (tmp_path / "logo.png").write_bytes(b"\xff\xd8\xff\xe0")
    client = MagicMock()
    client.complete_json = AsyncMock(return_value=[
        {"file": "logo.png", "originalCode": "a", "fixedCode": "b"},
    ])
    failed = TestResult(passed=False, type_errors=["TS2304"])

    fixes = asyncio.run(Tester(client=client).fix(str(tmp_path), failed))

    assert [f.applied for f in fixes] == [False]


def test_apply_replacement_ignores_unknown_or_escaping_files(tmp_path):
    assert apply_replacement(str(tmp_path), {"file": "nope.ts", "originalCode": "a"}) is None
    assert apply_replacement(str(tmp_path), {"file": "../../etc/passwd", "originalCode": "a"}) is None
    assert apply_replacement(str(tmp_path), "not a dict") is None
    assert apply_replacement(str(tmp_path), {"issue": "no file"}) is None


# ---------------------------------------------------------------------------
# run / fix
# ---------------------------------------------------------------------------
def test_run_passes_when_every_check_succeeds(tmp_path):
    os.makedirs(tmp_path / "node_modules")
    tester = Tester(client=MagicMock())

    with patch("cloneforge.agents.tester.run_in_container", return_value=_exec()) as mock_run:
        result = asyncio.run(tester.run(str(tmp_path)))

    assert result.passed is True
    assert [t.name for t in result.tests] == ["TypeScript (web)", "ESLint", "Build", "Anti-gating scan"]
    # install skipped because node_modules exists
    assert all(call.kwargs["command"] != "pnpm install" for call in mock_run.call_args_list)


def test_lint_failure_alone_does_not_fail_run(tmp_path):
    os.makedirs(tmp_path / "node_modules")
    tester = Tester(client=MagicMock())

    def fake_run(**kwargs):
        return _exec(1, "no-unused-vars") if kwargs["label"] == "ESLint" else _exec()

    with patch("cloneforge.agents.tester.run_in_container", side_effect=fake_run):
        result = asyncio.run(tester.run(str(tmp_path)))

    assert result.passed is True
    assert result.lint_errors == ["no-unused-vars"]
    assert result.failed_checks == ["ESLint"]


def test_type_errors_fail_run(tmp_path):
    tester = Tester(client=MagicMock())

    def fake_run(**kwargs):
        return _exec(2, "TS2322") if kwargs["label"] == "TypeScript (web)" else _exec()

    with patch("cloneforge.agents.tester.run_in_container", side_effect=fake_run):
        result = asyncio.run(tester.run(str(tmp_path)))

    assert result.passed is False
    assert result.type_errors == ["TS2322"]
    assert "TypeScript (web)" in result.failed_checks


def test_fix_applies_llm_suggestions(tmp_path):
    _write(str(tmp_path), "apps/web/src/app/page.tsx", "bad()\n")
    client = MagicMock()
    client.complete_json = AsyncMock(return_value=[
        {"file": "apps/web/src/app/page.tsx", "issue": "bad call", "originalCode": "bad()", "fixedCode": "good()"},
        {"file": "missing.tsx", "originalCode": "x", "fixedCode": "y"},
    ])
    tester = Tester(client=client)
    failed = TestResult(passed=False, type_errors=["TS2304: Cannot find name 'bad'"],
                        tests=[TestCase(name="TypeScript (web)", passed=False)])

    fixes = asyncio.run(tester.fix(str(tmp_path), failed))

    assert len(fixes) == 1
    assert fixes[0].applied is True
    assert client.complete_json.await_args.kwargs["stage"] == "fixing"


def test_fix_skips_llm_when_tests_passed(tmp_path):
    client = MagicMock()
    client.complete_json = AsyncMock()
    fixes = asyncio.run(Tester(client=client).fix(str(tmp_path), TestResult(passed=True)))
    assert fixes == []
    client.complete_json.assert_not_called()


def test_fix_returns_empty_on_malformed_answer(tmp_path):
    client = MagicMock()
    client.complete_json = AsyncMock(return_value={"not": "a list"})
    failed = TestResult(passed=False, type_errors=["TS1005"])
    assert asyncio.run(Tester(client=client).fix(str(tmp_path), failed)) == []
