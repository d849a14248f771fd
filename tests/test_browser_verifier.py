"""
Browser Verifier Tests
======================
Aggregation of live checks. Playwright is never launched: the browser
context is faked and individual checks are patched or fed a mock page.
"""
import asyncio
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

from playwright.async_api import Error as PlaywrightError

from cloneforge.agents.browser_verifier import BrowserVerifier
from cloneforge.models.parity import BrowserCheck

from conftest import make_analysis


@asynccontextmanager
async def _fake_browser():
    yield MagicMock()


def _passing(name, category):
    return AsyncMock(return_value=BrowserCheck(name=name, category=category, passed=True, score=100))


def _patched_checks(**overrides):
    checks = {
        "check_page_load": _passing("Page Load", "ui"),
        "check_landing_page": _passing("Landing Page", "ui"),
        "check_navigation": _passing("Navigation", "navigation"),
        "check_list_view": _passing("List View", "crud"),
        "check_forms": _passing("Forms/CRUD", "forms"),
        "check_search": _passing("Search", "search"),
        "check_responsive": _passing("Responsive Design", "ui"),
        "check_mock_data": _passing("Mock Data", "crud"),
    }
    checks.update(overrides)
    return checks


def _verify(checks, threshold=90):
    verifier = BrowserVerifier(threshold=threshold)
    with patch("cloneforge.agents.browser_verifier.launch_browser", _fake_browser), \
         patch("cloneforge.agents.browser_verifier.new_page", new=AsyncMock(return_value=MagicMock())), \
         patch.multiple(BrowserVerifier, **checks):
        return asyncio.run(verifier.verify("https://notion.example/", make_analysis()))


def test_all_checks_passing():
    report = _verify(_patched_checks())

    assert report.kind == "post_deploy"
    assert report.url == "https://notion.example"
    assert report.overall == 100
    assert report.passes_threshold is True
    # two entities -> two list-view checks
    assert len(report.checks) == 9
    assert report.recommendations == []


def test_playwright_error_scores_zero_but_report_is_produced():
    report = _verify(_patched_checks(check_search=AsyncMock(side_effect=PlaywrightError("Timeout 10000ms"))))

    search = next(c for c in report.checks if c.name == "Search")
    assert search.score == 0
    assert "Timeout" in search.details
    assert report.missing_features == ["Search"]
    assert report.recommendations == ["Add a search input or filter controls to list pages"]
    # search weighs 10 of the category table
    assert report.overall < 100


def test_recommendations_deduplicated_per_category():
    failed = [
        BrowserCheck(name="List View: Page", category="crud"),
        BrowserCheck(name="Mock Data", category="crud"),
        BrowserCheck(name="Forms/CRUD", category="forms"),
    ]
    recs = BrowserVerifier.recommendations(failed)
    assert len(recs) == 2


def test_landing_page_check_reads_dom():
    page = MagicMock()
    page.query_selector = AsyncMock(side_effect=[object(), object(), None])
    page.text_content = AsyncMock(return_value="Welcome to Notion")

    check = asyncio.run(BrowserVerifier().check_landing_page(page, make_analysis()))

    # heading + CTA + branding, no description
    assert check.score == 75
    assert check.passed is True
