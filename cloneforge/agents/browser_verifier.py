"""
Browser Verifier
================
Post-deploy parity: loads the deployed clone in headless chromium and runs
live functional checks.

Checks (category → weight from BROWSER_CATEGORY_WEIGHTS):
    Page Load, Landing Page, Responsive Design   → ui
    Navigation                                   → navigation
    List View per entity (first 3)               → crud
    Forms/CRUD                                   → forms
    Search                                       → search
    Mock Data                                    → crud

A check that raises inside Playwright scores 0 with the error in
``details``; the report is still produced. Browser launch failures
propagate (the runner logs them, post-deploy is best-effort).
"""
import logging
from typing import List

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from cloneforge.core.config import PARITY_THRESHOLD
from cloneforge.core.constants import BROWSER_CATEGORY_WEIGHTS
from cloneforge.core.scoring import ScoredCheck, summarize
from cloneforge.models.analysis import SaaSAnalysis
from cloneforge.models.parity import BrowserCheck, PostDeployParity
from cloneforge.services.browser import DESKTOP_VIEWPORT, MOBILE_VIEWPORT, launch_browser, new_page

logger = logging.getLogger(__name__)

MAX_ENTITY_LIST_CHECKS = 3

_RECOMMENDATIONS = {
    "ui": "Make sure the landing page renders a heading, description and call to action",
    "navigation": "Add a header <nav> linking to every entity list page",
    "crud": "Entity list routes must render a table or card grid with sample records",
    "forms": "Provide create forms with at least two inputs and a submit button",
    "search": "Add a search input or filter controls to list pages",
}


def _mark(flag: bool) -> str:
    return "yes" if flag else "no"


class BrowserVerifier:

    def __init__(self, threshold: int = PARITY_THRESHOLD) -> None:
        self.threshold = threshold

    async def verify(self, url: str, analysis: SaaSAnalysis) -> PostDeployParity:
        base_url = url.rstrip("/")
        logger.info("Browser verifying: %s", base_url)

        checks: List[BrowserCheck] = []
        async with launch_browser() as browser:
            page = await new_page(browser, DESKTOP_VIEWPORT)
            checks.append(await self._guard("Page Load", "ui", self.check_page_load(page, base_url)))
            checks.append(await self._guard("Landing Page", "ui", self.check_landing_page(page, analysis)))
            checks.append(await self._guard("Navigation", "navigation", self.check_navigation(page, analysis)))
            for entity in analysis.entities[:MAX_ENTITY_LIST_CHECKS]:
                checks.append(await self._guard(
                    f"List View: {entity.name}", "crud",
                    self.check_list_view(page, base_url, entity.name, entity.slug),
                ))
            checks.append(await self._guard("Forms/CRUD", "forms", self.check_forms(page)))
            checks.append(await self._guard("Search", "search", self.check_search(page, base_url)))
            checks.append(await self._guard("Responsive Design", "ui", self.check_responsive(page, base_url)))
            checks.append(await self._guard("Mock Data", "crud", self.check_mock_data(page, base_url, analysis)))

        summary = summarize(
            [ScoredCheck(key=c.category, score=c.score) for c in checks],
            threshold=self.threshold,
            weights=BROWSER_CATEGORY_WEIGHTS,
        )
        failed = [c for c in checks if not c.passed]
        report = PostDeployParity(
            overall=summary.overall,
            passes_threshold=summary.passes_threshold,
            url=base_url,
            checks=checks,
            missing_features=[c.name for c in failed],
            recommendations=self.recommendations(failed),
        )
        logger.info("Browser parity: %d%% (%d/%d checks passed)", report.overall,
                    len(checks) - len(failed), len(checks))
        return report

    @staticmethod
    async def _guard(name: str, category: str, check) -> BrowserCheck:
        try:
            return await check
        except PlaywrightError as e:
            logger.debug("Browser check %s failed: %s", name, e)
            return BrowserCheck(name=name, category=category, passed=False, score=0,
                                details=f"Error: {e}")

    @staticmethod
    def recommendations(failed: List[BrowserCheck]) -> List[str]:
        seen: List[str] = []
        for check in failed:
            rec = _RECOMMENDATIONS[check.category]
            if rec not in seen:
                seen.append(rec)
        return seen

    # -------------------------------------------------------------------
    # Checks
    # -------------------------------------------------------------------
    async def check_page_load(self, page: Page, url: str) -> BrowserCheck:
        response = await page.goto(url, wait_until="networkidle", timeout=30000)
        status = response.status if response else 0
        if status == 200:
            title = await page.title()
            return BrowserCheck(name="Page Load", category="ui", passed=True, score=100,
                                details=f'Page loaded with title: "{title}"')
        return BrowserCheck(name="Page Load", category="ui", passed=False, score=0,
                            details=f"Page returned status {status}")

    async def check_landing_page(self, page: Page, analysis: SaaSAnalysis) -> BrowserCheck:
        has_heading = await page.query_selector("h1, h2") is not None
        has_cta = await page.query_selector("button, a[href]") is not None
        has_description = await page.query_selector("p") is not None
        body = (await page.text_content("body") or "").lower()
        has_name = analysis.name.lower() in body

        score = sum([has_heading, has_cta, has_description, has_name]) * 25
        return BrowserCheck(
            name="Landing Page", category="ui", passed=score >= 75, score=score,
            details=(f"Hero: {_mark(has_heading)}, CTA: {_mark(has_cta)}, "
                     f"Description: {_mark(has_description)}, Branding: {_mark(has_name)}"),
        )

    async def check_navigation(self, page: Page, analysis: SaaSAnalysis) -> BrowserCheck:
        has_nav = await page.query_selector('nav, header, [role="navigation"]') is not None
        links = await page.query_selector_all("a[href]")
        hrefs = [((await link.get_attribute("href")) or "").lower() for link in links]
        has_entity_links = any(e.slug in h for e in analysis.entities for h in hrefs)

        score = min(100, sum([has_nav, len(links) >= 3, has_entity_links]) * 34)
        return BrowserCheck(
            name="Navigation", category="navigation", passed=score >= 66, score=score,
            details=f"Nav element: {_mark(has_nav)}, Links: {len(links)}, Entity links: {_mark(has_entity_links)}",
        )

    async def check_list_view(self, page: Page, base_url: str, entity_name: str, slug: str) -> BrowserCheck:
        name = f"List View: {entity_name}"
        await page.goto(f"{base_url}/{slug}", wait_until="networkidle", timeout=15000)
        has_list = await page.query_selector('table, ul, [class*="grid"], [class*="list"]') is not None
        items = await page.query_selector_all('tr, li, [class*="card"], [class*="item"]')
        has_heading = await page.query_selector("h1, h2") is not None

        if has_list:
            score = 100 if items else 60
        else:
            score = 30 if has_heading else 0
        return BrowserCheck(
            name=name, category="crud", passed=score >= 60, score=score,
            details=f"Route /{slug}: List: {_mark(has_list)}, Items: {len(items)}",
        )

    async def check_forms(self, page: Page) -> BrowserCheck:
        has_form = await page.query_selector("form") is not None
        if not has_form:
            create = await page.query_selector(
                'button:has-text("Create"), button:has-text("New"), a:has-text("Create"), a:has-text("New")'
            )
            if create is not None:
                await create.click()
                await page.wait_for_timeout(1000)
                has_form = await page.query_selector("form") is not None

        if not has_form:
            return BrowserCheck(name="Forms/CRUD", category="forms", passed=False, score=0,
                                details="No forms found")

        inputs = await page.query_selector_all("input, textarea, select")
        has_submit = await page.query_selector(
            'button[type="submit"], button:has-text("Save"), button:has-text("Create")'
        ) is not None
        if len(inputs) >= 2 and has_submit:
            score = 100
        else:
            score = 60 if inputs else 30
        return BrowserCheck(
            name="Forms/CRUD", category="forms", passed=score >= 60, score=score,
            details=f"Form: yes, Inputs: {len(inputs)}, Submit: {_mark(has_submit)}",
        )

    async def check_search(self, page: Page, base_url: str) -> BrowserCheck:
        await page.goto(base_url, wait_until="networkidle", timeout=10000)
        search = await page.query_selector(
            'input[type="search"], input[placeholder*="search" i], [class*="search"] input'
        )
        if search is not None:
            return BrowserCheck(name="Search", category="search", passed=True, score=100,
                                details="Search input found")

        has_filter = await page.query_selector('select, [class*="filter"], button:has-text("Filter")') is not None
        return BrowserCheck(
            name="Search", category="search", passed=has_filter, score=70 if has_filter else 0,
            details="Filter controls found" if has_filter else "No search/filter found",
        )

    async def check_responsive(self, page: Page, url: str) -> BrowserCheck:
        await page.set_viewport_size(MOBILE_VIEWPORT)
        try:
            await page.goto(url, wait_until="networkidle", timeout=10000)
            has_content = await page.query_selector("h1, h2, p, button") is not None
            overflow = await page.evaluate("() => document.body.scrollWidth > window.innerWidth + 20")
        finally:
            await page.set_viewport_size(DESKTOP_VIEWPORT)

        if has_content and not overflow:
            score = 100
        else:
            score = 60 if has_content else 0
        return BrowserCheck(
            name="Responsive Design", category="ui", passed=score >= 60, score=score,
            details=f"Mobile view: {_mark(has_content)}, No overflow: {_mark(not overflow)}",
        )

    async def check_mock_data(self, page: Page, base_url: str, analysis: SaaSAnalysis) -> BrowserCheck:
        if not analysis.entities:
            return BrowserCheck(name="Mock Data", category="crud", passed=False, score=0,
                                details="No entities to check")
        slug = analysis.entities[0].slug
        await page.goto(f"{base_url}/{slug}", wait_until="networkidle", timeout=15000)
        rows = await page.query_selector_all('tbody tr, li, [class*="card"]')
        score = 100 if len(rows) >= 3 else (50 if rows else 0)
        return BrowserCheck(
            name="Mock Data", category="crud", passed=score >= 60, score=score,
            details=f"Route /{slug}: {len(rows)} records rendered",
        )
