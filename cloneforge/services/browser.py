"""
Browser Service
===============
Thin helpers around headless Playwright (chromium) shared by the Researcher
(public page scraping), the BrowserVerifier (live checks) and the visual
verifiers (screenshots).

Navigation falls back from ``networkidle`` to ``domcontentloaded`` so slow
marketing pages with long-polling scripts still load.
"""
import base64
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from playwright.async_api import Browser, Page, async_playwright
from playwright.async_api import Error as PlaywrightError

logger = logging.getLogger(__name__)

DESKTOP_VIEWPORT = {"width": 1440, "height": 900}
MOBILE_VIEWPORT = {"width": 375, "height": 812}
_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)


@asynccontextmanager
async def launch_browser() -> AsyncIterator[Browser]:
    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=True)
        try:
            yield browser
        finally:
            await browser.close()


async def new_page(browser: Browser, viewport: Dict[str, int] = DESKTOP_VIEWPORT) -> Page:
    context = await browser.new_context(viewport=viewport, user_agent=_USER_AGENT)
    return await context.new_page()


async def goto(page: Page, url: str, timeout_ms: int = 30000) -> None:
    """Navigate, retrying once with a lighter wait condition."""
    try:
        await page.goto(url, wait_until="networkidle", timeout=timeout_ms)
    except PlaywrightError:
        await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms // 2)
        await page.wait_for_timeout(2000)


async def screenshot_b64(
    url: str,
    save_path: Optional[str] = None,
    viewport: Dict[str, int] = DESKTOP_VIEWPORT,
) -> str:
    """
    Load ``url`` in a fresh browser and return a base64 PNG of the first fold.
    The PNG is also written to ``save_path`` when given.
    """
    async with launch_browser() as browser:
        page = await new_page(browser, viewport)
        await goto(page, url)
        await page.wait_for_timeout(2000)
        data = await page.screenshot(path=save_path)
    return base64.b64encode(data).decode()


_PUBLIC_INFO_JS = """() => {
    const text = (el) => (el.innerText || '').trim();
    return {
        title: document.title || '',
        description: document.querySelector('meta[name="description"]')?.content || '',
        headings: Array.from(document.querySelectorAll('h1, h2, h3')).map(text).filter(Boolean).slice(0, 20),
        features: Array.from(document.querySelectorAll('[class*="feature"], [class*="benefit"]'))
            .map(text).filter(Boolean).map(t => t.slice(0, 200)).slice(0, 30),
    };
}"""


async def scrape_public_info(url: str) -> str:
    """
    Title, meta description, headings and feature blurbs of a public page,
    formatted as prompt context. Returns "" when the page cannot be loaded.
    """
    try:
        async with launch_browser() as browser:
            page = await new_page(browser)
            await goto(page, url)
            info = await page.evaluate(_PUBLIC_INFO_JS)
    except PlaywrightError as e:
        logger.warning("Could not scrape %s: %s", url, e)
        return ""

    return "\n".join([
        f"Title: {info.get('title', '')}",
        f"Description: {info.get('description', '')}",
        f"Headings: {', '.join(info.get('headings', []))}",
        f"Features mentioned: {', '.join(info.get('features', []))}",
    ])
