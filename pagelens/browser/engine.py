"""Browser Engine — session-scoped Playwright wrapper.

Owns one Playwright driver, browser, context and page. Create one per
session; nothing here is shared between instances.
"""

from typing import Dict, Optional

from loguru import logger
from playwright.async_api import (
    BrowserContext,
    Page,
    async_playwright,
)

from pagelens.browser.inspector import PageInspector
from pagelens.config import Settings


class BrowserEngine:
    """Launch or attach a Chromium browser and hand out page inspectors."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self.playwright = None
        self.browser = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def launch(self, headless: Optional[bool] = None, proxy: Optional[Dict] = None):
        """Launch a new browser instance.

        Args:
            headless: Run without visible window (defaults to settings)
            proxy: Optional proxy config dict
        """
        headless = self.settings.headless if headless is None else headless
        self.playwright = await async_playwright().start()
        self.browser = await self.playwright.chromium.launch(
            headless=headless,
            args=["--disable-dev-shm-usage", "--disable-extensions"],
        )

        context_options: Dict = {
            "viewport": {
                "width": self.settings.viewport_width,
                "height": self.settings.viewport_height,
            },
            "locale": "en-US",
        }
        if proxy:
            context_options["proxy"] = proxy

        self.context = await self.browser.new_context(**context_options)
        self.page = await self.context.new_page()
        logger.info(
            f"[BrowserEngine] Launched ({'headless' if headless else 'headful'})"
        )

    async def connect_cdp(self, cdp_url: str):
        """Attach to an existing browser via Chrome DevTools Protocol.

        Args:
            cdp_url: CDP WebSocket endpoint URL
        """
        self.playwright = await async_playwright().start()
        self.browser = await self.playwright.chromium.connect_over_cdp(cdp_url)
        self.context = self.browser.contexts[0] if self.browser.contexts else (
            await self.browser.new_context()
        )
        self.page = self.context.pages[0] if self.context.pages else (
            await self.context.new_page()
        )
        logger.info(f"[BrowserEngine] Connected via CDP: {cdp_url}")

    async def close(self):
        """Clean up all browser resources."""
        try:
            if self.context:
                await self.context.close()
            if self.browser:
                await self.browser.close()
            if self.playwright:
                await self.playwright.stop()
        except Exception as exc:
            logger.warning(f"[BrowserEngine] Close error: {exc}")
        finally:
            self.page = None
            self.context = None
            self.browser = None
            self.playwright = None

    async def __aenter__(self):
        await self.launch()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # ── Navigation ───────────────────────────────────────────────────────

    async def navigate(self, url: str, wait_until: str = "domcontentloaded"):
        """Navigate to a URL and wait for page to load."""
        if self.page is None:
            raise RuntimeError("Browser not launched")
        await self.page.goto(url, wait_until=wait_until, timeout=30_000)

    @property
    def url(self) -> str:
        """Return the current page URL."""
        return self.page.url if self.page else ""

    def new_inspector(self) -> PageInspector:
        """Inspector bound to the current page."""
        if self.page is None:
            raise RuntimeError("Browser not launched")
        return PageInspector(self.page, self.settings)
