"""Playwright driver shared by every session of a server."""

import asyncio
import logging

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from uifeedback.config import DEFAULT_TIMEOUT_MS, HEADLESS, VIEWPORT

logger = logging.getLogger(__name__)


class BrowserEngine:
    """Starts Playwright on first use and hands out pages.

    Browsers and contexts returned here are owned by the caller (the session
    registry closes them); ``stop`` only shuts the driver down.
    """

    def __init__(self, headless: bool = HEADLESS):
        self.headless = headless
        self._playwright: Playwright | None = None
        self._lock = asyncio.Lock()

    async def _driver(self) -> Playwright:
        async with self._lock:
            if self._playwright is None:
                logger.info("Starting Playwright")
                self._playwright = await async_playwright().start()
            return self._playwright

    async def open_page(
        self, url: str, timeout: int = DEFAULT_TIMEOUT_MS
    ) -> tuple[Browser, BrowserContext, Page]:
        """Launch Chromium, open one page at ``url`` and return all three handles."""
        playwright = await self._driver()
        browser = await playwright.chromium.launch(headless=self.headless)
        try:
            context = await browser.new_context(viewport=VIEWPORT)
            page = await context.new_page()
            await page.goto(url, wait_until="load", timeout=timeout)
        except Exception:
            await browser.close()
            raise
        logger.info("Opened page %s", url)
        return browser, context, page

    async def connect_embedded(
        self, port: int, timeout: int = DEFAULT_TIMEOUT_MS
    ) -> tuple[Browser, Page]:
        """Attach over CDP to an app started with ``--remote-debugging-port``.

        Returns the connection and the app's first window, waiting for the
        window to open if the app has not created it yet.
        """
        playwright = await self._driver()
        browser = await playwright.chromium.connect_over_cdp(
            f"http://127.0.0.1:{port}", timeout=timeout
        )
        try:
            page = await self._first_window(browser, timeout)
            await page.wait_for_load_state("load", timeout=timeout)
        except Exception:
            await browser.close()
            raise
        logger.info("Connected to embedded app on CDP port %d", port)
        return browser, page

    @staticmethod
    async def _first_window(browser: Browser, timeout: int) -> Page:
        for context in browser.contexts:
            if context.pages:
                return context.pages[0]
        if not browser.contexts:
            raise RuntimeError("Embedded app exposes no browser context")
        return await browser.contexts[0].wait_for_event("page", timeout=timeout)

    async def stop(self) -> None:
        async with self._lock:
            if self._playwright is None:
                return
            playwright, self._playwright = self._playwright, None
        logger.info("Stopping Playwright")
        await playwright.stop()
