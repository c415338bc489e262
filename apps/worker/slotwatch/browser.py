"""
Playwright browser session.

The workflows only need: launch, open a page, goto, evaluate, wait for a
selector, click, fill, close. Page reads go through the typed queries below
so no workflow builds script text of its own.
"""

from __future__ import annotations

import logging
from typing import Any

from playwright.async_api import Browser, Page, Playwright, async_playwright

logger = logging.getLogger(__name__)

# Each query takes the selector as its single argument.
_BACKGROUND_IMAGE_JS = """(selector) => {
    const el = document.querySelector(selector);
    return el ? el.style.backgroundImage : null;
}"""

_TEXT_JS = """(selector) => {
    const el = document.querySelector(selector);
    return el ? el.innerText : null;
}"""

_HREF_JS = """(selector) => {
    const el = document.querySelector(selector);
    if (!el) return null;
    const link = el.closest('a');
    return link ? link.href : null;
}"""

_COUNT_JS = "(selector) => document.querySelectorAll(selector).length"


class BrowserSession:
    """One browser, one page. Use as an async context manager."""

    def __init__(self, headless: bool = True, timeout_seconds: float = 30.0):
        self._headless = headless
        self._timeout_ms = timeout_seconds * 1000
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._page: Page | None = None

    async def __aenter__(self) -> BrowserSession:
        await self.launch()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def page(self) -> Page:
        if not self._page:
            raise RuntimeError("Browser not launched")
        return self._page

    @property
    def url(self) -> str:
        return self.page.url

    async def launch(self) -> None:
        logger.info("Launching Chromium (headless=%s)", self._headless)
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(headless=self._headless)
            logger.info("Opening new page")
            self._page = await self._browser.new_page()
            self._page.set_default_timeout(self._timeout_ms)
        except BaseException:
            await self.close()
            raise

    async def close(self) -> None:
        """Close page, browser and driver. Safe to call more than once."""
        if self._page is not None:
            try:
                await self._page.close()
            except Exception:
                logger.warning("Failed to close page", exc_info=True)
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception:
                logger.warning("Failed to close browser", exc_info=True)
        if self._playwright is not None:
            await self._playwright.stop()
            logger.info("Browser closed")
        self._page = None
        self._browser = None
        self._playwright = None

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    async def goto(self, url: str) -> None:
        """Navigate and wait for the load event."""
        await self.page.goto(url, wait_until="load")

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return await self.page.evaluate(script, arg)

    async def wait_for(self, selector: str, timeout_seconds: float | None = None) -> None:
        """Wait until `selector` is attached. Raises playwright TimeoutError."""
        timeout = self._timeout_ms if timeout_seconds is None else timeout_seconds * 1000
        await self.page.wait_for_selector(selector, state="attached", timeout=timeout)

    async def click(self, selector: str) -> None:
        await self.page.click(selector)

    async def fill(self, selector: str, value: str) -> None:
        await self.page.fill(selector, value)

    # ------------------------------------------------------------------
    # Typed queries
    # ------------------------------------------------------------------

    async def background_image(self, selector: str) -> str | None:
        return await self.evaluate(_BACKGROUND_IMAGE_JS, selector)

    async def text_of(self, selector: str) -> str | None:
        return await self.evaluate(_TEXT_JS, selector)

    async def href_of(self, selector: str) -> str | None:
        """href of the element or its nearest enclosing link, None if absent."""
        return await self.evaluate(_HREF_JS, selector)

    async def count(self, selector: str) -> int:
        return int(await self.evaluate(_COUNT_JS, selector))
