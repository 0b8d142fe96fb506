"""A single headless browser page shared by a whole check run.

The session is owned by the pipeline: it is opened once before the first
document and closed once after the last.  It does not support concurrent
use; every method must be awaited before the next one is called.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from accessepub.errors import EvaluationFailure, NavigationFailure

logger = logging.getLogger(__name__)

# Wraps a callback-style in-page entry point in a Promise so that the
# host awaits exactly once, until the page calls back.
_CALLBACK_BRIDGE = """\
(entryPoint) => new Promise((resolve, reject) => {
  const fn = entryPoint.split('.').reduce((obj, key) => obj && obj[key], window);
  if (typeof fn !== 'function') {
    reject(new Error(entryPoint + ' is not a function'));
    return;
  }
  try {
    fn(resolve);
  } catch (e) {
    reject(e);
  }
})
"""


@runtime_checkable
class BrowserSession(Protocol):
    """Interface the check step drives.

    ``navigate`` resets any previously injected scripts.  Errors for a single
    document are raised as ``NavigationFailure`` / ``EvaluationFailure``.
    """

    async def open(self) -> None:
        """Start the browser and create the page.

        If this raises, the caller will not call ``close``: anything already
        started (driver process, browser) must be released before raising.
        """
        ...

    async def navigate(self, url: str) -> None:
        ...

    async def inject_script(self, path: Path) -> None:
        ...

    async def evaluate(self, entry_point: str) -> Any:
        """Call *entry_point* in the page with a callback and return its value."""
        ...

    async def close(self) -> None:
        ...


class PlaywrightSession:
    """``BrowserSession`` backed by a Playwright-controlled headless browser.

    Usage::

        session = PlaywrightSession()
        await session.open()
        try:
            await session.navigate("file:///book/OEBPS/ch1.xhtml")
            ...
        finally:
            await session.close()
    """

    def __init__(
        self,
        *,
        engine: str = "chromium",
        headless: bool = True,
        navigation_timeout_ms: int = 30000,
    ) -> None:
        self.engine = engine
        self.headless = headless
        self.navigation_timeout_ms = navigation_timeout_ms
        self._playwright: Any = None
        self._browser: Any = None
        self._page: Any = None

    @property
    def is_open(self) -> bool:
        return self._page is not None

    async def open(self) -> None:
        if self.is_open:
            raise RuntimeError("Browser session is already open")
        self._playwright = await async_playwright().start()
        try:
            launcher = getattr(self._playwright, self.engine)
            self._browser = await launcher.launch(headless=self.headless)
            self._page = await self._browser.new_page()
        except BaseException:
            await self.close()
            raise
        self._page.set_default_navigation_timeout(self.navigation_timeout_ms)
        logger.debug("Opened %s session (headless=%s)", self.engine, self.headless)

    async def navigate(self, url: str) -> None:
        page = self._require_page()
        try:
            response = await page.goto(url, wait_until="load")
        except PlaywrightError as exc:
            raise NavigationFailure(url, exc.message) from exc
        # file:// navigations have no response object
        if response is not None and not response.ok:
            raise NavigationFailure(url, f"HTTP {response.status}")

    async def inject_script(self, path: Path) -> None:
        page = self._require_page()
        try:
            await page.add_script_tag(path=str(path))
        except PlaywrightError as exc:
            raise EvaluationFailure(page.url, f"could not inject {path.name}: {exc.message}") from exc

    async def evaluate(self, entry_point: str) -> Any:
        page = self._require_page()
        try:
            return await page.evaluate(_CALLBACK_BRIDGE, entry_point)
        except PlaywrightError as exc:
            raise EvaluationFailure(page.url, exc.message) from exc

    async def close(self) -> None:
        browser, pw = self._browser, self._playwright
        self._page = self._browser = self._playwright = None
        try:
            if browser is not None:
                await browser.close()
        finally:
            if pw is not None:
                await pw.stop()
        logger.debug("Closed browser session")

    def _require_page(self) -> Any:
        if self._page is None:
            raise RuntimeError("Browser session is not open")
        return self._page
