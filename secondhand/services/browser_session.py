"""Shared headless browser for the browser-mediated adapters.

One Chromium instance per process is launched lazily on first use and reused
by every caller. Each caller gets its own context and page through the
:meth:`BrowserSessionManager.page` context manager, which always closes them
again. The browser binary is never downloaded: a local Chrome/Chromium
install is required, found through an explicit override or a fixed list of
well-known install locations.
"""

import asyncio
import logging
import os
import sys
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

from playwright.async_api import Browser, Page, Playwright, Route, async_playwright

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

BROWSER_PATHS: dict[str, list[str]] = {
    "darwin": [
        "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
        "/Applications/Chromium.app/Contents/MacOS/Chromium",
    ],
    "linux": [
        "/usr/bin/google-chrome",
        "/usr/bin/google-chrome-stable",
        "/usr/bin/chromium-browser",
        "/usr/bin/chromium",
    ],
    "win32": [
        "C:\\Program Files\\Google\\Chrome\\Application\\chrome.exe",
        "C:\\Program Files (x86)\\Google\\Chrome\\Application\\chrome.exe",
    ],
}

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-blink-features=AutomationControlled",
]

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)

BLOCKED_RESOURCE_TYPES = {"image", "media", "font"}
BLOCKED_DOMAINS = [
    "google-analytics",
    "googletagmanager",
    "doubleclick",
    "adsystem",
    "facebook.net",
]

STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
window.chrome = { runtime: {}, loadTimes: function() {}, csi: function() {}, app: {} };
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
"""


def find_browser_executable(
    override: str | None = None,
    platform: str | None = None,
    exists: Callable[[str], bool] = os.path.exists,
) -> str:
    """Locate a local Chrome/Chromium executable.

    Args:
        override: Explicit path; takes precedence over discovery.
        platform: sys.platform value, defaults to the running platform.
        exists: Path existence check.

    Returns:
        Path to a browser executable.

    Raises:
        ConfigurationError: If the override is missing on disk or no known
            install location exists.
    """
    if override:
        if exists(override):
            return override
        raise ConfigurationError(f"Browser executable override does not exist: {override}")

    candidates = BROWSER_PATHS.get(platform or sys.platform, [])
    for path in candidates:
        if exists(path):
            return path

    checked = ", ".join(candidates) or "no known locations for this platform"
    raise ConfigurationError(
        "Chrome/Chromium not found. Install Google Chrome or set CHROME_PATH. "
        f"Checked: {checked}"
    )


class BrowserSessionManager:
    """Lazily launched, shared headless browser.

    The browser is relaunched when it reports a disconnect. Callers never
    touch the browser directly; they only open and close their own page.
    """

    def __init__(self, executable_path: str | None = None, headless: bool = True):
        """Initialize browser session manager.

        Args:
            executable_path: Explicit browser executable override.
            headless: Launch the browser without a window.
        """
        self.executable_override = executable_path
        self.headless = headless
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._lock = asyncio.Lock()
        self._stats = {"launches": 0, "pages_opened": 0}

    async def get_browser(self) -> Browser:
        """Return the shared browser, launching it if needed.

        Raises:
            ConfigurationError: If no browser executable can be found.
        """
        async with self._lock:
            if self._browser is not None and self._browser.is_connected():
                return self._browser

            if self._browser is not None:
                logger.warning("Shared browser disconnected, relaunching")
                self._browser = None

            executable = find_browser_executable(self.executable_override)

            if self._playwright is None:
                self._playwright = await async_playwright().start()

            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                executable_path=executable,
                args=LAUNCH_ARGS,
            )
            self._stats["launches"] += 1
            logger.info(f"Launched shared browser from {executable}")
            return self._browser

    async def _route_handler(self, route: Route) -> None:
        """Block heavy media and trackers to speed up page loading."""
        request = route.request
        if request.resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
        elif any(domain in request.url for domain in BLOCKED_DOMAINS):
            await route.abort()
        else:
            await route.continue_()

    @asynccontextmanager
    async def page(self) -> AsyncIterator[Page]:
        """Open a fresh page in its own context and close it on exit.

        Yields:
            Page ready for navigation.
        """
        browser = await self.get_browser()
        context = await browser.new_context(
            user_agent=USER_AGENT,
            viewport={"width": 1280, "height": 800},
            locale="en-US",
            java_script_enabled=True,
            accept_downloads=False,
        )
        try:
            await context.route("**/*", self._route_handler)
            await context.add_init_script(STEALTH_SCRIPT)
            page = await context.new_page()
            self._stats["pages_opened"] += 1
            try:
                yield page
            finally:
                try:
                    await page.close()
                except Exception as e:
                    logger.warning(f"Error closing page: {e}")
        finally:
            try:
                await context.close()
            except Exception as e:
                logger.warning(f"Error closing browser context: {e}")

    def get_stats(self) -> dict[str, Any]:
        return {"connected": self.is_running, **self._stats}

    @property
    def is_running(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def shutdown(self) -> None:
        """Close the shared browser and stop Playwright."""
        async with self._lock:
            if self._browser is not None:
                try:
                    await self._browser.close()
                except Exception as e:
                    logger.warning(f"Error closing browser: {e}")
                self._browser = None

            if self._playwright is not None:
                try:
                    await self._playwright.stop()
                except Exception as e:
                    logger.warning(f"Error stopping playwright: {e}")
                self._playwright = None

            logger.info(f"Browser session closed. Stats: {self._stats}")
