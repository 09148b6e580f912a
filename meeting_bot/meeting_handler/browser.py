"""
Shared Playwright browser for meeting joins.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Playwright,
    async_playwright,
)

from meeting_bot.config import BrowserSettings
from meeting_bot.core.logging import get_logger

logger = get_logger("browser")

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class BrowserManager:
    """
    Lazily launched Chromium instance shared by all join executors.

    Each meeting gets its own isolated BrowserContext.

    Usage pattern:
        browser = BrowserManager(settings.browser)
        context = await browser.new_context()
        ...
        await browser.stop()
    """

    def __init__(self, settings: BrowserSettings) -> None:
        self._settings = settings
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._start_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        """Return True if the browser is currently available."""
        return self._browser is not None

    async def start(self) -> None:
        """
        Start Playwright and launch a Chromium browser instance.
        """
        async with self._start_lock:
            if self._browser is not None:
                return

            logger.info("Starting Playwright browser...")
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self._settings.headless,
                ignore_default_args=["--enable-automation"],
                args=[
                    "--use-fake-ui-for-media-stream",  # Auto-accept permissions
                    "--use-fake-device-for-media-stream",
                    "--disable-blink-features=AutomationControlled",
                    "--no-sandbox",
                    "--disable-setuid-sandbox",
                    "--disable-infobars",
                ],
            )
            logger.info("Playwright browser started.")

    async def stop(self) -> None:
        """
        Stop Playwright and close the browser.
        """
        logger.info("Stopping Playwright browser...")
        try:
            if self._browser is not None:
                await self._browser.close()
        finally:
            self._browser = None

        try:
            if self._playwright is not None:
                await self._playwright.stop()
        finally:
            self._playwright = None

    async def new_context(self, record_video: bool = False) -> BrowserContext:
        """Create a new isolated browser context for one meeting."""
        if self._browser is None:
            await self.start()

        options = {
            "user_agent": USER_AGENT,
            "viewport": {"width": 1280, "height": 720},
            "permissions": ["microphone", "camera"],
            "ignore_https_errors": True,
        }
        if record_video:
            options["record_video_dir"] = self._settings.recordings_dir
            options["record_video_size"] = {"width": 1280, "height": 720}

        context = await self._browser.new_context(**options)
        # Stealth: clear navigator.webdriver
        await context.add_init_script(
            "Object.defineProperty(navigator, 'webdriver', {get: () => undefined})"
        )
        context.set_default_navigation_timeout(self._settings.navigation_timeout_seconds * 1000)
        return context
