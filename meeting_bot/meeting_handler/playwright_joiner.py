"""
Playwright-driven join flow shared by the platform handlers.
"""

from __future__ import annotations

import asyncio
from abc import abstractmethod
from typing import Dict, Optional, Sequence

from playwright.async_api import (
    BrowserContext,
    Error as PlaywrightError,
    Page,
    TimeoutError as PlaywrightTimeoutError,
)

from meeting_bot.calendar.url_extractor import detect_platform_from_url
from meeting_bot.config import BrowserSettings
from meeting_bot.core.exceptions import JoinFailed
from meeting_bot.core.logging import get_logger
from meeting_bot.domain.models import (
    BotSettings,
    JoinFailureReason,
    MeetingInfo,
)
from .base import JoinExecutor, JoinHandle
from .browser import BrowserManager

logger = get_logger("playwright_joiner")

# Playwright navigation errors that mean the URL itself is bad
INVALID_URL_MARKERS = (
    "ERR_NAME_NOT_RESOLVED",
    "ERR_INVALID_URL",
    "Cannot navigate to invalid URL",
    "ERR_ABORTED",
)

POLL_SECONDS = 2


class PlaywrightJoinHandle(JoinHandle):
    """Join handle owning the meeting's browser context."""

    def __init__(self, meeting: MeetingInfo, context: BrowserContext, page: Page):
        super().__init__(meeting)
        self.context = context
        self.page = page

    async def _release(self) -> None:
        try:
            await self.context.close()
        except PlaywrightError as e:
            logger.debug(f"Context already closed for {self.meeting_id}: {e}")


class PlaywrightJoinExecutor(JoinExecutor):
    """
    Base join executor: opens an isolated context, runs the platform's
    pre-join flow, then waits in the lobby until admitted.
    """

    def __init__(self, browser: BrowserManager, settings: BrowserSettings):
        self.browser = browser
        self._settings = settings

    def default_bot_name(self) -> str:
        return self._settings.default_bot_name

    def bot_name_for(self, bot_settings: BotSettings) -> str:
        return bot_settings.bot_name or self.default_bot_name()

    async def join(self, meeting: MeetingInfo, settings: BotSettings) -> JoinHandle:
        if detect_platform_from_url(meeting.url) != self.platform:
            raise JoinFailed(
                JoinFailureReason.INVALID_URL,
                f"URL {meeting.url} is not a {self.platform.value} meeting link",
            )

        context = await self.browser.new_context(record_video=settings.record_meetings)

        try:
            page = await context.new_page()
            logger.info(f"Joining {self.platform.value} meeting '{meeting.title}'")
            await self._join_flow(page, meeting, self.bot_name_for(settings))
            await self._wait_for_admission(page, meeting)
        except JoinFailed:
            await context.close()
            raise
        except PlaywrightTimeoutError as e:
            await context.close()
            raise JoinFailed(JoinFailureReason.TIMEOUT, f"Timed out joining: {e}") from e
        except PlaywrightError as e:
            await context.close()
            message = str(e)
            if any(marker in message for marker in INVALID_URL_MARKERS):
                raise JoinFailed(JoinFailureReason.INVALID_URL, message) from e
            raise JoinFailed(JoinFailureReason.UNKNOWN, message) from e
        except BaseException:
            # Any other error (or cancellation) still releases the context
            await context.close()
            raise

        logger.info(f"✅ Joined {self.platform.value} meeting '{meeting.title}'")
        return PlaywrightJoinHandle(meeting, context, page)

    @abstractmethod
    async def _join_flow(self, page: Page, meeting: MeetingInfo, bot_name: str) -> None:
        """Navigate and click through the pre-join screen."""

    # Selectors that are only visible once in the call
    in_meeting_selectors: Sequence[str] = ()
    # Page text -> failure reason while waiting in the lobby
    failure_texts: Dict[str, JoinFailureReason] = {}

    async def _wait_for_admission(self, page: Page, meeting: MeetingInfo) -> None:
        """Wait until an in-meeting indicator shows up or the lobby times out."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._settings.lobby_timeout_seconds

        while loop.time() < deadline:
            if await self._first_visible(page, self.in_meeting_selectors):
                return

            for text, reason in self.failure_texts.items():
                if await self._is_visible(page.get_by_text(text)):
                    raise JoinFailed(reason, f"'{text}' shown for {meeting.title}")

            await asyncio.sleep(POLL_SECONDS)

        raise JoinFailed(
            JoinFailureReason.TIMEOUT,
            f"Not admitted to {meeting.title} within {self._settings.lobby_timeout_seconds}s",
        )

    @staticmethod
    async def _is_visible(locator) -> bool:
        try:
            return await locator.count() > 0 and await locator.first.is_visible()
        except PlaywrightError:
            return False

    async def _first_visible(self, page: Page, selectors: Sequence[str]) -> Optional[str]:
        for selector in selectors:
            if await self._is_visible(page.locator(selector)):
                return selector
        return None

    async def _fill_first(self, page: Page, selectors: Sequence[str], value: str) -> bool:
        selector = await self._first_visible(page, selectors)
        if selector is None:
            return False
        await page.locator(selector).first.fill(value)
        return True

    async def _click_first_button(self, page: Page, names: Sequence[str]) -> Optional[str]:
        for name in names:
            button = page.get_by_role("button", name=name, exact=True)
            if await self._is_visible(button):
                await button.first.click()
                logger.debug(f"Clicked '{name}' button")
                return name
        return None
