"""
Microsoft Teams Meeting Handler

Forces the web client, enters the guest name and waits in the lobby.
"""

from __future__ import annotations

import asyncio

from playwright.async_api import Page

from meeting_bot.core.exceptions import JoinFailed
from meeting_bot.core.logging import get_logger
from meeting_bot.domain.models import JoinFailureReason, MeetingInfo, MeetingPlatform
from .playwright_joiner import PlaywrightJoinExecutor

logger = get_logger("teams_handler")

NAME_INPUT_SELECTORS = (
    'input[placeholder="Type your name"]',
    'input[data-tid="prejoin-display-name-input"]',
    'input[placeholder*="name"]',
)

OVERLAY_CLOSE_SELECTORS = (
    'button[aria-label="Close"]',
    'button[aria-label="Dismiss"]',
)


def to_web_join_url(url: str) -> str:
    """Force the Teams web client to avoid the desktop app prompt."""
    if "webjoin=true" in url:
        return url
    connector = "&" if "?" in url else "?"
    return f"{url}{connector}webjoin=true"


class TeamsMeetingHandler(PlaywrightJoinExecutor):
    """Handler for Microsoft Teams meetings."""

    platform = MeetingPlatform.TEAMS

    in_meeting_selectors = (
        'button[data-tid="hangup-main-btn"]',
        'button[id="hangup-button"]',
        'button[aria-label="Leave"]',
        '[data-tid="roster-list"]',
    )
    failure_texts = {
        "You can't join this meeting": JoinFailureReason.AUTH_REQUIRED,
        "Sign in to join this meeting": JoinFailureReason.AUTH_REQUIRED,
        "This meeting is full": JoinFailureReason.CAPACITY_EXCEEDED,
        "Meeting has ended": JoinFailureReason.UNKNOWN,
    }

    def default_bot_name(self) -> str:
        return self._settings.teams_bot_name

    async def _join_flow(self, page: Page, meeting: MeetingInfo, bot_name: str) -> None:
        """
        Flow:
        1. Navigate with webjoin=true
        2. Handle "Continue on this browser" prompt
        3. Dismiss permission and overlay dialogs
        4. Enter display name
        5. Click "Join now"
        """
        web_url = to_web_join_url(meeting.url)
        logger.info(f"Navigating to Teams meeting (forced web): {web_url}")
        # Teams keeps long-running requests open, so don't wait for load
        await page.goto(web_url, wait_until="domcontentloaded")
        await asyncio.sleep(2)

        if await self._click_first_button(page, ["Continue on this browser"]):
            await asyncio.sleep(3)

        await self._click_first_button(page, ["Continue without audio or video"])
        selector = await self._first_visible(page, OVERLAY_CLOSE_SELECTORS)
        if selector:
            await page.locator(selector).first.click()

        if not await self._fill_first(page, NAME_INPUT_SELECTORS, bot_name):
            if await self._is_visible(page.get_by_text("Sign in to join this meeting")):
                raise JoinFailed(
                    JoinFailureReason.AUTH_REQUIRED,
                    f"Teams sign-in required to join {meeting.title}",
                )
            logger.warning("Teams name input not found, continuing to join button")

        join_button = page.locator('button[data-tid="prejoin-join-button"]')
        if await self._is_visible(join_button):
            await join_button.first.click()
            logger.info("Clicked 'Join now' button")
        elif not await self._click_first_button(page, ["Join now", "Join"]):
            logger.warning("No Teams join button found, waiting for admission anyway")
