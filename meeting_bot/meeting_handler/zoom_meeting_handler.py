"""
Zoom Meeting Handler

Joins through the Zoom web client (/wc/join/<id>) so no desktop app is needed.
"""

from __future__ import annotations

import asyncio
import re
from typing import Optional
from urllib.parse import urlencode, urlparse

from playwright.async_api import Page

from meeting_bot.core.exceptions import JoinFailed
from meeting_bot.core.logging import get_logger
from meeting_bot.domain.models import JoinFailureReason, MeetingInfo, MeetingPlatform
from .playwright_joiner import PlaywrightJoinExecutor

logger = get_logger("zoom_handler")

MEETING_ID_PATTERN = re.compile(r"/(?:j|wc/join|wc)/(\d{9,11})")


def to_web_client_url(url: str, password: Optional[str] = None) -> Optional[str]:
    """
    Convert a Zoom invite link into its web client URL.

    Returns:
        The web client URL, or None if the link has no meeting id.
    """
    parsed = urlparse(url)
    match = MEETING_ID_PATTERN.search(parsed.path)
    if not match:
        return None

    web_url = f"{parsed.scheme or 'https'}://{parsed.netloc}/wc/join/{match.group(1)}"
    if password:
        web_url = f"{web_url}?{urlencode({'pwd': password})}"
    return web_url


class ZoomMeetingHandler(PlaywrightJoinExecutor):
    """Handler for Zoom meetings."""

    platform = MeetingPlatform.ZOOM

    in_meeting_selectors = (
        'button[aria-label="Leave"]',
        'button.footer__leave-btn',
        '#wc-footer',
    )
    failure_texts = {
        "This meeting has reached its capacity": JoinFailureReason.CAPACITY_EXCEEDED,
        "This meeting is for authorized attendees only": JoinFailureReason.AUTH_REQUIRED,
        "Invalid meeting ID": JoinFailureReason.INVALID_URL,
    }

    def default_bot_name(self) -> str:
        return self._settings.zoom_bot_name

    async def _join_flow(self, page: Page, meeting: MeetingInfo, bot_name: str) -> None:
        """
        Flow:
        1. Navigate to the web client
        2. Enter name (and passcode if prompted)
        3. Click "Join"
        """
        # Personal links (/my/<name>) have no id and redirect on their own
        web_url = to_web_client_url(meeting.url, meeting.password) or meeting.url

        logger.info(f"Navigating to Zoom web client: {web_url}")
        await page.goto(web_url, wait_until="load")
        await asyncio.sleep(3)

        await self._fill_first(page, ('#input-for-name', 'input[aria-label="Your Name"]'), bot_name)

        passcode_selector = await self._first_visible(
            page, ('#input-for-pwd', 'input[type="password"]')
        )
        if passcode_selector:
            if not meeting.password:
                raise JoinFailed(
                    JoinFailureReason.AUTH_REQUIRED,
                    f"Zoom meeting {meeting.title} requires a passcode",
                )
            await page.locator(passcode_selector).first.fill(meeting.password)

        if not await self._click_first_button(page, ["Join"]):
            logger.warning("Zoom 'Join' button not found, waiting for admission anyway")
