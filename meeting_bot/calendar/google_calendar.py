"""
Google Calendar gateway for fetching a workspace's upcoming meetings.
"""

import asyncio
import json
from datetime import datetime, time, timezone
from typing import Callable, List, Optional

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from meeting_bot.config import settings as app_settings, Settings
from meeting_bot.core.exceptions import CalendarUnavailable
from meeting_bot.core.logging import get_logger
from meeting_bot.domain.models import MeetingInfo, MeetingPlatform
from meeting_bot.storage.settings_store import IntegrationStore, GOOGLE_CALENDAR
from .base import CalendarGateway
from .url_extractor import (
    clean_html,
    detect_platform_from_url,
    extract_meeting_url,
    extract_zoom_password,
)

logger = get_logger("google_calendar")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class GoogleCalendarGateway(CalendarGateway):
    """
    Calendar gateway backed by the Google Calendar API.

    Each workspace authenticates with the OAuth token stored in its
    integration record. Refreshed tokens are written back to the store.
    """

    def __init__(
        self,
        integrations: IntegrationStore,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._integrations = integrations
        self._settings = settings or app_settings
        self._clock = clock

    async def is_connected(self, workspace_id: str) -> bool:
        integration = self._integrations.get(workspace_id, GOOGLE_CALENDAR)
        return bool(integration and integration.get("token"))

    def _day_window(self) -> tuple:
        """Now until the end of the current day in the configured timezone."""
        now = self._clock()
        local_now = now.astimezone(self._settings.tz_info)
        end_of_day = datetime.combine(local_now.date(), time.max, tzinfo=local_now.tzinfo)
        return now, end_of_day.astimezone(timezone.utc)

    async def list_upcoming_events(self, workspace_id: str) -> List[MeetingInfo]:
        integration = self._integrations.get(workspace_id, GOOGLE_CALENDAR)
        if not integration or not integration.get("token"):
            raise CalendarUnavailable(workspace_id, CalendarUnavailable.NOT_CONNECTED)

        time_min, time_max = self._day_window()
        # The Google client is blocking; keep it off the event loop
        events = await asyncio.to_thread(
            self._fetch_events, workspace_id, integration, time_min, time_max
        )

        meetings = []
        for event in events:
            meeting = self._parse_calendar_event(event)
            if meeting:
                meetings.append(meeting)

        logger.debug(
            f"Workspace {workspace_id}: {len(meetings)} joinable meetings "
            f"out of {len(events)} calendar events"
        )
        return meetings

    def _build_credentials(self, workspace_id: str, integration: dict) -> Credentials:
        try:
            creds = Credentials.from_authorized_user_info(
                integration["token"], self._settings.calendar.scopes
            )
        except (ValueError, KeyError, TypeError) as e:
            raise CalendarUnavailable(
                workspace_id,
                CalendarUnavailable.AUTH,
                f"Stored calendar token for workspace {workspace_id} is malformed: {e}",
            ) from e
        if creds.valid:
            return creds

        if not creds.refresh_token:
            raise CalendarUnavailable(
                workspace_id,
                CalendarUnavailable.AUTH,
                f"Calendar token for workspace {workspace_id} expired and cannot be refreshed",
            )

        logger.info(f"Refreshing expired calendar token for workspace {workspace_id}")
        creds.refresh(Request())
        self._integrations.update_token(workspace_id, json.loads(creds.to_json()))
        return creds

    def _fetch_events(
        self,
        workspace_id: str,
        integration: dict,
        time_min: datetime,
        time_max: datetime,
    ) -> List[dict]:
        """Fetch all pages of calendar events in the window."""
        calendar_id = integration.get("calendar_id") or self._settings.calendar.calendar_id

        try:
            creds = self._build_credentials(workspace_id, integration)
            service = build("calendar", "v3", credentials=creds, cache_discovery=False)

            events: List[dict] = []
            page_token = None
            while True:
                request_params = {
                    "calendarId": calendar_id,
                    "timeMin": time_min.isoformat(),
                    "timeMax": time_max.isoformat(),
                    "singleEvents": True,
                    "orderBy": "startTime",
                    "maxResults": self._settings.calendar.max_results,
                }
                if page_token:
                    request_params["pageToken"] = page_token

                events_result = service.events().list(**request_params).execute()
                events.extend(events_result.get("items", []))

                page_token = events_result.get("nextPageToken")
                if not page_token:
                    break

            return events

        except HttpError as e:
            status = getattr(e, "status_code", None) or int(e.resp.status)
            if status in (401, 403):
                reason = CalendarUnavailable.AUTH
            elif status == 429:
                reason = CalendarUnavailable.RATE_LIMITED
            else:
                reason = CalendarUnavailable.PROVIDER_ERROR
            raise CalendarUnavailable(
                workspace_id, reason, f"Google Calendar returned HTTP {status}: {e}"
            ) from e
        except RefreshError as e:
            raise CalendarUnavailable(
                workspace_id, CalendarUnavailable.AUTH, f"Calendar token refresh failed: {e}"
            ) from e
        except (TransportError, httplib2.HttpLib2Error, OSError) as e:
            raise CalendarUnavailable(
                workspace_id, CalendarUnavailable.NETWORK, f"Calendar request failed: {e}"
            ) from e

    def _parse_calendar_event(self, event: dict) -> Optional[MeetingInfo]:
        """
        Parse a Google Calendar event into MeetingInfo.

        Args:
            event: Google Calendar event dict.

        Returns:
            MeetingInfo if the event is a timed online meeting, None otherwise.
        """
        if event.get("status") == "cancelled":
            return None

        event_id = event.get("id")
        summary = event.get("summary", "Untitled Meeting")
        start_time = self._parse_event_time(event.get("start", {}))
        end_time = self._parse_event_time(event.get("end", {}))

        # All-day events have no join time
        if not event_id or not start_time or not end_time:
            return None
        if start_time >= end_time:
            logger.warning(f"Skipping event '{summary}' ({event_id}): start is not before end")
            return None

        meeting_url, platform = self._find_meeting_url(event)
        if not meeting_url:
            logger.debug(f"Skipping event '{summary}' (no meeting URL found)")
            return None

        password = extract_zoom_password(meeting_url) if platform == MeetingPlatform.ZOOM else None

        return MeetingInfo(
            id=event_id,
            platform=platform,
            url=meeting_url,
            title=summary,
            start_time=start_time,
            end_time=end_time,
            password=password,
        )

    @staticmethod
    def _find_meeting_url(event: dict) -> tuple:
        # Check conferenceData entry points first (Meet, and Zoom/Teams add-ons)
        conf_data = event.get("conferenceData", {})
        for entry in conf_data.get("entryPoints", []):
            if entry.get("entryPointType") == "video":
                uri = entry.get("uri", "")
                platform = detect_platform_from_url(uri)
                if platform:
                    return uri, platform

        hangout_link = event.get("hangoutLink")
        if hangout_link:
            return hangout_link, MeetingPlatform.GOOGLE_MEET

        # Check location and description for other meeting URLs
        search_text = f"{event.get('location', '')} {clean_html(event.get('description', ''))}"
        result = extract_meeting_url(search_text)
        if result:
            return result

        return None, None

    @staticmethod
    def _parse_event_time(time_info: dict) -> Optional[datetime]:
        """Parse a timed event boundary; date-only (all-day) values return None."""
        dt_str = time_info.get("dateTime")
        if not dt_str:
            return None
        try:
            parsed = datetime.fromisoformat(dt_str.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
