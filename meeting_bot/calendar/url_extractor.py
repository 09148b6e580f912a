"""
Utility functions for extracting meeting URLs from calendar event text.
"""

import re
from typing import Optional, Tuple
from urllib.parse import parse_qs, urlparse

from meeting_bot.domain.models import MeetingPlatform


# Regex patterns for meeting URLs
MEETING_URL_PATTERNS = {
    MeetingPlatform.TEAMS: [
        # Microsoft Teams meeting links (various formats)
        r'https://teams\.microsoft\.com/l/meetup-join/[^\s<>"\']+',
        r'https://teams\.microsoft\.com/meet/[^\s<>"\']+',
        r'https://teams\.live\.com/meet/[^\s<>"\']+',
    ],
    MeetingPlatform.ZOOM: [
        # Zoom meeting links
        r'https://[\w-]*\.?zoom\.us/j/\d+[^\s<>"\']*',
        r'https://[\w-]*\.?zoom\.us/my/[\w.-]+[^\s<>"\']*',
    ],
    MeetingPlatform.GOOGLE_MEET: [
        # Google Meet links
        r'https://meet\.google\.com/[\w-]+',
    ],
}


def extract_meeting_url(text: str) -> Optional[Tuple[str, MeetingPlatform]]:
    """
    Extract meeting URL from text and identify the platform.

    Args:
        text: Text to search for meeting URLs (location, description, etc.)

    Returns:
        Tuple of (meeting_url, platform) if found, None otherwise.
    """
    if not text:
        return None

    for platform, patterns in MEETING_URL_PATTERNS.items():
        for pattern in patterns:
            match = re.search(pattern, text, re.IGNORECASE)
            if match:
                # Clean up the URL (remove trailing punctuation)
                url = match.group(0).rstrip('.,;:)')
                return (url, platform)

    return None


def detect_platform_from_url(url: str) -> Optional[MeetingPlatform]:
    """
    Detect the meeting platform from a URL.

    Returns:
        MeetingPlatform, or None if the host is not a supported platform.
    """
    if not url:
        return None

    host = (urlparse(url).hostname or "").lower()

    if host in ("teams.microsoft.com", "teams.live.com"):
        return MeetingPlatform.TEAMS
    if host == "zoom.us" or host.endswith(".zoom.us"):
        return MeetingPlatform.ZOOM
    if host == "meet.google.com":
        return MeetingPlatform.GOOGLE_MEET

    return None


def extract_zoom_password(url: str) -> Optional[str]:
    """Return the pwd query parameter of a Zoom link, if any."""
    values = parse_qs(urlparse(url).query).get("pwd")
    return values[0] if values else None


def clean_html(text: str) -> str:
    """
    Remove HTML tags from text.
    """
    if not text:
        return ""

    # Keep href targets; Google wraps links in the description in <a> tags
    clean = re.sub(r'<a\s[^>]*href="([^"]+)"[^>]*>', r' \1 ', text, flags=re.IGNORECASE)
    clean = re.sub(r'<[^>]+>', ' ', clean)
    clean = re.sub(r'\s+', ' ', clean)
    return clean.strip()
