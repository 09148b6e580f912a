"""
Data models for workspace bots, meetings and bot sessions.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MeetingPlatform(str, Enum):
    """Supported meeting platforms."""
    ZOOM = "zoom"
    TEAMS = "teams"
    GOOGLE_MEET = "googlemeet"


class SessionStatus(str, Enum):
    """Lifecycle status of a bot session."""
    JOINING = "joining"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    def can_transition_to(self, new_status: "SessionStatus") -> bool:
        return new_status in ALLOWED_TRANSITIONS[self]


ACTIVE_STATUSES: FrozenSet[SessionStatus] = frozenset(
    {SessionStatus.JOINING, SessionStatus.ACTIVE}
)
TERMINAL_STATUSES: FrozenSet[SessionStatus] = frozenset(
    {SessionStatus.COMPLETED, SessionStatus.FAILED}
)

# Status only moves forward; terminal states have no exits.
ALLOWED_TRANSITIONS: Dict[SessionStatus, FrozenSet[SessionStatus]] = {
    SessionStatus.JOINING: frozenset({SessionStatus.ACTIVE, SessionStatus.FAILED}),
    SessionStatus.ACTIVE: frozenset({SessionStatus.COMPLETED}),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.FAILED: frozenset(),
}


class JoinFailureReason(str, Enum):
    """Why a join executor could not join a meeting."""
    INVALID_URL = "invalid_url"
    AUTH_REQUIRED = "auth_required"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class BotSettings(BaseModel):
    """
    Per-workspace bot settings.

    A running bot holds an immutable snapshot; changing settings means
    starting a new bot. Accepts camelCase keys from the request layer.
    """
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    enabled: bool = False
    auto_join: bool = True
    record_meetings: bool = True
    transcribe_audio: bool = True
    join_before_minutes: int = Field(default=2, ge=0, le=24 * 60)
    leave_after_minutes: int = Field(default=5, ge=0, le=24 * 60)
    bot_name: Optional[str] = Field(default=None, max_length=100)

    @property
    def join_before(self) -> timedelta:
        return timedelta(minutes=self.join_before_minutes)

    @property
    def leave_after(self) -> timedelta:
        return timedelta(minutes=self.leave_after_minutes)


@dataclass(frozen=True)
class MeetingInfo:
    """
    A joinable meeting derived from a calendar event.
    """
    id: str
    platform: MeetingPlatform
    url: str
    title: str
    start_time: datetime
    end_time: datetime
    password: Optional[str] = None

    def __post_init__(self) -> None:
        if self.start_time.tzinfo is None or self.end_time.tzinfo is None:
            raise ValueError("Meeting times must be timezone-aware")
        if self.start_time >= self.end_time:
            raise ValueError(
                f"Meeting {self.id} starts at or after its end "
                f"({self.start_time.isoformat()} >= {self.end_time.isoformat()})"
            )

    def join_window_start(self, join_before: timedelta) -> datetime:
        """Earliest moment the bot may join."""
        return self.start_time - join_before

    def in_join_window(self, now: datetime, join_before: timedelta) -> bool:
        """Check if now falls in [start - join_before, start]."""
        return self.join_window_start(join_before) <= now <= self.start_time

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "platform": self.platform.value,
            "url": self.url,
            "title": self.title,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "has_password": self.password is not None,
        }


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


_TIMESTAMP_FIELDS = ("join_time", "end_time", "scheduled_end", "created_at", "updated_at")


@dataclass
class BotSession:
    """
    Durable record of one attempt to join one meeting.
    """
    workspace_id: str
    meeting_id: str
    meeting_title: str
    platform: MeetingPlatform
    url: str
    status: SessionStatus = SessionStatus.JOINING
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    join_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    error_message: Optional[str] = None

    # Filled in after the fact by recording/transcription services
    recording_url: Optional[str] = None
    transcript: Optional[str] = None
    ai_summary: Optional[str] = None

    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def for_meeting(
        cls,
        workspace_id: str,
        meeting: MeetingInfo,
        join_time: Optional[datetime] = None,
    ) -> "BotSession":
        """Create a new joining session for a meeting."""
        return cls(
            workspace_id=workspace_id,
            meeting_id=meeting.id,
            meeting_title=meeting.title,
            platform=meeting.platform,
            url=meeting.url,
            join_time=join_time,
            scheduled_end=meeting.end_time,
        )

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def with_updates(self, **changes: Any) -> "BotSession":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        data: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in _TIMESTAMP_FIELDS:
                value = _format_timestamp(value)
            elif isinstance(value, Enum):
                value = value.value
            data[f.name] = value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "BotSession":
        """Build a session from its stored dictionary form."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values["platform"] = MeetingPlatform(values["platform"])
        values["status"] = SessionStatus(values["status"])
        for name in _TIMESTAMP_FIELDS:
            if name in values:
                values[name] = _parse_timestamp(values[name])
        return cls(**values)
