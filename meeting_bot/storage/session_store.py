"""
Session Store - durable bot session records.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Union

from meeting_bot.core.exceptions import (
    DuplicateSession,
    InvalidTransition,
    SessionNotFound,
    SessionStoreError,
)
from meeting_bot.core.logging import get_logger
from meeting_bot.domain.models import (
    ACTIVE_STATUSES,
    BotSession,
    MeetingInfo,
    SessionStatus,
)
from .json_database import JsonDatabase

logger = get_logger("session_store")

# Fields a status update may set alongside the new status
UPDATABLE_FIELDS = frozenset({
    "join_time",
    "end_time",
    "error_message",
    "recording_url",
    "transcript",
    "ai_summary",
})


class SessionStore(ABC):
    """
    Abstract base class for bot session persistence.

    Implementations must make create_session's "no active session for this
    meeting" check and the insert a single atomic step; it is the only guard
    against two ticks (or two bot instances) joining the same meeting.
    """

    @abstractmethod
    def create_session(
        self,
        workspace_id: str,
        meeting: MeetingInfo,
        join_time: Optional[datetime] = None,
    ) -> BotSession:
        """
        Create a session with status joining.

        Raises:
            DuplicateSession: An active session exists for (workspace_id, meeting.id).
        """

    @abstractmethod
    def update_status(
        self,
        session_id: str,
        new_status: Union[SessionStatus, str],
        **fields,
    ) -> BotSession:
        """
        Move a session to a new status and set any extra fields.

        Raises:
            SessionNotFound: No session with this id.
            InvalidTransition: The move does not follow the state machine.
        """

    @abstractmethod
    def get_session(self, session_id: str) -> BotSession:
        """Get a session by id, raising SessionNotFound if absent."""

    @abstractmethod
    def list_sessions(
        self,
        workspace_id: str,
        statuses: Optional[Iterable[SessionStatus]] = None,
    ) -> List[BotSession]:
        """List a workspace's sessions, newest first."""

    def list_active_sessions(self, workspace_id: str) -> List[BotSession]:
        """List sessions that are joining or active."""
        return self.list_sessions(workspace_id, statuses=ACTIVE_STATUSES)


def _check_update_fields(fields: dict) -> None:
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise SessionStoreError(f"Cannot update session fields: {sorted(unknown)}")


class JsonSessionStore(SessionStore):
    """Session store backed by a local JSON database file."""

    def __init__(self, db_path: str = "data/bot_sessions.json"):
        self._db = JsonDatabase(db_path, collection="sessions")

    def create_session(
        self,
        workspace_id: str,
        meeting: MeetingInfo,
        join_time: Optional[datetime] = None,
    ) -> BotSession:
        with self._db.transaction() as sessions:
            for record in sessions.values():
                if (
                    record["workspace_id"] == workspace_id
                    and record["meeting_id"] == meeting.id
                    and SessionStatus(record["status"]) in ACTIVE_STATUSES
                ):
                    raise DuplicateSession(workspace_id, meeting.id, record["id"])

            session = BotSession.for_meeting(workspace_id, meeting, join_time=join_time)
            sessions[session.id] = session.to_dict()

        logger.info(
            f"Created session {session.id} for meeting '{meeting.title}' "
            f"(workspace={workspace_id}, meeting_id={meeting.id})"
        )
        return session

    def update_status(
        self,
        session_id: str,
        new_status: Union[SessionStatus, str],
        **fields,
    ) -> BotSession:
        new_status = SessionStatus(new_status)
        _check_update_fields(fields)

        with self._db.transaction() as sessions:
            record = sessions.get(session_id)
            if record is None:
                raise SessionNotFound(session_id)

            current = BotSession.from_dict(record)
            if not current.status.can_transition_to(new_status):
                raise InvalidTransition(session_id, current.status.value, new_status.value)

            updated = current.with_updates(
                status=new_status,
                updated_at=datetime.now(timezone.utc),
                **fields,
            )
            sessions[session_id] = updated.to_dict()

        logger.debug(f"Session {session_id}: {current.status.value} -> {new_status.value}")
        return updated

    def get_session(self, session_id: str) -> BotSession:
        record = self._db.records().get(session_id)
        if record is None:
            raise SessionNotFound(session_id)
        return BotSession.from_dict(record)

    def list_sessions(
        self,
        workspace_id: str,
        statuses: Optional[Iterable[SessionStatus]] = None,
    ) -> List[BotSession]:
        wanted = {SessionStatus(s) for s in statuses} if statuses is not None else None
        sessions = [
            BotSession.from_dict(record)
            for record in self._db.records().values()
            if record["workspace_id"] == workspace_id
        ]
        if wanted is not None:
            sessions = [s for s in sessions if s.status in wanted]
        sessions.sort(key=lambda s: s.created_at, reverse=True)
        return sessions
