"""
Workspace settings and calendar integration records.
"""

from datetime import datetime, timezone
from typing import Dict, Optional

from meeting_bot.core.logging import get_logger
from meeting_bot.domain.models import BotSettings
from .json_database import JsonDatabase

logger = get_logger("settings_store")

GOOGLE_CALENDAR = "google_calendar"


class WorkspaceSettingsStore:
    """Last submitted bot settings per workspace."""

    def __init__(self, db_path: str = "data/workspace_settings.json"):
        self._db = JsonDatabase(db_path, collection="workspaces")

    def save(self, workspace_id: str, bot_settings: BotSettings) -> None:
        """Upsert the bot settings for a workspace."""
        with self._db.transaction() as workspaces:
            workspaces[workspace_id] = {
                "workspace_id": workspace_id,
                "meeting_bot_enabled": bot_settings.enabled,
                "bot_settings": bot_settings.model_dump(),
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }
        logger.debug(f"Saved bot settings for workspace {workspace_id}")

    def get(self, workspace_id: str) -> Optional[BotSettings]:
        record = self._db.records().get(workspace_id)
        if record is None:
            return None
        return BotSettings.model_validate(record["bot_settings"])

    def enabled_workspaces(self) -> Dict[str, BotSettings]:
        """Settings of every workspace whose bot is enabled."""
        return {
            workspace_id: BotSettings.model_validate(record["bot_settings"])
            for workspace_id, record in self._db.records().items()
            if record.get("meeting_bot_enabled")
        }


class IntegrationStore:
    """
    Calendar integrations per workspace.

    Records are written by the OAuth flow and look like
    {"type": "google_calendar", "token": {...authorized user info...}}.
    """

    def __init__(self, db_path: str = "data/workspace_integrations.json"):
        self._db = JsonDatabase(db_path, collection="integrations")

    @staticmethod
    def _key(workspace_id: str, integration_type: str) -> str:
        return f"{workspace_id}:{integration_type}"

    def get(self, workspace_id: str, integration_type: str = GOOGLE_CALENDAR) -> Optional[dict]:
        return self._db.records().get(self._key(workspace_id, integration_type))

    def save(
        self,
        workspace_id: str,
        token: dict,
        integration_type: str = GOOGLE_CALENDAR,
        calendar_id: Optional[str] = None,
    ) -> None:
        """Upsert an integration, keeping the calendar id if not given."""
        key = self._key(workspace_id, integration_type)
        with self._db.transaction() as integrations:
            record = integrations.get(key, {})
            record.update({
                "workspace_id": workspace_id,
                "type": integration_type,
                "token": token,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            })
            if calendar_id is not None:
                record["calendar_id"] = calendar_id
            integrations[key] = record

    def update_token(self, workspace_id: str, token: dict) -> None:
        """Persist a refreshed OAuth token."""
        self.save(workspace_id, token)
