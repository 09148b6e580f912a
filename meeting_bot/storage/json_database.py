"""
Local JSON database file shared by the session, settings and integration stores.
"""

import json
import os
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from threading import RLock
from typing import Iterator

from meeting_bot.core.exceptions import SessionStoreError
from meeting_bot.core.logging import get_logger

logger = get_logger("storage")


class JsonDatabase:
    """
    A single JSON document holding one keyed collection of records.

    Every write replaces the file atomically and is fsynced before the
    call returns, so a record is durable once a store method returns.
    """

    def __init__(self, db_path: str, collection: str):
        self.db_path = Path(db_path)
        self.collection = collection
        self.lock = RLock()

        # Create data directory if it doesn't exist
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        # Initialize database file if it doesn't exist
        if not self.db_path.exists():
            self._initialize_db()
            logger.info(f"Created new {collection} database at {self.db_path}")
        else:
            logger.info(f"Using existing {collection} database at {self.db_path}")

    def _initialize_db(self) -> None:
        """Create an empty database file."""
        now = datetime.now(timezone.utc).isoformat()
        self._save_db({"created_at": now, "last_updated": now, self.collection: {}})

    def _load_db(self) -> dict:
        """Load database from file."""
        try:
            with open(self.db_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load database {self.db_path}: {e}")
            raise SessionStoreError(f"Failed to load database {self.db_path}: {e}") from e
        data.setdefault(self.collection, {})
        return data

    def _save_db(self, data: dict) -> None:
        """Save database to file."""
        data["last_updated"] = datetime.now(timezone.utc).isoformat()
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{self.db_path.name}.", dir=str(self.db_path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.db_path)
        except OSError as e:
            logger.error(f"Failed to save database {self.db_path}: {e}")
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise SessionStoreError(f"Failed to save database {self.db_path}: {e}") from e

    @contextmanager
    def transaction(self) -> Iterator[dict]:
        """
        Read-modify-write the collection under the database lock.

        The collection is saved only if the block exits without raising.
        """
        with self.lock:
            db = self._load_db()
            yield db[self.collection]
            self._save_db(db)

    def records(self) -> dict:
        """Return a snapshot of the collection."""
        with self.lock:
            return self._load_db()[self.collection]
