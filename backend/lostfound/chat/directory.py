"""Chat Directory: which chats each user sees, and their pin/mute flags.

Entries are per (user, chat). Removing an entry hides the chat from that
user only; the chat and the other participant's entry are untouched.

Concurrency:
    Toggles read the current flag and write its negation as two separate
    point operations. Two sessions toggling the same entry at the same time
    race and the last write wins. Toggle methods return the value they wrote
    so callers can notice an unexpected result.
"""
import logging
import time
from typing import List

import duckdb

from lostfound.db import Database
from lostfound.errors import NotFoundError, PersistenceError

from .schemas import DirectoryEntry

logger = logging.getLogger(__name__)


class ChatDirectory:
    """Per-user chat entries backed by the ``directory_entries`` table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def ensure_entry(self, user_id: str, chat_id: str) -> None:
        """Add an unpinned, unmuted entry unless one already exists."""
        try:
            self._db.connection.execute(
                """
                INSERT OR IGNORE INTO directory_entries
                    (user_id, chat_id, is_pinned, is_muted, created_at)
                VALUES (?, ?, FALSE, FALSE, ?)
                """,
                [user_id, chat_id, time.time()],
            )
        except duckdb.Error as e:
            raise PersistenceError(f"Could not add chat {chat_id} for user {user_id}") from e

    def get_entry(self, user_id: str, chat_id: str) -> DirectoryEntry:
        """Load one entry.

        Raises:
            NotFoundError: If the user has no entry for this chat.
        """
        row = self._db.connection.execute(
            """
            SELECT user_id, chat_id, is_pinned, is_muted FROM directory_entries
            WHERE user_id = ? AND chat_id = ?
            """,
            [user_id, chat_id],
        ).fetchone()
        if row is None:
            raise NotFoundError(f"Chat {chat_id} is not in the chat list of user {user_id}")
        return DirectoryEntry(userId=row[0], chatId=row[1], isPinned=row[2], isMuted=row[3])

    def list_entries(self, user_id: str) -> List[DirectoryEntry]:
        """All entries of a user, oldest first."""
        rows = self._db.connection.execute(
            """
            SELECT user_id, chat_id, is_pinned, is_muted FROM directory_entries
            WHERE user_id = ?
            ORDER BY created_at ASC
            """,
            [user_id],
        ).fetchall()
        return [
            DirectoryEntry(userId=r[0], chatId=r[1], isPinned=r[2], isMuted=r[3])
            for r in rows
        ]

    def set_pinned(self, user_id: str, chat_id: str, value: bool) -> DirectoryEntry:
        return self._set_flag(user_id, chat_id, "is_pinned", value)

    def set_muted(self, user_id: str, chat_id: str, value: bool) -> DirectoryEntry:
        return self._set_flag(user_id, chat_id, "is_muted", value)

    def toggle_pinned(self, user_id: str, chat_id: str) -> DirectoryEntry:
        """Flip the pinned flag. Returns the entry with the value written."""
        entry = self.get_entry(user_id, chat_id)
        return self.set_pinned(user_id, chat_id, not entry.isPinned)

    def toggle_muted(self, user_id: str, chat_id: str) -> DirectoryEntry:
        """Flip the muted flag. Returns the entry with the value written."""
        entry = self.get_entry(user_id, chat_id)
        return self.set_muted(user_id, chat_id, not entry.isMuted)

    def _set_flag(self, user_id: str, chat_id: str, column: str, value: bool) -> DirectoryEntry:
        # Raises NotFoundError before writing anything.
        self.get_entry(user_id, chat_id)
        try:
            self._db.connection.execute(
                f"UPDATE directory_entries SET {column} = ? WHERE user_id = ? AND chat_id = ?",
                [value, user_id, chat_id],
            )
        except duckdb.Error as e:
            raise PersistenceError(f"Could not update chat {chat_id} for user {user_id}") from e
        logger.debug(f"[Directory] {column}={value} for user {user_id}, chat {chat_id}")
        return self.get_entry(user_id, chat_id)

    def remove_entry(self, user_id: str, chat_id: str) -> bool:
        """Remove a chat from one user's list. Returns False if it was absent."""
        conn = self._db.connection
        exists = conn.execute(
            "SELECT 1 FROM directory_entries WHERE user_id = ? AND chat_id = ?",
            [user_id, chat_id],
        ).fetchone()
        if exists is None:
            return False
        try:
            conn.execute(
                "DELETE FROM directory_entries WHERE user_id = ? AND chat_id = ?",
                [user_id, chat_id],
            )
        except duckdb.Error as e:
            raise PersistenceError(f"Could not remove chat {chat_id} for user {user_id}") from e
        logger.info(f"[Directory] Removed chat {chat_id} from user {user_id}")
        return True
