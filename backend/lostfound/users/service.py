"""User directory lookups backed by DuckDB.

Registration, login and profile editing belong to the account service;
the chat backend only reads display names and avatars. ``upsert_user``
exists so that service (and tests) can publish profiles here.
"""
import logging
from typing import Dict, Optional, Sequence

from lostfound.db import Database

from .schemas import UserProfile

logger = logging.getLogger(__name__)

_COLUMNS = "user_id, first_name, last_name, email, profile_picture"


def _row_to_profile(row: Sequence) -> UserProfile:
    return UserProfile(
        userId=row[0],
        firstName=row[1],
        lastName=row[2],
        email=row[3],
        profilePicture=row[4] or "",
    )


class UserDirectory:
    """Read-mostly view of user profiles."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def find_by_id(self, user_id: str) -> Optional[UserProfile]:
        row = self._db.connection.execute(
            f"SELECT {_COLUMNS} FROM users WHERE user_id = ?", [user_id]
        ).fetchone()
        return _row_to_profile(row) if row else None

    def find_by_ids(self, user_ids: Sequence[str]) -> Dict[str, UserProfile]:
        """Bulk lookup. Unknown IDs are absent from the result."""
        ids = list(dict.fromkeys(uid for uid in user_ids if uid))
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        rows = self._db.connection.execute(
            f"SELECT {_COLUMNS} FROM users WHERE user_id IN ({placeholders})", ids
        ).fetchall()
        return {row[0]: _row_to_profile(row) for row in rows}

    def upsert_user(self, profile: UserProfile) -> UserProfile:
        conn = self._db.connection
        conn.execute(
            """
            INSERT OR REPLACE INTO users (user_id, first_name, last_name, email, profile_picture)
            VALUES (?, ?, ?, ?, ?)
            """,
            [
                profile.userId,
                profile.firstName,
                profile.lastName,
                profile.email,
                profile.profilePicture,
            ],
        )
        logger.debug(f"[Users] Upserted profile {profile.userId}")
        return profile
