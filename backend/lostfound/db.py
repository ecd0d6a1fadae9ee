"""DuckDB database handle shared by the chat components.

One connection is opened per process and handed to every component through
its constructor (``MessageStore(db)``, ``ChatDirectory(db)``, ...). The
schema is created on first use and is safe to re-apply.

Database Schema:
    users:              profile data for the user directory collaborator
    chats:              one row per chat with denormalized last-message fields
    chat_participants:  ordered participant list of each chat
    messages:           the append-only message log, ordered by ``seq`` and
                        indexed by (chat_id, seq)
    directory_entries:  per (user, chat) preferences (pinned / muted)

Thread Safety:
    The DuckDB connection is NOT thread-safe. The gateway runs on a single
    event loop, so all access is serialized on that loop.

Usage:
    db = Database.get_instance("lostfound.duckdb")
    with db.transaction() as conn:
        conn.execute("...")
"""
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

import duckdb

logger = logging.getLogger(__name__)


class Database:
    """Owns the DuckDB connection and the schema.

    Attributes:
        _instance: Process-wide instance used when no handle is injected.
        _db_path: Path to the DuckDB database file (``:memory:`` allowed).
    """

    _instance: Optional["Database"] = None
    _db_path: str = "lostfound.duckdb"

    def __init__(self, db_path: Optional[str] = None) -> None:
        if db_path:
            self._db_path = db_path
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._initialize_db()

    @classmethod
    def get_instance(cls, db_path: Optional[str] = None) -> "Database":
        """Get or create the process-wide instance.

        Args:
            db_path: Optional database path (only used on first call).
        """
        if cls._instance is None:
            cls._instance = cls(db_path)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Close and forget the process-wide instance (for testing)."""
        if cls._instance is not None:
            cls._instance.close()
            cls._instance = None

    @property
    def path(self) -> str:
        return self._db_path

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        """Get the DuckDB connection, creating it if needed."""
        if self._connection is None:
            self._connection = duckdb.connect(self._db_path)
        return self._connection

    @contextmanager
    def transaction(self) -> Iterator[duckdb.DuckDBPyConnection]:
        """Run a block of statements atomically.

        Commits when the block exits normally, rolls back and re-raises
        otherwise.
        """
        conn = self.connection
        conn.begin()
        try:
            yield conn
        except Exception:
            conn.rollback()
            raise
        conn.commit()

    def _initialize_db(self) -> None:
        conn = self.connection
        conn.execute("""
            CREATE TABLE IF NOT EXISTS users (
                user_id VARCHAR PRIMARY KEY,
                first_name VARCHAR NOT NULL,
                last_name VARCHAR NOT NULL,
                email VARCHAR,
                profile_picture VARCHAR
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS chats (
                chat_id VARCHAR PRIMARY KEY,
                participant_key VARCHAR NOT NULL UNIQUE,
                is_group_chat BOOLEAN NOT NULL DEFAULT FALSE,
                chat_name VARCHAR,
                chat_avatar VARCHAR,
                last_message_content VARCHAR,
                last_message_timestamp DOUBLE,
                created_at DOUBLE NOT NULL,
                updated_at DOUBLE NOT NULL
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS chat_participants (
                chat_id VARCHAR NOT NULL,
                user_id VARCHAR NOT NULL,
                position INTEGER NOT NULL,
                PRIMARY KEY (chat_id, user_id)
            )
        """)
        conn.execute("CREATE SEQUENCE IF NOT EXISTS messages_seq START 1")
        conn.execute("""
            CREATE TABLE IF NOT EXISTS messages (
                seq BIGINT DEFAULT nextval('messages_seq') PRIMARY KEY,
                message_id VARCHAR NOT NULL UNIQUE,
                chat_id VARCHAR NOT NULL,
                sender_id VARCHAR NOT NULL,
                content VARCHAR NOT NULL,
                attachment_url VARCHAR,
                attachment_type VARCHAR,
                ts DOUBLE NOT NULL,
                is_edited BOOLEAN NOT NULL DEFAULT FALSE,
                status VARCHAR NOT NULL
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_messages_chat ON messages(chat_id, seq)
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS directory_entries (
                user_id VARCHAR NOT NULL,
                chat_id VARCHAR NOT NULL,
                is_pinned BOOLEAN NOT NULL DEFAULT FALSE,
                is_muted BOOLEAN NOT NULL DEFAULT FALSE,
                created_at DOUBLE NOT NULL,
                PRIMARY KEY (user_id, chat_id)
            )
        """)
        logger.info(f"[DB] Schema ready at {self._db_path}")

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None
