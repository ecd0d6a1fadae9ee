"""Message Store: durable chats and their ordered message logs.

Chats live in the ``chats`` table; messages are a separate append-only log
keyed by chat ID and ordered by ``seq``, so a chat's history can grow
without bounding the size of the chat row.

Appending messages and refreshing the chat's denormalized
``lastMessageContent`` / ``lastMessageTimestamp`` happen in one DuckDB
transaction. Either both are written or neither is.

The store never broadcasts; that is the gateway's job.
"""
import logging
import time
from typing import Dict, Iterable, List, Optional, Sequence

import duckdb

from lostfound.db import Database
from lostfound.errors import NotFoundError, PersistenceError, ValidationError

from .schemas import Chat, Message, MessageStatus

logger = logging.getLogger(__name__)

_MESSAGE_COLUMNS = (
    "message_id, chat_id, sender_id, content, attachment_url, "
    "attachment_type, ts, is_edited, status"
)

_CHAT_COLUMNS = (
    "chat_id, is_group_chat, chat_name, chat_avatar, last_message_content, "
    "last_message_timestamp, created_at, updated_at"
)


def participant_key(participants: Iterable[str]) -> str:
    """Order-independent key for a participant set."""
    return "|".join(sorted(set(participants)))


def _row_to_message(row: Sequence) -> Message:
    return Message(
        messageId=row[0],
        chatId=row[1],
        sender=row[2],
        content=row[3],
        attachmentUrl=row[4],
        attachmentType=row[5],
        timestamp=row[6],
        isEdited=row[7],
        status=MessageStatus(row[8]),
    )


class MessageStore:
    """Reads and writes chats and messages.

    Args:
        db: Shared database handle.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    # =========================================================================
    # Chats
    # =========================================================================

    def find_or_create_chat(self, participant_a: str, participant_b: str) -> Chat:
        """Return the chat between two users, creating it on first contact.

        The pair is unordered: ``(A, B)`` and ``(B, A)`` resolve to the
        same chat.

        Raises:
            ValidationError: If an ID is empty or both IDs are the same.
            PersistenceError: If the chat could not be created.
        """
        if not participant_a or not participant_b:
            raise ValidationError("Both participant IDs are required")
        if participant_a == participant_b:
            raise ValidationError("A chat needs two different participants")

        key = participant_key((participant_a, participant_b))
        existing = self._find_chat_id_by_key(key)
        if existing is not None:
            return self.get_chat_by_id(existing)

        chat = Chat(participants=[participant_a, participant_b])
        try:
            with self._db.transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO chats (chat_id, participant_key, is_group_chat,
                                       created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    [chat.chatId, key, chat.isGroupChat, chat.createdAt, chat.updatedAt],
                )
                conn.executemany(
                    "INSERT INTO chat_participants (chat_id, user_id, position) VALUES (?, ?, ?)",
                    [[chat.chatId, user_id, i] for i, user_id in enumerate(chat.participants)],
                )
        except duckdb.ConstraintException:
            # Lost a creation race for the same pair; the winner's chat stands.
            existing = self._find_chat_id_by_key(key)
            if existing is None:
                raise PersistenceError(f"Could not create chat for {key}")
            return self.get_chat_by_id(existing)
        except duckdb.Error as e:
            raise PersistenceError(f"Could not create chat for {key}: {e}") from e

        logger.info(f"[Store] Created chat {chat.chatId} for {key}")
        return chat

    def _find_chat_id_by_key(self, key: str) -> Optional[str]:
        row = self._db.connection.execute(
            "SELECT chat_id FROM chats WHERE participant_key = ?", [key]
        ).fetchone()
        return row[0] if row else None

    def get_chat_by_id(self, chat_id: str) -> Chat:
        """Load a chat.

        Raises:
            NotFoundError: If no chat has this ID.
        """
        chats = self.get_chats([chat_id])
        if chat_id not in chats:
            raise NotFoundError(f"Chat {chat_id} not found")
        return chats[chat_id]

    def get_chats(self, chat_ids: Sequence[str]) -> Dict[str, Chat]:
        """Bulk-load chats by ID. Unknown IDs are absent from the result."""
        if not chat_ids:
            return {}
        conn = self._db.connection
        placeholders = ", ".join("?" for _ in chat_ids)
        rows = conn.execute(
            f"SELECT {_CHAT_COLUMNS} FROM chats WHERE chat_id IN ({placeholders})",
            list(chat_ids),
        ).fetchall()
        participant_rows = conn.execute(
            f"""
            SELECT chat_id, user_id FROM chat_participants
            WHERE chat_id IN ({placeholders})
            ORDER BY chat_id, position
            """,
            list(chat_ids),
        ).fetchall()

        participants: Dict[str, List[str]] = {}
        for chat_id, user_id in participant_rows:
            participants.setdefault(chat_id, []).append(user_id)

        return {
            row[0]: Chat(
                chatId=row[0],
                participants=participants.get(row[0], []),
                isGroupChat=row[1],
                chatName=row[2],
                chatAvatar=row[3],
                lastMessageContent=row[4],
                lastMessageTimestamp=row[5],
                createdAt=row[6],
                updatedAt=row[7],
            )
            for row in rows
        }

    # =========================================================================
    # Messages
    # =========================================================================

    def append_messages(self, chat_id: str, messages: List[Message]) -> Chat:
        """Append messages to a chat's log, in order.

        The chat's last-message fields are taken from the final message of
        the batch and written in the same transaction as the messages.

        Raises:
            ValidationError: If *messages* is empty or targets another chat.
            NotFoundError: If the chat does not exist.
            PersistenceError: If the write failed (nothing is written).
        """
        if not messages:
            raise ValidationError("No messages to append")
        for message in messages:
            if message.chatId != chat_id:
                raise ValidationError(
                    f"Message {message.messageId} belongs to chat {message.chatId}, not {chat_id}"
                )

        chat = self.get_chat_by_id(chat_id)
        last = messages[-1]
        updated_at = time.time()

        try:
            with self._db.transaction() as conn:
                conn.executemany(
                    f"INSERT INTO messages ({_MESSAGE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    [
                        [
                            m.messageId,
                            m.chatId,
                            m.sender,
                            m.content,
                            m.attachmentUrl,
                            m.attachmentType,
                            m.timestamp,
                            m.isEdited,
                            m.status.value,
                        ]
                        for m in messages
                    ],
                )
                conn.execute(
                    """
                    UPDATE chats
                    SET last_message_content = ?, last_message_timestamp = ?, updated_at = ?
                    WHERE chat_id = ?
                    """,
                    [last.preview, last.timestamp, updated_at, chat_id],
                )
        except duckdb.Error as e:
            logger.error(f"[Store] Append to chat {chat_id} rolled back: {e}")
            raise PersistenceError(f"Could not append messages to chat {chat_id}") from e

        logger.info(f"[Store] Appended {len(messages)} message(s) to chat {chat_id}")
        return chat.model_copy(update={
            "lastMessageContent": last.preview,
            "lastMessageTimestamp": last.timestamp,
            "updatedAt": updated_at,
        })

    def count_messages(self, chat_id: str) -> int:
        row = self._db.connection.execute(
            "SELECT COUNT(*) FROM messages WHERE chat_id = ?", [chat_id]
        ).fetchone()
        return row[0]

    def get_messages(self, chat_id: str) -> List[Message]:
        """Return a chat's whole log, oldest first."""
        rows = self._db.connection.execute(
            f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE chat_id = ? ORDER BY seq ASC",
            [chat_id],
        ).fetchall()
        return [_row_to_message(row) for row in rows]

    def get_messages_newest_first(self, chat_id: str, offset: int, limit: int) -> List[Message]:
        """Return a window of the log counted back from the newest message."""
        rows = self._db.connection.execute(
            f"""
            SELECT {_MESSAGE_COLUMNS} FROM messages
            WHERE chat_id = ?
            ORDER BY seq DESC
            LIMIT ? OFFSET ?
            """,
            [chat_id, limit, offset],
        ).fetchall()
        return [_row_to_message(row) for row in rows]

    def get_message(self, chat_id: str, message_id: str) -> Message:
        """Load one message.

        Raises:
            NotFoundError: If the chat has no message with this ID.
        """
        row = self._db.connection.execute(
            f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE chat_id = ? AND message_id = ?",
            [chat_id, message_id],
        ).fetchone()
        if row is None:
            raise NotFoundError(f"Message {message_id} not found in chat {chat_id}")
        return _row_to_message(row)

    def find_message_ids_by_status(
        self, chat_id: str, status: MessageStatus, limit: int
    ) -> List[str]:
        """IDs of the *limit* most recent messages in *status*, newest first."""
        rows = self._db.connection.execute(
            """
            SELECT message_id FROM messages
            WHERE chat_id = ? AND status = ?
            ORDER BY ts DESC, seq DESC
            LIMIT ?
            """,
            [chat_id, status.value, limit],
        ).fetchall()
        return [row[0] for row in rows]

    def set_status(
        self, chat_id: str, message_ids: Sequence[str], status: MessageStatus
    ) -> int:
        """Point-write a status onto the given messages. Returns rows changed."""
        if not message_ids:
            return 0
        placeholders = ", ".join("?" for _ in message_ids)
        try:
            with self._db.transaction() as conn:
                conn.execute(
                    f"""
                    UPDATE messages SET status = ?
                    WHERE chat_id = ? AND message_id IN ({placeholders})
                    """,
                    [status.value, chat_id, *message_ids],
                )
        except duckdb.Error as e:
            raise PersistenceError(f"Could not update message status in chat {chat_id}") from e
        return len(message_ids)

    def update_message(self, message: Message) -> Message:
        """Overwrite a stored message's content, edit flag and status.

        If it is the chat's newest message, the chat preview follows.
        """
        try:
            with self._db.transaction() as conn:
                conn.execute(
                    """
                    UPDATE messages SET content = ?, is_edited = ?, status = ?
                    WHERE chat_id = ? AND message_id = ?
                    """,
                    [
                        message.content,
                        message.isEdited,
                        message.status.value,
                        message.chatId,
                        message.messageId,
                    ],
                )
                newest = conn.execute(
                    "SELECT message_id FROM messages WHERE chat_id = ? ORDER BY seq DESC LIMIT 1",
                    [message.chatId],
                ).fetchone()
                if newest and newest[0] == message.messageId:
                    conn.execute(
                        "UPDATE chats SET last_message_content = ?, updated_at = ? WHERE chat_id = ?",
                        [message.preview, time.time(), message.chatId],
                    )
        except duckdb.Error as e:
            raise PersistenceError(f"Could not update message {message.messageId}") from e
        return message
