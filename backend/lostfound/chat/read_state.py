"""Read-State Tracker: message status transitions and read receipts.

Status machine per message::

    In progress -> Sent -> Delivered -> Read
         |          |         |
         +----------+---------+--> Changed (edit) -> Delivered | Read
         |          |
         +----------+--> Not delivered (failure, terminal)

Read receipts are bounded-count: a client reports "I saw N messages" and
the N most recent ``Delivered`` messages become ``Read``. Older
``Delivered`` messages stay untouched even if the user has scrolled past
them; there is no per-user read watermark.
"""
import logging
from typing import Dict, FrozenSet

from lostfound.errors import ValidationError

from .schemas import Message, MessageStatus
from .store import MessageStore

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[MessageStatus, FrozenSet[MessageStatus]] = {
    MessageStatus.IN_PROGRESS: frozenset({
        MessageStatus.SENT, MessageStatus.CHANGED, MessageStatus.NOT_DELIVERED,
    }),
    MessageStatus.SENT: frozenset({
        MessageStatus.DELIVERED, MessageStatus.CHANGED, MessageStatus.NOT_DELIVERED,
    }),
    MessageStatus.DELIVERED: frozenset({MessageStatus.READ, MessageStatus.CHANGED}),
    MessageStatus.CHANGED: frozenset({MessageStatus.DELIVERED, MessageStatus.READ}),
    MessageStatus.READ: frozenset(),
    MessageStatus.NOT_DELIVERED: frozenset(),
}

TERMINAL_STATUSES = frozenset({MessageStatus.READ, MessageStatus.NOT_DELIVERED})


def can_transition(current: MessageStatus, target: MessageStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class ReadStateTracker:
    """Computes and mutates per-message status."""

    def __init__(self, store: MessageStore) -> None:
        self._store = store

    def mark_recent_delivered_as_read(self, chat_id: str, count: int) -> int:
        """Mark the *count* most recent ``Delivered`` messages as ``Read``.

        Args:
            chat_id: Chat to update.
            count: Number of messages the client reports having seen.

        Returns:
            Number of messages that moved to ``Read``.

        Raises:
            ValidationError: If *count* is negative.
            NotFoundError: If the chat does not exist.
        """
        if count < 0:
            raise ValidationError("count must not be negative")
        self._store.get_chat_by_id(chat_id)
        if count == 0:
            return 0

        message_ids = self._store.find_message_ids_by_status(
            chat_id, MessageStatus.DELIVERED, count
        )
        updated = self._store.set_status(chat_id, message_ids, MessageStatus.READ)
        logger.info(f"[ReadState] Marked {updated} message(s) read in chat {chat_id}")
        return updated

    def transition(self, chat_id: str, message_id: str, target: MessageStatus) -> Message:
        """Move a single message to *target*.

        Raises:
            NotFoundError: If the message does not exist.
            ValidationError: If the transition is not allowed.
        """
        message = self._store.get_message(chat_id, message_id)
        if not can_transition(message.status, target):
            raise ValidationError(
                f"Cannot move message {message_id} from '{message.status.value}' "
                f"to '{target.value}'"
            )
        self._store.set_status(chat_id, [message_id], target)
        return message.model_copy(update={"status": target})

    def apply_edit(self, message: Message, new_content: str) -> Message:
        """Return *message* with new content, flagged edited.

        Non-terminal messages move to ``Changed``; ``Read`` and
        ``Not delivered`` keep their status.
        """
        status = message.status
        if status not in TERMINAL_STATUSES:
            status = MessageStatus.CHANGED
        return message.model_copy(update={
            "content": new_content,
            "isEdited": True,
            "status": status,
        })
