"""Chat List Assembler: the ordered, paginated inbox of a user.

Ordering:
    1. pinned chats with messages, newest last message first
    2. pinned chats without messages
    3. unpinned chats with messages, newest last message first
    4. unpinned chats without messages

Pages are zero-based and hold a fixed number of chats (7 by default).
"""
import logging
import math
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from lostfound.errors import ValidationError
from lostfound.users.service import UserDirectory

from .directory import ChatDirectory
from .formatting import format_last_message_date
from .schemas import Chat, DirectoryEntry, InboxItem, InboxPage, Message, MessageStatus
from .store import MessageStore

logger = logging.getLogger(__name__)

DEFAULT_INBOX_PAGE_SIZE = 7
UNREAD_SCAN_BATCH = 20


def order_chats(pairs: Sequence[Tuple[DirectoryEntry, Chat]]) -> List[Tuple[DirectoryEntry, Chat]]:
    """Apply the inbox ordering policy to (entry, chat) pairs."""
    def newest_first(group: List[Tuple[DirectoryEntry, Chat]]) -> List[Tuple[DirectoryEntry, Chat]]:
        return sorted(group, key=lambda pair: pair[1].lastMessageTimestamp, reverse=True)

    pinned = [p for p in pairs if p[0].isPinned]
    unpinned = [p for p in pairs if not p[0].isPinned]

    return (
        newest_first([p for p in pinned if p[1].has_messages])
        + [p for p in pinned if not p[1].has_messages]
        + newest_first([p for p in unpinned if p[1].has_messages])
        + [p for p in unpinned if not p[1].has_messages]
    )


def count_unread(messages: Sequence[Message], user_id: str) -> int:
    """Count the contiguous run of unread incoming messages at the end.

    Scans from the newest message backward and stops at the first message
    that was sent by *user_id* or is already ``Read``.
    """
    unread = 0
    for message in reversed(messages):
        if message.sender == user_id or message.status == MessageStatus.READ:
            break
        unread += 1
    return unread


class ChatListAssembler:
    """Builds inbox pages from the directory, the store and user profiles."""

    def __init__(
        self,
        store: MessageStore,
        directory: ChatDirectory,
        users: UserDirectory,
        page_size: int = DEFAULT_INBOX_PAGE_SIZE,
    ) -> None:
        self._store = store
        self._directory = directory
        self._users = users
        self.page_size = page_size

    def ordered_chats(self, user_id: str) -> List[Tuple[DirectoryEntry, Chat]]:
        """All chats in the user's directory, in inbox order."""
        entries = self._directory.list_entries(user_id)
        chats = self._store.get_chats([e.chatId for e in entries])

        pairs = []
        for entry in entries:
            chat = chats.get(entry.chatId)
            if chat is None:
                logger.warning(
                    f"[Inbox] User {user_id} has an entry for missing chat {entry.chatId}"
                )
                continue
            pairs.append((entry, chat))
        return order_chats(pairs)

    def get_inbox_page(
        self, user_id: str, page_number: int, now: Optional[datetime] = None
    ) -> InboxPage:
        """Assemble one page of the inbox.

        Args:
            user_id: Owner of the inbox.
            page_number: Zero-based page index.
            now: Reference time for date previews (defaults to now).

        Raises:
            ValidationError: If *page_number* is negative.
        """
        if page_number < 0:
            raise ValidationError("pageNumber must not be negative")

        ordered = self.ordered_chats(user_id)
        start = page_number * self.page_size
        page = ordered[start:start + self.page_size]

        receiver_ids = [chat.other_participant(user_id) for _, chat in page]
        profiles = self._users.find_by_ids([rid for rid in receiver_ids if rid])

        items = [
            self._build_item(user_id, entry, chat, profiles, now)
            for entry, chat in page
        ]
        total = len(ordered)
        return InboxPage(
            items=items,
            page=page_number,
            isMore=total > (page_number + 1) * self.page_size,
            totalPages=math.ceil(total / self.page_size),
            totalChats=total,
        )

    def _build_item(
        self,
        user_id: str,
        entry: DirectoryEntry,
        chat: Chat,
        profiles: Dict,
        now: Optional[datetime],
    ) -> InboxItem:
        receiver_id = chat.other_participant(user_id)
        profile = profiles.get(receiver_id)

        item = InboxItem(
            chatId=chat.chatId,
            receiverId=receiver_id,
            receiverFullName=profile.full_name if profile else "",
            receiverPicture=profile.profilePicture if profile else "",
            isPinned=entry.isPinned,
            isMuted=entry.isMuted,
        )
        if not chat.has_messages:
            return item

        newest = self._store.get_messages_newest_first(chat.chatId, 0, UNREAD_SCAN_BATCH)
        if not newest:
            return item
        last = newest[0]
        item.lastMessage = last.preview
        item.lastMessageDate = format_last_message_date(last.timestamp, now)
        item.isLastMessageMine = last.sender == user_id
        item.lastMessageStatus = last.status
        item.isImage = last.is_image
        item.unreadCount = self._unread_count(chat.chatId, user_id, newest)
        return item

    def _unread_count(self, chat_id: str, user_id: str, batch: List[Message]) -> int:
        """Count the unread suffix, reading the log back in batches until it ends."""
        unread = 0
        offset = 0
        while batch:
            run = count_unread(batch[::-1], user_id)
            unread += run
            if run < len(batch) or len(batch) < UNREAD_SCAN_BATCH:
                break
            offset += len(batch)
            batch = self._store.get_messages_newest_first(chat_id, offset, UNREAD_SCAN_BATCH)
        return unread
