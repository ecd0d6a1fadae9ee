"""Message Feed Assembler: newest-first pages of one chat's history."""
import math

from lostfound.errors import ValidationError

from .schemas import FeedPage, MessageView
from .store import MessageStore

DEFAULT_FEED_PAGE_SIZE = 20


class MessageFeedAssembler:
    """Pages a chat's message log from the newest message backward.

    The log is stored oldest-first; page 1 holds the newest *page_size*
    messages with the newest first.
    """

    def __init__(self, store: MessageStore, page_size: int = DEFAULT_FEED_PAGE_SIZE) -> None:
        self._store = store
        self.page_size = page_size

    def get_page(self, chat_id: str, page_number: int = 1, page_size: int = 0) -> FeedPage:
        """Return one page of history.

        Args:
            chat_id: Chat to read.
            page_number: One-based page index.
            page_size: Messages per page; the configured size when 0.

        Raises:
            ValidationError: If *page_number* < 1 or *page_size* < 0.
            NotFoundError: If the chat does not exist.
        """
        if page_number < 1:
            raise ValidationError("pageNumber must be at least 1")
        if page_size < 0:
            raise ValidationError("pageSize must not be negative")
        page_size = page_size or self.page_size

        self._store.get_chat_by_id(chat_id)
        total = self._store.count_messages(chat_id)
        skip = (page_number - 1) * page_size
        messages = self._store.get_messages_newest_first(chat_id, skip, page_size)

        total_pages = math.ceil(total / page_size)
        return FeedPage(
            items=[MessageView.from_message(m) for m in messages],
            page=page_number,
            isMore=page_number < total_pages,
            totalPages=total_pages,
            totalItems=total,
        )
