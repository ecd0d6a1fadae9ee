"""Tests for the chat list assembler (inbox ordering, unread count, paging)."""
from datetime import datetime
from unittest.mock import patch

import pytest

from lostfound.chat.inbox import ChatListAssembler, count_unread, order_chats
from lostfound.chat.schemas import Chat, DirectoryEntry, Message, MessageStatus
from lostfound.errors import ValidationError


@pytest.fixture
def inbox(store, directory, users):
    return ChatListAssembler(store, directory, users)


def _pair(chat_id, pinned, last_ts):
    entry = DirectoryEntry(userId="u-alice", chatId=chat_id, isPinned=pinned)
    chat = Chat(chatId=chat_id, participants=["u-alice", f"u-{chat_id}"], lastMessageTimestamp=last_ts)
    return entry, chat


def _open_chat(store, directory, other, messages=()):
    chat = store.find_or_create_chat("u-alice", other)
    directory.ensure_entry("u-alice", chat.chatId)
    directory.ensure_entry(other, chat.chatId)
    if messages:
        store.append_messages(chat.chatId, [
            Message(chatId=chat.chatId, sender=sender, content=text, timestamp=ts, status=status)
            for sender, text, ts, status in messages
        ])
    return chat


class TestOrdering:

    def test_pinned_groups_come_first(self):
        p1 = _pair("P1", pinned=True, last_ts=10.0)
        p2 = _pair("P2", pinned=True, last_ts=None)
        u1 = _pair("U1", pinned=False, last_ts=20.0)
        u2 = _pair("U2", pinned=False, last_ts=None)

        ordered = order_chats([u2, u1, p2, p1])

        assert [chat.chatId for _, chat in ordered] == ["P1", "P2", "U1", "U2"]

    def test_newest_first_within_group(self):
        pairs = [
            _pair("old", pinned=False, last_ts=1.0),
            _pair("new", pinned=False, last_ts=3.0),
            _pair("mid", pinned=False, last_ts=2.0),
        ]
        assert [c.chatId for _, c in order_chats(pairs)] == ["new", "mid", "old"]


class TestUnreadCount:

    def test_counts_contiguous_suffix(self):
        messages = [
            Message(chatId="c", sender="u-alice", content="a", status=MessageStatus.READ),
            Message(chatId="c", sender="u-bob", content="b", status=MessageStatus.READ),
            Message(chatId="c", sender="u-bob", content="c", status=MessageStatus.DELIVERED),
            Message(chatId="c", sender="u-bob", content="d", status=MessageStatus.DELIVERED),
        ]
        assert count_unread(messages, "u-alice") == 2

    def test_read_message_truncates_count(self):
        messages = [
            Message(chatId="c", sender="u-bob", content="a", status=MessageStatus.DELIVERED),
            Message(chatId="c", sender="u-bob", content="b", status=MessageStatus.READ),
            Message(chatId="c", sender="u-bob", content="c", status=MessageStatus.DELIVERED),
        ]
        assert count_unread(messages, "u-alice") == 1

    def test_own_last_message_means_zero(self):
        messages = [
            Message(chatId="c", sender="u-bob", content="a", status=MessageStatus.DELIVERED),
            Message(chatId="c", sender="u-alice", content="b", status=MessageStatus.DELIVERED),
        ]
        assert count_unread(messages, "u-alice") == 0

    def test_empty_chat(self):
        assert count_unread([], "u-alice") == 0


class TestInboxPage:

    def test_item_fields(self, inbox, store, directory):
        now = datetime(2024, 3, 5, 12, 0)
        sent = datetime(2024, 3, 5, 9, 30).timestamp()
        chat = _open_chat(store, directory, "u-bob", [
            ("u-alice", "Did you find a blue wallet?", sent - 60, MessageStatus.READ),
            ("u-bob", "Yes, at the station", sent, MessageStatus.DELIVERED),
        ])

        page = inbox.get_inbox_page("u-alice", 0, now=now)

        (item,) = page.items
        assert item.chatId == chat.chatId
        assert item.receiverId == "u-bob"
        assert item.receiverFullName == "Bob Finder"
        assert item.receiverPicture == "https://cdn.example.com/bob.png"
        assert item.lastMessage == "Yes, at the station"
        assert item.lastMessageDate == "09:30"
        assert item.isLastMessageMine is False
        assert item.lastMessageStatus == MessageStatus.DELIVERED
        assert item.isImage is False
        assert item.unreadCount == 1

    def test_unread_count_reads_only_the_recent_log(self, inbox, store, directory):
        history = [("u-bob", "old", 0.0, MessageStatus.READ)] * 5
        unread = [("u-bob", f"n{i}", float(i + 1), MessageStatus.DELIVERED) for i in range(45)]
        _open_chat(store, directory, "u-bob", history + unread)

        with patch.object(store, "get_messages", side_effect=AssertionError("full log read")):
            (item,) = inbox.get_inbox_page("u-alice", 0).items

        assert item.unreadCount == 45
        assert item.lastMessage == "n44"

    def test_chat_without_messages_has_empty_preview(self, inbox, store, directory):
        _open_chat(store, directory, "u-carol")

        (item,) = inbox.get_inbox_page("u-alice", 0).items

        assert item.receiverFullName == "Carol Keys"
        assert item.receiverPicture == ""
        assert item.lastMessage == ""
        assert item.lastMessageDate == ""
        assert item.lastMessageStatus is None
        assert item.unreadCount == 0

    def test_image_last_message(self, inbox, store, directory):
        chat = _open_chat(store, directory, "u-bob")
        store.append_messages(chat.chatId, [Message(
            chatId=chat.chatId,
            sender="u-alice",
            attachmentUrl="http://testserver/files/Chats/c/m-photo.jpg",
            attachmentType="image/jpeg",
        )])

        (item,) = inbox.get_inbox_page("u-alice", 0).items

        assert item.isImage is True
        assert item.isLastMessageMine is True
        assert item.lastMessage == "http://testserver/files/Chats/c/m-photo.jpg"

    def test_unknown_receiver_resolves_to_empty_profile(self, inbox, store, directory):
        _open_chat(store, directory, "u-ghost")
        (item,) = inbox.get_inbox_page("u-alice", 0).items
        assert item.receiverId == "u-ghost"
        assert item.receiverFullName == ""

    def test_ordering_through_directory(self, inbox, store, directory):
        p1 = _open_chat(store, directory, "u-p1", [("u-p1", "hi", 10.0, MessageStatus.DELIVERED)])
        p2 = _open_chat(store, directory, "u-p2")
        u1 = _open_chat(store, directory, "u-u1", [("u-u1", "hi", 20.0, MessageStatus.DELIVERED)])
        u2 = _open_chat(store, directory, "u-u2")
        directory.set_pinned("u-alice", p1.chatId, True)
        directory.set_pinned("u-alice", p2.chatId, True)

        page = inbox.get_inbox_page("u-alice", 0)

        assert [i.chatId for i in page.items] == [p1.chatId, p2.chatId, u1.chatId, u2.chatId]
        assert [i.isPinned for i in page.items] == [True, True, False, False]

    def test_deleted_entry_is_hidden_for_one_user_only(self, inbox, store, directory):
        chat = _open_chat(store, directory, "u-bob")
        directory.remove_entry("u-alice", chat.chatId)

        assert inbox.get_inbox_page("u-alice", 0).items == []
        assert [i.chatId for i in inbox.get_inbox_page("u-bob", 0).items] == [chat.chatId]

    def test_pages_round_trip(self, inbox, store, directory):
        for i in range(16):
            _open_chat(store, directory, f"u-{i:02d}", [
                (f"u-{i:02d}", "found something", 100.0 + i, MessageStatus.DELIVERED)
            ])
        expected = [c.chatId for _, c in inbox.ordered_chats("u-alice")]

        collected = []
        page_number = 0
        while True:
            page = inbox.get_inbox_page("u-alice", page_number)
            collected.extend(i.chatId for i in page.items)
            assert page.totalPages == 3
            assert page.totalChats == 16
            if not page.isMore:
                break
            page_number += 1

        assert page_number == 2
        assert collected == expected
        assert len(set(collected)) == 16

    def test_page_past_end_is_empty(self, inbox, store, directory):
        _open_chat(store, directory, "u-bob")
        page = inbox.get_inbox_page("u-alice", 5)
        assert page.items == []
        assert page.isMore is False

    def test_negative_page_rejected(self, inbox):
        with pytest.raises(ValidationError):
            inbox.get_inbox_page("u-alice", -1)

    def test_payload_shape(self, inbox, store, directory):
        _open_chat(store, directory, "u-bob")
        payload = inbox.get_inbox_page("u-alice", 0).to_payload()

        assert payload["success"] is True
        assert payload["pagination"] == {
            "isMore": False, "page": 0, "totalPages": 1, "totalChats": 1,
        }
        assert payload["data"][0]["receiverFullName"] == "Bob Finder"
