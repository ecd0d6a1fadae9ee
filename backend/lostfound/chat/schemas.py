"""Pydantic models for chats, messages and the assembled views.

Stored entities:
    - Chat: conversation record with denormalized last-message fields
    - Message: one entry of a chat's ordered message log
    - DirectoryEntry: a user's personal view of a chat (pinned / muted)

Client views:
    - MessageView: message shape sent in newMessage, messageSent and
      chatMessagesResponse
    - InboxItem / InboxPage: chat-list summaries for chatsPaginationResponse
    - FeedPage: one page of message history
"""
import time
import uuid
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from .formatting import format_time


def new_id() -> str:
    """Generate an opaque 24-hex-digit identifier."""
    return uuid.uuid4().hex[:24]


class MessageStatus(str, Enum):
    """Delivery / read status of a message.

    Attributes:
        IN_PROGRESS: Created by the client, not yet acknowledged.
        SENT: Accepted by the server.
        DELIVERED: Persisted and broadcast to the room.
        READ: Seen by the other participant.
        CHANGED: Edited after sending.
        NOT_DELIVERED: Failed; terminal.
    """
    IN_PROGRESS = "In progress"
    SENT = "Sent"
    DELIVERED = "Delivered"
    READ = "Read"
    CHANGED = "Changed"
    NOT_DELIVERED = "Not delivered"


class Message(BaseModel):
    """A single message inside a chat's message log.

    Every message carries text content, an attachment, or both.
    """
    messageId: str = Field(default_factory=new_id, description="Unique message ID")
    chatId: str = Field(..., description="Chat this message belongs to")
    sender: str = Field(..., description="User ID of the sender")
    content: str = Field(default="", description="Text content (may be empty with an attachment)")
    attachmentUrl: Optional[str] = Field(default=None, description="Public URL of the attachment")
    attachmentType: Optional[str] = Field(default=None, description="MIME type of the attachment")
    timestamp: float = Field(default_factory=time.time, description="Seconds since epoch")
    isEdited: bool = False
    status: MessageStatus = MessageStatus.DELIVERED

    @model_validator(mode="after")
    def _content_or_attachment(self) -> "Message":
        if not self.content and not self.attachmentUrl:
            raise ValueError("a message needs content or an attachment")
        return self

    @property
    def is_image(self) -> bool:
        if not self.attachmentUrl:
            return False
        return self.attachmentType is None or self.attachmentType.startswith("image/")

    @property
    def preview(self) -> str:
        """Text shown in chat lists: the content, else the attachment URL."""
        return self.content or self.attachmentUrl or ""


class Chat(BaseModel):
    """A conversation between two or more participants."""
    chatId: str = Field(default_factory=new_id)
    participants: List[str] = Field(..., min_length=2)
    isGroupChat: bool = False
    chatName: Optional[str] = None
    chatAvatar: Optional[str] = None
    lastMessageContent: Optional[str] = None
    lastMessageTimestamp: Optional[float] = None
    createdAt: float = Field(default_factory=time.time)
    updatedAt: float = Field(default_factory=time.time)

    @property
    def has_messages(self) -> bool:
        return self.lastMessageTimestamp is not None

    def other_participant(self, user_id: str) -> Optional[str]:
        """Return the first participant that is not *user_id*."""
        for participant in self.participants:
            if participant != user_id:
                return participant
        return None


class DirectoryEntry(BaseModel):
    """A user's preferences for one chat."""
    userId: str
    chatId: str
    isPinned: bool = False
    isMuted: bool = False


class MessageView(BaseModel):
    """Client-facing message shape."""
    messageId: str
    chatId: str
    sender: str
    messageText: str
    image: Optional[str] = None
    imageType: Optional[str] = None
    timestamp: float
    formattedTime: str
    status: MessageStatus
    isEdited: bool

    @classmethod
    def from_message(cls, message: Message) -> "MessageView":
        return cls(
            messageId=message.messageId,
            chatId=message.chatId,
            sender=message.sender,
            messageText=message.content,
            image=message.attachmentUrl,
            imageType=message.attachmentType,
            timestamp=message.timestamp,
            formattedTime=format_time(message.timestamp),
            status=message.status,
            isEdited=message.isEdited,
        )


class InboxItem(BaseModel):
    """One chat summary in a user's inbox."""
    chatId: str
    receiverId: Optional[str] = None
    receiverFullName: str = ""
    receiverPicture: str = ""
    lastMessage: str = ""
    lastMessageDate: str = ""
    isLastMessageMine: bool = False
    lastMessageStatus: Optional[MessageStatus] = None
    isImage: bool = False
    unreadCount: int = 0
    isPinned: bool = False
    isMuted: bool = False


class InboxPage(BaseModel):
    items: List[InboxItem]
    page: int
    isMore: bool
    totalPages: int
    totalChats: int

    def to_payload(self) -> dict:
        return {
            "success": True,
            "data": [item.model_dump(mode="json") for item in self.items],
            "pagination": {
                "isMore": self.isMore,
                "page": self.page,
                "totalPages": self.totalPages,
                "totalChats": self.totalChats,
            },
        }


class FeedPage(BaseModel):
    items: List[MessageView]
    page: int
    isMore: bool
    totalPages: int
    totalItems: int

    def to_payload(self) -> dict:
        return {
            "success": True,
            "data": [item.model_dump(mode="json") for item in self.items],
            "pagination": {
                "isMore": self.isMore,
                "page": self.page,
                "totalPages": self.totalPages,
                "totalItems": self.totalItems,
            },
        }
