"""WebSocket envelope and per-event payload models.

Every frame is ``{"type": <event>, "data": <payload>}`` in both directions.
Inbound payloads are validated here, at the gateway boundary, before a
handler ever sees them. Events that clients emit with positional
arguments (``updateUnreadMessage(count, chatId)``, ``deleteChat(chatId,
userId)``) may send ``data`` as an array; ``positional`` maps it to fields.
"""
from __future__ import annotations

from typing import Annotated, Any, ClassVar, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from lostfound.errors import ValidationError

# Inbound event names
JOIN_ROOM = "joinRoom"
GET_CHATS_PAGINATION = "getChatsPagination"
CREATE_CHAT_ATTEMPT = "createChatAttempt"
GET_CHAT_MESSAGES = "getChatMessages"
SEND_MESSAGE = "sendMessage"
UPDATE_UNREAD_MESSAGE = "updateUnreadMessage"
DELETE_CHAT = "deleteChat"
PIN_CHAT = "pinChat"
MUTE_CHAT = "muteChat"
EDIT_MESSAGE = "editMessage"

# Outbound event names
CHATS_PAGINATION_RESPONSE = "chatsPaginationResponse"
CREATE_CHAT_RESPONSE = "createChatResponse"
CHAT_MESSAGES_RESPONSE = "chatMessagesResponse"
NEW_MESSAGE = "newMessage"
MESSAGE_SENT = "messageSent"
MESSAGES_UPDATED = "messagesUpdated"
DELETE_CHAT_RESPONSE = "deleteChatResponse"
PIN_CHAT_RESPONSE = "pinChatResponse"
MUTE_CHAT_RESPONSE = "muteChatResponse"
MESSAGE_EDITED = "messageEdited"
EDIT_MESSAGE_RESPONSE = "editMessageResponse"
ERROR = "error"


def make_event(event: str, data: Any) -> dict:
    """Build an outbound frame."""
    return {"type": event, "data": data}


def _describe(exc: PydanticValidationError) -> str:
    missing = []
    invalid = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "data"
        if error["type"] in ("missing", "string_too_short"):
            missing.append(field)
        else:
            invalid.append(f"{field} ({error['msg']})")
    parts = []
    if missing:
        parts.append("Missing required fields: " + ", ".join(missing))
    if invalid:
        parts.append("Invalid fields: " + ", ".join(invalid))
    return "; ".join(parts)


class InboundPayload(BaseModel):
    """Base for inbound payloads; unknown keys are ignored."""
    model_config = ConfigDict(extra="ignore")

    positional: ClassVar[Tuple[str, ...]] = ()

    @classmethod
    def from_wire(cls, data: Any) -> "InboundPayload":
        """Validate raw ``data`` from a frame.

        Raises:
            ValidationError: If required fields are missing or malformed.
        """
        if data is None:
            data = {}
        if isinstance(data, list):
            if len(data) == 1 and isinstance(data[0], dict):
                data = data[0]
            elif cls.positional:
                data = dict(zip(cls.positional, data))
            else:
                raise ValidationError("Invalid message format: expected an object payload")
        if not isinstance(data, dict):
            raise ValidationError("Invalid message format: expected an object payload")
        try:
            return cls.model_validate(data)
        except PydanticValidationError as exc:
            raise ValidationError(_describe(exc)) from exc


RequiredId = Annotated[str, Field(min_length=1)]


class JoinRoomPayload(InboundPayload):
    chatId: RequiredId


class ChatsPaginationRequest(InboundPayload):
    userId: RequiredId
    pageNumber: int = Field(default=0, ge=0)


class CreateChatAttempt(InboundPayload):
    senderId: RequiredId
    recieverId: RequiredId


class ChatMessagesRequest(InboundPayload):
    chatId: RequiredId
    pageNumber: int = Field(default=1, ge=1)


class AttachmentInput(BaseModel):
    """One attachment of a sendMessage command."""
    uri: str = Field(..., min_length=1)
    name: Optional[str] = None
    type: Optional[str] = None


class SendMessagePayload(InboundPayload):
    messageText: str = ""
    sender: RequiredId
    reciever: RequiredId
    chatId: RequiredId
    imagesUrl: List[Union[AttachmentInput, str]] = Field(default_factory=list)

    def attachments(self) -> List[AttachmentInput]:
        return [
            item if isinstance(item, AttachmentInput) else AttachmentInput(uri=item)
            for item in self.imagesUrl
        ]


class UpdateUnreadPayload(InboundPayload):
    positional: ClassVar[Tuple[str, ...]] = ("count", "chatId")

    count: int = Field(..., ge=0)
    chatId: RequiredId


class DeleteChatPayload(InboundPayload):
    positional: ClassVar[Tuple[str, ...]] = ("chatId", "userId")

    chatId: RequiredId
    userId: RequiredId


class ChatPreferencePayload(InboundPayload):
    """Payload of pinChat and muteChat."""
    chatId: RequiredId
    userId: RequiredId


class EditMessagePayload(InboundPayload):
    chatId: RequiredId
    messageId: RequiredId
    userId: RequiredId
    messageText: str = Field(..., min_length=1)
