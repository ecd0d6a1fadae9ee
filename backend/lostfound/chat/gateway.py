"""Realtime Gateway: routes client events to the chat components.

Inbound events (``{"type": ..., "data": ...}``):
    - joinRoom:            join the room of a chat
    - getChatsPagination:  one page of the user's inbox
    - createChatAttempt:   find or create the chat with another user
    - getChatMessages:     one page of a chat's history
    - sendMessage:         persist text and/or attachments, broadcast them
    - updateUnreadMessage: bounded-count read receipt
    - deleteChat:          remove a chat from one user's list
    - pinChat / muteChat:  toggle a directory flag
    - editMessage:         replace the text of a sent message

Every command gets exactly one terminal response on the issuing socket.
``sendMessage`` is the exception: on success the room receives
``newMessage`` and the sender additionally receives ``messageSent``; on
total failure only ``error`` is sent. Failures never escape ``dispatch``.
"""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

from fastapi import WebSocket

from lostfound.errors import (
    ChatError,
    ExternalServiceError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from lostfound.users.service import UserDirectory

from . import protocol
from .attachments import AttachmentUploader, UploadedAttachment
from .directory import ChatDirectory
from .feed import MessageFeedAssembler
from .inbox import ChatListAssembler
from .manager import ConnectionManager
from .protocol import (
    ChatMessagesRequest,
    ChatPreferencePayload,
    ChatsPaginationRequest,
    CreateChatAttempt,
    DeleteChatPayload,
    EditMessagePayload,
    InboundPayload,
    JoinRoomPayload,
    SendMessagePayload,
    UpdateUnreadPayload,
)
from .read_state import ReadStateTracker
from .schemas import Message, MessageView, new_id
from .store import MessageStore

logger = logging.getLogger(__name__)

GENERIC_FAILURE = ChatError.user_message


@dataclass
class Route:
    """How one inbound event is parsed, handled and failed.

    Attributes:
        payload: Model that validates the event's data.
        handler: Coroutine receiving (websocket, payload).
        failure_event: Event carrying the failure; None means ``error``.
        failure_key: Key of the failure text in the failure payload.
    """
    payload: Type[InboundPayload]
    handler: Callable[[WebSocket, Any], Awaitable[None]]
    failure_event: Optional[str] = None
    failure_key: str = "error"


class ChatGateway:
    """Dispatches socket events; all collaborators are injected."""

    def __init__(
        self,
        manager: ConnectionManager,
        store: MessageStore,
        directory: ChatDirectory,
        tracker: ReadStateTracker,
        inbox: ChatListAssembler,
        feed: MessageFeedAssembler,
        users: UserDirectory,
        uploader: AttachmentUploader,
        max_attachments: int = 10,
    ) -> None:
        self.manager = manager
        self._store = store
        self._directory = directory
        self._tracker = tracker
        self._inbox = inbox
        self._feed = feed
        self._users = users
        self._uploader = uploader
        self._max_attachments = max_attachments

        self._routes: Dict[str, Route] = {
            protocol.JOIN_ROOM: Route(JoinRoomPayload, self.join_room),
            protocol.GET_CHATS_PAGINATION: Route(
                ChatsPaginationRequest, self.get_chats_pagination,
                protocol.CHATS_PAGINATION_RESPONSE,
            ),
            protocol.CREATE_CHAT_ATTEMPT: Route(
                CreateChatAttempt, self.create_chat, protocol.CREATE_CHAT_RESPONSE,
            ),
            protocol.GET_CHAT_MESSAGES: Route(
                ChatMessagesRequest, self.get_chat_messages, protocol.CHAT_MESSAGES_RESPONSE,
            ),
            protocol.SEND_MESSAGE: Route(SendMessagePayload, self.send_message),
            protocol.UPDATE_UNREAD_MESSAGE: Route(
                UpdateUnreadPayload, self.update_unread_messages,
                protocol.MESSAGES_UPDATED, failure_key="message",
            ),
            protocol.DELETE_CHAT: Route(
                DeleteChatPayload, self.delete_chat, protocol.DELETE_CHAT_RESPONSE,
            ),
            protocol.PIN_CHAT: Route(
                ChatPreferencePayload, self.pin_chat, protocol.PIN_CHAT_RESPONSE,
            ),
            protocol.MUTE_CHAT: Route(
                ChatPreferencePayload, self.mute_chat, protocol.MUTE_CHAT_RESPONSE,
            ),
            protocol.EDIT_MESSAGE: Route(
                EditMessagePayload, self.edit_message, protocol.EDIT_MESSAGE_RESPONSE,
            ),
        }

    @property
    def events(self) -> List[str]:
        return list(self._routes)

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def dispatch(self, websocket: WebSocket, frame: Any) -> None:
        """Handle one inbound frame to completion.

        Never raises: every failure becomes a response event.
        """
        event = frame.get("type") if isinstance(frame, dict) else None
        route = self._routes.get(event) if isinstance(event, str) else None
        if route is None:
            logger.warning(f"[WS] Unknown event: {event!r}")
            await self.manager.send(websocket, protocol.ERROR, {
                "message": f"Invalid message format: unknown event {event!r}"
            })
            return

        logger.debug(f"[WS] Received event={event}")
        try:
            payload = route.payload.from_wire(frame.get("data"))
            await route.handler(websocket, payload)
        except ChatError as exc:
            logger.warning(f"[WS] {event} rejected: {exc.message}")
            await self._fail(websocket, route, exc)
        except Exception as exc:
            logger.exception(f"[WS] {event} failed unexpectedly: {exc}")
            await self._fail(websocket, route, None)

    async def _fail(self, websocket: WebSocket, route: Route, exc: Optional[ChatError]) -> None:
        if exc is None:
            text = GENERIC_FAILURE
        elif isinstance(exc, (ValidationError, NotFoundError)):
            text = exc.message
        else:
            text = exc.user_message

        if route.failure_event is None:
            await self.manager.send(websocket, protocol.ERROR, {"message": text})
        else:
            await self.manager.send(websocket, route.failure_event, {
                "success": False,
                route.failure_key: text,
            })

    # =========================================================================
    # Handlers
    # =========================================================================

    async def join_room(self, websocket: WebSocket, payload: JoinRoomPayload) -> None:
        self.manager.join_room(websocket, payload.chatId)

    async def get_chats_pagination(
        self, websocket: WebSocket, payload: ChatsPaginationRequest
    ) -> None:
        page = self._inbox.get_inbox_page(payload.userId, payload.pageNumber)
        await self.manager.send(websocket, protocol.CHATS_PAGINATION_RESPONSE, page.to_payload())

    async def create_chat(self, websocket: WebSocket, payload: CreateChatAttempt) -> None:
        receiver = self._users.find_by_id(payload.recieverId)
        if receiver is None:
            raise NotFoundError(f"User {payload.recieverId} not found")

        chat = self._store.find_or_create_chat(payload.senderId, payload.recieverId)
        await self.manager.send(websocket, protocol.CREATE_CHAT_RESPONSE, {
            "success": True,
            "chatId": chat.chatId,
            "receiverFullName": receiver.full_name,
            "receiverPicture": receiver.profilePicture,
        })

    async def get_chat_messages(self, websocket: WebSocket, payload: ChatMessagesRequest) -> None:
        page = self._feed.get_page(payload.chatId, payload.pageNumber)
        await self.manager.send(websocket, protocol.CHAT_MESSAGES_RESPONSE, page.to_payload())

    async def send_message(self, websocket: WebSocket, payload: SendMessagePayload) -> None:
        """Persist a text message and/or one message per attachment.

        Attachments are uploaded one by one; a failed upload is logged and
        skipped. The command fails only if no message at all was produced.
        """
        attachments = payload.attachments()
        text = payload.messageText
        if not text.strip() and not attachments:
            raise ValidationError("A message needs text or at least one attachment")
        if len(attachments) > self._max_attachments:
            raise ValidationError(
                f"Too many attachments: {len(attachments)} (max {self._max_attachments})"
            )

        chat = self._store.get_chat_by_id(payload.chatId)
        if payload.sender not in chat.participants:
            raise ValidationError(f"User {payload.sender} is not a participant of chat {chat.chatId}")
        if payload.reciever != chat.other_participant(payload.sender):
            raise ValidationError(
                f"User {payload.reciever} is not the other participant of chat {chat.chatId}"
            )

        for participant in chat.participants:
            self._directory.ensure_entry(participant, chat.chatId)

        messages: List[Message] = []
        uploads: List[UploadedAttachment] = []
        if text.strip():
            messages.append(Message(chatId=chat.chatId, sender=payload.sender, content=text))

        for index, attachment in enumerate(attachments):
            message_id = new_id()
            try:
                uploaded = await self._uploader.upload(chat.chatId, message_id, attachment)
            except ChatError as exc:
                logger.error(
                    f"[WS] Attachment {index + 1}/{len(attachments)} for chat "
                    f"{chat.chatId} failed: {exc.message}"
                )
                continue
            uploads.append(uploaded)
            messages.append(Message(
                messageId=message_id,
                chatId=chat.chatId,
                sender=payload.sender,
                content="",
                attachmentUrl=uploaded.url,
                attachmentType=uploaded.content_type,
            ))

        if not messages:
            raise ExternalServiceError(
                f"none of {len(attachments)} attachment(s) could be uploaded",
                service="attachment",
            )

        try:
            self._store.append_messages(chat.chatId, messages)
        except PersistenceError:
            self._uploader.discard(uploads)
            raise

        views = [MessageView.from_message(m).model_dump(mode="json") for m in messages]
        logger.info(
            f"[WS] Broadcasting {len(views)} message(s) to "
            f"{self.manager.get_room_size(chat.chatId)} connection(s) in {chat.chatId}"
        )
        await self.manager.broadcast(protocol.NEW_MESSAGE, views, chat.chatId)
        await self.manager.send(websocket, protocol.MESSAGE_SENT, {
            "success": True,
            "messages": views,
        })

    async def update_unread_messages(
        self, websocket: WebSocket, payload: UpdateUnreadPayload
    ) -> None:
        updated = self._tracker.mark_recent_delivered_as_read(payload.chatId, payload.count)
        await self.manager.send(websocket, protocol.MESSAGES_UPDATED, {
            "success": True,
            "chatId": payload.chatId,
            "updatedCount": updated,
        })

    async def delete_chat(self, websocket: WebSocket, payload: DeleteChatPayload) -> None:
        if not self._directory.remove_entry(payload.userId, payload.chatId):
            raise NotFoundError(
                f"Chat {payload.chatId} is not in the chat list of user {payload.userId}"
            )
        self.manager.leave_room(websocket, payload.chatId)
        await self.manager.send(websocket, protocol.DELETE_CHAT_RESPONSE, {
            "success": True,
            "chatId": payload.chatId,
        })

    async def pin_chat(self, websocket: WebSocket, payload: ChatPreferencePayload) -> None:
        entry = self._directory.toggle_pinned(payload.userId, payload.chatId)
        await self.manager.send(websocket, protocol.PIN_CHAT_RESPONSE, {
            "success": True,
            "isPinned": entry.isPinned,
        })

    async def mute_chat(self, websocket: WebSocket, payload: ChatPreferencePayload) -> None:
        entry = self._directory.toggle_muted(payload.userId, payload.chatId)
        await self.manager.send(websocket, protocol.MUTE_CHAT_RESPONSE, {
            "success": True,
            "isMuted": entry.isMuted,
        })

    async def edit_message(self, websocket: WebSocket, payload: EditMessagePayload) -> None:
        message = self._store.get_message(payload.chatId, payload.messageId)
        if message.sender != payload.userId:
            raise ValidationError("Only the sender can edit a message")

        edited = self._store.update_message(
            self._tracker.apply_edit(message, payload.messageText)
        )
        await self.manager.broadcast(
            protocol.MESSAGE_EDITED,
            MessageView.from_message(edited).model_dump(mode="json"),
            payload.chatId,
        )
        await self.manager.send(websocket, protocol.EDIT_MESSAGE_RESPONSE, {
            "success": True,
            "messageId": edited.messageId,
        })
