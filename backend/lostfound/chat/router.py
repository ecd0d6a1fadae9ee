"""Chat router providing the realtime WebSocket and HTTP read endpoints.

This module provides:
    - WebSocket /ws/chat: the realtime gateway (all chat commands)
    - POST /chats/getUserChats: one page of a user's inbox
    - GET /chats/{chat_id}/messages: one page of a chat's history

WebSocket frames are ``{"type": <event>, "data": <payload>}`` in both
directions. See ``lostfound.chat.gateway`` for the event list.
"""
import json
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from lostfound.errors import ChatError, NotFoundError, ValidationError

from . import protocol
from .services import get_services

logger = logging.getLogger(__name__)

router = APIRouter()


class UserChatsRequest(BaseModel):
    """Body of POST /chats/getUserChats."""
    userId: str = Field(..., min_length=1, description="Owner of the inbox")
    pageNumber: int = Field(default=0, ge=0, description="Zero-based page index")


def _error_response(exc: ChatError) -> JSONResponse:
    if isinstance(exc, ValidationError):
        status_code, detail = 400, exc.message
    elif isinstance(exc, NotFoundError):
        status_code, detail = 404, exc.message
    else:
        status_code, detail = 500, exc.user_message
    return JSONResponse({"success": False, "error": detail}, status_code=status_code)


def _not_ready() -> JSONResponse:
    logger.warning("[chat] Chat services not configured; returning 503")
    return JSONResponse({"success": False, "error": "Chat service not ready"}, status_code=503)


@router.post("/chats/getUserChats")
async def get_user_chats(request: UserChatsRequest) -> JSONResponse:
    """Get one page of a user's chat list.

    Returns the same payload as the ``chatsPaginationResponse`` event.

    Example:
        POST /chats/getUserChats {"userId": "u1", "pageNumber": 0}
    """
    services = get_services()
    if services is None:
        return _not_ready()
    try:
        page = services.inbox.get_inbox_page(request.userId, request.pageNumber)
    except ChatError as exc:
        logger.warning(f"[chat] getUserChats failed for {request.userId}: {exc.message}")
        return _error_response(exc)
    return JSONResponse(page.to_payload())


@router.get("/chats/{chat_id}/messages")
async def get_chat_messages(
    chat_id: str,
    page: int = Query(1, ge=1, description="One-based page index, newest messages first"),
) -> JSONResponse:
    """Get one page of a chat's message history.

    Example:
        GET /chats/abc123/messages?page=2
    """
    services = get_services()
    if services is None:
        return _not_ready()
    try:
        feed_page = services.feed.get_page(chat_id, page)
    except ChatError as exc:
        logger.warning(f"[chat] History for chat {chat_id} failed: {exc.message}")
        return _error_response(exc)
    return JSONResponse(feed_page.to_payload())


@router.websocket("/ws/chat")
async def websocket_chat_endpoint(websocket: WebSocket) -> None:
    """Realtime chat connection.

    The socket joins no room on connect; clients send ``joinRoom`` for
    each chat they open. Frames are handled one at a time, in arrival
    order. On disconnect the socket leaves every room it joined.
    """
    services = get_services()
    if services is None:
        logger.error("[WS] Chat services not configured; refusing connection")
        await websocket.close(code=1011)  # 1011 = Internal Error
        return

    manager = services.manager
    gateway = services.gateway
    await manager.connect(websocket)
    logger.info("[WS] Client connected")

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            raw = message.get("text")
            if raw is None:
                logger.warning("[WS] Dropping non-text frame")
                await manager.send(websocket, protocol.ERROR, {
                    "message": "Invalid message format: expected a text frame"
                })
                continue
            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("[WS] Dropping frame that is not valid JSON")
                await manager.send(websocket, protocol.ERROR, {
                    "message": "Invalid message format: frame is not valid JSON"
                })
                continue
            await gateway.dispatch(websocket, frame)
    except WebSocketDisconnect:
        logger.info("[WS] Client disconnected")
    finally:
        rooms = manager.disconnect(websocket)
        logger.info(f"[WS] Connection closed (left {len(rooms)} room(s))")
