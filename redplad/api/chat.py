"""
ReDPlAD — Chat API

Conversation and message endpoints plus the authenticated WebSocket that
relays realtime events (new messages, read receipts, typing, new matches).
"""

from __future__ import annotations

import asyncio
import json
import uuid
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query, Response, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.websockets import WebSocketState

from redplad.auth import authenticate_websocket, get_current_profile
from redplad.database import async_session_factory, get_db
from redplad.errors import APIError, BadRequestError
from redplad.models.profile import Profile
from redplad.schemas.chat import (
    ConversationListResponse,
    MessageCreate,
    MessageListResponse,
    MessageResponse,
    SendMessageResponse,
    TypingRequest,
)
from redplad.schemas.common import Pagination
from redplad.services.chat_relay import (
    ChatRelay,
    conversation_channel,
    get_chat_relay,
    user_channel,
)
from redplad.services.chat_service import ChatService

logger = structlog.get_logger("redplad.api.chat")

router = APIRouter()


def get_chat_service(relay: ChatRelay = Depends(get_chat_relay)) -> ChatService:
    return ChatService(relay=relay)


# ──────────────────────────────────────────────────────────────────────────────
# Conversations
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/conversations", response_model=ConversationListResponse, summary="List conversations")
async def list_conversations(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    profile: Profile = Depends(get_current_profile),
    service: ChatService = Depends(get_chat_service),
    db: AsyncSession = Depends(get_db),
) -> ConversationListResponse:
    items, total = await service.list_conversations(profile.id, db, page=page, limit=limit)
    return ConversationListResponse(
        conversations=items, pagination=Pagination.build(page, limit, total)
    )


@router.get(
    "/conversations/{conversation_id}/messages",
    response_model=MessageListResponse,
    summary="Read a conversation",
)
async def list_messages(
    conversation_id: uuid.UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    profile: Profile = Depends(get_current_profile),
    service: ChatService = Depends(get_chat_service),
    db: AsyncSession = Depends(get_db),
) -> MessageListResponse:
    messages, total = await service.list_messages(
        profile.id, conversation_id, db, page=page, limit=limit
    )
    return MessageListResponse(messages=messages, pagination=Pagination.build(page, limit, total))


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=SendMessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message",
)
async def send_message(
    conversation_id: uuid.UUID,
    payload: MessageCreate,
    profile: Profile = Depends(get_current_profile),
    service: ChatService = Depends(get_chat_service),
    db: AsyncSession = Depends(get_db),
) -> SendMessageResponse:
    message = await service.send_message(
        profile.id,
        conversation_id,
        db,
        content=payload.content,
        message_type=payload.message_type,
        original_language=payload.original_language,
        translated_content=payload.translated_content,
    )
    return SendMessageResponse(message="Message sent successfully", data=message)


@router.post(
    "/conversations/{conversation_id}/typing",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Broadcast a typing indicator",
)
async def typing(
    conversation_id: uuid.UUID,
    payload: TypingRequest,
    profile: Profile = Depends(get_current_profile),
    service: ChatService = Depends(get_chat_service),
    db: AsyncSession = Depends(get_db),
) -> Response:
    await service.typing(profile.id, conversation_id, payload.is_typing, db)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ──────────────────────────────────────────────────────────────────────────────
# Messages
# ──────────────────────────────────────────────────────────────────────────────

@router.put("/messages/{message_id}/read", response_model=MessageResponse, summary="Mark read")
async def mark_message_read(
    message_id: uuid.UUID,
    profile: Profile = Depends(get_current_profile),
    service: ChatService = Depends(get_chat_service),
    db: AsyncSession = Depends(get_db),
):
    return await service.mark_read(profile.id, message_id, db)


@router.delete(
    "/messages/{message_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete own message",
)
async def delete_message(
    message_id: uuid.UUID,
    profile: Profile = Depends(get_current_profile),
    service: ChatService = Depends(get_chat_service),
    db: AsyncSession = Depends(get_db),
) -> Response:
    await service.delete_message(profile.id, message_id, db)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ──────────────────────────────────────────────────────────────────────────────
# WS /ws?token= — realtime relay
# ──────────────────────────────────────────────────────────────────────────────

CLIENT_FRAME_TYPES = ("join_conversation", "leave_conversation", "typing")


async def _read_frame(websocket: WebSocket) -> Any:
    """Next client frame decoded as JSON.  Text and binary frames are accepted."""
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
    raw = message.get("text")
    if raw is None:
        raw = (message.get("bytes") or b"").decode("utf-8")
    return json.loads(raw)


async def _send_error(websocket: WebSocket, code: str) -> None:
    await websocket.send_json({"event": "error", "data": {"code": code}})


async def _handle_client_frame(
    frame: Any,
    user_id: uuid.UUID,
    pubsub,
    relay: ChatRelay,
    service: ChatService,
) -> None:
    if not isinstance(frame, dict):
        raise BadRequestError("Frames must be JSON objects", "INVALID_FRAME")
    kind = frame.get("type")
    if kind not in CLIENT_FRAME_TYPES:
        raise BadRequestError(f"Unknown frame type: {kind}", "UNKNOWN_FRAME_TYPE")
    try:
        conversation_id = uuid.UUID(str(frame.get("conversation_id")))
    except ValueError:
        raise BadRequestError("conversation_id must be a UUID", "INVALID_FRAME") from None

    # Membership is checked against the database before joining a room.
    async with async_session_factory() as db:
        await service.get_conversation_for(user_id, conversation_id, db)

    if kind == "join_conversation":
        await pubsub.subscribe(conversation_channel(conversation_id))
    elif kind == "leave_conversation":
        await pubsub.unsubscribe(conversation_channel(conversation_id))
    else:
        await relay.typing(conversation_id, user_id, bool(frame.get("is_typing", True)))


@router.websocket("/ws")
async def chat_socket(websocket: WebSocket) -> None:
    """Relay events to one member until either side goes away.

    Client frames and relayed events run as two tasks.  Whichever finishes
    first ends the connection; a failure other than a disconnect is logged
    and closes the socket with 1011.
    """
    try:
        user = authenticate_websocket(websocket)
    except APIError as exc:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=exc.code)
        return

    relay = get_chat_relay()
    service = ChatService(relay=relay)
    log = logger.bind(user_id=str(user.id))

    if relay.redis is None:
        log.error("socket_relay_unavailable")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    await websocket.accept()
    pubsub = await relay.open_pubsub(user_channel(user.id))
    log.info("socket_connected")

    async def receive_frames() -> None:
        while True:
            try:
                frame = await _read_frame(websocket)
            except ValueError:
                await _send_error(websocket, "INVALID_FRAME")
                continue
            try:
                await _handle_client_frame(frame, user.id, pubsub, relay, service)
            except APIError as exc:
                await _send_error(websocket, exc.code)

    async def pump_events() -> None:
        while True:
            event = await relay.next_event(pubsub, timeout=1.0)
            if event is not None:
                await websocket.send_json(event)

    tasks = {
        asyncio.create_task(receive_frames(), name="ws-receive"),
        asyncio.create_task(pump_events(), name="ws-pump"),
    }
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc is None or isinstance(exc, WebSocketDisconnect):
                log.info("socket_disconnected", task=task.get_name())
                continue
            log.error(
                "socket_task_failed",
                task=task.get_name(),
                error=str(exc),
                exc_info=exc,
            )
            if websocket.application_state == WebSocketState.CONNECTED:
                await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await pubsub.aclose()
