"""WebSocket gateway with session-token auth."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from nest.core.ws_manager import user_room, ws_manager
from nest.db.session import SessionLocal
from nest.models.user import User
from nest.services import kv_store

logger = logging.getLogger(__name__)

router = APIRouter()


def _set_presence(user_id: int, online: bool) -> bool:
    """Record presence. Returns False when the user is missing or inactive."""
    db = SessionLocal()
    try:
        user = db.get(User, user_id)
        if not user or not user.is_active:
            return False
        user.is_online = online
        if not online:
            user.last_seen = datetime.now(timezone.utc)
        db.commit()
        return True
    finally:
        db.close()


def _room_name(data: Any) -> str | None:
    if isinstance(data, dict):
        data = data.get("room")
    if isinstance(data, (str, int)) and str(data):
        return str(data)
    return None


async def _handle_event(websocket: WebSocket, user_id: int, event: str, data: Any) -> None:
    if event == "join_room":
        room = _room_name(data)
        # Personal rooms belong to their user only.
        if room and (not room.startswith("user:") or room == user_room(user_id)):
            ws_manager.join(websocket, room)
            logger.info("User %s joined room: %s", user_id, room)

    elif event == "leave_room":
        room = _room_name(data)
        if room and room != user_room(user_id):
            ws_manager.leave(websocket, room)
            logger.info("User %s left room: %s", user_id, room)

    elif event == "emergency_alert":
        data = data or {}
        alert = await kv_store.store_emergency_alert(
            user_id,
            str(data.get("type", "")),
            str(data.get("description", "")),
            data.get("location"),
        )
        await ws_manager.broadcast(
            "emergency_notification",
            {
                "id": alert["id"],
                "type": alert["type"],
                "location": alert["location"],
                "timestamp": alert["timestamp"],
            },
        )
        logger.warning("Emergency alert %s sent by user %s", alert["id"], user_id)

    elif event == "typing":
        data = data or {}
        chat_id = data.get("chatId")
        # Only members of the chat room may signal typing in it.
        if chat_id and ws_manager.in_room(websocket, str(chat_id)):
            await ws_manager.send_to_room(
                str(chat_id),
                "user_typing",
                {"userId": user_id, "isTyping": bool(data.get("isTyping"))},
                exclude=websocket,
            )

    else:
        logger.debug("Ignoring unknown socket event %r from user %s", event, user_id)


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint. Client connects with ?token=<socket token> from
    POST /auth/socket-token and exchanges {"event": ..., "data": ...} frames.
    Client events: join_room, leave_room, emergency_alert, typing.
    """
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=4001, reason="Missing token")
        return

    user_id = await kv_store.resolve_socket_token(token)
    if user_id is None or not _set_presence(user_id, True):
        await websocket.close(code=4003, reason="Invalid or expired token")
        return

    await ws_manager.connect(websocket, user_id)
    try:
        while True:
            raw = await websocket.receive_text()
            # Heartbeat
            if raw == "ping":
                await websocket.send_text('{"event":"pong"}')
                continue
            try:
                message = json.loads(raw)
                if not isinstance(message, dict):
                    raise ValueError("frame must be a JSON object")
                await _handle_event(websocket, user_id, str(message.get("event", "")), message.get("data"))
            except Exception:  # noqa: BLE001 - one bad event must not drop the socket
                logger.exception("Error handling socket event from user %s", user_id)
    except WebSocketDisconnect:
        pass
    finally:
        ws_manager.disconnect(websocket, user_id)
        if not ws_manager.is_connected(user_id):
            _set_presence(user_id, False)
