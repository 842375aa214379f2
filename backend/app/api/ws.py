"""WebSocket endpoint for the realtime chat channel."""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Dict, TypeVar

from fastapi import APIRouter, WebSocket, status
from fastapi.exceptions import HTTPException
from fastapi.websockets import WebSocketDisconnect, WebSocketState

from matchfyn.realtime import build_event, safe_send_json

from app.api.deps import get_user_from_token
from app.config import get_settings
from app.core.errors import ServiceError, ValidationFailed
from app.database import get_db_session
from app.services.room_sessions import RoomSessionManager, SessionContext, get_room_sessions

router = APIRouter(prefix="/ws", tags=["ws"])

settings = get_settings()

logger = logging.getLogger(__name__)

T = TypeVar("T")

PING_PAYLOAD = {"type": "ping"}
PONG_PAYLOAD = {"type": "pong"}


async def iter_keepalive_messages(
    websocket: WebSocket,
    receiver: Callable[[], Awaitable[T]],
    *,
    timeout_seconds: float | int | None,
    ping_interval_seconds: float | int | None,
    ping_payload: Dict[str, Any] | None = None,
) -> AsyncIterator[T]:
    """Yield frames from *receiver*, pinging the client while it stays idle."""

    ping_payload = ping_payload or PING_PAYLOAD
    timeout = float(timeout_seconds) if timeout_seconds else 0.0
    interval = float(ping_interval_seconds) if ping_interval_seconds else 0.0
    last_activity = time.monotonic()
    last_ping_sent: float | None = None

    while True:
        try:
            if timeout > 0:
                message = await asyncio.wait_for(receiver(), timeout=timeout)
            else:
                message = await receiver()
        except asyncio.TimeoutError:
            if websocket.application_state != WebSocketState.CONNECTED:
                break

            now = time.monotonic()
            idle_long_enough = now - last_activity >= interval
            ping_due = last_ping_sent is None or now - last_ping_sent >= interval
            if interval <= 0 or (idle_long_enough and ping_due):
                if not await safe_send_json(websocket, ping_payload):
                    break
                last_ping_sent = now
            continue
        except asyncio.CancelledError:  # pragma: no cover - cooperative cancellation
            raise
        except (RuntimeError, WebSocketDisconnect):
            break
        else:
            last_activity = time.monotonic()
            last_ping_sent = None
            yield message


async def _resolve_context(websocket: WebSocket) -> SessionContext | None:
    token = websocket.query_params.get("token")
    if not token:
        auth_header = websocket.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            token = auth_header.removeprefix("Bearer ").strip()
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Missing token")
        return None

    try:
        with get_db_session() as db:
            user = get_user_from_token(token, db)
            return SessionContext(
                connection_id=uuid.uuid4().hex,
                user_id=user.id,
                user_name=user.full_name,
                profile_image_url=user.profile_image_url,
            )
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid token")
        return None


async def _send_error(websocket: WebSocket, message: str, operation: str | None = None) -> None:
    await safe_send_json(websocket, build_event("Error", {"message": message, "operation": operation}))


def _int_arg(payload: dict[str, Any], name: str) -> int:
    value = payload.get(name)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationFailed(f"'{name}' must be an integer")
    return value


def _bool_arg(payload: dict[str, Any], name: str) -> bool:
    value = payload.get(name)
    if not isinstance(value, bool):
        raise ValidationFailed(f"'{name}' must be a boolean")
    return value


def _describe(operation: str) -> str:
    words = []
    for char in operation:
        if char.isupper() and words:
            words.append(" ")
        words.append(char.lower())
    return "".join(words) or "process request"


async def dispatch_operation(
    sessions: RoomSessionManager,
    ctx: SessionContext,
    operation: str,
    payload: dict[str, Any],
) -> None:
    """Run one client operation; results reach the client through hub events."""

    if operation == "JoinRoom":
        await sessions.join_room(ctx, _int_arg(payload, "room_id"))
    elif operation == "LeaveRoom":
        await sessions.leave_room(ctx, _int_arg(payload, "room_id"))
    elif operation == "SendMessage":
        await sessions.send_message(
            ctx,
            _int_arg(payload, "room_id"),
            str(payload.get("content") or ""),
            str(payload.get("message_type") or "Text"),
        )
    elif operation == "ReactToMessage":
        await sessions.react_to_message(
            ctx, _int_arg(payload, "message_id"), str(payload.get("reaction_type") or "")
        )
    elif operation == "ToggleMicrophone":
        await sessions.toggle_microphone(ctx, _int_arg(payload, "room_id"), _bool_arg(payload, "is_enabled"))
    elif operation == "UpdateSpeakingStatus":
        await sessions.update_speaking_status(
            ctx, _int_arg(payload, "room_id"), _bool_arg(payload, "is_speaking")
        )
    else:
        raise ValidationFailed(f"Unsupported operation: {operation}")


@router.websocket("/chat")
async def websocket_chat(websocket: WebSocket) -> None:
    """Realtime room session: one socket per connection id."""

    ctx = await _resolve_context(websocket)
    if ctx is None:
        return

    sessions = get_room_sessions()
    await websocket.accept()
    await sessions.connect(ctx, websocket)

    try:
        async for raw_message in iter_keepalive_messages(
            websocket,
            websocket.receive_text,
            timeout_seconds=settings.websocket_keepalive_timeout_seconds,
            ping_interval_seconds=settings.websocket_keepalive_ping_interval_seconds,
        ):
            try:
                payload = json.loads(raw_message)
            except json.JSONDecodeError:
                await _send_error(websocket, "Invalid message format")
                continue

            if not isinstance(payload, dict):
                await _send_error(websocket, "Message payload must be a JSON object")
                continue

            operation = str(payload.get("type", ""))
            if operation == "ping":
                await safe_send_json(websocket, PONG_PAYLOAD)
                continue
            if operation == "pong":
                continue

            try:
                await dispatch_operation(sessions, ctx, operation, payload)
            except ServiceError as exc:
                await _send_error(websocket, exc.detail, operation)
            except Exception:
                logger.exception("Realtime operation %s failed for user %s", operation, ctx.user_id)
                await _send_error(websocket, f"Failed to {_describe(operation)}", operation)
    finally:
        await sessions.disconnect(ctx)
