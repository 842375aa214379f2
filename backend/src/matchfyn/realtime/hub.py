"""In-process pub/sub hub that fans events out to websocket connections."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Protocol, Set

from fastapi.websockets import WebSocketDisconnect, WebSocketState

from app.monitoring.metrics import realtime_connections, realtime_events_total


logger = logging.getLogger(__name__)

ALL_GROUP = "all"


def user_group(user_id: int) -> str:
    return f"user_{user_id}"


def room_group(room_id: int) -> str:
    return f"room_{room_id}"


def build_event(event: str, data: dict[str, Any] | str) -> dict[str, Any]:
    """Envelope pushed to clients: ``{"type": <event>, "data": ...}``."""

    return {"type": event, "data": data}


class JsonSender(Protocol):
    async def send_json(self, data: Any) -> None: ...


@dataclass(slots=True)
class Connection:
    """A live socket and the groups it is subscribed to."""

    connection_id: str
    user_id: int
    user_name: str
    socket: JsonSender
    groups: Set[str] = field(default_factory=set)


async def safe_send_json(socket: JsonSender, data: dict[str, Any]) -> bool:
    """Send JSON, returning ``False`` instead of raising when the socket is gone."""

    state = getattr(socket, "application_state", WebSocketState.CONNECTED)
    if state != WebSocketState.CONNECTED:
        return False
    try:
        await socket.send_json(data)
        return True
    except (WebSocketDisconnect, RuntimeError) as exc:
        logger.debug("Failed to send websocket message: %s", exc)
        return False


class RealtimeHub:
    """Tracks connections by id and by subscriber group."""

    def __init__(self) -> None:
        self._connections: Dict[str, Connection] = {}
        self._groups: Dict[str, Set[str]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def connect(
        self,
        connection_id: str,
        user_id: int,
        user_name: str,
        socket: JsonSender,
    ) -> Connection:
        connection = Connection(connection_id, user_id, user_name, socket)
        async with self._lock:
            self._connections[connection_id] = connection
            for group in (ALL_GROUP, user_group(user_id)):
                self._groups[group].add(connection_id)
                connection.groups.add(group)
        realtime_connections.inc(scope="sessions")
        return connection

    async def disconnect(self, connection_id: str) -> Connection | None:
        async with self._lock:
            connection = self._connections.pop(connection_id, None)
            if connection is None:
                return None
            for group in connection.groups:
                members = self._groups.get(group)
                if members is not None:
                    members.discard(connection_id)
                    if not members:
                        self._groups.pop(group, None)
        realtime_connections.dec(scope="sessions")
        return connection

    async def add_to_group(self, connection_id: str, group: str) -> None:
        async with self._lock:
            connection = self._connections.get(connection_id)
            if connection is None:
                return
            self._groups[group].add(connection_id)
            connection.groups.add(group)

    async def remove_from_group(self, connection_id: str, group: str) -> None:
        async with self._lock:
            connection = self._connections.get(connection_id)
            if connection is not None:
                connection.groups.discard(group)
            members = self._groups.get(group)
            if members is not None:
                members.discard(connection_id)
                if not members:
                    self._groups.pop(group, None)

    def group_members(self, group: str) -> set[str]:
        return set(self._groups.get(group, ()))

    def get(self, connection_id: str) -> Connection | None:
        return self._connections.get(connection_id)

    async def _deliver(self, connection_ids: Iterable[str], event: str, data: dict[str, Any] | str) -> int:
        payload = build_event(event, data)
        delivered = 0
        for connection_id in list(connection_ids):
            connection = self._connections.get(connection_id)
            if connection is None:
                continue
            if await safe_send_json(connection.socket, payload):
                delivered += 1
        realtime_events_total.inc(event=event)
        return delivered

    async def send_to_connection(self, connection_id: str, event: str, data: dict[str, Any] | str) -> int:
        return await self._deliver((connection_id,), event, data)

    async def send_to_group(self, group: str, event: str, data: dict[str, Any] | str) -> int:
        return await self._deliver(self.group_members(group), event, data)

    async def send_to_all(self, event: str, data: dict[str, Any] | str) -> int:
        return await self.send_to_group(ALL_GROUP, event, data)


hub = RealtimeHub()


def get_hub() -> RealtimeHub:
    return hub
