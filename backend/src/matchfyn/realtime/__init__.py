"""Realtime fan-out for MatchFyn websocket sessions."""

from .hub import (
    ALL_GROUP,
    Connection,
    RealtimeHub,
    build_event,
    get_hub,
    room_group,
    safe_send_json,
    user_group,
)

__all__ = [
    "ALL_GROUP",
    "Connection",
    "RealtimeHub",
    "build_event",
    "get_hub",
    "room_group",
    "safe_send_json",
    "user_group",
]
