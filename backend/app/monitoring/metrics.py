"""Metric definitions for room maintenance and realtime sessions."""

from __future__ import annotations

import time

from .registry import registry


room_maintenance_runs_total = registry.counter(
    "room_maintenance_runs_total",
    "Room maintenance step executions grouped by outcome.",
    label_names=("step", "outcome"),
)

room_maintenance_last_run_timestamp = registry.gauge(
    "room_maintenance_last_run_timestamp",
    "Unix timestamp of the last completed room maintenance sweep.",
)

room_maintenance_duration_seconds = registry.gauge(
    "room_maintenance_duration_seconds",
    "Execution time of the most recent room maintenance sweep.",
)

rooms_active = registry.gauge(
    "rooms_active",
    "Active rooms per room type as seen by the last health check.",
    label_names=("room_type",),
)

room_participants_active = registry.gauge(
    "room_participants_active",
    "Active room participants as seen by the last health check.",
)

realtime_connections = registry.gauge(
    "realtime_active_connections",
    "Number of websocket connections handled by this process.",
    label_names=("scope",),
)

realtime_events_total = registry.counter(
    "realtime_events_total",
    "Realtime events pushed to clients, by event name.",
    label_names=("event",),
)


def mark_initial_state() -> None:
    """Expose a baseline before the first sweep completes."""

    room_maintenance_last_run_timestamp.set(time.time())
    room_maintenance_duration_seconds.set(0)
