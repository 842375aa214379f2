"""Metric registry plus the room lifecycle and realtime metrics served on /metrics."""

from . import metrics, registry

__all__ = ["metrics", "registry"]
