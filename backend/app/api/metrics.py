"""Prometheus text endpoint for room lifecycle and realtime metrics."""

from fastapi import APIRouter, Response

from app.monitoring.registry import registry

router = APIRouter(tags=["metrics"])

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4"


@router.get("/metrics", response_class=Response)
def export_metrics() -> Response:
    return Response(content=registry.render(), media_type=PROMETHEUS_CONTENT_TYPE)
