"""
Metrics route - Prometheus scrape endpoint
"""

from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from phatmqtt.coordinator import Coordinator
from phatmqtt.dependencies import get_coordinator

router = APIRouter(tags=["Metrics"])


@router.get("/metrics")
async def metrics(coordinator: Coordinator = Depends(get_coordinator)) -> Response:
    """Expose the server's counters and gauges in Prometheus text format."""
    return Response(
        content=generate_latest(coordinator.metrics.registry),
        media_type=CONTENT_TYPE_LATEST,
    )
