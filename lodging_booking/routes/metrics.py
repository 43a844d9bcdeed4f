"""
Prometheus metrics endpoint.

Example:
    GET /metrics

    Response:
        # HELP lodging_reservations_created_total Reservation creation attempts by outcome
        # TYPE lodging_reservations_created_total counter
        lodging_reservations_created_total{outcome="created"} 42.0
        ...
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics", response_class=Response)
async def metrics() -> Any:
    """Expose all registered metrics in Prometheus text format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
