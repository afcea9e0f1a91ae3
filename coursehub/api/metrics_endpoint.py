"""GET /metrics in Prometheus text exposition format.

Besides the HTTP series from MetricsMiddleware this exposes the progress
engine counters (toggles by outcome, unlocks, completions, fan-out
records) and the lock wait histogram declared in coursehub.core.metrics.
Restrict it to the scraper at the ingress; it is not authenticated.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
