"""
PetServices Backend — Health Check Route
=========================================

What:  Liveness/readiness probe for load balancers and uptime monitors.
How:   SELECT 1 against the database and a cheap object store probe.

Status levels:
    healthy:    database connected, object store available
    degraded:   database connected, object store unavailable
    unhealthy:  database disconnected or not configured

Always answers 200 so the probe itself never fails on a half-configured
deployment; monitors read the `status` field.
"""

import logging
import time

from fastapi import APIRouter, Request

from petservices import __version__
from petservices.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health_check(request: Request) -> HealthResponse:
    state = request.app.state

    if not state.db.configured:
        db_status = "unconfigured"
    elif await state.db.ping():
        db_status = "connected"
    else:
        db_status = "disconnected"

    try:
        storage_ok = await state.object_store.health_check()
    except Exception as e:
        logger.warning("Health check: object store probe failed: %s", str(e))
        storage_ok = False
    storage_status = "available" if storage_ok else "unavailable"

    if db_status != "connected":
        overall = "unhealthy"
    elif not storage_ok:
        overall = "degraded"
    else:
        overall = "healthy"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        storage=storage_status,
        uptime_seconds=round(time.time() - state.started_at, 2),
    )
