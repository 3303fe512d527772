"""
NoteDrop Backend — Health Check Route
======================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Asks the document store whether the repository is reachable.

Status levels:
    - healthy:   repository reachable
    - degraded:  repository unreachable; reads and writes will fail

The transformer services are not probed. They fail open, so their outage
never makes the service unhealthy.
"""

import logging
import time

from fastapi import APIRouter, Depends

from notedrop import __version__
from notedrop.dependencies import get_note_store
from notedrop.schemas.note import HealthResponse
from notedrop.services.note_service import NoteStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(store: NoteStore = Depends(get_note_store)) -> HealthResponse:
    document_status = "reachable"
    overall = "healthy"

    if not await store.document_store.health_check():
        document_status = "unreachable"
        overall = "degraded"
        logger.warning("Health check: notes repository unreachable")

    return HealthResponse(
        status=overall,
        version=__version__,
        document_store=document_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
