"""
SnapMenu Backend — Health Check Route
=======================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Reports the Gemini extraction dependency; the codec and share links
       have no dependencies and are always available.

Status levels:
    - healthy:   Gemini reachable
    - degraded:  Gemini unreachable, unconfigured, or circuit open.
                 Share links and the viewer still work, so this stays HTTP 200.
"""

import logging
import time

from fastapi import APIRouter

from snapmenu import __version__
from snapmenu.config import settings
from snapmenu.schemas.api import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check() -> HealthResponse:
    gemini_status = "available"
    overall = "healthy"

    try:
        from snapmenu.services.gemini_service import gemini_service
        if not settings.gemini_api_key:
            gemini_status = "not_configured"
            overall = "degraded"
        elif gemini_service.circuit_breaker.state == "open":
            gemini_status = "circuit_open"
            overall = "degraded"
        elif not await gemini_service.health_check():
            gemini_status = "unavailable"
            overall = "degraded"
    except Exception as e:
        gemini_status = "unavailable"
        overall = "degraded"
        logger.warning("Health check: Gemini unreachable: %s", str(e))

    return HealthResponse(
        status=overall,
        version=__version__,
        gemini=gemini_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
