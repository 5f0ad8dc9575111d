"""
NatJus Backend — Health Check Route
=====================================

What:  Liveness and dependency status for probes and monitoring.

Status levels:
    healthy:   database reachable and the default LLM gateway configured
    degraded:  database up, but the gateway key is missing or Gemini
               (when configured) is unreachable or its circuit is open
    unhealthy: database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Response
from sqlalchemy import text

from natjus import __version__
from natjus.config import settings
from natjus.database import engine
from natjus.schemas.nota import HealthResponse
from natjus.services.gemini_service import CircuitBreaker, get_gemini_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


async def _gemini_status() -> str:
    if not settings.gemini_api_key:
        return "not_configured"
    try:
        service = get_gemini_service(settings.gemini_api_key, settings.gemini_model)
        if service.circuit_breaker.state == CircuitBreaker.OPEN:
            return "circuit_open"
        return "available" if await service.health_check() else "unavailable"
    except Exception as e:
        logger.warning("Health check: Gemini unreachable: %s", e)
        return "unavailable"


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health_check(response: Response) -> HealthResponse:
    db_status = "connected"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        logger.warning("Health check: database unreachable: %s", e)

    llm_status = "configured" if settings.llm_gateway_api_key else "not_configured"
    gemini_status = await _gemini_status()

    if db_status != "connected":
        overall = "unhealthy"
        response.status_code = 503
    elif llm_status != "configured" or gemini_status in ("unavailable", "circuit_open"):
        overall = "degraded"
    else:
        overall = "healthy"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        llm=llm_status,
        gemini=gemini_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
