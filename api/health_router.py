"""
Health and Monitoring Router.

Public, unauthenticated endpoints reporting whether the Roast API is up and
which of its upstream services are configured.

Endpoints Provided:
- `/api/health`: Lightweight liveness check with uptime, version, environment
  and a per-integration configuration summary (GitHub, LLM, ElevenLabs).
- `/api/health/detailed`: Component-level report covering the cache (a live
  set/get/delete round trip) and the rate limiter. Reports "degraded" rather
  than failing when one component is unhealthy.

Architectural Design:
- Public Access: Both endpoints suit uptime checkers and container probes.
- Graceful Degradation: The detailed check reports per-component status so a
  broken cache does not make the whole service look down.
"""

import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from api.dependencies import (
    get_cache_manager,
    get_rate_limiter,
    get_roast_service,
    get_settings,
    get_tts_service,
)
from core.cache import CacheManager
from core.config import Settings
from core.logging_config import get_logger
from core.rate_limiter import MemoryRateLimiter
from services.roast_service import RoastService
from services.tts_service import TTSService

logger = get_logger(__name__)

health_router = APIRouter(prefix="/api/health", tags=["Health & Monitoring"])


def format_uptime(seconds: float) -> str:
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m {secs}s"


def _uptime(request: Request) -> str:
    started = getattr(request.app.state, "started_at", time.monotonic())
    return format_uptime(time.monotonic() - started)


@health_router.get("")
async def health_check(
    request: Request,
    settings: Settings = Depends(get_settings),
    roast_service: RoastService = Depends(get_roast_service),
    tts_service: TTSService = Depends(get_tts_service),
) -> Dict[str, Any]:
    """
    Basic health check endpoint (no authentication required)

    Returns:
        Dict with status, timestamp, uptime, version and integration summary
    """
    logger.debug("Health check requested")

    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": _uptime(request),
        "version": settings.version,
        "environment": settings.environment,
        "services": {
            "github": "authenticated" if settings.has_github_auth else "anonymous",
            "llm": roast_service.provider_name or "fallback",
            "elevenlabs": "configured" if tts_service.is_available() else "not configured",
        },
    }


@health_router.get("/detailed")
async def detailed_health_check(
    request: Request,
    settings: Settings = Depends(get_settings),
    cache: CacheManager = Depends(get_cache_manager),
    rate_limiter: MemoryRateLimiter = Depends(get_rate_limiter),
) -> Dict[str, Any]:
    """Detailed health check with component status"""
    logger.info("Detailed health check requested")

    health_status: Dict[str, Any] = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": _uptime(request),
        "version": settings.version,
        "components": {},
    }

    cache_health = await cache.health_check()
    health_status["components"]["cache"] = cache_health
    if cache_health.get("status") != "healthy":
        health_status["status"] = "degraded"

    try:
        health_status["components"]["rate_limiter"] = {
            "status": "healthy",
            "stats": rate_limiter.get_stats(),
        }
    except Exception as e:
        logger.warning(f"Rate limiter health check failed: {e}")
        health_status["components"]["rate_limiter"] = {
            "status": "unavailable",
            "error": str(e),
        }
        health_status["status"] = "degraded"

    return health_status
