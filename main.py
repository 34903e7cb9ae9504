"""
The Git Roast Show API - Main Application Entry Point.

This module builds and configures the FastAPI application behind The Git Roast
Show. It wires settings, logging, caching, rate limiting, middleware, exception
handling and routes together.

The API gathers a GitHub user's public footprint, asks a chat model to write a
stage-ready comedy roast about it, and proxies ElevenLabs so the stage client
can speak the roast aloud.

Key Responsibilities:
- Build every service from one `Settings` object (`create_app`) and store them
  on `app.state`, where route dependencies pick them up.
- Register middleware for correlation IDs, security headers, timing, error
  handling, per-client rate limiting and request size limits.
- Render `RoastAPIException` and unknown routes as the JSON error shapes the
  stage client understands.
- Manage the application's lifecycle: logging setup and the cache purge task
  on startup; closing upstream HTTP sessions on shutdown.

Architecture:
Routers (`api/`) stay thin and delegate to services (`services/`), which use
providers (`providers/`) for all outbound HTTP. Cross-cutting concerns live in
`core/`. Tests build their own app with `create_app(settings, ...)` and fake
services instead of patching module globals.
"""

import time
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.health_router import health_router
from api.roast_router import roast_router
from api.tts_router import tts_router
from api.user_router import user_router
from core.cache import CacheManager, MemoryCacheBackend
from core.config import Settings
from core.exceptions import GitHubRateLimitError, RoastAPIException, error_body
from core.logging_config import get_logger, setup_logging
from core.middleware import (
    CorrelationMiddleware,
    ErrorHandlingMiddleware,
    PerformanceMiddleware,
    RequestValidationMiddleware,
)
from core.rate_limiter import MemoryRateLimiter, create_rate_limiter
from core.security_middleware import RateLimitMiddleware, SecurityHeadersMiddleware
from providers.github_provider import GitHubProvider
from providers.llm_provider import create_llm_provider
from providers.tts_provider import ElevenLabsProvider
from services.github_service import GitHubService
from services.roast_service import RoastService
from services.tts_service import TTSService

logger = get_logger("api.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    if app.state.configure_logging:
        setup_logging(settings.environment, settings.log_level)
    startup_logger = get_logger("api.startup")

    app.state.started_at = time.monotonic()
    app.state.cache.start_purging(interval=max(1, settings.cache_ttl))
    startup_logger.info(
        f"Roast API started on port {settings.port} ({settings.environment})",
        extra={
            "github_auth": settings.has_github_auth,
            "llm": app.state.roast_service.provider_name or "fallback",
            "tts": app.state.tts_service.is_available(),
        },
    )
    yield

    startup_logger.info("Shutting down Roast API")
    await app.state.cache.stop_purging()
    for service in (
        app.state.github_service,
        app.state.roast_service,
        app.state.tts_service,
    ):
        try:
            await service.close()
        except Exception as e:
            startup_logger.warning(f"Error closing {type(service).__name__}: {e}")
    startup_logger.info("Cleanup completed")


def create_app(
    settings: Optional[Settings] = None,
    *,
    cache: Optional[CacheManager] = None,
    rate_limiter: Optional[MemoryRateLimiter] = None,
    github_service: Optional[GitHubService] = None,
    roast_service: Optional[RoastService] = None,
    tts_service: Optional[TTSService] = None,
    configure_logging: bool = True,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Configuration; read from the environment when omitted.
        cache, rate_limiter, github_service, roast_service, tts_service:
            Pre-built components, mainly for tests. Anything omitted is built
            from `settings`.
        configure_logging: Whether startup should install the logging config.
    """
    settings = settings or Settings.from_env()

    cache = cache or CacheManager(
        MemoryCacheBackend(max_size=settings.max_cache_size, default_ttl=settings.cache_ttl)
    )
    rate_limiter = rate_limiter or create_rate_limiter(
        settings.rate_limit_max_requests, settings.rate_limit_window_seconds
    )
    github_service = github_service or GitHubService(
        GitHubProvider(
            cache,
            token=settings.github_token,
            client_id=settings.github_client_id,
            client_secret=settings.github_client_secret,
            base_url=settings.github_base_url,
            cache_ttl=settings.cache_ttl,
        )
    )
    roast_service = roast_service or RoastService(create_llm_provider(settings))
    tts_service = tts_service or TTSService(
        ElevenLabsProvider(
            settings.elevenlabs_api_key,
            base_url=settings.elevenlabs_base_url,
            model_id=settings.tts_model,
            default_voice_id=settings.tts_voice_id,
        )
        if settings.has_tts
        else None
    )

    app = FastAPI(
        title="The Git Roast Show API",
        description="Comedic roasts of GitHub profiles, with text-to-speech",
        version=settings.version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.configure_logging = configure_logging
    app.state.started_at = time.monotonic()
    app.state.cache = cache
    app.state.rate_limiter = rate_limiter
    app.state.github_service = github_service
    app.state.roast_service = roast_service
    app.state.tts_service = tts_service

    register_exception_handlers(app, settings)

    # Added innermost first; CORS ends up outermost
    app.add_middleware(RequestValidationMiddleware)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(ErrorHandlingMiddleware, expose_details=settings.is_development)
    app.add_middleware(PerformanceMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, hsts=settings.is_production)
    app.add_middleware(CorrelationMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins()),
        allow_origin_regex=settings.allowed_origin_regex(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-ID", "Retry-After"],
    )

    app.include_router(health_router)
    app.include_router(roast_router)
    app.include_router(user_router)
    app.include_router(tts_router)

    return app


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(RoastAPIException)
    async def roast_api_exception_handler(request: Request, exc: RoastAPIException):
        level = logger.error if exc.status_code >= 500 else logger.info
        level(
            f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}"
        )
        include_details = settings.is_development or exc.status_code < 500
        headers = None
        if isinstance(exc, GitHubRateLimitError):
            headers = {"Retry-After": str(exc.retry_after)}
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc, include_details=include_details),
            headers=headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content={"error": "Route not found"})
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "message": str(exc.errors())},
        )


load_dotenv()
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=app.state.settings.port,
        reload=app.state.settings.is_development,
        log_level="info",
    )
