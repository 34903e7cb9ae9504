"""FastAPI dependencies resolving the services built by `create_app`."""

from fastapi import Request

from core.cache import CacheManager
from core.config import Settings
from core.rate_limiter import MemoryRateLimiter
from services.github_service import GitHubService
from services.roast_service import RoastService
from services.tts_service import TTSService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_github_service(request: Request) -> GitHubService:
    return request.app.state.github_service


def get_roast_service(request: Request) -> RoastService:
    return request.app.state.roast_service


def get_tts_service(request: Request) -> TTSService:
    return request.app.state.tts_service


def get_cache_manager(request: Request) -> CacheManager:
    return request.app.state.cache


def get_rate_limiter(request: Request) -> MemoryRateLimiter:
    return request.app.state.rate_limiter
