"""
GitHub REST Provider

Thin aiohttp client for the handful of GitHub REST endpoints the roast needs.
Every response goes through the shared `CacheManager`, keyed by endpoint and
query parameters, so a user roasted twice within the cache TTL costs GitHub
nothing the second time.

Failures are reported as exceptions from `core.exceptions`:
403 and 429 become `GitHubRateLimitError`, and any other non-2xx status,
timeout or connection problem becomes `GitHubAPIError` carrying the upstream
status (404 included, so callers can decide what "not found" means for them).
"""

import asyncio
from typing import Any, Dict, List, Optional

import aiohttp

from core.cache import CacheManager, cache_key
from core.exceptions import GitHubAPIError, GitHubRateLimitError
from core.logging_config import get_logger

logger = get_logger(__name__)

USER_AGENT = "RoastRepo-Backend/1.0"
RATE_LIMIT_RETRY_AFTER = 3600


class GitHubProvider:
    """Cached GitHub REST client"""

    def __init__(
        self,
        cache: CacheManager,
        token: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        base_url: str = "https://api.github.com",
        timeout: float = 10.0,
        cache_ttl: Optional[int] = None,
    ):
        self.cache = cache
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.cache_ttl = cache_ttl
        self._auth: Optional[aiohttp.BasicAuth] = None
        self._session: Optional[aiohttp.ClientSession] = None

        self.headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": USER_AGENT,
        }
        if token:
            self.headers["Authorization"] = f"token {token}"
        elif client_id and client_secret:
            self._auth = aiohttp.BasicAuth(client_id, client_secret)
        else:
            logger.warning(
                "No GitHub credentials configured; requests are limited to 60 per hour"
            )

    @property
    def authenticated(self) -> bool:
        return "Authorization" in self.headers or self._auth is not None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self.headers, auth=self._auth, timeout=self.timeout
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def make_request(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        GET an endpoint, answering from the cache when possible.

        Args:
            endpoint: Path below the API root, e.g. ``/users/octocat``.
            params: Query parameters; part of the cache key.

        Returns:
            The decoded JSON body.
        """
        return await self.cache.get_or_set(
            cache_key(endpoint, params),
            lambda: self._fetch(endpoint, params),
            self.cache_ttl,
        )

    async def _fetch(self, endpoint: str, params: Optional[Dict[str, Any]]) -> Any:
        session = await self._get_session()
        url = f"{self.base_url}{endpoint}"
        query = {k: str(v) for k, v in (params or {}).items()}

        try:
            async with session.get(url, params=query) as response:
                if response.status in (403, 429):
                    logger.warning(
                        f"GitHub rate limit hit on {endpoint}",
                        extra={
                            "status": response.status,
                            "remaining": response.headers.get("X-RateLimit-Remaining"),
                        },
                    )
                    raise GitHubRateLimitError(RATE_LIMIT_RETRY_AFTER)
                if response.status >= 400:
                    raise GitHubAPIError(
                        endpoint, f"HTTP {response.status}", response.status
                    )
                return await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"GitHub request to {endpoint} failed: {e!r}")
            raise GitHubAPIError(endpoint, str(e) or type(e).__name__) from e

    async def get_user_profile(self, username: str) -> Dict[str, Any]:
        return await self.make_request(f"/users/{username}")

    async def get_user_repos(
        self, username: str, sort: str = "updated", per_page: int = 30
    ) -> List[Dict[str, Any]]:
        return await self.make_request(
            f"/users/{username}/repos",
            {"sort": sort, "per_page": per_page, "type": "public"},
        )

    async def get_repo_commits(
        self, owner: str, repo: str, author: Optional[str] = None, per_page: int = 10
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"per_page": per_page}
        if author:
            params["author"] = author
        return await self.make_request(f"/repos/{owner}/{repo}/commits", params)

    async def get_repo_languages(self, owner: str, repo: str) -> Dict[str, int]:
        return await self.make_request(f"/repos/{owner}/{repo}/languages")

    async def get_user_events(
        self, username: str, per_page: int = 20
    ) -> List[Dict[str, Any]]:
        return await self.make_request(
            f"/users/{username}/events/public", {"per_page": per_page}
        )

    async def get_rate_limit(self) -> Dict[str, Any]:
        """Current quota; never cached"""
        return await self._fetch("/rate_limit", None)
