"""
Roast API Client

Async aiohttp client the stage uses to talk to the backend. Every endpoint
the backend exposes has a method here. Failures raise `APIRequestError`
carrying the HTTP status (0 when the backend could not be reached) and the
decoded error body when there is one.

The helpers at the bottom never raise: `get_roast_items` turns any failure
into a spoken error script so the show can still go on.
"""

import asyncio
import random
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote

import aiohttp

from core.logging_config import get_logger
from stage.items import RoastItem, convert_roast_response, error_script

logger = get_logger(__name__)

DEFAULT_BASE_URL = "http://localhost:5000"


class APIRequestError(Exception):
    """Backend request failed"""

    def __init__(self, message: str, status: int, data: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.data = data

    def __repr__(self) -> str:
        return f"APIRequestError(status={self.status}, message={self.message!r})"


def _require_username(username: str) -> str:
    if not username or not username.strip():
        raise APIRequestError("Username is required", 400)
    return quote(username.strip(), safe="")


class RoastAPIClient:
    """Typed access to the roast backend"""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout, headers={"Content-Type": "application/json"}
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "RoastAPIClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        raw: bool = False,
    ) -> Union[Dict[str, Any], bytes]:
        """
        Send a request and decode the response.

        Args:
            raw: Return the body as bytes instead of decoding JSON.

        Raises:
            APIRequestError: Non-2xx status, or status 0 for network errors.
        """
        url = f"{self.base_url}{endpoint}"
        logger.debug(f"{method} {url}")
        session = await self._get_session()

        try:
            async with session.request(method, url, params=params, json=json) as response:
                content_type = response.headers.get("Content-Type", "")
                if "application/json" in content_type:
                    data = await response.json()
                    if response.status >= 400:
                        message = "API request failed"
                        if isinstance(data, dict):
                            message = data.get("message") or data.get("error") or message
                        raise APIRequestError(message, response.status, data)
                    return data

                if response.status >= 400:
                    raise APIRequestError(
                        "API request failed with non-JSON response", response.status
                    )
                if raw:
                    return await response.read()
                return {}
        except APIRequestError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Request to {url} failed: {e}")
            raise APIRequestError(str(e) or "Network error", 0) from e

    # Health

    async def check_health(self) -> Dict[str, Any]:
        return await self._request("GET", "/api/health")

    # Users

    async def get_user_profile(self, username: str) -> Dict[str, Any]:
        return await self._request("GET", f"/api/user/{_require_username(username)}")

    async def get_user_repos(
        self, username: str, sort: Optional[str] = None, per_page: Optional[int] = None
    ) -> Dict[str, Any]:
        path = _require_username(username)
        params: Dict[str, Any] = {}
        if sort:
            params["sort"] = sort
        if per_page:
            params["per_page"] = str(per_page)
        return await self._request("GET", f"/api/user/{path}/repos", params=params or None)

    async def analyze_user(self, username: str) -> Dict[str, Any]:
        return await self._request("GET", f"/api/user/{_require_username(username)}/analyze")

    # Roasts

    async def generate_roast(
        self, username: str, variants: Optional[int] = None, language: Optional[str] = None
    ) -> Dict[str, Any]:
        path = _require_username(username)
        params: Dict[str, Any] = {}
        if variants and variants > 1:
            params["variants"] = str(min(variants, 3))
        if language:
            params["language"] = language
        return await self._request("GET", f"/api/roast/{path}", params=params or None)

    async def generate_quick_roast(
        self, username: str, language: Optional[str] = None
    ) -> Dict[str, Any]:
        path = _require_username(username)
        params = {"language": language} if language else None
        return await self._request("GET", f"/api/roast/{path}/quick", params=params)

    async def get_sample_roast(self) -> Dict[str, Any]:
        return await self._request("GET", "/api/roast/demo/sample")

    # Text to speech

    async def generate_speech(
        self,
        text: str,
        voice_id: Optional[str] = None,
        voice_settings: Optional[Dict[str, Any]] = None,
    ) -> bytes:
        body: Dict[str, Any] = {"text": text}
        if voice_id:
            body["voice_id"] = voice_id
        if voice_settings:
            body["voice_settings"] = voice_settings
        return await self._request("POST", "/api/tts/generate", json=body, raw=True)

    async def get_tts_status(self) -> Dict[str, Any]:
        return await self._request("GET", "/api/tts/status")

    async def get_voices(self) -> Dict[str, Any]:
        return await self._request("GET", "/api/tts/voices")

    # Helpers

    async def get_roast_items(
        self,
        username: str,
        quick: bool = False,
        language: Optional[str] = "en",
        rng: Optional[random.Random] = None,
    ) -> List[RoastItem]:
        """Roast script for `username`; an error script if anything fails"""
        try:
            if quick:
                response = await self.generate_quick_roast(username, language)
            else:
                response = await self.generate_roast(username, language=language)
            return convert_roast_response(response, rng)
        except APIRequestError as e:
            logger.error(f"Failed to get roast items for {username}: {e.message} ({e.status})")
            return error_script(username, e.status)

    async def is_backend_available(self) -> bool:
        try:
            await self.check_health()
            return True
        except APIRequestError:
            return False

    async def get_user_stats(self, username: str) -> Dict[str, Any]:
        """Headline numbers from the user analysis"""
        analysis = await self.analyze_user(username)
        data = analysis.get("data") or {}
        repositories = data.get("repositories") or []
        language_stats = data.get("languageStats") or {}

        top_language = max(language_stats.items(), key=lambda kv: kv[1], default=("Unknown", 0))[0]
        return {
            "totalRepos": len(repositories),
            "totalStars": sum(repo.get("stars", 0) for repo in repositories),
            "topLanguage": top_language,
            "languages": len(language_stats),
        }
