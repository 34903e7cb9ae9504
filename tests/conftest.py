import pytest
from unittest.mock import AsyncMock, Mock
from fastapi.testclient import TestClient
import os
import sys
from typing import Any, Dict, Generator, List, Optional

# Add the parent directory to the path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from main import create_app
from core.cache import CacheManager, MemoryCacheBackend
from core.config import Settings
from core.exceptions import GitHubAPIError
from core.models import GitHubProfile, Repository, UserAggregate
from core.rate_limiter import create_rate_limiter
from services.github_service import GitHubService
from services.roast_service import RoastService
from services.tts_service import TTSService


OCTOCAT_PROFILE = {
    "login": "octocat",
    "name": "The Octocat",
    "bio": None,
    "location": "San Francisco",
    "company": "@github",
    "public_repos": 8,
    "followers": 9000,
    "following": 9,
    "created_at": "2011-01-25T18:44:36Z",
}

OCTOCAT_REPOS = [
    {
        "name": "Hello-World",
        "description": "My first repository on GitHub!",
        "language": None,
        "stargazers_count": 2500,
        "forks_count": 2000,
        "size": 1,
        "topics": [],
    },
    {
        "name": "Spoon-Knife",
        "description": "This repo is for demonstration purposes only.",
        "language": "HTML",
        "stargazers_count": 12000,
        "forks_count": 140000,
        "size": 2,
    },
    {
        "name": "empty-repo",
        "language": None,
        "stargazers_count": 0,
        "forks_count": 0,
        "size": 0,
    },
]

OCTOCAT_COMMITS = [
    {"commit": {"message": "fix", "author": {"date": "2024-01-01T00:00:00Z"}}},
    {"commit": {"message": "Update README.md", "author": {"date": "2024-01-02T00:00:00Z"}}},
]


class FakeGitHubProvider:
    """In-memory stand-in for `GitHubProvider` with per-endpoint failures"""

    def __init__(
        self,
        profiles: Optional[Dict[str, Dict[str, Any]]] = None,
        repos: Optional[Dict[str, List[Dict[str, Any]]]] = None,
    ):
        self.profiles = profiles if profiles is not None else {"octocat": OCTOCAT_PROFILE}
        self.repos = repos if repos is not None else {"octocat": OCTOCAT_REPOS}
        self.failures: Dict[str, Exception] = {}
        self.calls: List[str] = []
        self.close = AsyncMock()

    def _check(self, endpoint: str) -> None:
        self.calls.append(endpoint)
        for prefix, error in self.failures.items():
            if endpoint.startswith(prefix):
                raise error

    async def get_user_profile(self, username: str):
        endpoint = f"/users/{username}"
        self._check(endpoint)
        if username not in self.profiles:
            raise GitHubAPIError(endpoint, "HTTP 404", 404)
        return self.profiles[username]

    async def get_user_repos(self, username: str, sort: str = "updated", per_page: int = 30):
        endpoint = f"/users/{username}/repos"
        self._check(endpoint)
        if username not in self.profiles:
            raise GitHubAPIError(endpoint, "HTTP 404", 404)
        return self.repos.get(username, [])[:per_page]

    async def get_repo_commits(self, owner: str, repo: str, author=None, per_page: int = 10):
        self._check(f"/repos/{owner}/{repo}/commits")
        if repo == "empty-repo":
            raise GitHubAPIError(f"/repos/{owner}/{repo}/commits", "HTTP 409", 409)
        return OCTOCAT_COMMITS[:per_page]

    async def get_repo_languages(self, owner: str, repo: str):
        self._check(f"/repos/{owner}/{repo}/languages")
        return {"HTML": 1000, "CSS": 200} if repo == "Spoon-Knife" else {}

    async def get_user_events(self, username: str, per_page: int = 20):
        self._check(f"/users/{username}/events/public")
        return [{"type": "PushEvent", "repo": {"name": f"{username}/Hello-World"}}]

    async def get_rate_limit(self):
        return {"resources": {"core": {"remaining": 59}}}


async def no_sleep(seconds: float) -> None:
    pass


@pytest.fixture
def test_settings() -> Settings:
    """Settings for a test app with no upstream credentials."""
    return Settings(environment="test", log_level="DEBUG")


@pytest.fixture
def github_provider() -> FakeGitHubProvider:
    return FakeGitHubProvider()


@pytest.fixture
def github_service(github_provider) -> GitHubService:
    return GitHubService(github_provider)


@pytest.fixture
def mock_llm_provider():
    """Create a mock chat completion provider for testing."""
    provider = Mock()
    provider.name = "groq"
    provider.model = "llama-3.1-8b-instant"
    provider.complete = AsyncMock(
        return_value="*adjusts mic* Welcome [username]! Your repos are empty. *drops mic*"
    )
    provider.close = AsyncMock()
    return provider


@pytest.fixture
def roast_service() -> RoastService:
    """Roast service without an LLM provider: always answers with fallbacks."""
    return RoastService(None, sleep=no_sleep)


@pytest.fixture
def mock_tts_provider():
    provider = Mock()
    provider.model_id = "eleven_flash_v2_5"
    provider.text_to_speech = AsyncMock(return_value=b"ID3fake-mp3-bytes")
    provider.get_voices = AsyncMock(
        return_value=[{"voice_id": "abc", "name": "Roaster", "category": "premade"}]
    )
    provider.close = AsyncMock()
    return provider


@pytest.fixture
def tts_service() -> TTSService:
    """TTS service with no API key configured."""
    return TTSService(None)


@pytest.fixture
def make_app(test_settings, github_service, roast_service, tts_service):
    """Factory building an app around the test services; override any of them."""

    def _make(settings: Optional[Settings] = None, **overrides):
        settings = settings or test_settings
        components = {
            "cache": CacheManager(MemoryCacheBackend(max_size=10, default_ttl=60)),
            "rate_limiter": create_rate_limiter(
                settings.rate_limit_max_requests, settings.rate_limit_window_seconds
            ),
            "github_service": github_service,
            "roast_service": roast_service,
            "tts_service": tts_service,
        }
        components.update(overrides)
        return create_app(settings, configure_logging=False, **components)

    return _make


@pytest.fixture
def test_client(make_app) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app."""
    with TestClient(make_app()) as client:
        yield client


@pytest.fixture
def mock_cache_manager():
    """Create a cache manager for testing."""
    return CacheManager(MemoryCacheBackend())


@pytest.fixture
def sample_aggregate() -> UserAggregate:
    """Sample aggregate for prompt and roast tests."""
    return UserAggregate(
        profile=GitHubProfile.from_api(OCTOCAT_PROFILE),
        repositories=tuple(Repository.from_api(r) for r in OCTOCAT_REPOS),
        language_stats={"HTML": 1000, "CSS": 200},
    )


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Keep real credentials in the environment out of the tests."""
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    for key in (
        "NODE_ENV",
        "GITHUB_TOKEN",
        "GROQ_API_KEY",
        "OPENROUTER_API_KEY",
        "ELEVENLABS_API_KEY",
        "LOG_FILE",
    ):
        monkeypatch.delenv(key, raising=False)


class AsyncContextManager:
    """Helper class for testing async context managers."""

    def __init__(self, return_value=None):
        self.return_value = return_value

    async def __aenter__(self):
        return self.return_value

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        pass


@pytest.fixture
def async_context_manager():
    """Create an async context manager for testing."""
    return AsyncContextManager
