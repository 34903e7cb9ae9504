import pytest
import logging
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient
from fastapi import status

from core.config import Settings
from core.exceptions import GitHubAPIError, GitHubRateLimitError
from services.roast_service import RoastService
from services.tts_service import TTSService


async def no_sleep(seconds: float) -> None:
    pass


class TestHealthEndpoints:
    """Test health check endpoints."""

    def test_health_endpoint(self, test_client):
        """Test the health check endpoint."""
        response = test_client.get("/api/health")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()

        assert data["status"] == "healthy"
        assert data["version"] == "1.0.0"
        assert data["environment"] == "test"
        assert data["uptime"].endswith("s")
        assert data["services"] == {
            "github": "anonymous",
            "llm": "fallback",
            "elevenlabs": "not configured",
        }

    def test_health_endpoint_headers(self, test_client):
        """Correlation ID and security headers are added to every response."""
        response = test_client.get("/api/health", headers={"X-Correlation-ID": "abc-123"})

        assert response.headers["X-Correlation-ID"] == "abc-123"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert "X-Process-Time" in response.headers

    def test_detailed_health_endpoint(self, test_client):
        response = test_client.get("/api/health/detailed")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "healthy"
        assert data["components"]["cache"]["status"] == "healthy"
        assert data["components"]["rate_limiter"]["stats"]["rules"]["api"]["requests"] == 100


class TestRoastEndpoints:
    """Test roast generation endpoints."""

    def test_roast_in_spanish_without_llm_key(self, test_client):
        response = test_client.get("/api/roast/octocat?variants=1&language=es")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["username"] == "octocat"
        assert data["language"] == "es"
        assert len(data["roasts"]) == 1
        assert data["roasts"][0]["fallback"] is True
        assert "octocat" in data["roasts"][0]["roast"]
        assert "Damas y caballeros" in data["roasts"][0]["roast"]
        assert data["stats"]["totalRepos"] == 3
        assert data["stats"]["totalStars"] == 14500
        assert data["stats"]["emptyRepos"] == 1
        assert data["stats"]["topLanguage"] == "HTML"
        assert data["profile"]["name"] == "The Octocat"
        assert data["meta"]["data_points_analyzed"]["repositories"] == 3

    def test_roast_clamps_variants_and_language(self, test_client):
        response = test_client.get("/api/roast/octocat?variants=7&language=xx")

        data = response.json()
        assert data["language"] == "en"
        assert len(data["roasts"]) == 3
        assert data["meta"]["variants_requested"] == 3

    def test_roast_with_llm(self, make_app, mock_llm_provider):
        app = make_app(roast_service=RoastService(mock_llm_provider, sleep=no_sleep))
        with TestClient(app) as client:
            response = client.get("/api/roast/octocat")

        assert response.status_code == status.HTTP_200_OK
        roast = response.json()["roasts"][0]
        assert roast["fallback"] is False
        assert roast["attempts"] == 1
        assert roast["model"] == "llama-3.1-8b-instant"
        mock_llm_provider.complete.assert_awaited_once()

    def test_roast_unknown_user(self, test_client):
        response = test_client.get("/api/roast/ghost-user-404")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        data = response.json()
        assert data["error"] == "User not found"
        assert "ghost-user-404" in data["message"]

    def test_roast_failure_is_logged_by_handler(self, test_client):
        with patch.object(logging.getLogger("api.roast_router"), "error") as log_error:
            response = test_client.get("/api/roast/ghost-user-404")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert log_error.call_args.args[0].startswith("Failed roast_user")

    def test_roast_invalid_username(self, test_client):
        response = test_client.get("/api/roast/-not-valid-")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_roast_username_with_trailing_newline(self, test_client, github_provider):
        response = test_client.get("/api/roast/octocat%0A")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert github_provider.calls == []

    def test_roast_github_rate_limited(self, test_client, github_provider):
        github_provider.failures["/users/octocat"] = GitHubRateLimitError()

        response = test_client.get("/api/roast/octocat")

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert response.headers["Retry-After"] == "3600"
        assert response.json()["retryAfter"] == 3600

    def test_roast_github_failure_is_500(self, test_client, github_provider):
        github_provider.failures["/users/octocat"] = GitHubAPIError(
            "/users/octocat", "HTTP 500", 500
        )

        response = test_client.get("/api/roast/octocat")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        data = response.json()
        assert data["error"] == "Failed to generate roast"
        # No internals outside development
        assert "details" not in data

    def test_quick_roast(self, test_client, github_provider):
        response = test_client.get("/api/roast/octocat/quick")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["quick"] is True
        assert data["fallback"] is True
        assert "octocat" in data["roast"]
        assert not any("commits" in call for call in github_provider.calls)

    def test_demo_sample(self, test_client, github_provider):
        response = test_client.get("/api/roast/demo/sample")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["demo"] is True
        assert data["roast"]
        assert github_provider.calls == []


class TestUserEndpoints:
    def test_user_profile(self, test_client):
        response = test_client.get("/api/user/octocat")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["login"] == "octocat"

    def test_user_repos_clamps_per_page(self, test_client):
        response = test_client.get("/api/user/octocat/repos?per_page=500&sort=bogus")

        data = response.json()
        assert data["meta"] == {"count": 3, "sort": "updated", "per_page": 100}
        assert data["data"][1]["stars"] == 12000

    def test_user_analyze(self, test_client):
        response = test_client.get("/api/user/octocat/analyze")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["data"]["languageStats"] == {"HTML": 1000, "CSS": 200}
        assert data["meta"]["repos_analyzed"] == 3
        # The empty repository answers 409 for commits and is skipped
        assert data["meta"]["commits_analyzed"] == 4
        assert data["meta"]["commit_patterns"]["totalCommits"] == 4

    def test_user_github_failure_is_502(self, test_client, github_provider):
        github_provider.failures["/users/octocat"] = GitHubAPIError(
            "/users/octocat", "timeout"
        )

        response = test_client.get("/api/user/octocat")

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        assert response.json()["error"] == "GitHub API error"


class TestTTSEndpoints:
    def test_generate_without_key_is_503(self, test_client):
        response = test_client.post("/api/tts/generate", json={"text": "Hello there"})

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["code"] == "TTS_UNAVAILABLE"

    @pytest.mark.parametrize("body", [{}, {"text": ""}, {"text": "   "}, {"text": 42}])
    def test_generate_requires_text(self, test_client, body):
        response = test_client.post("/api/tts/generate", json=body)

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_generate_rejects_long_text(self, test_client):
        response = test_client.post("/api/tts/generate", json={"text": "a" * 1001})

        assert response.status_code == status.HTTP_413_REQUEST_ENTITY_TOO_LARGE

    def test_generate_malformed_json(self, test_client):
        response = test_client.post(
            "/api/tts/generate",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_generate_audio(self, make_app, mock_tts_provider):
        tts = TTSService(mock_tts_provider, check_connectivity=False)
        with TestClient(make_app(tts_service=tts)) as client:
            response = client.post(
                "/api/tts/generate",
                json={"text": "*adjusts mic* Hello octocat!", "voice_id": "abc"},
            )

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-type"] == "audio/mpeg"
        assert response.headers["cache-control"] == "public, max-age=3600"
        assert response.content == b"ID3fake-mp3-bytes"
        mock_tts_provider.text_to_speech.assert_awaited_once_with("Hello octocat!", "abc", None)

    def test_generate_invalid_voice_settings(self, make_app, mock_tts_provider):
        tts = TTSService(mock_tts_provider, check_connectivity=False)
        with TestClient(make_app(tts_service=tts)) as client:
            response = client.post(
                "/api/tts/generate",
                json={"text": "Hello", "voice_settings": {"stability": 2}},
            )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_unreachable_provider_is_503(self, make_app, mock_tts_provider):
        tts = TTSService(mock_tts_provider)
        tts.is_reachable = AsyncMock(return_value=False)
        with TestClient(make_app(tts_service=tts)) as client:
            response = client.post("/api/tts/generate", json={"text": "Hello"})

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        mock_tts_provider.text_to_speech.assert_not_awaited()

    def test_status(self, test_client):
        data = test_client.get("/api/tts/status").json()

        assert data["available"] is False
        assert data["model"]["model"] == "eleven_flash_v2_5"

    def test_voices(self, make_app, mock_tts_provider):
        tts = TTSService(mock_tts_provider, check_connectivity=False)
        with TestClient(make_app(tts_service=tts)) as client:
            data = client.get("/api/tts/voices").json()

        assert data["voices"][0]["voice_id"] == "abc"

    def test_clean_text(self, test_client):
        response = test_client.post(
            "/api/tts/clean-text", json={"text": "*rimshot* Nice repo (not) \U0001F602"}
        )

        data = response.json()
        assert data["cleaned_text"] == "Nice repo"
        assert data["original_length"] > data["cleaned_length"]


class TestErrorHandling:
    def test_unknown_route(self, test_client):
        response = test_client.get("/api/does-not-exist")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {"error": "Route not found"}

    def test_unexpected_error_is_500(self, make_app, github_service):
        github_service.gather_user_data = AsyncMock(side_effect=RuntimeError("boom"))
        app = make_app(github_service=github_service)
        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/api/user/octocat/analyze")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        data = response.json()
        assert data["error"] == "Internal server error"
        assert "details" not in data

    def test_rate_limiting_enforcement(self, make_app):
        settings = Settings(environment="test", rate_limit_max_requests=2)
        with TestClient(make_app(settings)) as client:
            assert client.get("/api/roast/demo/sample").status_code == 200
            assert client.get("/api/roast/demo/sample").status_code == 200
            response = client.get("/api/roast/demo/sample")

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert response.json()["error"] == "Too many requests"
        assert int(response.headers["Retry-After"]) > 0

    def test_cors_allows_development_origin(self, make_app):
        settings = Settings(environment="development")
        with TestClient(make_app(settings)) as client:
            response = client.get("/api/health", headers={"Origin": "http://localhost:5173"})

        assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
