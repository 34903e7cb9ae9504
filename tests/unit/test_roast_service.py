"""
Unit tests for the roast service

Retry, backoff and fallback behaviour with a mocked chat completion provider.
"""
import pytest
from typing import List
from unittest.mock import AsyncMock, Mock

from services.roast_service import (
    FALLBACK_ROASTS,
    RoastService,
    get_fallback_roast,
    is_rate_limit_error,
)


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class RateLimited(Exception):
    status_code = 429


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def provider():
    provider = Mock()
    provider.name = "groq"
    provider.model = "llama-3.1-8b-instant"
    provider.complete = AsyncMock()
    provider.close = AsyncMock()
    return provider


class TestFallbacks:
    def test_fallback_substitutes_username(self):
        roast = get_fallback_roast("octocat", "fr")

        assert roast.fallback is True
        assert roast.model == "fallback"
        assert roast.attempts == 1
        assert "[username]" not in roast.roast
        assert roast.roast.count("octocat") == 2
        assert "Mesdames et messieurs" in roast.roast

    def test_unknown_language_uses_english_template(self):
        roast = get_fallback_roast("octocat", "de")
        assert roast.roast == FALLBACK_ROASTS["en"].replace("[username]", "octocat")
        assert roast.language == "de"

    def test_fallback_uses_stage_directions(self):
        for template in FALLBACK_ROASTS.values():
            assert template.startswith("*adjusts mic*")
            assert template.endswith("*drops mic*")


class TestRateLimitDetection:
    @pytest.mark.parametrize(
        "error",
        [RateLimited(), Exception("Error code: 429"), Exception("Rate limit reached for model")],
    )
    def test_rate_limited(self, error):
        assert is_rate_limit_error(error)

    def test_other_errors(self):
        assert not is_rate_limit_error(ValueError("bad gateway"))


class TestRoastService:
    @pytest.mark.asyncio
    async def test_without_provider_answers_fallback(self, sample_aggregate, sleep):
        service = RoastService(None, sleep=sleep)

        roast = await service.generate_roast(sample_aggregate, "es")

        assert roast.fallback is True
        assert roast.language == "es"
        assert not service.available
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self, sample_aggregate, provider, sleep):
        provider.complete.return_value = "*adjusts mic* Hello octocat *drops mic*"
        service = RoastService(provider, sleep=sleep)

        roast = await service.generate_roast(sample_aggregate, "EN")

        assert roast.fallback is False
        assert roast.attempts == 1
        assert roast.language == "en"
        assert roast.model == "llama-3.1-8b-instant"
        system_prompt, user_prompt = provider.complete.await_args.args
        assert "roast show host" in system_prompt
        assert "octocat" in user_prompt

    @pytest.mark.asyncio
    async def test_rate_limits_back_off_exponentially(self, sample_aggregate, provider, sleep):
        provider.complete.side_effect = [RateLimited(), RateLimited(), "Third time lucky"]
        service = RoastService(provider, sleep=sleep)

        roast = await service.generate_roast(sample_aggregate)

        assert roast.fallback is False
        assert roast.attempts == 3
        assert roast.roast == "Third time lucky"
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_other_errors_use_flat_delay(self, sample_aggregate, provider, sleep):
        provider.complete.side_effect = [ConnectionError("reset"), "", "Finally"]
        service = RoastService(provider, retry_delay=0.25, sleep=sleep)

        roast = await service.generate_roast(sample_aggregate)

        assert roast.attempts == 3
        assert sleep.delays == [0.25, 0.25]

    @pytest.mark.asyncio
    async def test_all_attempts_fail(self, sample_aggregate, provider, sleep):
        provider.complete.side_effect = RateLimited()
        service = RoastService(provider, sleep=sleep)

        roast = await service.generate_roast(sample_aggregate, "es")

        assert roast.fallback is True
        assert roast.language == "es"
        assert provider.complete.await_count == 3
        # No sleep after the final attempt
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_multiple_roasts_clamped(self, sample_aggregate, provider, sleep):
        provider.complete.return_value = "A roast"
        service = RoastService(provider, sleep=sleep)

        roasts = await service.generate_multiple_roasts(sample_aggregate, count=10)

        assert len(roasts) == 3
        assert sleep.delays == [0.5, 0.5]

    @pytest.mark.asyncio
    async def test_close_closes_provider(self, provider):
        await RoastService(provider).close()
        provider.close.assert_awaited_once()

    def test_backoff_delay(self, provider):
        service = RoastService(provider, base_delay=1.0, retry_delay=0.5)

        assert [service.backoff_delay(n, True) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]
        assert service.backoff_delay(2, False) == 0.5

    def test_rejects_zero_retries(self, provider):
        with pytest.raises(ValueError):
            RoastService(provider, max_retries=0)
