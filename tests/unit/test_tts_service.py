"""
Unit tests for the TTS service and the ElevenLabs provider
"""
import pytest
from unittest.mock import AsyncMock, Mock, patch

import aiohttp

from core.exceptions import (
    PayloadTooLargeError,
    TTSGenerationError,
    TTSUnavailableError,
    ValidationError,
)
from core.models import VoiceSettings
from providers.tts_provider import ElevenLabsProvider, is_mp3
from services.tts_service import TTSService, clean_text_for_speech


class TestCleanText:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("*adjusts mic* Hello there!", "Hello there!"),
            ("Nice repo (not really) [pause] mate", "Nice repo mate"),
            ("Ship it \U0001F680✨", "Ship it"),
            ("  lots   of\n\nspace  ", "lots of space"),
            ("", ""),
            (None, ""),
        ],
    )
    def test_clean(self, raw, expected):
        assert clean_text_for_speech(raw) == expected


class TestTTSService:
    @pytest.mark.asyncio
    async def test_checks_text_before_availability(self, tts_service):
        with pytest.raises(ValidationError):
            await tts_service.synthesize("   ")
        with pytest.raises(PayloadTooLargeError):
            await tts_service.synthesize("a" * 1001)
        with pytest.raises(TTSUnavailableError):
            await tts_service.synthesize("a" * 1000)

    @pytest.mark.asyncio
    async def test_unreachable_host(self, mock_tts_provider):
        service = TTSService(mock_tts_provider)

        with patch.object(service, "is_reachable", AsyncMock(return_value=False)):
            with pytest.raises(TTSUnavailableError, match="unreachable"):
                await service.synthesize("Hello")

        mock_tts_provider.text_to_speech.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_nothing_speakable(self, mock_tts_provider):
        service = TTSService(mock_tts_provider, check_connectivity=False)

        with pytest.raises(ValidationError, match="speakable"):
            await service.synthesize("*rimshot* *crickets*")

    @pytest.mark.asyncio
    async def test_synthesize_cleans_text(self, mock_tts_provider):
        service = TTSService(mock_tts_provider, check_connectivity=False)
        settings = VoiceSettings(stability=0.3)

        audio = await service.synthesize("*applause* Bravo!", "voice-1", settings)

        assert audio == b"ID3fake-mp3-bytes"
        mock_tts_provider.text_to_speech.assert_awaited_once_with("Bravo!", "voice-1", settings)

    @pytest.mark.asyncio
    async def test_is_reachable_handles_dns_failure(self, tts_service):
        assert await tts_service.is_reachable("host.invalid") is False

    @pytest.mark.asyncio
    async def test_voices(self, mock_tts_provider):
        mock_tts_provider.get_voices.return_value = [
            {"voice_id": "abc", "name": "Roaster"},
            {"name": "no id"},
        ]
        service = TTSService(mock_tts_provider)

        voices = await service.get_voices()

        assert [v.voice_id for v in voices] == ["abc"]

    @pytest.mark.asyncio
    async def test_voices_without_key(self, tts_service):
        with pytest.raises(TTSUnavailableError):
            await tts_service.get_voices()

    def test_model_info(self, tts_service):
        assert tts_service.model == "eleven_flash_v2_5"
        assert not tts_service.is_available()
        assert "Low latency" in tts_service.model_info()["features"]


class TestElevenLabsProvider:
    @pytest.fixture
    def provider(self):
        provider = ElevenLabsProvider("el-key")
        provider._session = Mock(closed=False)
        return provider

    def mock_response(self, status=200, body=b"ID3audio", text=""):
        response = AsyncMock()
        response.status = status
        response.read = AsyncMock(return_value=body)
        response.text = AsyncMock(return_value=text)
        return response

    @pytest.mark.parametrize(
        "data,expected",
        [(b"ID3\x04", True), (b"\xff\xfb\x90", True), (b"{\"error\"", False), (b"", False)],
    )
    def test_is_mp3(self, data, expected):
        assert is_mp3(data) is expected

    @pytest.mark.asyncio
    async def test_text_to_speech(self, provider, async_context_manager):
        provider._session.post.return_value = async_context_manager(self.mock_response())

        audio = await provider.text_to_speech("Hello", "voice-1")

        assert audio == b"ID3audio"
        args, kwargs = provider._session.post.call_args
        assert args[0] == "https://api.elevenlabs.io/v1/text-to-speech/voice-1"
        assert kwargs["json"]["model_id"] == "eleven_flash_v2_5"
        assert kwargs["json"]["voice_settings"]["similarity_boost"] == 0.8
        assert kwargs["params"] == {"optimize_streaming_latency": "0"}

    @pytest.mark.asyncio
    async def test_default_voice(self, provider, async_context_manager):
        provider._session.post.return_value = async_context_manager(self.mock_response())

        await provider.text_to_speech("Hello")

        assert provider._session.post.call_args.args[0].endswith("/2EiwWnXFnvU5JabPnv8n")

    @pytest.mark.asyncio
    async def test_http_error(self, provider, async_context_manager):
        provider._session.post.return_value = async_context_manager(
            self.mock_response(status=401, text='{"detail": "invalid key"}')
        )

        with pytest.raises(TTSGenerationError, match="HTTP 401"):
            await provider.text_to_speech("Hello")

    @pytest.mark.asyncio
    async def test_rejects_non_audio(self, provider, async_context_manager):
        provider._session.post.return_value = async_context_manager(
            self.mock_response(body=b'{"status": "quota_exceeded"}')
        )

        with pytest.raises(TTSGenerationError, match="not MP3"):
            await provider.text_to_speech("Hello")

    @pytest.mark.asyncio
    async def test_network_error(self, provider):
        provider._session.post.side_effect = aiohttp.ClientConnectionError("reset")

        with pytest.raises(TTSGenerationError):
            await provider.text_to_speech("Hello")
