"""
Text-to-Speech Service.

Validates speech requests, checks that ElevenLabs is configured and reachable,
and proxies synthesis and voice listing to `providers.tts_provider`.
"""

import asyncio
import re
import socket
from typing import Any, Dict, List, Optional

from core.exceptions import PayloadTooLargeError, TTSUnavailableError, ValidationError
from core.logging_config import get_logger
from core.models import Voice, VoiceSettings
from core.validation import MAX_TTS_TEXT_LENGTH, InputValidator
from providers.tts_provider import DEFAULT_MODEL, ElevenLabsProvider

logger = get_logger(__name__)

ELEVENLABS_HOST = "api.elevenlabs.io"

_STAGE_DIRECTION = re.compile(r"\*[^*]*\*")
_PARENTHETICAL = re.compile(r"\([^)]*\)")
_BRACKETED = re.compile(r"\[[^\]]*\]")
_EMOJI = re.compile(
    "[\U0001F600-\U0001F64F\U0001F300-\U0001F5FF\U0001F680-\U0001F6FF"
    "\U0001F1E0-\U0001F1FF\u2600-\u26FF\u2700-\u27BF]"
)
_WHITESPACE = re.compile(r"\s+")


def clean_text_for_speech(text: Optional[str]) -> str:
    """Strip stage directions, asides, bracketed cues and emoji from `text`"""
    if not text:
        return ""
    for pattern in (_STAGE_DIRECTION, _PARENTHETICAL, _BRACKETED, _EMOJI):
        text = pattern.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


class TTSService:
    """
    Text-to-speech proxy in front of ElevenLabs.

    The service is constructed even without an API key so the status endpoint
    can report it as unavailable; every operation that needs the provider
    raises `TTSUnavailableError` in that case.
    """

    def __init__(
        self,
        provider: Optional[ElevenLabsProvider],
        max_text_length: int = MAX_TTS_TEXT_LENGTH,
        check_connectivity: bool = True,
    ):
        self.provider = provider
        self.max_text_length = max_text_length
        self.check_connectivity = check_connectivity

    def is_available(self) -> bool:
        return self.provider is not None

    @property
    def model(self) -> str:
        return self.provider.model_id if self.provider else DEFAULT_MODEL

    def model_info(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "description": "ElevenLabs Flash v2.5 - Fast, high-quality text-to-speech model",
            "features": [
                "Low latency",
                "High quality",
                "Multiple voices",
                "Voice settings customization",
            ],
        }

    async def close(self) -> None:
        if self.provider is not None:
            await self.provider.close()

    async def is_reachable(self, host: str = ELEVENLABS_HOST) -> bool:
        """Resolve the provider's host name; False if DNS fails"""
        loop = asyncio.get_running_loop()
        try:
            await loop.getaddrinfo(host, 443, type=socket.SOCK_STREAM)
        except (socket.gaierror, OSError) as e:
            logger.warning(f"ElevenLabs API unreachable: DNS lookup failed ({e})")
            return False
        return True

    def validate_text(self, text: Any) -> str:
        text = InputValidator.require_text(text)
        if len(text) > self.max_text_length:
            raise PayloadTooLargeError(len(text), self.max_text_length)
        return text

    async def synthesize(
        self,
        text: Any,
        voice_id: Optional[str] = None,
        voice_settings: Optional[VoiceSettings] = None,
    ) -> bytes:
        """
        Produce MP3 audio for `text`.

        Raises:
            ValidationError: Text is missing, blank, or has nothing speakable.
            PayloadTooLargeError: Text is longer than the allowed maximum.
            TTSUnavailableError: No API key, or the API host cannot be resolved.
            TTSGenerationError: ElevenLabs failed to produce audio.
        """
        text = self.validate_text(text)

        if self.provider is None:
            raise TTSUnavailableError("Text-to-speech service is currently unavailable")

        if self.check_connectivity and not await self.is_reachable():
            raise TTSUnavailableError("ElevenLabs API is currently unreachable")

        speakable = clean_text_for_speech(text)
        if not speakable:
            raise ValidationError("text", text, "No speakable text found after cleaning")

        logger.info(
            f"TTS request - text length: {len(text)}, voice: {voice_id or 'default'}"
        )
        return await self.provider.text_to_speech(speakable, voice_id, voice_settings)

    async def get_voices(self) -> List[Voice]:
        if self.provider is None:
            raise TTSUnavailableError("Text-to-speech service is currently unavailable")
        raw = await self.provider.get_voices()
        return [Voice.model_validate(voice) for voice in raw if voice.get("voice_id")]
