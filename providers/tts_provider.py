"""
ElevenLabs Text-to-Speech Provider

aiohttp client for the two ElevenLabs endpoints the show uses: synthesis of
MP3 audio for a piece of text, and the voice catalogue. Audio returned by the
API is sniffed before it is handed on, so a JSON error body served with a 200
never reaches a client as "audio".
"""

import asyncio
from typing import Any, Dict, List, Optional

import aiohttp

from core.exceptions import TTSGenerationError
from core.logging_config import get_logger
from core.models import VoiceSettings

logger = get_logger(__name__)

DEFAULT_MODEL = "eleven_flash_v2_5"
DEFAULT_VOICE_ID = "2EiwWnXFnvU5JabPnv8n"


def is_mp3(data: bytes) -> bool:
    """Return True if `data` starts with an ID3 tag or an MPEG frame sync"""
    if len(data) < 3:
        return False
    if data[:3] == b"ID3":
        return True
    return data[0] == 0xFF and (data[1] & 0xE0) == 0xE0


class ElevenLabsProvider:
    """ElevenLabs REST client"""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.elevenlabs.io/v1",
        model_id: str = DEFAULT_MODEL,
        default_voice_id: str = DEFAULT_VOICE_ID,
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model_id = model_id
        self.default_voice_id = default_voice_id
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"xi-api-key": self.api_key}, timeout=self.timeout
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def text_to_speech(
        self,
        text: str,
        voice_id: Optional[str] = None,
        voice_settings: Optional[VoiceSettings] = None,
    ) -> bytes:
        """
        Synthesize `text` to MP3.

        Raises:
            TTSGenerationError: On any HTTP, network or payload failure.
        """
        voice = voice_id or self.default_voice_id
        settings = voice_settings or VoiceSettings()
        url = f"{self.base_url}/text-to-speech/{voice}"
        body = {
            "text": text,
            "model_id": self.model_id,
            "voice_settings": settings.model_dump(),
        }

        session = await self._get_session()
        try:
            async with session.post(
                url,
                params={"optimize_streaming_latency": "0"},
                json=body,
                headers={"Accept": "audio/mpeg"},
            ) as response:
                if response.status != 200:
                    detail = (await response.text())[:200]
                    raise TTSGenerationError(
                        f"ElevenLabs returned HTTP {response.status}: {detail}"
                    )
                audio = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"ElevenLabs request failed: {e!r}")
            raise TTSGenerationError(f"ElevenLabs request failed: {e}") from e

        if not audio:
            raise TTSGenerationError("ElevenLabs returned empty audio")
        if not is_mp3(audio):
            raise TTSGenerationError("ElevenLabs returned data that is not MP3 audio")

        logger.info(f"Generated {len(audio)} bytes of speech with voice {voice}")
        return audio

    async def get_voices(self) -> List[Dict[str, Any]]:
        session = await self._get_session()
        try:
            async with session.get(f"{self.base_url}/voices") as response:
                if response.status != 200:
                    raise TTSGenerationError(
                        f"ElevenLabs voices returned HTTP {response.status}"
                    )
                payload = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TTSGenerationError(f"ElevenLabs request failed: {e}") from e
        return payload.get("voices", [])
