"""
Text-to-Speech Router.

Endpoints Provided:
- `POST /api/tts/generate`: MP3 audio for a piece of roast text. Responds 400
  for missing or blank text, 413 above 1000 characters, 503 when ElevenLabs
  is not configured or not reachable, and 500 when synthesis fails.
- `GET /api/tts/voices`: The ElevenLabs voice catalogue.
- `GET /api/tts/status`: Whether TTS is configured, and model details.
- `POST /api/tts/clean-text`: Shows what the synthesizer would actually speak.
"""

import json
from typing import Any, Dict

import pydantic
from fastapi import APIRouter, Depends, Request, Response

from api.dependencies import get_tts_service
from core.exceptions import ValidationError
from core.logging_config import get_logger, log_function_call
from core.models import TTSRequest
from services.tts_service import TTSService, clean_text_for_speech

logger = get_logger(__name__)

tts_router = APIRouter(prefix="/api/tts", tags=["Text to Speech"])


async def _read_json(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("body", "", "Request body must be valid JSON")
    if not isinstance(body, dict):
        raise ValidationError("body", body, "Request body must be a JSON object")
    return body


@tts_router.post("/generate")
@log_function_call(logger)
async def generate_speech(
    request: Request, tts_service: TTSService = Depends(get_tts_service)
) -> Response:
    body = await _read_json(request)
    try:
        payload = TTSRequest.model_validate(body)
    except pydantic.ValidationError as e:
        raise ValidationError("voice_settings", body.get("voice_settings"), str(e))

    audio = await tts_service.synthesize(
        payload.text, payload.voice_id, payload.voice_settings
    )
    return Response(
        content=audio,
        media_type="audio/mpeg",
        headers={"Cache-Control": "public, max-age=3600"},
    )


@tts_router.get("/voices")
async def list_voices(
    tts_service: TTSService = Depends(get_tts_service),
) -> Dict[str, Any]:
    voices = await tts_service.get_voices()
    return {"success": True, "voices": [voice.model_dump() for voice in voices]}


@tts_router.get("/status")
async def tts_status(tts_service: TTSService = Depends(get_tts_service)) -> Dict[str, Any]:
    return {
        "success": True,
        "available": tts_service.is_available(),
        "service": "ElevenLabs",
        "model": tts_service.model_info(),
        "features": {
            "realtime": False,
            "cached": True,
            "voice_cloning": False,
            "voice_settings": True,
            "multiple_voices": True,
        },
    }


@tts_router.post("/clean-text")
async def clean_text(request: Request) -> Dict[str, Any]:
    body = await _read_json(request)
    text = body.get("text")
    if not isinstance(text, str) or not text:
        raise ValidationError("text", text, "Text is required and must be a string")

    cleaned = clean_text_for_speech(text)
    return {
        "success": True,
        "original_text": text,
        "cleaned_text": cleaned,
        "original_length": len(text),
        "cleaned_length": len(cleaned),
    }
