"""
Chat Completion Provider

Wraps an OpenAI-compatible chat completion endpoint. Groq is the primary
provider and OpenRouter the alternate; both speak the OpenAI wire protocol, so
one `openai.AsyncOpenAI` client pointed at the right base URL serves either.

The provider makes exactly one call per `complete`. Retry, backoff and the
fallback roast belong to `services.roast_service`, which needs to see each
failure to decide what to do next.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

import openai

from core.config import Settings
from core.logging_config import get_logger

logger = get_logger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
REQUEST_TIMEOUT = 30.0


@dataclass(frozen=True)
class ProviderPreset:
    name: str
    base_url: str
    model: str
    headers: Dict[str, str] = field(default_factory=dict)


class ChatCompletionProvider:
    """One-shot chat completions against an OpenAI-compatible API"""

    def __init__(
        self,
        api_key: str,
        preset: ProviderPreset,
        max_tokens: int = 2000,
        temperature: float = 0.8,
        client: Optional[openai.AsyncOpenAI] = None,
    ):
        self.preset = preset
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.client = client or openai.AsyncOpenAI(
            api_key=api_key,
            base_url=preset.base_url,
            default_headers=preset.headers or None,
            timeout=REQUEST_TIMEOUT,
            # retries are driven by the roast service
            max_retries=0,
        )

    @property
    def name(self) -> str:
        return self.preset.name

    @property
    def model(self) -> str:
        return self.preset.model

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """
        Request one completion.

        Returns:
            The message content, stripped. May be empty if the model returned
            nothing; errors from the SDK propagate unchanged.
        """
        response = await self.client.chat.completions.create(
            model=self.preset.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()

    async def close(self) -> None:
        await self.client.close()


def create_llm_provider(settings: Settings) -> Optional[ChatCompletionProvider]:
    """Build the provider selected by the configured credentials, if any"""
    if settings.groq_api_key:
        preset = ProviderPreset("groq", GROQ_BASE_URL, settings.llm_model)
        logger.info(f"LLM provider: Groq ({preset.model})")
        return ChatCompletionProvider(settings.groq_api_key, preset)

    if settings.openrouter_api_key:
        preset = ProviderPreset(
            "openrouter",
            OPENROUTER_BASE_URL,
            settings.openrouter_model,
            headers={
                "HTTP-Referer": "https://thegitroastshow.vercel.app",
                "X-Title": "The Git Roast Show",
            },
        )
        logger.info(f"LLM provider: OpenRouter ({preset.model})")
        return ChatCompletionProvider(settings.openrouter_api_key, preset)

    logger.warning("No LLM API key configured; roasts will use fallback templates")
    return None
