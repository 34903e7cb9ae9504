"""
Application Settings for the Roast API.

This module holds the single configuration object of the backend. Settings are
read from the process environment once at startup (optionally seeded from a
`.env` file via python-dotenv in `main.py`) and then passed explicitly into
`create_app`, which builds every service from them.

Key Components:
- `Settings`: A frozen dataclass holding ports, credentials, cache limits, rate
  limit parameters, CORS origins and provider defaults.
- `Settings.from_env`: Builds a `Settings` instance from environment variables,
  applying defaults for everything that is optional.

Architectural Design:
- Explicit Injection: Nothing in the application reads credentials from global
  state after startup. Services receive the values they need from this object,
  which keeps tests free to build an app with any configuration.
- Immutability: The dataclass is frozen, so the configuration a process started
  with is the configuration it runs with.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

DEVELOPMENT_ORIGINS: Tuple[str, ...] = (
    "http://localhost:3000",
    "http://localhost:3001",
    "http://localhost:5173",
    "http://localhost:5174",
)

PRODUCTION_ORIGINS: Tuple[str, ...] = ("https://thegitroastshow.vercel.app",)

# Preview deployments are served from per-branch vercel.app subdomains
PRODUCTION_ORIGIN_REGEX = r"https://([a-z0-9-]+\.)*vercel\.app"


def _get_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Environment variable {key} must be an integer, got {raw!r}")


def _get_str(env: Mapping[str, str], key: str) -> Optional[str]:
    value = env.get(key)
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for the Roast API."""

    port: int = 5000
    environment: str = "development"
    log_level: str = "INFO"
    version: str = "1.0.0"

    github_token: Optional[str] = None
    github_client_id: Optional[str] = None
    github_client_secret: Optional[str] = None
    github_base_url: str = "https://api.github.com"

    groq_api_key: Optional[str] = None
    openrouter_api_key: Optional[str] = None
    llm_model: str = "llama-3.1-8b-instant"
    openrouter_model: str = "meta-llama/llama-3.1-8b-instruct"

    elevenlabs_api_key: Optional[str] = None
    elevenlabs_base_url: str = "https://api.elevenlabs.io/v1"
    tts_model: str = "eleven_flash_v2_5"
    tts_voice_id: str = "2EiwWnXFnvU5JabPnv8n"

    cache_ttl: int = 300
    max_cache_size: int = 100

    rate_limit_max_requests: int = 100
    rate_limit_window_ms: int = 900_000

    cors_origins: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def rate_limit_window_seconds(self) -> int:
        return max(1, self.rate_limit_window_ms // 1000)

    @property
    def has_github_auth(self) -> bool:
        return bool(
            self.github_token or (self.github_client_id and self.github_client_secret)
        )

    @property
    def has_llm(self) -> bool:
        return bool(self.groq_api_key or self.openrouter_api_key)

    @property
    def has_tts(self) -> bool:
        return bool(self.elevenlabs_api_key)

    def allowed_origins(self) -> Tuple[str, ...]:
        """Explicit CORS origins; configured ones win over the built-in lists."""
        if self.cors_origins:
            return self.cors_origins
        if self.is_production:
            return PRODUCTION_ORIGINS
        return DEVELOPMENT_ORIGINS

    def allowed_origin_regex(self) -> Optional[str]:
        if self.is_production and not self.cors_origins:
            return PRODUCTION_ORIGIN_REGEX
        return None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            env: Mapping to read from. Defaults to `os.environ`.

        Returns:
            A frozen Settings instance.
        """
        if env is None:
            env = os.environ

        environment = (
            _get_str(env, "NODE_ENV") or _get_str(env, "ENVIRONMENT") or "development"
        ).lower()

        origins = _get_str(env, "CORS_ORIGINS")
        cors_origins = (
            tuple(o.strip() for o in origins.split(",") if o.strip()) if origins else ()
        )

        return cls(
            port=_get_int(env, "PORT", 5000),
            environment=environment,
            log_level=(_get_str(env, "LOG_LEVEL") or "INFO").upper(),
            github_token=_get_str(env, "GITHUB_TOKEN"),
            github_client_id=_get_str(env, "GITHUB_CLIENT_ID"),
            github_client_secret=_get_str(env, "GITHUB_CLIENT_SECRET"),
            groq_api_key=_get_str(env, "GROQ_API_KEY"),
            openrouter_api_key=_get_str(env, "OPENROUTER_API_KEY"),
            llm_model=_get_str(env, "LLM_MODEL") or cls.llm_model,
            elevenlabs_api_key=_get_str(env, "ELEVENLABS_API_KEY"),
            tts_voice_id=_get_str(env, "ELEVENLABS_VOICE_ID") or cls.tts_voice_id,
            cache_ttl=_get_int(env, "CACHE_TTL", 300),
            max_cache_size=_get_int(env, "MAX_CACHE_SIZE", 100),
            rate_limit_max_requests=_get_int(env, "RATE_LIMIT_MAX_REQUESTS", 100),
            rate_limit_window_ms=_get_int(env, "RATE_LIMIT_WINDOW_MS", 900_000),
            cors_origins=cors_origins,
        )
