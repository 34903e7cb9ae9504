"""
Input Validation Utilities.

Every value that reaches the Roast API from a client passes through this
module before it is used to build a GitHub URL, an LLM prompt or a TTS request.

Key Components:
- `InputValidator`: A static class holding the GitHub username rules, the
  supported roast languages, numeric clamps for query parameters and the
  text checks used by the TTS proxy.
- `extract_username`: Accepts whatever a user pastes into the show's input box
  (a bare login, `@login`, or any `github.com/<login>/...` URL) and returns a
  clean login or an empty string.

Architectural Design:
- Static Methods for Reusability: Routes, services and the stage client call
  the same rules, so the backend and the client never disagree on what a
  valid username is.
- Fail Loudly, Clamp Quietly: Malformed identifiers raise `ValidationError`;
  out-of-range numbers and unknown languages are clamped to a safe default, as
  the public API promises.
"""

import re
from typing import Any, Optional, Tuple
from urllib.parse import urlparse

from core.logging_config import get_logger
from core.exceptions import ValidationError

logger = get_logger(__name__)

SUPPORTED_LANGUAGES: Tuple[str, ...] = ("en", "es", "fr", "de", "hi", "zh", "ja", "ru")
DEFAULT_LANGUAGE = "en"

MAX_VARIANTS = 3
MAX_PER_PAGE = 100
MAX_TTS_TEXT_LENGTH = 1000


class InputValidator:
    """Validation rules shared across the application"""

    # 1-39 characters, alphanumeric or single hyphens, no leading or trailing hyphen
    USERNAME_PATTERN = re.compile(r"[a-zA-Z0-9]([a-zA-Z0-9]|-(?=[a-zA-Z0-9])){0,38}")

    @staticmethod
    def is_valid_username(username: Any) -> bool:
        """Return True if `username` is a syntactically valid GitHub login"""
        if not isinstance(username, str):
            return False
        if not 1 <= len(username) <= 39:
            return False
        return bool(InputValidator.USERNAME_PATTERN.fullmatch(username))

    @staticmethod
    def validate_username(username: Any) -> str:
        """Validate a GitHub username, returning it unchanged"""
        if not InputValidator.is_valid_username(username):
            logger.info(f"Rejected invalid GitHub username: {str(username)[:50]!r}")
            raise ValidationError(
                "username",
                username,
                "Invalid GitHub username format",
            )
        return username

    @staticmethod
    def normalize_language(language: Optional[str]) -> str:
        """Map a requested language code to a supported one, defaulting to English"""
        if not language:
            return DEFAULT_LANGUAGE
        code = language.strip().lower()
        return code if code in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE

    @staticmethod
    def clamp(value: Any, lower: int, upper: int, default: int) -> int:
        """Coerce `value` to an int within [lower, upper]"""
        try:
            number = int(value)
        except (TypeError, ValueError):
            return default
        return max(lower, min(upper, number))

    @staticmethod
    def clamp_variants(variants: Any) -> int:
        return InputValidator.clamp(variants, 1, MAX_VARIANTS, 1)

    @staticmethod
    def clamp_per_page(per_page: Any, default: int = 30) -> int:
        return InputValidator.clamp(per_page, 1, MAX_PER_PAGE, default)

    @staticmethod
    def require_text(value: Any, field: str = "text") -> str:
        """Return `value` if it is a non-blank string, otherwise raise"""
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(
                field, value, "Text is required and must be a non-empty string"
            )
        return value


def extract_username(raw: Any) -> str:
    """
    Pull a GitHub login out of user input.

    Accepts `octocat`, `@octocat`, `github.com/octocat`,
    `https://www.github.com/octocat/hello-world?tab=x` and similar.

    Returns:
        The login, or an empty string when nothing valid can be found.
    """
    if not isinstance(raw, str):
        return ""

    text = raw.strip()
    if not text:
        return ""

    if "/" not in text and "." not in text:
        candidate = text.lstrip("@")
    else:
        if not re.match(r"^https?://", text, re.IGNORECASE):
            text = "https://" + text
        parsed = urlparse(text)
        host = (parsed.hostname or "").lower()
        if host not in ("github.com", "www.github.com"):
            candidate = re.sub(r"[^a-zA-Z0-9-]", "", raw.strip())
        else:
            segments = [s for s in parsed.path.split("/") if s]
            candidate = segments[0] if segments else ""

    return candidate if InputValidator.is_valid_username(candidate) else ""
