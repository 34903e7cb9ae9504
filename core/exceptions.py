"""
Custom Exception Classes for the Roast API.

This module defines the exceptions raised by the routes, services and providers
of the Roast API. Each exception knows how it should be presented to an HTTP
client: a short human title (`error`), a machine-readable `error_code`, the HTTP
status and an optional `details` dictionary.

Key Components:
- `RoastAPIException`: The base exception class from which all other custom
  exceptions in this module inherit.
- GitHub errors: `GitHubUserNotFoundError`, `GitHubRateLimitError` and
  `GitHubAPIError` describe the ways the upstream GitHub API can fail.
- TTS errors: `TTSUnavailableError`, `TTSGenerationError` and
  `PayloadTooLargeError` cover the ElevenLabs proxy.
- `to_http_exception`: Maps a `RoastAPIException` to FastAPI's `HTTPException`.
- `error_body`: Renders an exception as the JSON body returned to clients.

Architectural Design:
- Hierarchy of Exceptions: Routes can catch a single family (for example every
  GitHub failure) or an individual error.
- Centralized Error Mapping: The status code of every error code lives in one
  table, so the exception handler in `main.py` and the middleware agree on
  the HTTP response.
"""

from typing import Optional, Dict, Any
from fastapi import HTTPException


class RoastAPIException(Exception):
    """Base exception class for the Roast API"""

    error = "Internal server error"

    def __init__(
        self,
        message: str,
        error_code: str = "ROAST_API_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return STATUS_CODE_MAP.get(self.error_code, 500)


class ValidationError(RoastAPIException):
    """Raised when input validation fails"""

    error = "Invalid request"

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            reason,
            "VALIDATION_ERROR",
            {"field": field, "value": str(value)},
        )


class GitHubUserNotFoundError(RoastAPIException):
    """Raised when GitHub has no public profile for a username"""

    error = "User not found"

    def __init__(self, username: str):
        super().__init__(
            f"GitHub user '{username}' does not exist or has no public activity",
            "USER_NOT_FOUND",
            {"username": username},
        )


class GitHubRateLimitError(RoastAPIException):
    """Raised when GitHub throttles our requests"""

    error = "Rate limit exceeded"

    def __init__(self, retry_after: int = 3600):
        super().__init__(
            "GitHub API rate limit exceeded. Please try again later.",
            "GITHUB_RATE_LIMITED",
            {"retryAfter": retry_after},
        )
        self.retry_after = retry_after


class GitHubAPIError(RoastAPIException):
    """Raised for any other failed GitHub call"""

    error = "GitHub API error"

    def __init__(self, endpoint: str, reason: str, status: Optional[int] = None):
        super().__init__(
            f"GitHub request to {endpoint} failed: {reason}",
            "GITHUB_API_ERROR",
            {"endpoint": endpoint, "status": status},
        )
        self.upstream_status = status


class PayloadTooLargeError(RoastAPIException):
    """Raised when a request body exceeds an allowed size"""

    error = "Text too long"

    def __init__(self, length: int, limit: int):
        super().__init__(
            f"Text must be {limit} characters or less (got {length})",
            "PAYLOAD_TOO_LARGE",
            {"length": length, "limit": limit},
        )


class TTSUnavailableError(RoastAPIException):
    """Raised when the text-to-speech provider cannot be used"""

    error = "Text-to-speech service unavailable"

    def __init__(self, reason: str):
        super().__init__(reason, "TTS_UNAVAILABLE", {"service": "ElevenLabs"})


class TTSGenerationError(RoastAPIException):
    """Raised when the text-to-speech provider fails to produce audio"""

    error = "Failed to generate speech"

    def __init__(self, reason: str):
        super().__init__(reason, "TTS_GENERATION_FAILED", {"service": "ElevenLabs"})


class RoastGenerationError(RoastAPIException):
    """Raised when a roast request fails for reasons other than GitHub"""

    error = "Failed to generate roast"

    def __init__(self, reason: str):
        super().__init__(
            "Something went wrong while analyzing the GitHub profile",
            "ROAST_GENERATION_FAILED",
            {"reason": reason},
        )


STATUS_CODE_MAP: Dict[str, int] = {
    "VALIDATION_ERROR": 400,
    "USER_NOT_FOUND": 404,
    "PAYLOAD_TOO_LARGE": 413,
    "GITHUB_RATE_LIMITED": 429,
    "RATE_LIMIT_EXCEEDED": 429,
    "GITHUB_API_ERROR": 502,
    "TTS_UNAVAILABLE": 503,
    "TTS_GENERATION_FAILED": 500,
    "ROAST_GENERATION_FAILED": 500,
}


def error_body(exc: RoastAPIException, include_details: bool = True) -> Dict[str, Any]:
    """Render an exception as the JSON body sent to clients"""
    body: Dict[str, Any] = {
        "error": exc.error,
        "message": exc.message,
        "code": exc.error_code,
    }
    if isinstance(exc, GitHubRateLimitError):
        body["retryAfter"] = exc.retry_after
    elif include_details and exc.details:
        body["details"] = exc.details
    return body


def to_http_exception(exc: RoastAPIException) -> HTTPException:
    """Convert RoastAPIException to FastAPI HTTPException"""
    headers = None
    if isinstance(exc, GitHubRateLimitError):
        headers = {"Retry-After": str(exc.retry_after)}

    return HTTPException(
        status_code=exc.status_code,
        detail=error_body(exc),
        headers=headers,
    )
