"""Security Middleware

Per-client rate limiting and the helmet-style security headers applied to every
response of the Roast API.
"""

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from core.logging_config import get_logger
from core.middleware import get_client_ip

logger = get_logger(__name__)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limiting middleware backed by the limiter on `app.state`"""

    def __init__(self, app, default_rule: str = "api"):
        super().__init__(app)
        self.default_rule = default_rule

    async def dispatch(self, request: Request, call_next):
        rate_limiter = getattr(request.app.state, "rate_limiter", None)
        if rate_limiter is None or request.method == "OPTIONS":
            return await call_next(request)

        client_ip = get_client_ip(request)
        allowed, info = rate_limiter.check_rate_limit(client_ip, self.default_rule)

        if not allowed:
            logger.warning(
                f"Rate limit exceeded for {client_ip} on {request.url.path}",
                extra={"client_ip": client_ip, "retry_after": info["retry_after"]},
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": "Too many requests",
                    "retryAfter": info["retry_after"],
                },
                headers={
                    "Retry-After": str(info["retry_after"]),
                    "X-RateLimit-Limit": str(info["limit"]),
                    "X-RateLimit-Remaining": "0",
                },
            )

        response = await call_next(request)

        if info["limit"] is not None:
            response.headers["X-RateLimit-Limit"] = str(info["limit"])
            response.headers["X-RateLimit-Remaining"] = str(info["remaining"])

        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Security headers middleware"""

    def __init__(self, app, hsts: bool = False):
        super().__init__(app)
        self.security_headers = {
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "DENY",
            "X-XSS-Protection": "0",
            "Referrer-Policy": "strict-origin-when-cross-origin",
            "Cross-Origin-Resource-Policy": "cross-origin",
            "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
        }
        if hsts:
            self.security_headers[
                "Strict-Transport-Security"
            ] = "max-age=31536000; includeSubDomains"

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        for header, value in self.security_headers.items():
            response.headers.setdefault(header, value)

        return response
