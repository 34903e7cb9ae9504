"""
Application Middleware for the Roast API.

This module defines the Starlette middleware that wraps every request served by
the Roast API: request correlation, last-resort error handling, timing, and
request-size validation. Rate limiting and security headers live in
`core.security_middleware`.

Key Middleware Components:
- `CorrelationMiddleware`: Assigns a correlation ID to each request (or reuses
  the caller's `X-Correlation-ID`) and echoes it back in the response.
- `ErrorHandlingMiddleware`: Turns any exception that escaped the routes into
  the JSON error shape clients expect. Internal detail is only included when
  the app runs in development.
- `PerformanceMiddleware`: Logs each request with its processing time, sets the
  `X-Process-Time` header, and warns about slow requests. Roast generation
  legitimately takes several seconds, so the slow threshold is configurable.
- `RequestValidationMiddleware`: Rejects bodies larger than 10 MB before any
  route runs.

Architectural Design:
- Layered Processing Pipeline: `main.create_app` registers these so that the
  correlation ID is set before anything else logs, and error handling sits
  outside the routes but inside CORS.
- Starlette's `BaseHTTPMiddleware`: Every class implements `dispatch`.
"""

import time
import uuid
from typing import Callable, Dict, Any, Optional
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .logging_config import set_correlation_id, get_logger
from .exceptions import RoastAPIException, error_body

logger = get_logger("core.middleware")


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Middleware to add correlation IDs to requests"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = (
            request.headers.get("X-Correlation-ID")
            or request.headers.get("X-Request-ID")
            or str(uuid.uuid4())
        )

        set_correlation_id(correlation_id)
        request.state.correlation_id = correlation_id

        try:
            response = await call_next(request)
        finally:
            set_correlation_id(None)

        response.headers["X-Correlation-ID"] = correlation_id
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware for centralized error handling"""

    def __init__(self, app: ASGIApp, expose_details: bool = False):
        super().__init__(app)
        self.expose_details = expose_details

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except RoastAPIException as e:
            logger.error(
                f"Application error: {e.message}",
                extra={
                    "error_code": e.error_code,
                    "path": request.url.path,
                    "method": request.method,
                },
            )
            return JSONResponse(
                status_code=e.status_code,
                content=error_body(e, include_details=self.expose_details),
            )

        except Exception as e:
            logger.error(
                f"Unexpected error: {str(e)}",
                extra={
                    "error_type": type(e).__name__,
                    "path": request.url.path,
                    "method": request.method,
                },
                exc_info=True,
            )
            return create_error_response(
                "Internal server error",
                "Something went wrong",
                status_code=500,
                correlation_id=getattr(request.state, "correlation_id", None),
                details={"reason": str(e)} if self.expose_details else None,
            )


class PerformanceMiddleware(BaseHTTPMiddleware):
    """Middleware for performance monitoring and logging"""

    def __init__(self, app: ASGIApp, slow_request_seconds: float = 10.0):
        super().__init__(app)
        self.slow_request_seconds = slow_request_seconds

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()

        logger.debug(
            f"Request started: {request.method} {request.url.path}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "query_params": dict(request.query_params),
                "client_ip": get_client_ip(request),
            },
        )

        response = await call_next(request)

        process_time = time.perf_counter() - start_time
        process_time_ms = round(process_time * 1000, 2)
        response.headers["X-Process-Time"] = str(process_time_ms)

        logger.info(
            f"{request.method} {request.url.path} - {response.status_code}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "process_time_ms": process_time_ms,
            },
        )

        if process_time > self.slow_request_seconds:
            logger.warning(
                f"Slow request detected: {request.method} {request.url.path}",
                extra={"process_time_ms": process_time_ms, "threshold_exceeded": True},
            )

        return response


class RequestValidationMiddleware(BaseHTTPMiddleware):
    """Middleware rejecting oversized request bodies"""

    def __init__(self, app: ASGIApp, max_request_size: int = 10 * 1024 * 1024):
        super().__init__(app)
        self.max_request_size = max_request_size

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                size = int(content_length)
            except ValueError:
                return create_error_response(
                    "Invalid request", "Malformed Content-Length header", 400
                )
            if size > self.max_request_size:
                logger.warning(
                    f"Request too large: {size} bytes",
                    extra={"max_size": self.max_request_size, "path": request.url.path},
                )
                return create_error_response(
                    "Payload too large",
                    f"Request size exceeds maximum allowed size of {self.max_request_size} bytes",
                    413,
                )

        return await call_next(request)


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, considering proxy headers"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"


def create_error_response(
    error: str,
    message: str,
    status_code: int = 400,
    correlation_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Create standardized error response"""

    error_data: Dict[str, Any] = {"error": error, "message": message}

    if correlation_id:
        error_data["correlation_id"] = correlation_id

    if details:
        error_data["details"] = details

    return JSONResponse(status_code=status_code, content=error_data, headers=headers)
