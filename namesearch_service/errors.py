"""
Error taxonomy and FastAPI exception handlers

Every failure reaching a client is rendered as ``{"error": ..., "details"?: ...}``.
"""
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from typing import Any, Dict, Iterable, Optional, Tuple
import logging

from .config import get_settings
from .domain.models import RateLimitResult

logger = logging.getLogger(__name__)

GENERIC_ERROR_DETAILS = "An unexpected error occurred"


class AppError(Exception):
    """Base application error"""
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "APP_ERROR"

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class RequestValidationFailed(AppError):
    """Client input is malformed"""
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"

    @classmethod
    def from_issues(cls, issues: Iterable[Tuple[str, str]]) -> "RequestValidationFailed":
        """Build the 'Validation failed: field: message, ...' error"""
        messages = [f"{path}: {message}" for path, message in issues]
        return cls(f"Validation failed: {', '.join(messages)}")


class ConfigurationError(AppError):
    """A required credential or setting is missing"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "CONFIGURATION_ERROR"


class UpstreamError(AppError):
    """A dependent API answered with a non-success status"""
    code = "API_ERROR"

    def __init__(self, message: str, status_code: int = status.HTTP_502_BAD_GATEWAY):
        super().__init__(message)
        self.status_code = status_code


class UpstreamTimeoutError(AppError):
    """A dependent API exceeded its allotted time"""
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    code = "NETWORK_TIMEOUT"

    def __init__(self, message: str = "Request timed out"):
        super().__init__(message)


class StreamUnreadableError(AppError):
    """An upstream response has no readable body"""
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "STREAM_UNREADABLE"

    def __init__(self, message: str = "Response body is not readable"):
        super().__init__(message)


class RateLimitedError(AppError):
    """Caller exceeded the local request budget"""
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "API_RATE_LIMIT"

    def __init__(
        self,
        result: RateLimitResult,
        message: str = "Rate limit exceeded. Please try again later.",
    ):
        super().__init__(message)
        self.result = result

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "rateLimitExceeded": True,
            "retryAfter": self.result.retry_after,
        }


def sanitize_error_message(exc: BaseException) -> str:
    """Hide internal error text outside development"""
    if get_settings().is_production:
        return GENERIC_ERROR_DETAILS
    return str(exc) or exc.__class__.__name__


def error_response(exc: AppError, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    """Render an application error as the JSON error envelope"""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.url.path} failed ({exc.code}): {exc.message}")
    else:
        logger.info(f"{request.url.path} rejected ({exc.code}): {exc.message}")
    return error_response(exc)


async def rate_limited_handler(request: Request, exc: RateLimitedError) -> JSONResponse:
    return error_response(exc, headers=exc.result.headers())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    issues = []
    for error in exc.errors():
        # Drop the "query"/"body" location prefix FastAPI adds
        loc = [str(part) for part in error.get("loc", ())[1:]]
        issues.append((".".join(loc), error.get("msg", "Invalid value")))
    return error_response(RequestValidationFailed.from_issues(issues))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"{request.url.path} route error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "details": sanitize_error_message(exc)},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the error envelope handlers to an application"""
    app.add_exception_handler(RateLimitedError, rate_limited_handler)
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
