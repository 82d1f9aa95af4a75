"""
FastAPI dependencies
"""
from fastapi import Depends, Query, Request
from typing import Callable, Optional
import logging

from ..config import Settings, get_settings
from ..domain.models import RateLimitResult
from ..errors import RateLimitedError
from ..rate_limiter import RateLimiter, get_client_identity, get_rate_limiter
from ..schemas import ErrorResponse
from ..validation import validate_username

logger = logging.getLogger(__name__)

# OpenAPI documentation for the error envelope
ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    429: {"description": "Rate limit exceeded"},
    500: {"model": ErrorResponse, "description": "Misconfiguration or unexpected failure"},
    502: {"model": ErrorResponse, "description": "Upstream service failure"},
    504: {"model": ErrorResponse, "description": "Upstream service timed out"},
}


async def get_validated_username(username: Optional[str] = Query(None)) -> str:
    """
    Validated ``username`` query parameter

    Raises:
        RequestValidationFailed: If the username is missing or malformed
    """
    return validate_username(username)


def rate_limit(route: str) -> Callable:
    """
    Build a dependency that counts the request against the route's limit

    The key combines the route with the caller's identity, so each endpoint
    class has its own budget per client.
    """

    async def dependency(
        request: Request,
        settings: Settings = Depends(get_settings),
        limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> RateLimitResult:
        peer = request.client.host if request.client else None
        identity = get_client_identity(request.headers, peer)
        result = await limiter.check(f"{route}:{identity}", settings.rate_limit_config(route))

        if not result.success:
            logger.info(f"Rate limit exceeded for {route}:{identity}, retry after {result.retry_after}s")
            raise RateLimitedError(result)
        return result

    return dependency
