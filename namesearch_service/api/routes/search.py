"""
Username search routes
"""
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask
from typing import Optional

from ...config import Settings, get_settings
from ...domain.models import RateLimitResult
from ...key_rotation import clamp_num
from ...stream_relay import relay_ndjson
from ...upstream import UpstreamClient, get_upstream_client
from ..dependencies import ERROR_RESPONSES, get_validated_username, rate_limit


router = APIRouter(prefix="/api/search", tags=["Search"])

NDJSON_HEADERS = {
    "Content-Type": "application/x-ndjson",
    "Cache-Control": "no-cache, no-transform",
    "X-Content-Type-Options": "nosniff",
}


@router.get("/whatsmyname", responses=ERROR_RESPONSES)
async def search_whatsmyname(
    username: str = Depends(get_validated_username),
    limit: RateLimitResult = Depends(rate_limit("whatsmyname")),
    settings: Settings = Depends(get_settings),
    upstream: UpstreamClient = Depends(get_upstream_client),
):
    """
    Check which platforms have an account for the username

    Streams one NDJSON record per platform as the checks complete, plus
    progress records carrying ``total``/``completed``.
    """
    upstream_response = await upstream.open_whatsmyname_stream(username, settings)
    return StreamingResponse(
        relay_ndjson(upstream_response, expose_errors=not settings.is_production),
        headers={**NDJSON_HEADERS, **limit.headers()},
        background=BackgroundTask(upstream_response.aclose),
    )


@router.get("/google", responses=ERROR_RESPONSES)
async def search_google(
    username: str = Depends(get_validated_username),
    num: Optional[str] = Query(None),
    limit: RateLimitResult = Depends(rate_limit("google")),
    settings: Settings = Depends(get_settings),
    upstream: UpstreamClient = Depends(get_upstream_client),
):
    """
    Search the web for mentions of the username

    - **username**: Username to search for
    - **num**: Number of results, clamped to 1..10 (default 10)
    """
    result, key_index = await upstream.google_search(username, clamp_num(num), settings)

    headers = {
        "Cache-Control": (
            f"public, s-maxage={settings.GOOGLE_CACHE_MAX_AGE}, "
            f"stale-while-revalidate={settings.GOOGLE_CACHE_STALE_WHILE_REVALIDATE}"
        ),
        "X-Google-Key-Index": str(key_index),
        **limit.headers(),
    }
    return JSONResponse(
        content=result.model_dump(by_alias=True, exclude_none=True),
        headers=headers,
    )
