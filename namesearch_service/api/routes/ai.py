"""
AI analysis route
"""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from ...config import Settings, get_settings
from ...domain.models import RateLimitResult
from ...errors import RequestValidationFailed
from ...schemas import ChatRequest
from ...stream_relay import relay_sse
from ...upstream import UpstreamClient, get_upstream_client
from ...validation import validate_chat_request
from ..dependencies import ERROR_RESPONSES, rate_limit


router = APIRouter(prefix="/api/ai", tags=["AI"])

SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Content-Type-Options": "nosniff",
}


async def get_chat_request(request: Request) -> ChatRequest:
    """
    Parse and validate the JSON body

    Raises:
        RequestValidationFailed: If the body is not JSON or breaks the chat rules
    """
    try:
        payload = await request.json()
    except ValueError:
        raise RequestValidationFailed.from_issues([("body", "Invalid JSON")])
    return validate_chat_request(payload)


@router.post("/analyze", responses=ERROR_RESPONSES)
async def analyze(
    request: Request,
    chat: ChatRequest = Depends(get_chat_request),
    limit: RateLimitResult = Depends(rate_limit("ai")),
    settings: Settings = Depends(get_settings),
    upstream: UpstreamClient = Depends(get_upstream_client),
):
    """
    Stream an AI assistant's answer about a username search

    - **messages**: Conversation so far, starting with the user and alternating
    - **username**: Optional username the conversation is about
    """
    response = await upstream.open_chat_stream(
        chat.messages,
        settings,
        referer=request.headers.get("referer"),
    )
    return StreamingResponse(
        relay_sse(response, expose_errors=not settings.is_production),
        headers={**SSE_HEADERS, **limit.headers()},
        background=BackgroundTask(response.aclose),
    )
