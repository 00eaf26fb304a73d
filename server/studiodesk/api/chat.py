from fastapi import APIRouter, Depends, Request, Response
import logging
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from studiodesk.config import Settings
from studiodesk.core.errors import CORS_HEADERS, RelayError
from studiodesk.core.sse import EVENT_STREAM
from studiodesk.prompts import build_messages
from studiodesk.providers.base import ChatProvider
from studiodesk.providers.zhipu import ZhipuProvider
from studiodesk.schemas.chat import ChatRequest, ErrorResponse

router = APIRouter()
logger = logging.getLogger(__name__)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_provider(settings: Settings = Depends(get_app_settings)) -> ChatProvider:
    return ZhipuProvider(settings)


@router.options("/chat")
async def chat_preflight() -> Response:
    return Response(status_code=200, headers=CORS_HEADERS)


@router.post(
    "/chat",
    responses={code: {"model": ErrorResponse} for code in (400, 429, 500, 502, 504)},
)
async def relay_chat(
    request: ChatRequest,
    http_request: Request,
    settings: Settings = Depends(get_app_settings),
    provider: ChatProvider = Depends(get_provider),
):
    """Relay one message to the upstream model and stream its reply back as SSE."""
    http_request.app.state.rate_limiter.enforce(http_request)
    logger.info(
        "/chat start provider=%s chars=%d context=%s",
        provider.id,
        len(request.message),
        request.contextData is not None,
    )
    try:
        messages = build_messages(request.message, settings, request.contextData)
        upstream = await provider.open_stream(messages)
    except RelayError:
        raise
    except Exception as e:
        logger.exception("/chat error: %s", e)
        raise RelayError(str(e) or "Server error, please check the network or try again later") from e

    return StreamingResponse(
        upstream.events(),
        media_type=EVENT_STREAM,
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            **CORS_HEADERS,
        },
        # events() closes upstream itself; this covers a response that never starts iterating
        background=BackgroundTask(upstream.aclose),
    )
