import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, get_settings

# API routers
from .api.chat import router as chat_router
from .core.errors import RelayError, error_response
from .core.logging import setup_logging
from .core.ratelimit import RateLimiter

VERSION = "0.1.0"

logger = logging.getLogger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    msg = first.get("msg", "invalid value")
    return f"{loc}: {msg}" if loc else msg


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    # Setup logging early
    setup_logging(logging.DEBUG if settings.debug_logging else logging.INFO)
    app = FastAPI(title="Studiodesk Chat Relay", version=VERSION)

    app.state.settings = settings
    app.state.rate_limiter = RateLimiter(
        limit=settings.chat_rate_limit,
        window_seconds=settings.chat_rate_window_seconds,
        trusted_proxies=settings.trusted_proxies,
    )

    @app.exception_handler(RelayError)
    async def _relay_error(request: Request, exc: RelayError) -> JSONResponse:
        logger.warning("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
        return error_response(exc.message, exc.status_code, exc.headers)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return error_response(str(exc.detail), exc.status_code, exc.headers)

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(_validation_message(exc), 400)

    api = APIRouter()
    api.include_router(chat_router)
    app.include_router(api, prefix="/api")

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    @app.get("/")
    def root():
        return {"service": "studiodesk", "version": VERSION}

    return app


app = create_app()
