from __future__ import annotations
from typing import Dict, Optional

from fastapi.responses import JSONResponse

# The chat endpoint is also called from the public static site on another origin.
CORS_HEADERS: Dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

DEFAULT_UPSTREAM_ERROR = "AI service is temporarily unavailable"


class RelayError(Exception):
    """Failure reported to the caller as ``{"error": message}`` before any streaming starts."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.headers = headers or {}


class ConfigurationError(RelayError):
    status_code = 500


class UpstreamRejected(RelayError):
    """The provider answered with a non-success status; ``status_code`` mirrors it."""


class UpstreamUnavailable(RelayError):
    status_code = 502


class RateLimited(RelayError):
    status_code = 429


def error_response(message: str, status_code: int, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    merged = dict(CORS_HEADERS)
    if headers:
        merged.update(headers)
    return JSONResponse({"error": message}, status_code=status_code, headers=merged)
