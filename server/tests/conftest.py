import json
from typing import Iterable, List

import httpx
import pytest

from studiodesk.config import Settings


def make_settings(**overrides) -> Settings:
    values = {"zhipu_api_key": "test-key", "chat_rate_limit": 0, "debug_logging": False}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def upstream_frame(content=None, finish_reason=None) -> str:
    choice = {"index": 0, "delta": {}, "finish_reason": finish_reason}
    if content is not None:
        choice["delta"]["content"] = content
    return "data: " + json.dumps({"id": "chatcmpl-1", "choices": [choice]}, ensure_ascii=False) + "\n\n"


class ChunkedStream(httpx.AsyncByteStream):
    """Response body delivered as the exact byte chunks given, like separate network reads."""

    def __init__(self, chunks: Iterable[bytes], error: Exception = None) -> None:
        self.chunks: List[bytes] = list(chunks)
        self.error = error
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def settings() -> Settings:
    return make_settings()
