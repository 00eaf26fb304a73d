from __future__ import annotations
from typing import Protocol, AsyncIterator, List
from studiodesk.schemas.chat import Message


class UpstreamStream(Protocol):
    def events(self) -> AsyncIterator[str]:
        """Yield relayed SSE frames; the upstream connection is released when iteration ends."""
        ...

    async def aclose(self) -> None:
        ...


class ChatProvider(Protocol):
    id: str

    async def open_stream(self, messages: List[Message]) -> UpstreamStream:
        """Start a streaming completion.

        Raises RelayError subclasses for anything that fails before the first byte of the body.
        """
        ...
