from __future__ import annotations
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional
import httpx

from studiodesk.config import Settings
from studiodesk.core.errors import (
    DEFAULT_UPSTREAM_ERROR,
    ConfigurationError,
    UpstreamRejected,
    UpstreamUnavailable,
)
from studiodesk.core.sse import DONE, DONE_EVENT, data_payload, encode_event
from studiodesk.schemas.chat import Message, UpstreamChunk

logger = logging.getLogger(__name__)


def extract_error_message(body: bytes) -> str:
    """Pull a readable reason out of a provider error body."""
    text = body.decode("utf-8", errors="ignore").strip()
    if not text:
        return DEFAULT_UPSTREAM_ERROR
    try:
        obj = json.loads(text)
    except json.JSONDecodeError:
        return text
    err = obj.get("error") if isinstance(obj, dict) else None
    if isinstance(err, dict) and err.get("message"):
        return str(err["message"])
    if isinstance(err, str) and err:
        return err
    return DEFAULT_UPSTREAM_ERROR


class ZhipuStream:
    """An open upstream response translated into relayed SSE frames."""

    def __init__(self, client: httpx.AsyncClient, response: httpx.Response) -> None:
        self._client = client
        self._response = response

    async def events(self) -> AsyncIterator[str]:
        forwarded = 0
        try:
            async for line in self._response.aiter_lines():
                payload = data_payload(line)
                if not payload:
                    continue
                if payload == DONE:
                    logger.debug("Upstream sent %s after %d deltas", DONE, forwarded)
                    yield DONE_EVENT
                    return
                try:
                    chunk = UpstreamChunk.from_payload(json.loads(payload))
                except ValueError as e:
                    # A bad frame is dropped on its own; the rest of the stream is still good
                    logger.warning("Skipping malformed upstream frame: %s %r", e, payload[:100])
                    continue
                if chunk.content_delta:
                    forwarded += 1
                    yield encode_event({"content": chunk.content_delta})
                if chunk.finish_reason:
                    logger.debug("Upstream finished (%s) after %d deltas", chunk.finish_reason, forwarded)
                    yield DONE_EVENT
                    return
            logger.debug("Upstream closed without a terminator after %d deltas", forwarded)
        except httpx.HTTPError as e:
            logger.error("Upstream stream broke after %d deltas: %r", forwarded, e)
            raise
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        await self._response.aclose()
        await self._client.aclose()


class ZhipuProvider:
    id = "zhipu"

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.settings = settings
        self._transport = transport

    def build_payload(self, messages: List[Message]) -> Dict[str, Any]:
        return {
            "model": self.settings.zhipu_model,
            "messages": [m.model_dump() for m in messages],
            "stream": True,
            "temperature": self.settings.zhipu_temperature,
            "top_p": self.settings.zhipu_top_p,
            "max_tokens": self.settings.zhipu_max_tokens,
        }

    async def open_stream(self, messages: List[Message]) -> ZhipuStream:
        api_key = self.settings.zhipu_api_key
        if not api_key:
            raise ConfigurationError(
                "API key is not configured; set ZHIPU_API_KEY in the server environment"
            )

        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        timeout = httpx.Timeout(
            connect=self.settings.upstream_connect_timeout,
            read=self.settings.upstream_read_timeout,
            write=30.0,
            pool=10.0,
        )
        client = httpx.AsyncClient(timeout=timeout, trust_env=True, transport=self._transport)
        request = client.build_request(
            "POST", self.settings.zhipu_api_url, headers=headers, json=self.build_payload(messages)
        )
        logger.debug("Calling upstream model=%s messages=%d", self.settings.zhipu_model, len(messages))
        try:
            response = await client.send(request, stream=True)
        except httpx.TimeoutException as e:
            await client.aclose()
            logger.error("Upstream timed out before responding: %r", e)
            raise UpstreamUnavailable("AI service did not respond in time", status_code=504) from e
        except httpx.TransportError as e:
            await client.aclose()
            logger.error("Upstream connection failed: %r", e)
            raise UpstreamUnavailable(f"Could not reach AI service: {e}") from e

        if not response.is_success:
            body = b""
            try:
                body = await response.aread()
            except httpx.HTTPError as e:
                logger.warning("Could not read upstream error body: %r", e)
            finally:
                await response.aclose()
                await client.aclose()
            logger.error(
                "Upstream rejected request status=%d body=%s",
                response.status_code,
                body[:500].decode("utf-8", errors="ignore"),
            )
            raise UpstreamRejected(extract_error_message(body), status_code=response.status_code)

        return ZhipuStream(client, response)
