from __future__ import annotations
import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional

import httpx

from studiodesk.client.session import ChatSession
from studiodesk.core.sse import DONE, EVENT_STREAM, data_payload

logger = logging.getLogger(__name__)

ERROR_PREFIX = "Sorry, something went wrong: "
DEFAULT_REQUEST_ERROR = "API request failed"
INVALID_RESPONSE = "AI service returned an invalid response"
TIMEOUT_ERROR = "the request timed out"
NETWORK_ERROR = "network error, please try again later"


class ChatRequestError(Exception):
    """A send failed in a way the user should read about."""


class ChatStreamConsumer:
    """Sends one message at a time to the chat relay and streams the reply into a session.

    ``on_update`` is called with the session after every transcript change so a view
    can re-render (and scroll, if ``session.autoscroll.follow`` is set).
    """

    def __init__(
        self,
        session: ChatSession,
        client: httpx.AsyncClient,
        url: str = "/api/chat",
        on_update: Optional[Callable[[ChatSession], None]] = None,
    ) -> None:
        self.session = session
        self.client = client
        self.url = url
        self.on_update = on_update
        self._task: Optional[asyncio.Task] = None

    async def send(self, user_text: str, context_data: Optional[Dict[str, Any]] = None) -> None:
        session = self.session
        # Dropped, not queued, while another reply is outstanding
        if not user_text.strip() or session.loading or session.closed:
            return

        session.add_user_turn(user_text)
        session.loading = True
        session.autoscroll.reset()
        self._task = asyncio.current_task()
        self._render()
        try:
            await self._exchange(user_text, context_data)
        except ChatRequestError as e:
            self._fail(str(e))
        except httpx.TimeoutException as e:
            logger.warning("Chat request timed out: %r", e)
            self._fail(TIMEOUT_ERROR)
        except httpx.HTTPError as e:
            logger.warning("Chat request failed: %r", e)
            self._fail(str(e) or NETWORK_ERROR)
        except (httpx.InvalidURL, httpx.StreamError, TypeError) as e:
            # Bad relay URL, a body that cannot be encoded, or a response read twice
            logger.warning("Chat request could not be sent: %r", e)
            self._fail(str(e) or NETWORK_ERROR)
        finally:
            session.end_reply()
            session.loading = False
            self._task = None
            self._render()

    def dismiss(self) -> None:
        """Close the panel: drop the transcript and abandon any reply still streaming."""
        self.session.close()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def _exchange(self, user_text: str, context_data: Optional[Dict[str, Any]]) -> None:
        body: Dict[str, Any] = {"message": user_text}
        if context_data is not None:
            body["contextData"] = context_data

        async with self.client.stream("POST", self.url, json=body) as response:
            if not response.is_success:
                raise ChatRequestError(await self._error_reason(response))
            content_type = response.headers.get("content-type", "")
            if EVENT_STREAM in content_type:
                await self._read_stream(response)
            else:
                await self._read_message(response)

    async def _error_reason(self, response: httpx.Response) -> str:
        await response.aread()
        try:
            data = response.json()
        except ValueError:
            return DEFAULT_REQUEST_ERROR
        err = data.get("error") if isinstance(data, dict) else None
        return str(err) if err else DEFAULT_REQUEST_ERROR

    async def _read_stream(self, response: httpx.Response) -> None:
        self.session.begin_reply()
        self._render()
        async for line in response.aiter_lines():
            if self.session.closed:
                break
            payload = data_payload(line)
            if not payload:
                continue
            if payload == DONE:
                break
            try:
                obj = json.loads(payload)
            except json.JSONDecodeError as e:
                logger.warning("Skipping malformed frame: %s %r", e, payload[:100])
                continue
            content = obj.get("content") if isinstance(obj, dict) else None
            if content:
                self.session.append_delta(str(content))
                self._render()

    async def _read_message(self, response: httpx.Response) -> None:
        await response.aread()
        try:
            data = response.json()
        except ValueError as e:
            raise ChatRequestError(INVALID_RESPONSE) from e
        message = data.get("message") if isinstance(data, dict) else None
        if not message:
            raise ChatRequestError(INVALID_RESPONSE)
        self.session.add_assistant_turn(str(message))
        self._render()

    def _fail(self, reason: str) -> None:
        self.session.end_reply()
        self.session.add_assistant_turn(ERROR_PREFIX + reason)
        self._render()

    def _render(self) -> None:
        if self.on_update is not None and not self.session.closed:
            self.on_update(self.session)
