"""Streaming chat client — sends a message and rebuilds the SSE answer.

The session keeps a display-ordered list of ChatMessage objects. The
assistant reply is written through a handle to the placeholder created when
the stream opens, never by list position, so other messages may be appended
while a stream is in flight.
"""

import asyncio
import json
import logging
from collections.abc import Callable

import httpx

from leadagent.config import settings
from leadagent.core.types import ChatMessage

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "

TIMEOUT_MESSAGE = "Request timed out. Please try again."
NETWORK_ERROR_MESSAGE = "Network error occurred. Please check your connection and try again."
GENERIC_ERROR_MESSAGE = "An error occurred while processing your request"

CHAT_MESSAGE = "CHAT_MESSAGE"
CHAT_RESPONSE = "CHAT_RESPONSE"
CHAT_RESIZE = "CHAT_RESIZE"


class FrameBridge:
    """Message protocol between an embedded chat and its parent context.

    Inbound ``{"type": "CHAT_MESSAGE", "message": ...}`` is accepted only from
    allow-listed origins. Outbound events go through ``post_message``.
    """

    def __init__(
        self,
        post_message: Callable[[dict], None],
        allowed_origins: list[str] | None = None,
    ):
        self._post_message = post_message
        self.allowed_origins = list(
            allowed_origins if allowed_origins is not None else settings.frame_allowed_origins
        )

    def is_allowed(self, origin: str) -> bool:
        return origin in self.allowed_origins

    async def handle_message(self, session: "ChatSession", origin: str, data: dict) -> bool:
        """Dispatch an inbound frame message; returns True if it was acted on."""
        if not self.is_allowed(origin):
            logger.debug("Ignoring frame message from %s", origin)
            return False
        if not isinstance(data, dict) or data.get("type") != CHAT_MESSAGE:
            return False
        await session.send(str(data.get("message") or ""))
        return True

    def post_response(self, message: str) -> None:
        self._post_message({"type": CHAT_RESPONSE, "message": message})

    def post_resize(self, height: int) -> None:
        self._post_message({"type": CHAT_RESIZE, "height": height})


class ChatSession:
    """Client-side conversation against POST /api/chat."""

    def __init__(
        self,
        api_url: str | None = None,
        timeout: float | None = None,
        bridge: FrameBridge | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = (api_url or settings.chat_api_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.client_timeout_seconds
        self.bridge = bridge
        self._transport = transport
        self.messages: list[ChatMessage] = []
        self.is_loading = False

    def _append_error(self, text: str) -> ChatMessage:
        msg = ChatMessage(text=text, is_from_assistant=True, is_error=True)
        self.messages.append(msg)
        return msg

    async def send(self, message: str) -> None:
        """Send one message and stream the reply into ``self.messages``."""
        if not message.strip():
            return

        self.messages.append(ChatMessage(text=message))
        self.is_loading = True
        try:
            answer = await self._request(message)
        finally:
            self.is_loading = False

        if answer is not None and self.bridge is not None:
            self.bridge.post_response(answer)

    async def _request(self, message: str) -> str | None:
        """Run the HTTP exchange; returns the accumulated answer, or None on failure."""
        async with httpx.AsyncClient(
            base_url=self.api_url, timeout=None, transport=self._transport,
        ) as client:
            request = client.build_request(
                "POST",
                "/api/chat",
                json={"message": message},
                headers={"Accept": "text/event-stream"},
            )
            logger.info("Sending chat request to %s", request.url)
            try:
                # The deadline covers the wait for response headers only
                response = await asyncio.wait_for(
                    client.send(request, stream=True), timeout=self.timeout,
                )
            except asyncio.TimeoutError:
                logger.error("Chat request timed out after %.0fs", self.timeout)
                self._append_error(TIMEOUT_MESSAGE)
                return None
            except httpx.HTTPError as e:
                logger.error("Network error: %s", e)
                self._append_error(NETWORK_ERROR_MESSAGE)
                return None

            try:
                if not response.is_success:
                    await self._handle_error_response(response)
                    return None
                return await self._read_stream(response)
            except httpx.HTTPError as e:
                logger.error("Network error while streaming: %s", e)
                self._append_error(NETWORK_ERROR_MESSAGE)
                return None
            finally:
                await response.aclose()

    async def _handle_error_response(self, response: httpx.Response) -> None:
        logger.error("Chat API error: %d %s", response.status_code, response.reason_phrase)
        error_message = GENERIC_ERROR_MESSAGE
        try:
            await response.aread()
            body = response.json()
            if isinstance(body, dict):
                error_message = body.get("message") or body.get("error") or error_message
        except (ValueError, httpx.HTTPError) as e:
            logger.error("Error parsing error response: %s", e)
        self._append_error(f"Error: {error_message}. Please try again later.")

    async def _read_stream(self, response: httpx.Response) -> str:
        placeholder = ChatMessage(text="", is_from_assistant=True)
        self.messages.append(placeholder)

        accumulated = ""
        pending = ""
        async for chunk in response.aiter_text():
            logger.debug("Received chunk: %r", chunk)
            lines = (pending + chunk).split("\n")
            # A trailing partial line waits for the next chunk
            pending = lines.pop()
            accumulated = self._process_lines(lines, placeholder, accumulated)
        if pending:
            accumulated = self._process_lines([pending], placeholder, accumulated)
        return accumulated

    @staticmethod
    def _process_lines(lines: list[str], placeholder: ChatMessage, accumulated: str) -> str:
        """Apply one chunk's SSE lines to the placeholder; returns the new accumulator."""
        for line in lines:
            line = line.rstrip("\r")
            if not line.startswith(DATA_PREFIX):
                continue
            data = line[len(DATA_PREFIX):].strip()
            if not data:
                continue

            try:
                parsed = json.loads(data)
            except json.JSONDecodeError as e:
                logger.warning("Error parsing SSE message %r: %s", data[:80], e)
                continue
            if not isinstance(parsed, dict):
                continue

            if parsed.get("error"):
                logger.error("SSE error received: %s", parsed["error"])
                placeholder.text = f"Error: {parsed['error']}"
                placeholder.is_error = True
                break
            if parsed.get("done"):
                continue
            if parsed.get("content"):
                accumulated += parsed["content"]
                placeholder.text = accumulated
        return accumulated
