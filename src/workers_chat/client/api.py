"""HTTP client for the gateway's `/api` endpoints."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

import httpx

from ..services.image_normalizer import ImageResult, normalize_image_result
from .session import ChatSession
from .stream_consumer import StreamConsumer

logger = logging.getLogger(__name__)


class ChatClientError(Exception):
    """Non-success response from the gateway."""

    def __init__(self, status_code: int, detail: Any):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class ChatClient:
    """Runs chat turns and image requests against one gateway server."""

    def __init__(
        self,
        server_url: str,
        session: ChatSession,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.server_url = server_url.rstrip("/")
        self.session = session
        self._owns_client = http_client is None
        # No timeout: a hung upstream blocks the turn until the transport errors.
        self._http = http_client or httpx.AsyncClient(timeout=None)
        self.last_error: Optional[BaseException] = None

    async def send_message(
        self,
        text: str,
        on_update: Callable[[str], None] | None = None,
    ) -> str:
        """Run one turn and return the assistant message appended to history.

        A failed turn appends the fallback reply instead of any partial text.
        """

        self.session.begin_turn(text)
        self.last_error = None
        consumer = StreamConsumer()
        try:
            async with self._http.stream(
                "POST",
                f"{self.server_url}/api/chat",
                json={"messages": self.session.messages_payload()},
            ) as response:
                if response.status_code != 200:
                    body = await response.aread()
                    raise ChatClientError(
                        response.status_code,
                        body.decode("utf-8", errors="replace"),
                    )
                reply = await consumer.consume(response.aiter_bytes(), on_update)
        except Exception as exc:
            if consumer.error is None:
                consumer.fail(exc)
            self.last_error = exc
            logger.error("Chat turn failed: %s", exc)
            return self.session.fail_turn().content

        return self.session.complete_turn(reply).content

    async def generate_image(self, prompt: str, **params: Any) -> ImageResult:
        """Request an image and return it in canonical form."""

        payload = {"prompt": prompt, **params}
        response = await self._http.post(
            f"{self.server_url}/api/generate-image", json=payload
        )
        if response.status_code != 200:
            try:
                body = response.json()
            except ValueError:
                body = None
            detail = (
                body.get("error", response.text)
                if isinstance(body, dict)
                else response.text
            )
            raise ChatClientError(response.status_code, detail)
        return normalize_image_result(response.json())

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()


__all__ = ["ChatClient", "ChatClientError"]
