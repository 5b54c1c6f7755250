"""Workers AI REST client utilities."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional

import httpx
from fastapi import status

from .config import Settings

logger = logging.getLogger(__name__)

_BINARY_CONTENT_TYPES = ("image/", "application/octet-stream")


class WorkersAIError(Exception):
    """Wrap transport or API failures when communicating with Workers AI."""

    def __init__(self, status_code: int, detail: Any):
        super().__init__(str(detail))
        self.status_code = status_code
        self.detail = detail


class WorkersAIClient:
    """Client for running chat and image models on Cloudflare Workers AI."""

    _client_lock: asyncio.Lock = asyncio.Lock()
    _client_pool: dict[tuple[str, Optional[float]], httpx.AsyncClient] = {}

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._settings = settings
        self._transport = transport
        self._own_client: httpx.AsyncClient | None = None

    def _client_key(self) -> tuple[str, Optional[float]]:
        return (self._settings.account_run_url, self._settings.request_timeout)

    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self._settings.request_timeout, connect=10.0)

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._transport is not None:
            if self._own_client is None:
                self._own_client = httpx.AsyncClient(
                    transport=self._transport,
                    timeout=self._timeout(),
                )
            return self._own_client

        key = self._client_key()
        client = self.__class__._client_pool.get(key)
        if client is not None:
            return client

        async with self.__class__._client_lock:
            client = self.__class__._client_pool.get(key)
            if client is None:
                limits = httpx.Limits(
                    max_connections=50,
                    max_keepalive_connections=20,
                )
                client = httpx.AsyncClient(
                    timeout=self._timeout(),
                    limits=limits,
                    http2=True,
                )
                self.__class__._client_pool[key] = client
        return client

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._settings.cloudflare_api_token.get_secret_value()}",
            "Content-Type": "application/json",
        }

    def _model_url(self, model: str) -> str:
        return f"{self._settings.account_run_url}/{model}"

    async def open_stream(self, model: str, payload: dict[str, Any]) -> httpx.Response:
        """Start a streamed run and return the open, unread upstream response.

        The caller owns the response and must close it with ``aclose()`` once
        the body has been relayed.
        """

        client = await self._get_http_client()
        request = client.build_request(
            "POST",
            self._model_url(model),
            headers=self._headers,
            json=payload,
        )
        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as exc:
            raise WorkersAIError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

        if response.status_code >= 400:
            try:
                body = await response.aread()
            finally:
                await response.aclose()
            raise WorkersAIError(response.status_code, self._extract_error_detail(body))

        logger.debug(
            "Opened Workers AI stream for %s (content-type=%s)",
            model,
            response.headers.get("content-type"),
        )
        return response

    async def run(self, model: str, payload: dict[str, Any]) -> Any:
        """Run a model and return its buffered result.

        Binary bodies come back as ``bytes``; JSON bodies are parsed and the
        ``{"success", "result"}`` envelope is unwrapped.
        """

        client = await self._get_http_client()
        try:
            response = await client.post(
                self._model_url(model),
                headers=self._headers,
                json=payload,
            )
        except httpx.HTTPError as exc:
            raise WorkersAIError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

        if response.status_code >= 400:
            raise WorkersAIError(
                response.status_code, self._extract_error_detail(response.content)
            )

        content_type = response.headers.get("content-type", "").lower()
        if content_type.startswith(_BINARY_CONTENT_TYPES):
            return response.content

        if "json" not in content_type:
            return response.text

        try:
            body = response.json()
        except ValueError as exc:
            raise WorkersAIError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

        return self._unwrap_envelope(body)

    async def aclose(self) -> None:
        if self._own_client is not None:
            await self._own_client.aclose()
            self._own_client = None
            return
        await self.__class__.aclose_shared()

    @classmethod
    async def aclose_shared(cls) -> None:
        async with cls._client_lock:
            clients = list(cls._client_pool.values())
            cls._client_pool.clear()
        for client in clients:
            try:
                await client.aclose()
            except Exception:  # pragma: no cover - best effort cleanup
                logger.debug("Failed to close pooled client", exc_info=True)

    @classmethod
    def _unwrap_envelope(cls, body: Any) -> Any:
        if not isinstance(body, dict) or "result" not in body or "success" not in body:
            return body
        if body.get("success") is False:
            raise WorkersAIError(
                status.HTTP_502_BAD_GATEWAY, cls._errors_detail(body) or body
            )
        return body["result"]

    @staticmethod
    def _errors_detail(payload: dict[str, Any]) -> Any:
        errors = payload.get("errors")
        if isinstance(errors, list) and errors:
            first = errors[0]
            if isinstance(first, dict) and first.get("message"):
                return first["message"]
            return first
        return payload.get("error")

    @classmethod
    def _extract_error_detail(cls, raw: bytes) -> Any:
        if not raw:
            return "Workers AI returned an empty error response."
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            text = raw.decode("utf-8", errors="ignore")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            return text
        if isinstance(payload, dict):
            return cls._errors_detail(payload) or payload
        return payload


__all__ = ["WorkersAIClient", "WorkersAIError"]
