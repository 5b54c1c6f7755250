import json
import pathlib
import sys
from collections.abc import Generator
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient
from pydantic import SecretStr

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from workers_chat.app import create_app  # noqa: E402
from workers_chat.config import Settings, get_settings  # noqa: E402
from workers_chat.routers.chat import get_workers_ai_client  # noqa: E402
from workers_chat.workers_ai import WorkersAIClient  # noqa: E402

ACCOUNT_ID = "acct-123"
API_TOKEN = "test-token"


class ChunkedStream(httpx.AsyncByteStream):
    """Response body delivered lazily in caller-chosen fragments."""

    def __init__(self, chunks: list[bytes]) -> None:
        self._chunks = chunks

    async def __aiter__(self):
        for chunk in self._chunks:
            yield chunk


class FakeUpstream:
    """Stands in for the Workers AI REST API behind an httpx MockTransport."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._responses: list[httpx.Response] = []
        self.transport = httpx.MockTransport(self._handle)

    def queue(self, response: httpx.Response) -> None:
        self._responses.append(response)

    def queue_stream(
        self,
        body: bytes | list[bytes],
        content_type: str = "text/event-stream",
        headers: dict[str, str] | None = None,
    ) -> None:
        chunks = [body] if isinstance(body, bytes) else body
        self.queue(
            httpx.Response(
                200,
                headers={"content-type": content_type, **(headers or {})},
                stream=ChunkedStream(chunks),
            )
        )

    @property
    def json_bodies(self) -> list[dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]

    @property
    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self._responses:
            return httpx.Response(
                500,
                json={"success": False, "errors": [{"message": "nothing queued"}]},
            )
        return self._responses.pop(0)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def settings(tmp_path: pathlib.Path) -> Settings:
    return Settings(
        cloudflare_account_id=ACCOUNT_ID,
        cloudflare_api_token=SecretStr(API_TOKEN),
        static_dir=tmp_path,
    )


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def static_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    directory = tmp_path / "public"
    directory.mkdir()
    (directory / "index.html").write_text("<h1>chat</h1>", encoding="utf-8")
    (directory / "chat.js").write_text("console.log('chat');", encoding="utf-8")
    return directory


@pytest.fixture
def gateway_app(monkeypatch, static_dir, upstream):
    """Full application wired to the fake upstream."""
    monkeypatch.setenv("CLOUDFLARE_ACCOUNT_ID", ACCOUNT_ID)
    monkeypatch.setenv("CLOUDFLARE_API_TOKEN", API_TOKEN)
    monkeypatch.setenv("STATIC_DIR", str(static_dir))
    monkeypatch.delenv("LOG_FILE", raising=False)
    get_settings.cache_clear()

    app = create_app()
    gateway = WorkersAIClient(get_settings(), transport=upstream.transport)
    app.dependency_overrides[get_workers_ai_client] = lambda: gateway

    yield app

    get_settings.cache_clear()


@pytest.fixture
def api_client(gateway_app) -> Generator[TestClient, None, None]:
    with TestClient(gateway_app) as client:
        yield client
