"""Tests for the streaming chat relay."""

import gzip

import httpx

from workers_chat.config import DEFAULT_SYSTEM_PROMPT

STREAM_BODY = (
    b'data: {"response":"Hello"}\n\n'
    b'data: {"response":" world"}\n\n'
    b"data: [DONE]\n\n"
)


def test_chat_relays_upstream_bytes_unchanged(api_client, upstream):
    upstream.queue_stream(STREAM_BODY)

    response = api_client.post(
        "/api/chat", json={"messages": [{"role": "user", "content": "hi"}]}
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.content == STREAM_BODY


def test_chat_relays_compressed_upstream_decoded(api_client, upstream):
    compressed = gzip.compress(STREAM_BODY)
    upstream.queue_stream(
        [compressed[:10], compressed[10:]], headers={"content-encoding": "gzip"}
    )

    response = api_client.post(
        "/api/chat", json={"messages": [{"role": "user", "content": "hi"}]}
    )

    assert response.status_code == 200
    assert "content-encoding" not in response.headers
    assert response.content == STREAM_BODY


def test_chat_injects_system_prompt_and_limits(api_client, upstream):
    upstream.queue_stream(STREAM_BODY)

    api_client.post(
        "/api/chat",
        json={
            "messages": [
                {"role": "assistant", "content": "Hi there!"},
                {"role": "user", "content": "hello"},
            ]
        },
    )

    assert upstream.paths == [
        "/client/v4/accounts/acct-123/ai/run/@cf/meta/llama-3.3-70b-instruct-fp8-fast"
    ]
    payload = upstream.json_bodies[0]
    assert payload["messages"] == [
        {"role": "system", "content": DEFAULT_SYSTEM_PROMPT},
        {"role": "assistant", "content": "Hi there!"},
        {"role": "user", "content": "hello"},
    ]
    assert payload["max_tokens"] == 1024
    assert payload["stream"] is True


def test_chat_keeps_caller_system_prompt(api_client, upstream):
    upstream.queue_stream(STREAM_BODY)

    api_client.post(
        "/api/chat",
        json={
            "messages": [
                {"role": "system", "content": "Answer in French."},
                {"role": "user", "content": "hello"},
            ]
        },
    )

    roles = [message["role"] for message in upstream.json_bodies[0]["messages"]]
    assert roles == ["system", "user"]
    assert upstream.json_bodies[0]["messages"][0]["content"] == "Answer in French."


def test_chat_rejects_malformed_json(api_client, upstream):
    response = api_client.post(
        "/api/chat",
        content=b"{not json",
        headers={"content-type": "application/json"},
    )

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to process request"}
    assert upstream.requests == []


def test_chat_rejects_unknown_role(api_client, upstream):
    response = api_client.post(
        "/api/chat", json={"messages": [{"role": "tool", "content": "x"}]}
    )

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to process request"}
    assert upstream.requests == []


def test_chat_upstream_failure_returns_generic_error(api_client, upstream):
    upstream.queue(
        httpx.Response(503, json={"success": False, "errors": [{"message": "busy"}]})
    )

    response = api_client.post(
        "/api/chat", json={"messages": [{"role": "user", "content": "hi"}]}
    )

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to process request"}
