"""Chat streaming API routes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse
from starlette.background import BackgroundTask

from ..config import Settings, get_settings
from ..schemas.chat import ChatRequest
from ..workers_ai import WorkersAIClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])

OTHER_METHODS = ["GET", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


def get_workers_ai_client(
    settings: Settings = Depends(get_settings),
) -> WorkersAIClient:
    return WorkersAIClient(settings)


def method_not_allowed() -> PlainTextResponse:
    return PlainTextResponse("Method not allowed", status_code=405)


@router.post("/chat", response_model=None)
async def chat(
    request: Request,
    settings: Settings = Depends(get_settings),
    client: WorkersAIClient = Depends(get_workers_ai_client),
) -> Response:
    """Relay a streamed chat completion from Workers AI.

    The upstream `Content-Encoding` is not forwarded, so the body is relayed
    decoded. The payload itself is passed through unparsed.
    """

    try:
        body = await request.json()
        payload = ChatRequest.model_validate(body).to_workers_ai_payload(
            settings.system_prompt, settings.chat_max_tokens
        )
        upstream = await client.open_stream(settings.chat_model_id, payload)
    except Exception:
        logger.exception("Error processing chat request")
        return JSONResponse(
            status_code=500, content={"error": "Failed to process request"}
        )

    return StreamingResponse(
        upstream.aiter_bytes(),
        status_code=upstream.status_code,
        media_type=upstream.headers.get("content-type"),
        background=BackgroundTask(upstream.aclose),
    )


@router.api_route("/chat", methods=OTHER_METHODS, include_in_schema=False)
async def chat_method_not_allowed() -> PlainTextResponse:
    return method_not_allowed()


__all__ = ["router", "get_workers_ai_client", "method_not_allowed", "OTHER_METHODS"]
