"""Image generation API routes."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from ..config import Settings, get_settings
from ..schemas.images import ImageGenerationRequest, ImageGenerationResponse
from ..services.image_normalizer import (
    EmptyImageResponseError,
    InvalidImageResponseError,
    normalize_image_result,
)
from ..workers_ai import WorkersAIClient, WorkersAIError
from .chat import OTHER_METHODS, get_workers_ai_client, method_not_allowed

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["images"])


def _error(status_code: int, error: str, details: Any = None) -> JSONResponse:
    content: dict[str, Any] = {"error": error}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def _json_safe(raw: Any) -> Any:
    """Return ``raw`` if it serializes to JSON, otherwise a short repr."""

    try:
        json.dumps(raw)
    except (TypeError, ValueError):
        text = repr(raw)
        return text if len(text) <= 500 else text[:500] + "..."
    return raw


@router.post("/generate-image", response_model=None)
async def generate_image(
    request: Request,
    settings: Settings = Depends(get_settings),
    client: WorkersAIClient = Depends(get_workers_ai_client),
) -> JSONResponse:
    """Run txt2img or img2img and return the image as base64 JSON."""

    try:
        body = await request.json()
    except ValueError as exc:
        logger.error("Image generation failed: invalid JSON body: %s", exc)
        return _error(500, "Image generation failed", str(exc))

    prompt = body.get("prompt") if isinstance(body, dict) else None
    if not isinstance(prompt, str) or not prompt.strip():
        return _error(400, "Prompt cannot be empty")

    try:
        params = ImageGenerationRequest.model_validate(body)
    except ValidationError as exc:
        return _error(
            400,
            "Invalid image request",
            json.loads(exc.json(include_url=False, include_input=False)),
        )

    model = (
        settings.img2img_model_id if params.wants_img2img else settings.txt2img_model_id
    )
    payload = params.to_workers_ai_payload(settings.img2img_default_strength)
    logger.info(
        "Running %s (%dx%d, steps=%d)",
        model,
        params.width,
        params.height,
        params.num_steps,
    )

    try:
        raw = await client.run(model, payload)
    except WorkersAIError as exc:
        logger.error(
            "Image generation failed (status=%s): %s", exc.status_code, exc.detail
        )
        return _error(500, "Image generation failed", _json_safe(exc.detail))
    except Exception as exc:
        logger.exception("Image generation failed")
        return _error(500, "Image generation failed", str(exc))

    try:
        result = normalize_image_result(raw)
    except EmptyImageResponseError:
        logger.error("Image generation returned an empty result from %s", model)
        return _error(500, "Empty AI response")
    except InvalidImageResponseError as exc:
        logger.error("Unrecognized image payload from %s: %r", model, exc.raw)
        return _error(500, "Invalid AI response format", _json_safe(exc.raw))

    logger.debug("Normalized %s image payload from %s", result.shape, model)
    return JSONResponse(
        content=ImageGenerationResponse(image_base64=result.base64).model_dump()
    )


@router.api_route("/generate-image", methods=OTHER_METHODS, include_in_schema=False)
async def generate_image_method_not_allowed() -> PlainTextResponse:
    return method_not_allowed()


__all__ = ["router"]
