"""Pydantic models for image generation requests and responses."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

ImageInput = Union[str, List[int]]


class ImageGenerationRequest(BaseModel):
    """Incoming txt2img / img2img request payload."""

    prompt: Optional[str] = None
    negative_prompt: Optional[str] = None
    width: int = Field(default=512, ge=1)
    height: int = Field(default=512, ge=1)
    generation_type: Literal["txt2img", "img2img"] = Field(
        default="txt2img", alias="type"
    )
    image: Optional[ImageInput] = None
    image_b64: Optional[str] = None
    mask: Optional[ImageInput] = None
    num_steps: int = Field(default=20, ge=1)
    strength: Optional[float] = Field(default=None, ge=0, le=1)
    guidance: float = 7.5
    seed: Optional[int] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @property
    def wants_img2img(self) -> bool:
        """True when the caller asked for img2img or supplied a source image."""

        return (
            self.generation_type == "img2img"
            or bool(self.image)
            or bool(self.image_b64)
        )

    def to_workers_ai_payload(self, img2img_default_strength: float) -> Dict[str, Any]:
        """Serialize the request for a buffered Workers AI image run."""

        payload = self.model_dump(
            exclude_none=True,
            exclude={"generation_type"},
        )
        if self.strength is None:
            payload["strength"] = (
                img2img_default_strength if self.wants_img2img else 1.0
            )
        return payload


class ImageGenerationResponse(BaseModel):
    """Canonical image response returned to callers."""

    image_base64: str


__all__ = ["ImageGenerationRequest", "ImageGenerationResponse", "ImageInput"]
