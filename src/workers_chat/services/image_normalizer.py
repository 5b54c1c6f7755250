"""Normalize the inconsistent image payloads returned by Workers AI models.

Different diffusion models (and different versions of the same model) hand
back the generated image in different shapes: a raw PNG body, a bare base64
string, or one of several JSON envelopes. ``normalize_image_result`` tries a
fixed chain of decoders and returns a single ``ImageResult`` or raises a typed
error; no shape is treated as authoritative.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence


class ImageNormalizationError(Exception):
    """Base class for image payloads that cannot be turned into an image."""

    def __init__(self, message: str, raw: Any = None):
        super().__init__(message)
        self.raw = raw


class EmptyImageResponseError(ImageNormalizationError):
    """The upstream call succeeded but returned nothing usable."""


class InvalidImageResponseError(ImageNormalizationError):
    """The upstream payload matched none of the known shapes."""


@dataclass(frozen=True)
class ImageResult:
    """Canonical image representation: base64 text plus the shape it came from."""

    base64: str
    shape: str

    def to_bytes(self) -> bytes:
        try:
            return base64.b64decode(self.base64, validate=False)
        except (binascii.Error, ValueError) as exc:
            raise InvalidImageResponseError(
                "Image payload is not valid base64", raw=self.base64
            ) from exc


def _from_binary(raw: Any) -> Optional[ImageResult]:
    if isinstance(raw, (bytes, bytearray, memoryview)):
        data = bytes(raw)
        if not data:
            raise EmptyImageResponseError("Empty AI response", raw=raw)
        return ImageResult(base64.b64encode(data).decode("ascii"), "binary")
    return None


def _from_nested_array(raw: Any) -> Optional[ImageResult]:
    if not isinstance(raw, Mapping):
        return None

    output = raw.get("output")
    if isinstance(output, Sequence) and not isinstance(output, str) and output:
        first = output[0]
        if isinstance(first, Mapping):
            value = first.get("base64")
            if isinstance(value, str) and value:
                return ImageResult(value, "output")

    images = raw.get("images")
    if isinstance(images, Sequence) and not isinstance(images, str) and images:
        first = images[0]
        if isinstance(first, str) and first:
            return ImageResult(first, "images")
    return None


def _from_flat_field(raw: Any) -> Optional[ImageResult]:
    if not isinstance(raw, Mapping):
        return None
    for key in ("image_base64", "image"):
        value = raw.get(key)
        if isinstance(value, str) and value:
            return ImageResult(value, key)
    return None


def _from_string(raw: Any) -> Optional[ImageResult]:
    if isinstance(raw, str):
        if not raw:
            raise EmptyImageResponseError("Empty AI response", raw=raw)
        return ImageResult(raw, "string")
    return None


# Priority order; the first decoder that recognizes the payload wins.
_DECODERS: tuple[Callable[[Any], Optional[ImageResult]], ...] = (
    _from_binary,
    _from_nested_array,
    _from_flat_field,
    _from_string,
)


def normalize_image_result(raw: Any) -> ImageResult:
    """Reduce an upstream image payload to one ``ImageResult``."""

    if raw is None:
        raise EmptyImageResponseError("Empty AI response", raw=raw)

    for decoder in _DECODERS:
        result = decoder(raw)
        if result is not None:
            return result

    raise InvalidImageResponseError("Invalid AI response format", raw=raw)


__all__ = [
    "EmptyImageResponseError",
    "ImageNormalizationError",
    "ImageResult",
    "InvalidImageResponseError",
    "normalize_image_result",
]
