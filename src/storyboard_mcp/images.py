"""Scene image generation and data URI helpers."""

from __future__ import annotations

import base64
import binascii
import logging
import re

from google.genai import types

from .client import Provider
from .config import get_config
from .errors import GenerationError

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MIME = "image/png"

_DATA_URI_HEADER = re.compile(r"^data:(?P<mime>[^;,]*)(?P<params>(?:;[^;,]*)*),")


def encode_data_uri(data: bytes, mime_type: str) -> str:
    """Return ``data:<mime>;base64,<payload>`` for *data*."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def decode_data_uri(uri: str) -> tuple[bytes, str]:
    """Split a base64 data URI into raw bytes and its MIME type.

    A header without a MIME type (``data:;base64,...``) decodes as image/png.

    Raises:
        ValueError: If *uri* is not a base64 data URI.
    """
    match = _DATA_URI_HEADER.match(uri or "")
    if not match or ";base64" not in match.group("params"):
        raise ValueError("Expected a base64 data URI (data:<mime>;base64,<payload>)")
    mime = match.group("mime") or DEFAULT_IMAGE_MIME
    try:
        data = base64.b64decode(uri[match.end():], validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Data URI payload is not valid base64: {exc}") from exc
    return data, mime


def first_inline_image(response: types.GenerateContentResponse) -> types.Blob | None:
    """Return the first inline data blob of the first candidate, if any."""
    if not response.candidates:
        return None
    content = response.candidates[0].content
    for part in (content.parts if content and content.parts else []):
        if part.inline_data and part.inline_data.data:
            return part.inline_data
    return None


async def generate_image(provider: Provider, prompt: str) -> str:
    """Generate one still for *prompt* and return it as a data URI.

    Raises:
        ValueError: If the prompt is blank.
        GenerationError: If the response carries no inline image.
    """
    if not prompt or not prompt.strip():
        raise ValueError("Image prompt must not be empty")

    cfg = get_config()
    config = types.GenerateContentConfig(
        image_config=types.ImageConfig(
            aspect_ratio=cfg.image_aspect_ratio,
            image_size=cfg.image_size,
        ),
    )
    response = await provider.generate_content(
        model=cfg.image_model,
        contents=prompt,
        config=config,
    )
    blob = first_inline_image(response)
    if blob is None:
        raise GenerationError("No image generated")

    mime = blob.mime_type or DEFAULT_IMAGE_MIME
    logger.info("Generated %s image (%d bytes)", mime, len(blob.data))
    return encode_data_uri(blob.data, mime)
