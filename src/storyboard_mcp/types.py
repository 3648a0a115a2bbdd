"""Shared type aliases for tool parameters."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import Field

# ── Literal enums ────────────────────────────────────────────────────────────

ModelPreset = Literal["quality", "fast"]
AspectRatio = Literal["16:9", "9:16"]
ImageSize = Literal["1K", "2K", "4K"]
VideoResolution = Literal["720p", "1080p"]

# ── Annotated aliases ────────────────────────────────────────────────────────

TranscriptParam = Annotated[str, Field(
    min_length=1,
    description="Spoken-word transcript to split into storyboard scenes",
)]
SceneIdParam = Annotated[str, Field(
    min_length=1,
    description="Scene id as returned by storyboard_get (zero-based position, e.g. '0')",
)]
PromptParam = Annotated[str, Field(
    min_length=1,
    max_length=4000,
    description="Image-generation prompt to save on the scene",
)]
