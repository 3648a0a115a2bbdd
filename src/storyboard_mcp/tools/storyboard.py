"""Storyboard tools — analyze, view, edit, reset on a FastMCP sub-server."""

from __future__ import annotations

import logging
from typing import Annotated

from fastmcp import Context, FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field

from ..client import GeminiClient
from ..credentials import ensure_api_key
from ..errors import make_tool_error
from ..media import media_store
from ..models.storyboard import SceneCard
from ..state import storyboard_state
from ..tracing import tool_span
from ..types import PromptParam, SceneIdParam, TranscriptParam
from ..workflow import run_analysis

logger = logging.getLogger(__name__)
storyboard_server = FastMCP("storyboard")


@storyboard_server.tool(
    annotations=ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=True,
        idempotentHint=False,
        openWorldHint=True,
    )
)
@tool_span("storyboard_analyze")
async def storyboard_analyze(
    transcript: TranscriptParam,
    ctx: Context | None = None,
) -> dict:
    """Split a transcript into storyboard scenes (analyze or re-analyze).

    Replaces every existing scene. Each scene gets a transcript segment of
    roughly 5–10 seconds, a visual direction note and an editable
    image-generation prompt; no media is generated yet.

    Args:
        transcript: The spoken-word script.

    Returns:
        Dict matching StoryboardView (mode "ready" with scene cards), or a
        ToolError dict. After an analysis failure storyboard_get reports mode
        "error" with a user-facing message.
    """
    try:
        await ensure_api_key(ctx)
        await run_analysis(storyboard_state, GeminiClient.provider, transcript)
        return storyboard_state.snapshot().model_dump(mode="json")
    except Exception as exc:
        return make_tool_error(exc)


@storyboard_server.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=False))
@tool_span("storyboard_get")
async def storyboard_get(
    include_images: Annotated[bool, Field(
        description="Inline each generated image as a base64 data URI (large)",
    )] = False,
) -> dict:
    """Return the storyboard: mode, error message, and one card per scene.

    Cards report prompts, whether an image or video exists, the local clip
    path, and the in-flight flags for image and video generation.

    Args:
        include_images: Include image data URIs in the cards.

    Returns:
        Dict matching StoryboardView.
    """
    try:
        return storyboard_state.snapshot(include_images=include_images).model_dump(mode="json")
    except Exception as exc:
        return make_tool_error(exc)


@storyboard_server.tool(
    annotations=ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    )
)
@tool_span("storyboard_update_prompt")
async def storyboard_update_prompt(scene_id: SceneIdParam, prompt: PromptParam) -> dict:
    """Save an edited image prompt on one scene.

    Only that scene's prompt changes; media already generated is kept.

    Args:
        scene_id: Scene to edit.
        prompt: New image-generation prompt.

    Returns:
        Dict with the updated scene card, or a ToolError dict.
    """
    try:
        scene = storyboard_state.update_prompt(scene_id, prompt)
        return {"scene": SceneCard.from_scene(scene).model_dump(mode="json")}
    except Exception as exc:
        return make_tool_error(exc)


@storyboard_server.tool(
    annotations=ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=True,
        idempotentHint=True,
        openWorldHint=False,
    )
)
@tool_span("storyboard_reset")
async def storyboard_reset() -> dict:
    """Discard all scenes and generated media and return to the idle state.

    Returns:
        Dict with the cleared scene count, released clip count, and mode.
    """
    try:
        cleared = len(storyboard_state.scenes)
        storyboard_state.reset()
        released = media_store.release_all()
        logger.info("Storyboard reset (%d scene(s), %d clip(s) released)", cleared, released)
        return {
            "cleared_scenes": cleared,
            "released_clips": released,
            "mode": storyboard_state.mode.value,
        }
    except Exception as exc:
        return make_tool_error(exc)
