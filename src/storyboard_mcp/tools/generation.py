"""Scene media tools — image, video, and batch image generation."""

from __future__ import annotations

from typing import Annotated

from fastmcp import Context, FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field

from ..client import GeminiClient
from ..credentials import ensure_api_key
from ..errors import make_tool_error
from ..models.storyboard import BatchImageResult, Scene, SceneCard
from ..state import storyboard_state
from ..tracing import tool_span
from ..types import SceneIdParam
from ..workflow import generate_all_images, run_image_generation, run_video_generation

generation_server = FastMCP("generation")


def _scene_result(scene_id: str, scene: Scene | None) -> dict:
    if scene is None:
        return {
            "scene_id": scene_id,
            "discarded": True,
            "reason": "The storyboard was replaced or reset while this scene was generating",
        }
    return {"scene": SceneCard.from_scene(scene).model_dump(mode="json")}


@generation_server.tool(
    annotations=ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=False,
        openWorldHint=True,
    )
)
@tool_span("scene_generate_image")
async def scene_generate_image(
    scene_id: SceneIdParam,
    ctx: Context | None = None,
) -> dict:
    """Generate or regenerate the still image for one scene.

    Uses the scene's current image prompt (16:9). While the request runs the
    scene reports is_generating_image; a second request for the same scene is
    refused. On failure the previous image is kept.

    Args:
        scene_id: Scene to illustrate.

    Returns:
        Dict with the updated scene card, or a ToolError dict.
    """
    try:
        await ensure_api_key(ctx)
        provider = GeminiClient.provider()
        scene = await run_image_generation(storyboard_state, provider, scene_id)
        return _scene_result(scene_id, scene)
    except Exception as exc:
        return make_tool_error(exc)


@generation_server.tool(
    annotations=ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=False,
        openWorldHint=True,
    )
)
@tool_span("scene_generate_video")
async def scene_generate_video(
    scene_id: SceneIdParam,
    motion_prompt: Annotated[str | None, Field(
        description="Prompt guiding the animation (defaults to the scene's image prompt)",
    )] = None,
    ctx: Context | None = None,
) -> dict:
    """Animate a scene's generated image into a short video clip.

    Requires an image on the scene. Submits a Veo job, polls it until done
    (bounded by the configured poll timeout), downloads the clip, and saves
    it locally. This can take several minutes.

    Args:
        scene_id: Scene to animate.
        motion_prompt: Optional prompt override for the motion.

    Returns:
        Dict with the updated scene card (``video_path`` set), or a ToolError dict.
    """
    try:
        await ensure_api_key(ctx)
        provider = GeminiClient.provider()
        scene = await run_video_generation(storyboard_state, provider, scene_id, motion_prompt)
        return _scene_result(scene_id, scene)
    except Exception as exc:
        return make_tool_error(exc)


@generation_server.tool(
    annotations=ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=True,
    )
)
@tool_span("storyboard_generate_all_images")
async def storyboard_generate_all_images(ctx: Context | None = None) -> dict:
    """Generate images for every scene that doesn't have one yet.

    Scenes run one at a time to stay under provider rate limits. Scenes with
    an image, or with one already generating, are skipped. Videos are never
    batched.

    Returns:
        Dict matching BatchImageResult (generated, skipped, failed), or a
        ToolError dict.
    """
    try:
        pending = [
            s for s in storyboard_state.scenes
            if not s.generated_image_url and not s.is_generating_image
        ]
        if not pending:
            skipped = [s.id for s in storyboard_state.scenes]
            return BatchImageResult(skipped=skipped).model_dump(mode="json")

        await ensure_api_key(ctx)
        provider = GeminiClient.provider()
        result = await generate_all_images(storyboard_state, provider)
        return result.model_dump(mode="json")
    except Exception as exc:
        return make_tool_error(exc)
