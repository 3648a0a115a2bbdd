"""Infrastructure tools — runtime model and polling configuration."""

from __future__ import annotations

from typing import Annotated

from fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field

from ..config import MODEL_PRESETS, get_config, update_config
from ..errors import make_tool_error
from ..tracing import tool_span
from ..types import AspectRatio, ImageSize, ModelPreset, VideoResolution

infra_server = FastMCP("infra")
_SENSITIVE_CONFIG_FIELDS = {"gemini_api_key"}


def _redacted_config() -> dict:
    """Return runtime config with secret-bearing fields removed."""
    cfg = get_config()
    data = cfg.model_dump(exclude=_SENSITIVE_CONFIG_FIELDS)
    data["api_key_configured"] = bool(cfg.gemini_api_key)
    return data


def _active_preset() -> str | None:
    cfg = get_config()
    for name, p in MODEL_PRESETS.items():
        if all(getattr(cfg, k) == p[k] for k in ("analysis_model", "image_model", "video_model")):
            return name
    return None


@infra_server.tool(
    annotations=ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    )
)
@tool_span("infra_configure")
async def infra_configure(
    preset: Annotated[ModelPreset | None, Field(
        description='Named model preset: "quality" (full Veo 3.1) or "fast" (Veo 3.1 Fast)',
    )] = None,
    analysis_model: Annotated[str | None, Field(description="Gemini model for transcript analysis")] = None,
    image_model: Annotated[str | None, Field(description="Gemini image model")] = None,
    video_model: Annotated[str | None, Field(description="Veo model")] = None,
    image_aspect_ratio: AspectRatio | None = None,
    image_size: ImageSize | None = None,
    video_resolution: VideoResolution | None = None,
    video_aspect_ratio: AspectRatio | None = None,
    poll_interval: Annotated[float | None, Field(gt=0, description="First video poll delay (s)")] = None,
    poll_timeout: Annotated[float | None, Field(gt=0, description="Give up on a video job after (s)")] = None,
) -> dict:
    """Inspect or change generation settings at runtime.

    Call with no arguments to read the current settings. Explicit model IDs
    take precedence over a preset. Changes apply to subsequent calls; jobs
    already polling keep their policy.

    Returns:
        Dict with current_config (API key redacted), active_preset, and
        available_presets.
    """
    try:
        overrides: dict[str, object] = {}
        if preset is not None:
            if preset not in MODEL_PRESETS:
                valid = ", ".join(sorted(MODEL_PRESETS))
                raise ValueError(f"Unknown preset '{preset}'. Available: {valid}")
            p = MODEL_PRESETS[preset]
            overrides.update(
                analysis_model=p["analysis_model"],
                image_model=p["image_model"],
                video_model=p["video_model"],
            )

        explicit = {
            "analysis_model": analysis_model,
            "image_model": image_model,
            "video_model": video_model,
            "image_aspect_ratio": image_aspect_ratio,
            "image_size": image_size,
            "video_resolution": video_resolution,
            "video_aspect_ratio": video_aspect_ratio,
            "poll_interval": poll_interval,
            "poll_timeout": poll_timeout,
        }
        overrides.update({k: v for k, v in explicit.items() if v is not None})

        if overrides:
            update_config(**overrides)

        return {
            "current_config": _redacted_config(),
            "active_preset": _active_preset(),
            "available_presets": {k: v["label"] for k, v in MODEL_PRESETS.items()},
        }
    except Exception as exc:
        return make_tool_error(exc)
