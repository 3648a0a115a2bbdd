"""Storyboard models — analyzer DTO, scenes, and tool-facing views.

``AnalysisItem`` is the structured-output shape the analyzer asks Gemini for
(camelCase on the wire). ``Scene`` is the in-memory record the state container
keeps per segment; ``SceneCard`` and ``StoryboardView`` are what the tools
return.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AppMode(str, Enum):
    """Top-level storyboard lifecycle."""

    IDLE = "idle"
    ANALYZING = "analyzing"
    READY = "ready"
    ERROR = "error"


class AnalysisItem(BaseModel):
    """One transcript segment as returned by the analyzer."""

    model_config = ConfigDict(populate_by_name=True)

    segment: str = Field(min_length=1, description="Exact transcript text for this scene")
    visual_idea: str = Field(
        alias="visualIdea",
        min_length=1,
        description="B-roll or motion graphics to show during the segment",
    )
    image_prompt: str = Field(
        alias="imagePrompt",
        min_length=1,
        description="Detailed photorealistic image-generation prompt for the visual",
    )

    @field_validator("segment", "visual_idea", "image_prompt")
    @classmethod
    def reject_blank(cls, value: str) -> str:
        # Not stripped: segment is the exact transcript text.
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class Scene(BaseModel):
    """A storyboard scene with its optional generated media."""

    id: str
    segment_text: str
    visual_idea: str
    image_prompt: str
    generated_image_url: str | None = None
    generated_video_url: str | None = None
    is_generating_image: bool = False
    is_generating_video: bool = False

    @classmethod
    def from_analysis(cls, index: int, item: AnalysisItem) -> Scene:
        """Upgrade the *index*-th analyzer item into a fresh scene."""
        return cls(
            id=str(index),
            segment_text=item.segment,
            visual_idea=item.visual_idea,
            image_prompt=item.image_prompt,
        )


class SceneCard(BaseModel):
    """Tool view of a scene — image payload omitted unless requested."""

    id: str
    segment_text: str
    visual_idea: str
    image_prompt: str
    has_image: bool
    image_mime_type: str | None = None
    image_data_uri: str | None = None
    video_path: str | None = None
    is_generating_image: bool
    is_generating_video: bool

    @classmethod
    def from_scene(cls, scene: Scene, *, include_image: bool = False) -> SceneCard:
        mime = None
        if scene.generated_image_url and scene.generated_image_url.startswith("data:"):
            header = scene.generated_image_url.split(",", 1)[0]
            mime = header[len("data:"):].split(";", 1)[0] or None
        return cls(
            id=scene.id,
            segment_text=scene.segment_text,
            visual_idea=scene.visual_idea,
            image_prompt=scene.image_prompt,
            has_image=scene.generated_image_url is not None,
            image_mime_type=mime,
            image_data_uri=scene.generated_image_url if include_image else None,
            video_path=scene.generated_video_url,
            is_generating_image=scene.is_generating_image,
            is_generating_video=scene.is_generating_video,
        )


class StoryboardView(BaseModel):
    """Output schema for storyboard_get and storyboard_analyze."""

    mode: AppMode
    error: str | None = None
    scene_count: int = 0
    scenes: list[SceneCard] = Field(default_factory=list)


class BatchImageResult(BaseModel):
    """Output schema for storyboard_generate_all_images."""

    generated: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(
        default_factory=dict,
        description="Scene id → error message for scenes whose image failed",
    )
