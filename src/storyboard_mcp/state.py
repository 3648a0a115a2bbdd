"""In-memory storyboard state: app mode, error slot, and the scene list.

Every write replaces the scene list with a new list in which only the
addressed scene is swapped for an updated copy, so handlers working on
different scenes never overwrite each other. ``epoch`` changes whenever the
list is replaced wholesale, letting a handler tell whether the scene it
started on still exists.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .errors import SceneBusyError, SceneNotFoundError, StoryboardBusyError
from .models.storyboard import AnalysisItem, AppMode, Scene, SceneCard, StoryboardView

logger = logging.getLogger(__name__)

ANALYSIS_FAILED_MESSAGE = "Failed to analyze transcript. Please try again."


class StoryboardState:
    """Single-session storyboard container."""

    def __init__(self) -> None:
        self.mode: AppMode = AppMode.IDLE
        self.error: str | None = None
        self.epoch: int = 0
        self._scenes: list[Scene] = []

    @property
    def scenes(self) -> list[Scene]:
        """A copy of the current scene list."""
        return list(self._scenes)

    def get(self, scene_id: str) -> Scene:
        for scene in self._scenes:
            if scene.id == scene_id:
                return scene
        raise SceneNotFoundError(f"Scene {scene_id!r} not found")

    def _replace(self, scene_id: str, **changes: object) -> Scene:
        updated = self.get(scene_id).model_copy(update=changes)
        self._scenes = [updated if s.id == scene_id else s for s in self._scenes]
        return updated

    # -- analysis lifecycle ---------------------------------------------------

    def begin_analysis(self) -> int:
        """Enter ANALYZING, clearing the error and the previous scenes.

        Returns:
            The new epoch.

        Raises:
            StoryboardBusyError: If an analysis is already running.
        """
        if self.mode is AppMode.ANALYZING:
            raise StoryboardBusyError("An analysis is already in progress")
        self.mode = AppMode.ANALYZING
        self.error = None
        self._set_scenes([])
        return self.epoch

    def complete_analysis(self, items: Sequence[AnalysisItem]) -> list[Scene]:
        """Replace all scenes with fresh ones built from *items* and enter READY."""
        self._set_scenes([Scene.from_analysis(i, item) for i, item in enumerate(items)])
        self.mode = AppMode.READY
        return self.scenes

    def fail_analysis(self, message: str = ANALYSIS_FAILED_MESSAGE) -> None:
        """Enter ERROR with *message*; no scenes survive a failed analysis."""
        self._set_scenes([])
        self.error = message
        self.mode = AppMode.ERROR

    def reset(self) -> None:
        """Back to IDLE with no scenes and no error."""
        self._set_scenes([])
        self.error = None
        self.mode = AppMode.IDLE

    def _set_scenes(self, scenes: list[Scene]) -> None:
        self._scenes = scenes
        self.epoch += 1

    # -- per-scene updates -----------------------------------------------------

    def update_prompt(self, scene_id: str, prompt: str) -> Scene:
        return self._replace(scene_id, image_prompt=prompt)

    def set_image_status(self, scene_id: str, generating: bool) -> Scene:
        return self._replace(scene_id, is_generating_image=generating)

    def set_image_result(self, scene_id: str, image_url: str) -> Scene:
        return self._replace(scene_id, is_generating_image=False, generated_image_url=image_url)

    def set_video_status(self, scene_id: str, generating: bool) -> Scene:
        return self._replace(scene_id, is_generating_video=generating)

    def set_video_result(self, scene_id: str, video_url: str) -> Scene:
        return self._replace(scene_id, is_generating_video=False, generated_video_url=video_url)

    def begin_image(self, scene_id: str) -> Scene:
        """Mark the scene's image in flight, refusing a second concurrent request."""
        if self.get(scene_id).is_generating_image:
            raise SceneBusyError(f"Scene {scene_id!r} is already generating an image")
        return self.set_image_status(scene_id, True)

    def begin_video(self, scene_id: str) -> Scene:
        """Mark the scene's video in flight, refusing a second concurrent request."""
        if self.get(scene_id).is_generating_video:
            raise SceneBusyError(f"Scene {scene_id!r} is already generating a video")
        return self.set_video_status(scene_id, True)

    # -- views ---------------------------------------------------------------

    def snapshot(self, *, include_images: bool = False) -> StoryboardView:
        return StoryboardView(
            mode=self.mode,
            error=self.error,
            scene_count=len(self._scenes),
            scenes=[SceneCard.from_scene(s, include_image=include_images) for s in self._scenes],
        )


# Module-level singleton
storyboard_state = StoryboardState()
