"""Storyboard handlers — analysis, per-scene generation, and batch images.

Each handler drives one user action against a ``StoryboardState``: it flips
the relevant mode or in-flight flag, awaits the provider, then writes the
result back. Flags are always cleared, including on failure and
cancellation. A result that arrives after the storyboard was replaced or
reset is dropped rather than written into whatever scene now has that id.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from .analyzer import analyze_transcript
from .client import Provider
from .errors import PreconditionError
from .images import generate_image
from .media import MediaStore, media_store
from .models.storyboard import BatchImageResult, Scene
from .polling import PollPolicy
from .state import StoryboardState
from .tracing import annotate
from .videos import generate_video

logger = logging.getLogger(__name__)


async def run_analysis(
    state: StoryboardState,
    provider: Provider | Callable[[], Provider],
    transcript: str,
    *,
    store: MediaStore | None = None,
) -> list[Scene]:
    """Analyze *transcript* and replace every scene with the result.

    *provider* may be a zero-arg callable such as ``GeminiClient.provider``.
    It is resolved after the state enters ANALYZING, so a missing key fails
    the analysis like any other provider error. Clips owned by the replaced
    scenes are released as soon as the analysis starts.

    On failure the state ends in ERROR with no scenes and the exception
    propagates to the caller.

    Raises:
        ValueError: If the transcript is blank (state untouched).
        StoryboardBusyError: If an analysis is already running.
        CredentialMissingError: If no API key is configured.
        AnalysisError: If the analyzer response is empty or malformed.
    """
    if not transcript or not transcript.strip():
        raise ValueError("Transcript must not be empty")

    store = store or media_store
    replaced_clips = [s.generated_video_url for s in state.scenes if s.generated_video_url]
    epoch = state.begin_analysis()
    released = sum(store.release(clip) for clip in replaced_clips)
    if released:
        logger.info("Released %d clip(s) from the previous storyboard", released)
    annotate(epoch=epoch, transcript_chars=len(transcript))

    try:
        if not isinstance(provider, Provider):
            provider = provider()
        items = await analyze_transcript(provider, transcript)
    except (Exception, asyncio.CancelledError) as exc:
        logger.error("Transcript analysis failed: %s", str(exc) or type(exc).__name__)
        if state.epoch == epoch:
            state.fail_analysis()
        raise

    if state.epoch != epoch:
        logger.warning("Storyboard changed during analysis, discarding %d scene(s)", len(items))
        return []
    annotate(scenes=len(items))
    return state.complete_analysis(items)


async def run_image_generation(
    state: StoryboardState,
    provider: Provider,
    scene_id: str,
    prompt: str | None = None,
) -> Scene | None:
    """Generate (or regenerate) the image for one scene.

    Uses the scene's saved prompt unless *prompt* is given. On failure the
    previous image stays in place.

    Returns:
        The updated scene, or None when the storyboard was replaced mid-flight.

    Raises:
        SceneNotFoundError, SceneBusyError: Before any provider call.
        GenerationError: If the model returned no image.
    """
    scene = state.begin_image(scene_id)
    epoch = state.epoch
    annotate(scene_id=scene_id, epoch=epoch)
    image_url: str | None = None
    try:
        image_url = await generate_image(provider, prompt or scene.image_prompt)
    except Exception as exc:
        logger.warning("Image generation failed for scene %s: %s", scene_id, exc)
        raise
    finally:
        if state.epoch != epoch:
            logger.warning("Scene %s was replaced during image generation, result dropped", scene_id)
        elif image_url is None:
            state.set_image_status(scene_id, False)

    if state.epoch != epoch:
        return None
    return state.set_image_result(scene_id, image_url)


async def run_video_generation(
    state: StoryboardState,
    provider: Provider,
    scene_id: str,
    prompt: str | None = None,
    *,
    policy: PollPolicy | None = None,
    store: MediaStore | None = None,
) -> Scene | None:
    """Animate a scene's generated image into a short clip.

    The motion prompt defaults to the scene's image prompt. A clip replaced
    by a newer one is released from the media store.

    Returns:
        The updated scene, or None when the storyboard was replaced mid-flight.

    Raises:
        SceneNotFoundError, SceneBusyError: Before any provider call.
        PreconditionError: If the scene has no generated image yet.
        GenerationError: If the job fails, times out, or the clip can't be fetched.
    """
    store = store or media_store
    scene = state.get(scene_id)
    if not scene.generated_image_url:
        raise PreconditionError(f"Scene {scene_id!r} has no generated image to animate")

    scene = state.begin_video(scene_id)
    epoch = state.epoch
    annotate(scene_id=scene_id, epoch=epoch)
    clip = None
    try:
        clip = await generate_video(
            provider,
            prompt or scene.image_prompt,
            scene.generated_image_url,
            policy=policy,
            store=store,
            stem=f"scene-{scene_id}",
        )
    except Exception as exc:
        logger.warning("Video generation failed for scene %s: %s", scene_id, exc)
        raise
    finally:
        if state.epoch != epoch:
            logger.warning("Scene %s was replaced during video generation, result dropped", scene_id)
        elif clip is None:
            state.set_video_status(scene_id, False)

    if state.epoch != epoch:
        store.release(clip)
        return None

    previous = state.get(scene_id).generated_video_url
    updated = state.set_video_result(scene_id, str(clip))
    if previous:
        store.release(previous)
    return updated


async def generate_all_images(state: StoryboardState, provider: Provider) -> BatchImageResult:
    """Generate images for every scene that lacks one, one scene at a time.

    Scenes with an image or an image already in flight are skipped. A failed
    scene is recorded and the batch moves on. Stops early if the storyboard is
    replaced while it runs.
    """
    result = BatchImageResult()
    epoch = state.epoch
    for scene_id in [s.id for s in state.scenes]:
        if state.epoch != epoch:
            logger.warning("Storyboard replaced, stopping batch image generation")
            break
        current = state.get(scene_id)
        if current.generated_image_url or current.is_generating_image:
            result.skipped.append(scene_id)
            continue
        try:
            updated = await run_image_generation(state, provider, scene_id)
        except Exception as exc:
            result.failed[scene_id] = str(exc) or type(exc).__name__
            continue
        if updated is not None:
            result.generated.append(scene_id)

    logger.info(
        "Batch images: %d generated, %d skipped, %d failed",
        len(result.generated), len(result.skipped), len(result.failed),
    )
    return result
