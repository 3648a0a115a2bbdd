"""Scene video generation — submit a Veo job, poll it, fetch the clip."""

from __future__ import annotations

import logging
from pathlib import Path

from google.genai import types

from .client import Provider
from .config import get_config
from .errors import GenerationError
from .images import decode_data_uri
from .media import MediaStore, media_store
from .polling import PollPolicy, poll_until_done
from .tracing import annotate, span

logger = logging.getLogger(__name__)


def _is_done(operation: types.GenerateVideosOperation) -> bool:
    return bool(operation.done)


def output_uri(operation: types.GenerateVideosOperation) -> str | None:
    """Return the first generated video's URI from a finished job, if any."""
    response = operation.response
    if not response or not response.generated_videos:
        return None
    video = response.generated_videos[0].video
    return video.uri if video and video.uri else None


async def generate_video(
    provider: Provider,
    prompt: str,
    image_data_uri: str,
    *,
    policy: PollPolicy | None = None,
    store: MediaStore | None = None,
    stem: str = "clip",
) -> Path:
    """Animate *image_data_uri* under *prompt* and return the saved clip's path.

    The job is polled under *policy* (config defaults when omitted). Once
    done, the clip is fetched exactly once with the provider's key.

    Raises:
        ValueError: If the prompt is blank or the image is not a data URI.
        GenerationError: If the job fails or finishes without an output URI.
        TransportError: If the clip download returns a non-2xx status.
        PollTimeoutError: If the job outlives the poll policy.
    """
    if not prompt or not prompt.strip():
        raise ValueError("Video prompt must not be empty")
    image_bytes, mime_type = decode_data_uri(image_data_uri)

    cfg = get_config()
    policy = policy or PollPolicy.from_config(cfg)
    store = store or media_store

    with span("video_job", model=cfg.video_model, clip=stem):
        operation = await provider.generate_videos(
            model=cfg.video_model,
            prompt=prompt,
            image=types.Image(image_bytes=image_bytes, mime_type=mime_type),
            config=types.GenerateVideosConfig(
                number_of_videos=1,
                resolution=cfg.video_resolution,
                aspect_ratio=cfg.video_aspect_ratio,
            ),
        )
        logger.info("Submitted video job %s (%s)", operation.name, cfg.video_model)
        annotate(operation=operation.name)

        operation = await poll_until_done(
            operation,
            provider.refresh_operation,
            _is_done,
            policy,
            label=f"video job {operation.name}",
        )

        if operation.error:
            raise GenerationError(f"Video generation failed: {operation.error}")
        uri = output_uri(operation)
        if not uri:
            raise GenerationError("Video generation failed or returned no URI")

        data = await provider.fetch_media(uri)
        annotate(clip_bytes=len(data))
        return store.save(data, stem=stem)
