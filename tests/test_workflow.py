"""Tests for the storyboard handlers (analysis, per-scene generation, batch)."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from storyboard_mcp.errors import (
    AnalysisError,
    CredentialMissingError,
    GenerationError,
    PreconditionError,
    SceneBusyError,
    SceneNotFoundError,
    StoryboardBusyError,
)
from storyboard_mcp.media import MediaStore
from storyboard_mcp.models.storyboard import AnalysisItem, AppMode
from storyboard_mcp.state import ANALYSIS_FAILED_MESSAGE, StoryboardState
from storyboard_mcp.workflow import (
    generate_all_images,
    run_analysis,
    run_image_generation,
    run_video_generation,
)
from tests.conftest import make_image_response, make_operation

IMAGE_URI = "data:image/png;base64,AAAA"
VIDEO_URI = "https://generativelanguage.googleapis.com/v1beta/files/v:download?alt=media"


def _analysis_text(n: int) -> MagicMock:
    items = [
        {"segment": f"Segment {i}.", "visualIdea": f"Idea {i}", "imagePrompt": f"Prompt {i}"}
        for i in range(n)
    ]
    return MagicMock(text=json.dumps(items))


@pytest.fixture()
def state() -> StoryboardState:
    st = StoryboardState()
    st.begin_analysis()
    st.complete_analysis([
        AnalysisItem(segment=f"seg {i}", visual_idea=f"idea {i}", image_prompt=f"prompt {i}")
        for i in range(3)
    ])
    return st


@pytest.fixture()
def store(tmp_path) -> MediaStore:
    return MediaStore(tmp_path / "clips")


@pytest.fixture(autouse=True)
def _no_sleep():
    with patch("storyboard_mcp.polling._sleep", new_callable=AsyncMock):
        yield


class TestRunAnalysis:
    async def test_single_segment(self, mock_provider):
        mock_provider.generate_content.return_value = MagicMock(text=json.dumps([
            {"segment": "Hello world.", "visualIdea": "A sunrise", "imagePrompt": "Golden sunrise"}
        ]))
        st = StoryboardState()

        scenes = await run_analysis(st, mock_provider, "Hello world.")

        assert st.mode is AppMode.READY
        assert len(scenes) == 1
        scene = scenes[0]
        assert scene.id == "0"
        assert scene.segment_text == "Hello world."
        assert scene.generated_image_url is None
        assert scene.generated_video_url is None
        assert not scene.is_generating_image and not scene.is_generating_video

    async def test_mode_is_analyzing_during_call(self, mock_provider):
        st = StoryboardState()
        seen = {}

        async def fake_generate(**kwargs):
            seen["mode"] = st.mode
            return _analysis_text(2)

        mock_provider.generate_content.side_effect = fake_generate
        await run_analysis(st, mock_provider, "Two sentences. Here.")
        assert seen["mode"] is AppMode.ANALYZING
        assert [s.id for s in st.scenes] == ["0", "1"]

    async def test_malformed_response_ends_in_error(self, mock_provider, state):
        mock_provider.generate_content.return_value = MagicMock(text="not json")

        with pytest.raises(AnalysisError):
            await run_analysis(state, mock_provider, "Some transcript.")

        assert state.mode is AppMode.ERROR
        assert state.error == ANALYSIS_FAILED_MESSAGE
        assert state.scenes == []

    async def test_provider_failure_ends_in_error(self, mock_provider):
        mock_provider.generate_content.side_effect = RuntimeError("503 unavailable")
        st = StoryboardState()
        with pytest.raises(RuntimeError):
            await run_analysis(st, mock_provider, "Some transcript.")
        assert st.mode is AppMode.ERROR

    async def test_reanalysis_replaces_scenes(self, mock_provider, state):
        state.set_image_result("0", IMAGE_URI)
        mock_provider.generate_content.return_value = _analysis_text(1)

        scenes = await run_analysis(state, mock_provider, "Fresh transcript.")

        assert len(scenes) == 1
        assert scenes[0].generated_image_url is None

    async def test_blank_transcript_leaves_state_untouched(self, mock_provider, state):
        before = state.scenes
        with pytest.raises(ValueError):
            await run_analysis(state, mock_provider, "   ")
        assert state.mode is AppMode.READY
        assert state.scenes == before
        mock_provider.generate_content.assert_not_called()

    async def test_second_analysis_refused_while_running(self, mock_provider):
        st = StoryboardState()
        release = asyncio.Event()

        async def slow_generate(**kwargs):
            await release.wait()
            return _analysis_text(1)

        mock_provider.generate_content.side_effect = slow_generate
        first = asyncio.create_task(run_analysis(st, mock_provider, "First."))
        await asyncio.sleep(0)

        with pytest.raises(StoryboardBusyError):
            await run_analysis(st, mock_provider, "Second.")

        release.set()
        await first
        assert st.mode is AppMode.READY

    async def test_reset_during_analysis_discards_result(self, mock_provider):
        st = StoryboardState()

        async def reset_midway(**kwargs):
            st.reset()
            return _analysis_text(2)

        mock_provider.generate_content.side_effect = reset_midway
        assert await run_analysis(st, mock_provider, "Transcript.") == []
        assert st.mode is AppMode.IDLE
        assert st.scenes == []

    async def test_missing_key_is_an_analysis_failure(self, state):
        def no_key():
            raise CredentialMissingError("API Key missing")

        with pytest.raises(CredentialMissingError):
            await run_analysis(state, no_key, "Hello world.")

        assert state.mode is AppMode.ERROR
        assert state.error == ANALYSIS_FAILED_MESSAGE
        assert state.scenes == []

    async def test_provider_factory_resolved_once_analyzing(self, mock_provider):
        st = StoryboardState()
        seen = {}
        mock_provider.generate_content.return_value = _analysis_text(1)

        def factory():
            seen["mode"] = st.mode
            return mock_provider

        await run_analysis(st, factory, "Hello world.")
        assert seen["mode"] is AppMode.ANALYZING
        assert st.mode is AppMode.READY

    async def test_reanalysis_releases_replaced_clips(self, mock_provider, state, store):
        clip = store.save(b"clip", stem="scene-0")
        state.set_video_result("0", str(clip))
        mock_provider.generate_content.return_value = _analysis_text(1)

        await run_analysis(state, mock_provider, "Fresh transcript.", store=store)

        assert not clip.exists()
        assert store.count == 0

    async def test_failed_reanalysis_releases_replaced_clips(self, mock_provider, state, store):
        clip = store.save(b"clip", stem="scene-2")
        state.set_video_result("2", str(clip))
        mock_provider.generate_content.return_value = MagicMock(text="not json")

        with pytest.raises(AnalysisError):
            await run_analysis(state, mock_provider, "Fresh transcript.", store=store)

        assert not clip.exists()
        assert store.count == 0


class TestRunImageGeneration:
    async def test_success(self, mock_provider, state):
        seen = {}

        async def fake_generate(**kwargs):
            seen["flag"] = state.get("1").is_generating_image
            return make_image_response(b"img", "image/png")

        mock_provider.generate_content.side_effect = fake_generate

        scene = await run_image_generation(state, mock_provider, "1")

        assert seen["flag"] is True
        assert scene.is_generating_image is False
        assert scene.generated_image_url.startswith("data:image/png;base64,")
        assert mock_provider.generate_content.call_args.kwargs["contents"] == "prompt 1"
        assert state.get("0").generated_image_url is None

    async def test_uses_edited_prompt(self, mock_provider, state):
        state.update_prompt("0", "A lighthouse in fog")
        mock_provider.generate_content.return_value = make_image_response()
        await run_image_generation(state, mock_provider, "0")
        assert mock_provider.generate_content.call_args.kwargs["contents"] == "A lighthouse in fog"

    async def test_failure_keeps_previous_image(self, mock_provider, state):
        state.set_image_result("0", IMAGE_URI)
        mock_provider.generate_content.return_value = make_image_response(None)

        with pytest.raises(GenerationError):
            await run_image_generation(state, mock_provider, "0")

        scene = state.get("0")
        assert scene.is_generating_image is False
        assert scene.generated_image_url == IMAGE_URI

    async def test_cancellation_clears_flag(self, mock_provider, state):
        mock_provider.generate_content.side_effect = asyncio.CancelledError()
        with pytest.raises(asyncio.CancelledError):
            await run_image_generation(state, mock_provider, "2")
        assert state.get("2").is_generating_image is False

    async def test_busy_scene_refused_without_call(self, mock_provider, state):
        state.begin_image("0")
        with pytest.raises(SceneBusyError):
            await run_image_generation(state, mock_provider, "0")
        mock_provider.generate_content.assert_not_called()

    async def test_unknown_scene(self, mock_provider, state):
        with pytest.raises(SceneNotFoundError):
            await run_image_generation(state, mock_provider, "99")

    async def test_result_dropped_after_reset(self, mock_provider, state):
        async def reset_midway(**kwargs):
            state.reset()
            return make_image_response()

        mock_provider.generate_content.side_effect = reset_midway
        assert await run_image_generation(state, mock_provider, "0") is None
        assert state.scenes == []


class TestRunVideoGeneration:
    async def test_requires_image(self, mock_provider, state, store):
        with pytest.raises(PreconditionError):
            await run_video_generation(state, mock_provider, "0", store=store)
        mock_provider.generate_videos.assert_not_called()
        assert state.get("0").is_generating_video is False

    async def test_success_sets_local_clip(self, mock_provider, state, store):
        state.set_image_result("0", IMAGE_URI)
        mock_provider.generate_videos.return_value = make_operation(True, VIDEO_URI)

        scene = await run_video_generation(state, mock_provider, "0", store=store)

        assert scene.is_generating_video is False
        assert scene.generated_video_url.startswith(str(store.root))
        assert mock_provider.generate_videos.call_args.kwargs["prompt"] == "prompt 0"
        assert store.count == 1

    async def test_motion_prompt_override(self, mock_provider, state, store):
        state.set_image_result("0", IMAGE_URI)
        mock_provider.generate_videos.return_value = make_operation(True, VIDEO_URI)
        await run_video_generation(state, mock_provider, "0", "Slow dolly in", store=store)
        assert mock_provider.generate_videos.call_args.kwargs["prompt"] == "Slow dolly in"

    async def test_regeneration_releases_previous_clip(self, mock_provider, state, store):
        state.set_image_result("0", IMAGE_URI)
        mock_provider.generate_videos.return_value = make_operation(True, VIDEO_URI)

        first = await run_video_generation(state, mock_provider, "0", store=store)
        second = await run_video_generation(state, mock_provider, "0", store=store)

        assert first.generated_video_url != second.generated_video_url
        assert store.count == 1

    async def test_failure_clears_flag(self, mock_provider, state, store):
        state.set_image_result("0", IMAGE_URI)
        mock_provider.generate_videos.return_value = make_operation(True)

        with pytest.raises(GenerationError):
            await run_video_generation(state, mock_provider, "0", store=store)

        scene = state.get("0")
        assert scene.is_generating_video is False
        assert scene.generated_video_url is None

    async def test_clip_released_after_reset(self, mock_provider, state, store):
        state.set_image_result("0", IMAGE_URI)
        mock_provider.generate_videos.return_value = make_operation(True, VIDEO_URI)

        async def reset_midway(uri):
            state.reset()
            return b"clip"

        mock_provider.fetch_media.side_effect = reset_midway
        assert await run_video_generation(state, mock_provider, "0", store=store) is None
        assert store.count == 0


class TestGenerateAllImages:
    async def test_sequential_with_skip_and_failure(self, mock_provider, state):
        state.set_image_result("1", IMAGE_URI)
        events: list[str] = []

        async def fake_generate(**kwargs):
            prompt = kwargs["contents"]
            events.append(f"start {prompt}")
            for _ in range(3):
                await asyncio.sleep(0)
            events.append(f"end {prompt}")
            if prompt == "prompt 2":
                return make_image_response(None)
            return make_image_response()

        mock_provider.generate_content.side_effect = fake_generate

        result = await generate_all_images(state, mock_provider)

        assert events == ["start prompt 0", "end prompt 0", "start prompt 2", "end prompt 2"]
        assert result.generated == ["0"]
        assert result.skipped == ["1"]
        assert list(result.failed) == ["2"]
        assert state.get("2").is_generating_image is False
        assert state.get("2").generated_image_url is None

    async def test_next_scene_waits_for_previous(self, mock_provider, state):
        gate = asyncio.Event()
        calls: list[str] = []

        async def gated_generate(**kwargs):
            calls.append(kwargs["contents"])
            if kwargs["contents"] == "prompt 0":
                await gate.wait()
            return make_image_response()

        mock_provider.generate_content.side_effect = gated_generate
        batch = asyncio.create_task(generate_all_images(state, mock_provider))
        for _ in range(5):
            await asyncio.sleep(0)

        assert calls == ["prompt 0"]
        assert state.get("0").is_generating_image is True
        assert state.get("1").is_generating_image is False

        gate.set()
        result = await batch
        assert calls == ["prompt 0", "prompt 1", "prompt 2"]
        assert result.generated == ["0", "1", "2"]

    async def test_nothing_pending(self, mock_provider, state):
        for sid in ("0", "1", "2"):
            state.set_image_result(sid, IMAGE_URI)
        result = await generate_all_images(state, mock_provider)
        assert result.generated == []
        assert result.skipped == ["0", "1", "2"]
        mock_provider.generate_content.assert_not_called()

    async def test_stops_when_storyboard_replaced(self, mock_provider, state):
        async def reset_midway(**kwargs):
            state.reset()
            return make_image_response()

        mock_provider.generate_content.side_effect = reset_midway
        result = await generate_all_images(state, mock_provider)
        assert result.generated == []
        assert mock_provider.generate_content.call_count == 1
