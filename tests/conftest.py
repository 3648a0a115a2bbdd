"""Shared test fixtures for storyboard-mcp."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from storyboard_mcp.client import Provider


def unwrap_tool(tool: Any) -> Any:
    """Extract the raw coroutine from a FastMCP FunctionTool, if wrapped.

    FastMCP 2.x wraps @server.tool functions in FunctionTool (not callable).
    FastMCP 3.x preserves the original function. This helper works with both.
    """
    return getattr(tool, "fn", tool)


@pytest.fixture(autouse=True, scope="session")
def _unwrap_fastmcp_tools():
    """Patch tool modules so FunctionTool objects become directly callable."""
    import importlib
    import pkgutil

    import storyboard_mcp.tools as tools_pkg

    modules = [
        importlib.import_module(info.name)
        for info in pkgutil.walk_packages(tools_pkg.__path__, tools_pkg.__name__ + ".")
    ]
    for mod in modules:
        for name in list(vars(mod)):
            obj = getattr(mod, name, None)
            if obj is not None and hasattr(obj, "fn") and not callable(obj):
                setattr(mod, name, obj.fn)


@pytest.fixture(autouse=True)
def _isolate_dotenv(tmp_path, monkeypatch):
    """Prevent tests from loading the user's real ~/.config/storyboard-mcp/.env."""
    monkeypatch.setattr(
        "storyboard_mcp.dotenv.DEFAULT_ENV_PATH",
        tmp_path / "nonexistent.env",
    )


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    """Dummy key, tracing off, media under tmp_path, fresh config singleton."""
    import storyboard_mcp.config as cfg_mod

    monkeypatch.setenv("GEMINI_API_KEY", "test-key-not-real")
    monkeypatch.setenv("GEMINI_TRACING_ENABLED", "false")
    monkeypatch.setenv("STORYBOARD_MEDIA_DIR", str(tmp_path / "media"))
    monkeypatch.delenv("GEMINI_RETRY_MAX_ATTEMPTS", raising=False)
    cfg_mod._config = None
    yield
    cfg_mod._config = None


@pytest.fixture(autouse=True)
def _reset_storyboard():
    """Start every test with an idle storyboard and an empty media store."""
    from storyboard_mcp.media import media_store
    from storyboard_mcp.state import storyboard_state

    storyboard_state.reset()
    media_store.release_all()
    yield
    storyboard_state.reset()
    media_store.release_all()


@pytest.fixture()
def mock_provider():
    """A Provider whose genai client and HTTP fetch are mocks."""
    provider = MagicMock(spec=Provider)
    provider.api_key = "test-key-not-real"
    provider.generate_content = AsyncMock()
    provider.generate_videos = AsyncMock()
    provider.refresh_operation = AsyncMock()
    provider.fetch_media = AsyncMock(return_value=b"\x00\x00\x00\x18ftypmp42")
    return provider


@pytest.fixture()
def patch_provider(monkeypatch, mock_provider):
    """Make GeminiClient.provider() return ``mock_provider`` for tool tests."""
    monkeypatch.setattr(
        "storyboard_mcp.client.GeminiClient.provider",
        classmethod(lambda cls, api_key=None: mock_provider),
    )
    return mock_provider


def make_image_response(data: bytes | None = b"\x89PNG\r\n", mime: str = "image/png") -> MagicMock:
    """Build a fake GenerateContentResponse with one inline image part (or none)."""
    part = MagicMock()
    part.text = None
    if data is None:
        part.inline_data = None
    else:
        part.inline_data = MagicMock(data=data, mime_type=mime)
    response = MagicMock()
    response.candidates = [MagicMock(content=MagicMock(parts=[part]))]
    return response


def make_operation(done: bool, uri: str | None = None, error: dict | None = None) -> MagicMock:
    """Build a fake GenerateVideosOperation."""
    op = MagicMock()
    op.name = "models/veo/operations/op-123"
    op.done = done
    op.error = error
    if uri is None:
        op.response = MagicMock(generated_videos=[]) if done else None
    else:
        video = MagicMock(uri=uri)
        op.response = MagicMock(generated_videos=[MagicMock(video=video)])
    return op
