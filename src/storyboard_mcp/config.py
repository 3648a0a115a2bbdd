"""Server configuration via environment variables."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

VALID_ASPECT_RATIOS = {"16:9", "9:16"}
VALID_IMAGE_SIZES = {"1K", "2K", "4K"}
VALID_VIDEO_RESOLUTIONS = {"720p", "1080p"}

MODEL_PRESETS: dict[str, dict[str, str]] = {
    "quality": {
        "analysis_model": "gemini-2.5-flash",
        "image_model": "gemini-3-pro-image-preview",
        "video_model": "veo-3.1-generate-preview",
        "label": "Best output — 3 Pro Image + full Veo 3.1 (slowest, lowest rate limits)",
    },
    "fast": {
        "analysis_model": "gemini-2.5-flash",
        "image_model": "gemini-3-pro-image-preview",
        "video_model": "veo-3.1-fast-generate-preview",
        "label": "Preview speed — 3 Pro Image + Veo 3.1 Fast (default)",
    },
}


def _is_env_placeholder(value: str) -> bool:
    """Return True when *value* looks like an unresolved shell placeholder."""
    if value.startswith("${") and value.endswith("}"):
        inner = value[2:-1].strip()
        if ":-" in inner:
            inner = inner.split(":-", 1)[0].strip()
        return bool(inner) and all(ch.isalnum() or ch == "_" for ch in inner)
    if value.startswith("$"):
        inner = value[1:].strip()
        return bool(inner) and all(ch.isalnum() or ch == "_" for ch in inner)
    return False


def _env_str(name: str, default: str = "") -> str:
    """Read an env var, treating blanks and unresolved placeholders as unset."""
    value = os.getenv(name, "").strip()
    if not value or _is_env_placeholder(value):
        return default
    return value


def _env_flag(name: str, default: bool) -> bool:
    value = _env_str(name).lower()
    if not value:
        return default
    return value in ("1", "true", "yes")


def _resolve_tracing_enabled(flag_value: str, tracking_uri: str) -> bool:
    """Derive tracing_enabled from env vars.

    - ``GEMINI_TRACING_ENABLED=false`` → always disabled (explicit opt-out).
    - Otherwise enabled only when ``MLFLOW_TRACKING_URI`` is non-empty.
    """
    if flag_value.lower() == "false":
        return False
    return bool(tracking_uri)


class ServerConfig(BaseModel):
    """Runtime configuration resolved from environment."""

    gemini_api_key: str = Field(default="")
    analysis_model: str = Field(default="gemini-2.5-flash")
    image_model: str = Field(default="gemini-3-pro-image-preview")
    video_model: str = Field(default="veo-3.1-fast-generate-preview")
    image_aspect_ratio: str = Field(default="16:9")
    image_size: str = Field(default="1K")
    video_resolution: str = Field(default="720p")
    video_aspect_ratio: str = Field(default="16:9")
    poll_interval: float = Field(default=5.0)
    poll_backoff: float = Field(default=1.5)
    poll_max_interval: float = Field(default=30.0)
    poll_timeout: float = Field(default=900.0)
    poll_max_attempts: int = Field(default=240)
    media_dir: str = Field(default="")
    key_elicitation: bool = Field(default=True)
    retry_max_attempts: int = Field(default=1)
    retry_base_delay: float = Field(default=1.0)
    retry_max_delay: float = Field(default=60.0)
    tracing_enabled: bool = Field(default=False)
    mlflow_tracking_uri: str = Field(default="")
    mlflow_experiment_name: str = Field(default="storyboard-mcp")

    @field_validator("image_aspect_ratio", "video_aspect_ratio")
    @classmethod
    def validate_aspect_ratio(cls, value: str) -> str:
        ratio = value.strip()
        if ratio not in VALID_ASPECT_RATIOS:
            allowed = ", ".join(sorted(VALID_ASPECT_RATIOS))
            raise ValueError(f"Invalid aspect ratio '{value}'. Allowed: {allowed}")
        return ratio

    @field_validator("image_size")
    @classmethod
    def validate_image_size(cls, value: str) -> str:
        size = value.strip().upper()
        if size not in VALID_IMAGE_SIZES:
            allowed = ", ".join(sorted(VALID_IMAGE_SIZES))
            raise ValueError(f"Invalid image size '{value}'. Allowed: {allowed}")
        return size

    @field_validator("video_resolution")
    @classmethod
    def validate_video_resolution(cls, value: str) -> str:
        resolution = value.strip().lower()
        if resolution not in VALID_VIDEO_RESOLUTIONS:
            allowed = ", ".join(sorted(VALID_VIDEO_RESOLUTIONS))
            raise ValueError(f"Invalid video resolution '{value}'. Allowed: {allowed}")
        return resolution

    @field_validator("poll_interval", "poll_max_interval", "poll_timeout", "retry_base_delay", "retry_max_delay")
    @classmethod
    def validate_positive_delays(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Delay and timeout values must be > 0")
        return value

    @field_validator("poll_backoff")
    @classmethod
    def validate_backoff(cls, value: float) -> float:
        if value < 1.0:
            raise ValueError("poll_backoff must be >= 1.0")
        return value

    @field_validator("poll_max_attempts", "retry_max_attempts")
    @classmethod
    def validate_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Attempt counts must be >= 1")
        return value

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Build config from environment variables."""
        media_default = str(Path.home() / ".cache" / "storyboard-mcp" / "media")
        return cls(
            gemini_api_key=_env_str("GEMINI_API_KEY"),
            analysis_model=_env_str("STORYBOARD_ANALYSIS_MODEL", "gemini-2.5-flash"),
            image_model=_env_str("STORYBOARD_IMAGE_MODEL", "gemini-3-pro-image-preview"),
            video_model=_env_str("STORYBOARD_VIDEO_MODEL", "veo-3.1-fast-generate-preview"),
            image_aspect_ratio=_env_str("STORYBOARD_IMAGE_ASPECT_RATIO", "16:9"),
            image_size=_env_str("STORYBOARD_IMAGE_SIZE", "1K"),
            video_resolution=_env_str("STORYBOARD_VIDEO_RESOLUTION", "720p"),
            video_aspect_ratio=_env_str("STORYBOARD_VIDEO_ASPECT_RATIO", "16:9"),
            poll_interval=float(_env_str("STORYBOARD_POLL_INTERVAL", "5.0")),
            poll_backoff=float(_env_str("STORYBOARD_POLL_BACKOFF", "1.5")),
            poll_max_interval=float(_env_str("STORYBOARD_POLL_MAX_INTERVAL", "30.0")),
            poll_timeout=float(_env_str("STORYBOARD_POLL_TIMEOUT", "900.0")),
            poll_max_attempts=int(_env_str("STORYBOARD_POLL_MAX_ATTEMPTS", "240")),
            media_dir=_env_str("STORYBOARD_MEDIA_DIR", media_default),
            key_elicitation=_env_flag("STORYBOARD_KEY_ELICITATION", True),
            retry_max_attempts=int(_env_str("GEMINI_RETRY_MAX_ATTEMPTS", "1")),
            retry_base_delay=float(_env_str("GEMINI_RETRY_BASE_DELAY", "1.0")),
            retry_max_delay=float(_env_str("GEMINI_RETRY_MAX_DELAY", "60.0")),
            tracing_enabled=_resolve_tracing_enabled(
                _env_str("GEMINI_TRACING_ENABLED"),
                _env_str("MLFLOW_TRACKING_URI"),
            ),
            mlflow_tracking_uri=_env_str("MLFLOW_TRACKING_URI"),
            mlflow_experiment_name=_env_str("MLFLOW_EXPERIMENT_NAME", "storyboard-mcp"),
        )


_config: ServerConfig | None = None


def get_config() -> ServerConfig:
    """Return the global config singleton, creating it on first access.

    Loads ``~/.config/storyboard-mcp/.env`` before reading env vars.
    Process environment always takes precedence over the config file.
    """
    global _config
    if _config is None:
        import logging

        from .dotenv import load_dotenv

        injected = load_dotenv()
        if injected:
            logger = logging.getLogger(__name__)
            logger.info(
                "Loaded %d var(s) from config: %s",
                len(injected),
                ", ".join(injected.keys()),
            )
        _config = ServerConfig.from_env()
    return _config


def update_config(**overrides: object) -> ServerConfig:
    """Patch the live config (used by ``infra_configure`` and key selection)."""
    global _config
    cfg = get_config()
    data = cfg.model_dump()
    data.update({k: v for k, v in overrides.items() if v is not None})
    _config = ServerConfig(**data)
    return _config
