"""Structured error handling — error categories, typed errors, and tool error model."""

from __future__ import annotations

from enum import Enum

import httpx
from pydantic import BaseModel


class ErrorCategory(str, Enum):
    """Categories of errors for diagnostics."""

    CREDENTIAL_MISSING = "CREDENTIAL_MISSING"
    PROVIDER_RESPONSE_INVALID = "PROVIDER_RESPONSE_INVALID"
    TRANSPORT_FAILURE = "TRANSPORT_FAILURE"
    POLL_TIMEOUT = "POLL_TIMEOUT"
    API_PERMISSION_DENIED = "API_PERMISSION_DENIED"
    API_QUOTA_EXCEEDED = "API_QUOTA_EXCEEDED"
    API_INVALID_ARGUMENT = "API_INVALID_ARGUMENT"
    API_NOT_FOUND = "API_NOT_FOUND"
    NETWORK_ERROR = "NETWORK_ERROR"
    SCENE_NOT_FOUND = "SCENE_NOT_FOUND"
    SCENE_BUSY = "SCENE_BUSY"
    STORYBOARD_BUSY = "STORYBOARD_BUSY"
    PRECONDITION_FAILED = "PRECONDITION_FAILED"
    UNKNOWN = "UNKNOWN"


_HINTS: dict[ErrorCategory, str] = {
    ErrorCategory.CREDENTIAL_MISSING: (
        "Set GEMINI_API_KEY (env or ~/.config/storyboard-mcp/.env) and try again"
    ),
    ErrorCategory.PROVIDER_RESPONSE_INVALID: (
        "The model returned an empty or malformed result — try again or adjust the prompt"
    ),
    ErrorCategory.TRANSPORT_FAILURE: (
        "The finished video could not be downloaded — check your API key quotas or try again"
    ),
    ErrorCategory.POLL_TIMEOUT: (
        "The video job did not finish in time — raise STORYBOARD_POLL_TIMEOUT or try again"
    ),
    ErrorCategory.SCENE_NOT_FOUND: "Unknown scene id — call storyboard_get for current ids",
    ErrorCategory.SCENE_BUSY: "A generation for this scene is already running — wait for it",
    ErrorCategory.STORYBOARD_BUSY: "An analysis is already running — wait for it to finish",
    ErrorCategory.PRECONDITION_FAILED: "Generate an image for the scene before its video",
}


class StoryboardError(Exception):
    """Base class for errors raised by storyboard operations."""

    category: ErrorCategory = ErrorCategory.UNKNOWN


class CredentialMissingError(StoryboardError):
    """No API key is available for a provider call."""

    category = ErrorCategory.CREDENTIAL_MISSING


class AnalysisError(StoryboardError):
    """The analyzer returned no text or text that fails the scene schema."""

    category = ErrorCategory.PROVIDER_RESPONSE_INVALID


class GenerationError(StoryboardError):
    """An image or video generation produced no usable media."""

    category = ErrorCategory.PROVIDER_RESPONSE_INVALID


class TransportError(GenerationError):
    """Fetching finished media returned a non-success HTTP status."""

    category = ErrorCategory.TRANSPORT_FAILURE

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PollTimeoutError(GenerationError):
    """A video job was still running when the poll limit ran out."""

    category = ErrorCategory.POLL_TIMEOUT


class SceneNotFoundError(StoryboardError):
    category = ErrorCategory.SCENE_NOT_FOUND


class SceneBusyError(StoryboardError):
    category = ErrorCategory.SCENE_BUSY


class StoryboardBusyError(StoryboardError):
    category = ErrorCategory.STORYBOARD_BUSY


class PreconditionError(StoryboardError):
    category = ErrorCategory.PRECONDITION_FAILED


class ToolError(BaseModel):
    """Structured error returned from any tool."""

    error: str
    category: str
    hint: str
    retryable: bool = False
    retry_after_seconds: int | None = None


def categorize_error(error: Exception) -> tuple[ErrorCategory, str]:
    """Map an exception to an ErrorCategory + human-readable hint."""
    if isinstance(error, StoryboardError):
        return error.category, _HINTS.get(error.category, str(error))
    if isinstance(error, (TimeoutError, httpx.TimeoutException, httpx.NetworkError)):
        return (
            ErrorCategory.NETWORK_ERROR,
            "Request timed out or the connection failed — try again or check connectivity",
        )

    s = str(error).lower()

    if "429" in s or "quota" in s or "resource_exhausted" in s:
        return (
            ErrorCategory.API_QUOTA_EXCEEDED,
            "Rate limit hit — wait and retry, or switch models with infra_configure(preset='fast')",
        )
    if "403" in s or "permission" in s:
        return (
            ErrorCategory.API_PERMISSION_DENIED,
            "API key lacks permission for this model — Veo requires a paid-tier key",
        )
    if "400" in s:
        return (
            ErrorCategory.API_INVALID_ARGUMENT,
            "Bad request — check the prompt and the configured models",
        )
    if "404" in s or "not found" in s:
        return (
            ErrorCategory.API_NOT_FOUND,
            "Model or resource not found — check the configured model IDs",
        )
    if "timeout" in s or "timed out" in s:
        return (
            ErrorCategory.NETWORK_ERROR,
            "Request timed out — try again or check connectivity",
        )

    return (ErrorCategory.UNKNOWN, str(error))


def make_tool_error(error: Exception) -> dict:
    """Create a serialisable ToolError dict from an exception."""
    cat, hint = categorize_error(error)
    retryable = cat in {
        ErrorCategory.API_QUOTA_EXCEEDED,
        ErrorCategory.NETWORK_ERROR,
        ErrorCategory.TRANSPORT_FAILURE,
        ErrorCategory.POLL_TIMEOUT,
        ErrorCategory.SCENE_BUSY,
        ErrorCategory.STORYBOARD_BUSY,
    }
    return ToolError(
        error=str(error) or type(error).__name__,
        category=cat.value,
        hint=hint,
        retryable=retryable,
        retry_after_seconds=60 if cat == ErrorCategory.API_QUOTA_EXCEEDED else None,
    ).model_dump(mode="json")
