"""Transcript analyzer — splits a transcript into storyboard scenes via Gemini."""

from __future__ import annotations

import logging

from google.genai import types
from pydantic import TypeAdapter, ValidationError

from .client import Provider
from .config import get_config
from .errors import AnalysisError
from .models.storyboard import AnalysisItem
from .prompts.storyboard import ANALYSIS_RESPONSE_SCHEMA, ANALYSIS_SYSTEM

logger = logging.getLogger(__name__)

_ITEMS = TypeAdapter(list[AnalysisItem])


def parse_analysis(raw: str | None) -> list[AnalysisItem]:
    """Validate the analyzer's JSON text into AnalysisItems.

    Raises:
        AnalysisError: If *raw* is empty, not JSON, or violates the schema.
    """
    if not raw or not raw.strip():
        raise AnalysisError("No response from AI")
    try:
        return _ITEMS.validate_json(raw)
    except ValidationError as exc:
        logger.error("Failed to parse analysis response: %s", exc)
        raise AnalysisError(f"Invalid JSON response from AI: {exc.error_count()} error(s)") from exc


async def analyze_transcript(provider: Provider, transcript: str) -> list[AnalysisItem]:
    """Ask the analysis model for a scene breakdown of *transcript*.

    Args:
        provider: Credential-bound Gemini access.
        transcript: Spoken-word script; must contain non-whitespace text.

    Returns:
        One AnalysisItem per ~5–10 second segment, in transcript order.

    Raises:
        ValueError: If the transcript is blank.
        AnalysisError: If the model returns nothing usable.
    """
    if not transcript or not transcript.strip():
        raise ValueError("Transcript must not be empty")

    cfg = get_config()
    config = types.GenerateContentConfig(
        system_instruction=ANALYSIS_SYSTEM,
        response_mime_type="application/json",
        response_json_schema=ANALYSIS_RESPONSE_SCHEMA,
    )
    response = await provider.generate_content(
        model=cfg.analysis_model,
        contents=transcript,
        config=config,
    )
    items = parse_analysis(response.text)
    logger.info("Analyzed transcript (%d chars) into %d scene(s)", len(transcript), len(items))
    return items
