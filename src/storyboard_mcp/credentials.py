"""Interactive API key selection through the MCP host.

When no Gemini key is configured, the server asks the host to collect one
via MCP elicitation before an analysis or generation call. Hosts without
elicitation support, or users who decline, leave the config unchanged and
the call fails later on the missing credential.
"""

from __future__ import annotations

import logging

from fastmcp import Context

from .config import get_config, update_config

logger = logging.getLogger(__name__)

KEY_PROMPT = (
    "A Gemini API key is required for storyboard analysis and media generation "
    "(video generation needs a paid-tier key). Paste your key to continue."
)


async def ensure_api_key(ctx: Context | None) -> bool:
    """Make sure a key is configured, asking the host for one if possible.

    Returns:
        True when a key is configured after the call.
    """
    cfg = get_config()
    if cfg.gemini_api_key:
        return True
    if ctx is None or not cfg.key_elicitation:
        return False

    try:
        result = await ctx.elicit(KEY_PROMPT, response_type=str)
    except Exception as exc:
        logger.info("Host key selection unavailable (%s) — continuing without it", exc)
        return False

    key = (result.data or "").strip() if result.action == "accept" else ""
    if not key:
        logger.info("Host key selection ended without a key (%s)", result.action)
        return False

    update_config(gemini_api_key=key)
    logger.info("API key selected via host (key …%s)", key[-4:])
    return True
