"""Load the Gemini key and storyboard settings from a per-user ``.env`` file.

MCP hosts launch the server with whatever environment they were given, which
often lacks ``GEMINI_API_KEY``. Values from ``~/.config/storyboard-mcp/.env``
fill the gaps; anything already set in the process environment wins.
"""

from __future__ import annotations

import os
from pathlib import Path

DEFAULT_ENV_PATH = Path.home() / ".config" / "storyboard-mcp" / ".env"

_QUOTES = ('"', "'")


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in _QUOTES:
        return value[1:-1]
    return value


def _needs_value(key: str, current: str | None) -> bool:
    """True when *current* is missing, blank, or an unexpanded ``$KEY`` echo."""
    if current is None:
        return True
    current = _strip_quotes(current.strip()).strip()
    if not current:
        return True
    if current in (f"${key}", f"${{{key}}}"):
        return True
    return current.startswith(f"${{{key}:-") and current.endswith("}")


def parse_dotenv(path: Path) -> dict[str, str]:
    """Read ``KEY=VALUE`` pairs from *path*.

    Blank lines, ``#`` comments and an optional ``export`` prefix are
    accepted. Values may be single- or double-quoted; nothing is expanded.
    A missing file yields an empty dict.
    """
    pairs: dict[str, str] = {}
    if not path.is_file():
        return pairs

    for raw in path.read_text().splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :]
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            continue
        pairs[key] = _strip_quotes(value.strip())
    return pairs


def load_dotenv(path: Path | None = None) -> dict[str, str]:
    """Copy values from *path* into ``os.environ`` where the process has none.

    Returns:
        The variables that were injected.
    """
    injected: dict[str, str] = {}
    for key, value in parse_dotenv(path or DEFAULT_ENV_PATH).items():
        if _needs_value(key, os.environ.get(key)):
            os.environ[key] = value
            injected[key] = value
    return injected
