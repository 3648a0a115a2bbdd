"""Local store for fetched video clips.

Clips are written under ``STORYBOARD_MEDIA_DIR`` and addressed by path. The
store only deletes files it wrote itself, on ``release_all()`` (storyboard
reset and server shutdown).
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path

from .config import get_config

logger = logging.getLogger(__name__)

_EXTENSIONS: dict[str, str] = {
    "video/mp4": ".mp4",
    "video/webm": ".webm",
    "video/quicktime": ".mov",
}


class MediaStore:
    """Writes media blobs to disk and tracks the paths it owns."""

    def __init__(self, root: Path | None = None) -> None:
        self._root = root
        self._owned: set[Path] = set()

    @property
    def root(self) -> Path:
        root = self._root or Path(get_config().media_dir)
        root.mkdir(parents=True, exist_ok=True)
        return root

    def save(self, data: bytes, *, stem: str, mime_type: str = "video/mp4") -> Path:
        """Write *data* to a fresh file and return its path."""
        suffix = _EXTENSIONS.get(mime_type, ".bin")
        path = self.root / f"{stem}-{uuid.uuid4().hex[:8]}{suffix}"
        path.write_bytes(data)
        self._owned.add(path)
        logger.info("Saved %d bytes to %s", len(data), path)
        return path

    def release(self, path: str | Path) -> bool:
        """Delete one owned file. Returns False for paths this store did not write."""
        p = Path(path)
        if p not in self._owned:
            return False
        self._owned.discard(p)
        p.unlink(missing_ok=True)
        return True

    def release_all(self) -> int:
        """Delete every owned file. Returns count removed."""
        count = 0
        for p in list(self._owned):
            if self.release(p):
                count += 1
        if count:
            logger.info("Released %d media file(s)", count)
        return count

    @property
    def count(self) -> int:
        """Number of files currently owned."""
        return len(self._owned)


media_store = MediaStore()
