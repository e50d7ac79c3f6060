"""
Filesystem Media Repository: stores each video's bytes in one file.

Files are named ``<video id><original suffix>`` inside the media directory,
so the reference handed to the player is a plain path.
"""

import logging
from pathlib import Path

from cliprep.domain.ports import MediaRepository

logger = logging.getLogger(__name__)


class FileMediaRepository(MediaRepository):
    def __init__(self, media_dir: Path):
        self.media_dir = media_dir

    def _find(self, media_id: str) -> Path | None:
        if not self.media_dir.is_dir():
            return None
        for candidate in self.media_dir.glob(f"{media_id}*"):
            if candidate.is_file() and candidate.stem == media_id:
                return candidate
        return None

    async def put(self, media_id: str, data: bytes, filename: str = "") -> Path:
        self.media_dir.mkdir(parents=True, exist_ok=True)
        existing = self._find(media_id)
        if existing is not None:
            existing.unlink()

        path = self.media_dir / f"{media_id}{Path(filename).suffix.lower()}"
        path.write_bytes(data)
        logger.debug(f"Stored {len(data)} bytes for {media_id} at {path}")
        return path

    async def get(self, media_id: str) -> Path | None:
        return self._find(media_id)

    async def delete(self, media_id: str) -> bool:
        path = self._find(media_id)
        if path is None:
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True
