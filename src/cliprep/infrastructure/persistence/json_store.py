"""
JSON State Store: infrastructure adapter for the persisted mirror.

Implements StateStore and ProgressStore with one JSON file per keyed
collection under a data directory:

    videos.json, playlists.json, collections.json, progress.json

Reads never fail: a missing file is an empty collection, and an unreadable
or invalid file is logged and treated as empty. Writes are atomic
(temp file + rename) and report failure instead of raising.
"""

import logging
import os
import tempfile
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from cliprep.domain.models import Collection, Playlist, Video
from cliprep.domain.ports import LibrarySnapshot, ProgressStore, StateStore

from .records import CollectionRecord, PlaylistRecord, VideoRecord

logger = logging.getLogger(__name__)

VIDEOS_FILE = "videos.json"
PLAYLISTS_FILE = "playlists.json"
COLLECTIONS_FILE = "collections.json"
PROGRESS_FILE = "progress.json"

_videos = TypeAdapter(list[VideoRecord])
_playlists = TypeAdapter(list[PlaylistRecord])
_collections = TypeAdapter(list[CollectionRecord])
_offsets = TypeAdapter(dict[str, float])


class JsonStateStore(StateStore, ProgressStore):
    def __init__(self, data_dir: Path):
        self.data_dir = data_dir

    # ---------- Reads ----------

    def load(self) -> LibrarySnapshot:
        videos = self._read(VIDEOS_FILE, _videos, [])
        playlists = self._read(PLAYLISTS_FILE, _playlists, [])
        collections = self._read(COLLECTIONS_FILE, _collections, [])
        logger.info(
            f"Loaded {len(videos)} videos, {len(playlists)} sessions, "
            f"{len(collections)} collections from {self.data_dir}"
        )
        return LibrarySnapshot(
            videos=[r.to_domain() for r in videos],
            playlists=[r.to_domain() for r in playlists],
            collections=[r.to_domain() for r in collections],
        )

    def load_offsets(self) -> dict[str, float]:
        return self._read(PROGRESS_FILE, _offsets, {})

    def _read(self, name: str, adapter: TypeAdapter, empty):
        path = self.data_dir / name
        if not path.exists():
            return empty
        try:
            return adapter.validate_json(path.read_bytes())
        except (OSError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable {path}; starting with it empty: {e}")
            return empty

    # ---------- Writes ----------

    def save_videos(self, videos: list[Video]) -> bool:
        records = [VideoRecord.from_domain(v) for v in videos]
        return self._write(VIDEOS_FILE, _videos.dump_json(records, by_alias=True, indent=2))

    def save_playlists(self, playlists: list[Playlist]) -> bool:
        records = [PlaylistRecord.from_domain(p) for p in playlists]
        return self._write(PLAYLISTS_FILE, _playlists.dump_json(records, by_alias=True, indent=2))

    def save_collections(
        self, collections: list[Collection], totals: dict[str, tuple[int, int]]
    ) -> bool:
        records = [CollectionRecord.from_domain(c, totals.get(c.id, (0, 0))) for c in collections]
        return self._write(
            COLLECTIONS_FILE, _collections.dump_json(records, by_alias=True, indent=2)
        )

    def save_offsets(self, offsets: dict[str, float]) -> bool:
        return self._write(PROGRESS_FILE, _offsets.dump_json(offsets, indent=2))

    def _write(self, name: str, payload: bytes) -> bool:
        path = self.data_dir / name
        tmp_name = None
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=f".{name}.", suffix=".tmp")
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
            os.replace(tmp_name, path)
            return True
        except OSError as e:
            logger.warning(f"Failed to write {path}: {e}")
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            return False
