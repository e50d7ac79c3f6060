"""
In-memory item store for videos and collections.

The store is the source of truth for the running process. Every mutation
is mirrored to the StateStore right away; a failed write is logged by the
adapter and never undoes the in-memory change.
"""

import logging
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime

from cliprep.domain.errors import CollectionNotFoundError, VideoNotFoundError
from cliprep.domain.models import Collection, Video
from cliprep.domain.ports import StateStore

from .id_service import generate_id, pick_collection_color

logger = logging.getLogger(__name__)


class ItemStore:
    def __init__(
        self,
        state_store: StateStore | None = None,
        videos: Iterable[Video] = (),
        collections: Iterable[Collection] = (),
    ):
        self._state = state_store
        # dicts keep insertion order, which is the scheduler's "store order"
        self._videos: dict[str, Video] = {v.id: v for v in videos}
        self._collections: dict[str, Collection] = {c.id: c for c in collections}

    # ---------- Reads ----------

    @property
    def videos(self) -> list[Video]:
        return list(self._videos.values())

    @property
    def collections(self) -> list[Collection]:
        return list(self._collections.values())

    def get_video(self, video_id: str) -> Video | None:
        return self._videos.get(video_id)

    def has_video(self, video_id: str) -> bool:
        return video_id in self._videos

    def require_video(self, video_id: str) -> Video:
        video = self._videos.get(video_id)
        if video is None:
            raise VideoNotFoundError(video_id)
        return video

    def get_collection(self, collection_id: str) -> Collection | None:
        return self._collections.get(collection_id)

    def require_collection(self, collection_id: str) -> Collection:
        collection = self._collections.get(collection_id)
        if collection is None:
            raise CollectionNotFoundError(collection_id)
        return collection

    def active_collection_ids(self) -> set[str]:
        return {c.id for c in self._collections.values() if c.is_active}

    def active_videos(self) -> list[Video]:
        active = self.active_collection_ids()
        return [v for v in self._videos.values() if v.collection_id in active]

    def videos_in(self, collection_id: str) -> list[Video]:
        return [v for v in self._videos.values() if v.collection_id == collection_id]

    def collection_totals(self, collection_id: str) -> tuple[int, int]:
        """Return (total_videos, completed_videos), derived from current membership."""
        members = self.videos_in(collection_id)
        return len(members), sum(1 for v in members if v.status == "completed")

    # ---------- Collection mutations ----------

    def create_collection(
        self, name: str, description: str | None = None, now: datetime | None = None
    ) -> Collection:
        collection = Collection(
            id=generate_id(),
            name=name,
            description=description,
            date_created=now or datetime.now(),
            is_active=True,
            color=pick_collection_color(),
        )
        self._collections[collection.id] = collection
        logger.info(f"Created collection {collection.name!r} ({collection.id})")
        self._persist_collections()
        return collection

    def update_collection(
        self, collection_id: str, name: str, description: str | None = None
    ) -> Collection:
        collection = replace(
            self.require_collection(collection_id), name=name, description=description
        )
        self._collections[collection_id] = collection
        self._persist_collections()
        return collection

    def toggle_collection(self, collection_id: str) -> Collection:
        current = self.require_collection(collection_id)
        collection = replace(current, is_active=not current.is_active)
        self._collections[collection_id] = collection
        logger.info(
            f"Collection {collection.name!r} is now {'active' if collection.is_active else 'inactive'}"
        )
        self._persist_collections()
        return collection

    def delete_collection(self, collection_id: str) -> list[Video]:
        """Remove a collection and all of its videos. Returns the removed videos."""
        self.require_collection(collection_id)
        removed = self.videos_in(collection_id)
        for video in removed:
            del self._videos[video.id]
        del self._collections[collection_id]
        logger.info(f"Deleted collection {collection_id} with {len(removed)} videos")
        self._persist_videos()
        self._persist_collections()
        return removed

    # ---------- Video mutations ----------

    def add_videos(self, videos: Iterable[Video]) -> list[Video]:
        added = []
        for video in videos:
            self.require_collection(video.collection_id)
            self._videos[video.id] = video
            added.append(video)
        if added:
            self._persist_videos()
            self._persist_collections()
        return added

    def replace_videos(self, videos: Iterable[Video]) -> None:
        """Store updated versions of existing videos (review transitions)."""
        changed = False
        for video in videos:
            if video.id not in self._videos:
                raise VideoNotFoundError(video.id)
            if self._videos[video.id] != video:
                self._videos[video.id] = video
                changed = True
        if changed:
            self._persist_videos()
            self._persist_collections()

    def remove_video(self, video_id: str) -> Video:
        video = self._videos.pop(video_id, None)
        if video is None:
            raise VideoNotFoundError(video_id)
        logger.info(f"Removed video {video.name!r} ({video_id})")
        self._persist_videos()
        self._persist_collections()
        return video

    # ---------- Persistence mirror ----------

    def _persist_videos(self) -> None:
        if self._state is not None:
            self._state.save_videos(self.videos)

    def _persist_collections(self) -> None:
        if self._state is not None:
            totals = {c.id: self.collection_totals(c.id) for c in self._collections.values()}
            self._state.save_collections(self.collections, totals)
