"""
Session manager: creation, resumption and completion of daily playlists.

This is the only component that mutates review progress. All public entry
points run under a single re-entrant lock, so calls coming from the server's
worker threads are applied one at a time in the order they arrive.

Idempotency rules:
- At most one incomplete playlist exists per (day, type, extra) key;
  ``obtain_session`` returns it instead of creating a second one.
- ``complete`` is one-shot: the stored ``is_completed`` flag guards the
  review transition, so a duplicate "ended" event cannot apply it twice.
"""

import logging
import threading
from collections.abc import Iterable
from datetime import datetime

from cliprep.domain.constants import REVIEW_INTERVALS
from cliprep.domain.errors import (
    ExtraNotOfferedError,
    NothingScheduledError,
    SessionNotFoundError,
)
from cliprep.domain.models import (
    LearningStats,
    Playlist,
    PlaylistItem,
    PlaylistPreview,
    PlaylistType,
    PresentedItem,
    SessionView,
    Video,
    with_completion,
    with_cursor,
    with_skipped,
    without_video,
)
from cliprep.domain.ports import StateStore
from cliprep.domain.review import advance_review, midnight, same_day

from .id_service import generate_id
from .item_store import ItemStore
from .notices import NoticeChannel
from .scheduler import Scheduler

logger = logging.getLogger(__name__)


class SessionManager:
    def __init__(
        self,
        store: ItemStore,
        scheduler: Scheduler,
        state_store: StateStore | None = None,
        notices: NoticeChannel | None = None,
        playlists: Iterable[Playlist] = (),
        intervals: tuple[int, ...] = REVIEW_INTERVALS,
    ):
        self._store = store
        self._scheduler = scheduler
        self._state = state_store
        self._notices = notices or NoticeChannel()
        self._intervals = intervals
        # Most recent first; order is for history display only.
        self._playlists: list[Playlist] = list(playlists)
        self._lock = threading.RLock()

    # ---------- Lookup ----------

    def _locate(self, session_id: str) -> tuple[int, Playlist]:
        for i, playlist in enumerate(self._playlists):
            if playlist.id == session_id:
                return i, playlist
        raise SessionNotFoundError(session_id)

    def get_session(self, session_id: str) -> Playlist:
        with self._lock:
            return self._locate(session_id)[1]

    def history(self) -> list[Playlist]:
        with self._lock:
            return list(self._playlists)

    def _find_open(self, playlist_type: PlaylistType, extra: bool) -> Playlist | None:
        now = self._scheduler.now()
        for playlist in self._playlists:
            if (
                not playlist.is_completed
                and playlist.playlist_type == playlist_type
                and playlist.is_extra_session == extra
                and same_day(playlist.date, now)
            ):
                return playlist
        return None

    def _present(self, playlist: Playlist) -> list[PresentedItem]:
        presented = []
        for index, item in enumerate(playlist.items):
            video = self._store.get_video(item.video_id)
            if video is None:
                continue
            presented.append(
                PresentedItem(
                    original_index=index,
                    item=item,
                    video=video,
                    skipped=item.video_id in playlist.skipped_video_ids,
                )
            )
        return presented

    # ---------- Session lifecycle ----------

    def obtain_session(self, playlist_type: PlaylistType, extra: bool = False) -> Playlist:
        """
        Return today's open session for (type, extra), creating it if needed.

        Raises:
            NothingScheduledError: No open session exists and the scheduler
                has nothing to put in a new one.
            ExtraNotOfferedError: An extra new session was requested while
                today's regular new quota is still open.
        """
        with self._lock:
            existing = self._find_open(playlist_type, extra)
            if existing is not None:
                if self._present(existing):
                    logger.debug(f"Resuming session {existing.id} at {existing.last_played_index}")
                    return existing
                self._purge(existing.id)

            now = self._scheduler.now()
            if playlist_type == "new" and extra and not self._scheduler.can_offer_extra(now):
                raise ExtraNotOfferedError()

            if playlist_type == "new":
                items = self._scheduler.new_candidates(extra, now)
            else:
                items = self._scheduler.due_reviews(now)

            if not items:
                raise NothingScheduledError(playlist_type, extra)

            playlist = Playlist(
                id=generate_id(),
                date=now,
                playlist_type=playlist_type,
                items=tuple(items),
                is_extra_session=extra,
            )
            self._playlists.insert(0, playlist)
            logger.info(
                f"Created {playlist_type} session {playlist.id} with {len(items)} items"
                + (" (extra)" if extra else "")
            )
            self._persist()
            return playlist

    def advance(self, session_id: str, index: int) -> Playlist:
        """
        Move the resume cursor forward to ``index``.

        Equal or lower indexes are ignored (no write), as are calls on a
        completed session. The cursor is clamped to the item count and this
        never completes the session.
        """
        with self._lock:
            i, playlist = self._locate(session_id)
            if playlist.is_completed:
                return playlist

            target = min(index, len(playlist.items))
            if target <= playlist.last_played_index:
                return playlist

            updated = with_cursor(playlist, target)
            self._playlists[i] = updated
            self._persist()
            return updated

    def complete(self, session_id: str) -> Playlist:
        """
        Finish a session and advance the review state of every played item.

        Items whose video was removed or whose media was reported missing are
        not advanced. Neither are items whose video has moved on since the
        session was built (a new video already played, a review no longer
        due), so overlapping sessions apply one transition per video.
        Calling this again on a finished session is a no-op.
        """
        with self._lock:
            i, playlist = self._locate(session_id)
            if playlist.is_completed:
                logger.debug(f"Session {session_id} already completed; ignoring")
                return playlist

            finished = with_completion(playlist)
            self._playlists[i] = finished

            now = self._scheduler.now()
            advanced: list[Video] = []
            seen: set[str] = set()
            for item in playlist.items:
                if item.video_id in seen or item.video_id in playlist.skipped_video_ids:
                    continue
                seen.add(item.video_id)
                video = self._store.get_video(item.video_id)
                if video is None:
                    logger.warning(f"Session {session_id}: video {item.video_id} no longer exists")
                    continue
                if not self._still_scheduled(item, video, now):
                    logger.warning(
                        f"Session {session_id}: video {item.video_id} was already played "
                        "elsewhere; not advancing it again"
                    )
                    continue
                advanced.append(advance_review(video, now, self._intervals))

            self._store.replace_videos(advanced)
            self._persist()

            logger.info(f"Completed session {session_id}: {len(advanced)} videos advanced")
            self._notices.post(
                "Extra session complete!" if playlist.is_extra_session else "Session complete!",
                "success",
            )
            return finished

    @staticmethod
    def _still_scheduled(item: PlaylistItem, video: Video, now: datetime) -> bool:
        """Whether the video is still in the state the item was scheduled for."""
        if item.review_type == "new":
            return video.status == "new"
        return (
            video.status != "completed"
            and video.next_review_date is not None
            and midnight(video.next_review_date) <= midnight(now)
        )

    def reconcile_missing(self, session_id: str) -> SessionView | None:
        """
        Build the view presented to the player, dropping items whose video is gone.

        The playlist record itself keeps every item for history. An incomplete
        playlist with nothing left to present is purged and None is returned.
        """
        with self._lock:
            _, playlist = self._locate(session_id)
            presented = self._present(playlist)
            if not presented and not playlist.is_completed:
                self._purge(session_id)
                self._notices.post("All videos in the unfinished session were deleted.", "warning")
                return None
            return SessionView(playlist=playlist, items=presented)

    def report_missing(self, video_id: str) -> list[Playlist]:
        """
        Record that the media for ``video_id`` could not be loaded.

        Every open session containing the video marks it skipped; where the
        cursor sits on it, the cursor moves past it. The video is never
        marked reviewed. Returns the sessions that changed.
        """
        with self._lock:
            logger.warning(f"Media missing for video {video_id}; skipping")
            changed: list[Playlist] = []
            for i, playlist in enumerate(self._playlists):
                if playlist.is_completed:
                    continue
                if not any(item.video_id == video_id for item in playlist.items):
                    continue

                updated = with_skipped(playlist, video_id)
                cursor = updated.last_played_index
                while (
                    cursor < len(updated.items)
                    and updated.items[cursor].video_id in updated.skipped_video_ids
                ):
                    cursor += 1
                if cursor != updated.last_played_index:
                    updated = with_cursor(updated, cursor)

                if updated != playlist:
                    self._playlists[i] = updated
                    changed.append(updated)

            if changed:
                self._persist()
            self._notices.post("Media file missing, skipped.", "warning")
            return changed

    def remove_video(self, video_id: str) -> Video:
        """Delete a video from the store and from every open session."""
        with self._lock:
            removed = self._store.remove_video(video_id)
            dirty = False
            for i, playlist in enumerate(self._playlists):
                if playlist.is_completed:
                    continue
                if any(item.video_id == video_id for item in playlist.items):
                    self._playlists[i] = without_video(playlist, video_id)
                    dirty = True
            if dirty:
                self._persist()
            return removed

    def _purge(self, session_id: str) -> None:
        self._playlists = [p for p in self._playlists if p.id != session_id]
        logger.info(f"Purged empty session {session_id}")
        self._persist()

    # ---------- UI-facing queries ----------

    def last_unfinished_session(self, playlist_type: PlaylistType = "new") -> SessionView | None:
        """Today's open session of the given type, reconciled ("continue last session")."""
        with self._lock:
            now = self._scheduler.now()
            for playlist in self._playlists:
                if (
                    not playlist.is_completed
                    and playlist.playlist_type == playlist_type
                    and same_day(playlist.date, now)
                ):
                    view = self.reconcile_missing(playlist.id)
                    if view is not None:
                        return view
            return None

    def preview(self, playlist_type: PlaylistType, extra: bool = False) -> PlaylistPreview:
        """
        Describe what ``obtain_session(playlist_type, extra)`` would hand out.

        An open session for the key is shown as it stands (with its cursor);
        otherwise the scheduler's selection is shown. Nothing is mutated.
        """
        with self._lock:
            existing = self._find_open(playlist_type, extra)
            if existing is not None:
                items = [p.item for p in self._present(existing)]
                if items:
                    return PlaylistPreview(
                        new_items=items if playlist_type == "new" else [],
                        review_items=items if playlist_type == "review" else [],
                        is_extra_session=existing.is_extra_session,
                        last_played_index=existing.last_played_index,
                        session_id=existing.id,
                    )

            base = self._scheduler.preview(extra)
            return PlaylistPreview(
                new_items=base.new_items if playlist_type == "new" else [],
                review_items=base.review_items if playlist_type == "review" else [],
                is_extra_session=extra,
            )

    def due_review_count(self) -> int:
        with self._lock:
            return len(self._scheduler.due_reviews())

    def new_candidate_count(self) -> int:
        with self._lock:
            return len(self._scheduler.new_candidates(False))

    def can_offer_extra(self) -> bool:
        with self._lock:
            return self._scheduler.can_offer_extra()

    def stats(self) -> LearningStats:
        with self._lock:
            active = self._store.active_videos()
            total = len(active)
            completed = sum(1 for v in active if v.status == "completed")
            reviews = self._scheduler.due_reviews()
            video_reviews = sum(1 for item in reviews if item.is_recommended_for_video)

            return LearningStats(
                total_videos=total,
                completed_videos=completed,
                today_new_count=len(self._scheduler.new_candidates(False)),
                today_review_count=len(reviews),
                overall_progress=int(completed * 100 / total + 0.5) if total else 0,
                active_collections=len(self._store.active_collection_ids()),
                can_add_extra=self._scheduler.can_offer_extra(),
                today_video_review_count=video_reviews,
                today_audio_review_count=len(reviews) - video_reviews,
            )

    # ---------- Persistence mirror ----------

    def _persist(self) -> None:
        if self._state is not None:
            self._state.save_playlists(self._playlists)
