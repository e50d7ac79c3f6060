"""
Domain models for the review library and daily sessions.

These are pure, immutable data structures with no I/O. State changes are
expressed as functions returning a new record (see ``review.py`` and the
``with_*`` helpers below).
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Literal

VideoStatus = Literal["new", "learning", "completed"]
ReviewType = Literal["new", "review"]
PlaylistType = Literal["new", "review"]
MediaType = Literal["audio", "video"]


@dataclass(frozen=True)
class Video:
    """
    A single media item in the library.

    Attributes:
        id: ULID generated at ingestion.
        collection_id: Owning collection.
        review_count: Completed playthroughs (0 until first play).
        first_play_date: Set once, on the first successful play.
        next_review_date: Local midnight when next due; None once completed.
    """

    id: str
    collection_id: str
    name: str
    date_added: datetime
    status: VideoStatus = "new"
    review_count: int = 0
    first_play_date: datetime | None = None
    next_review_date: datetime | None = None
    media_type: MediaType = "video"
    file_size: int = 0
    mime_type: str = ""
    episode_number: int = 1


@dataclass(frozen=True)
class Collection:
    """
    A named, user-created grouping of videos.

    Only videos in active collections are considered by the scheduler.
    Totals are derived from the video set on read (``ItemStore.collection_totals``).
    """

    id: str
    name: str
    date_created: datetime
    description: str | None = None
    is_active: bool = True
    color: str = "#3B82F6"


@dataclass(frozen=True)
class PlaylistItem:
    """A scheduled appearance of a video inside a session."""

    video_id: str
    review_type: ReviewType
    review_number: int
    days_since_first_play: int | None = None  # review items only
    is_recommended_for_video: bool = False


@dataclass(frozen=True)
class Playlist:
    """
    One day's ordered batch of items of a single type.

    Attributes:
        date: Creation time; its day is part of the idempotency key.
        last_played_index: 0-based resume cursor.
        skipped_video_ids: Videos reported missing during the session.
            They are never review-advanced on completion.
    """

    id: str
    date: datetime
    playlist_type: PlaylistType
    items: tuple[PlaylistItem, ...] = ()
    is_extra_session: bool = False
    last_played_index: int = 0
    is_completed: bool = False
    skipped_video_ids: frozenset[str] = frozenset()


@dataclass(frozen=True)
class PresentedItem:
    """A playlist item resolved against the item store for presentation."""

    original_index: int
    item: PlaylistItem
    video: Video
    skipped: bool = False  # media reported missing during this session


@dataclass(frozen=True)
class SessionView:
    """What the player is shown for a session: only the items that still resolve."""

    playlist: Playlist
    items: list[PresentedItem] = field(default_factory=list)

    @property
    def last_played_index(self) -> int:
        return self.playlist.last_played_index


@dataclass(frozen=True)
class PlaylistPreview:
    """Read-only description of what a session would contain."""

    new_items: list[PlaylistItem]
    review_items: list[PlaylistItem]
    is_extra_session: bool = False
    last_played_index: int = 0
    session_id: str | None = None  # set when previewing an open session

    @property
    def total_count(self) -> int:
        return len(self.new_items) + len(self.review_items)

    @property
    def items(self) -> list[PlaylistItem]:
        return self.new_items + self.review_items


@dataclass(frozen=True)
class LearningStats:
    total_videos: int
    completed_videos: int
    today_new_count: int
    today_review_count: int
    overall_progress: int  # percent, rounded
    active_collections: int
    can_add_extra: bool
    today_video_review_count: int = 0
    today_audio_review_count: int = 0


# ---------- Update helpers ----------


def with_cursor(playlist: Playlist, index: int) -> Playlist:
    return replace(playlist, last_played_index=index)


def with_completion(playlist: Playlist) -> Playlist:
    return replace(playlist, last_played_index=len(playlist.items), is_completed=True)


def with_skipped(playlist: Playlist, video_id: str) -> Playlist:
    return replace(playlist, skipped_video_ids=playlist.skipped_video_ids | {video_id})


def without_video(playlist: Playlist, video_id: str) -> Playlist:
    """Drop every item for ``video_id``, keeping the cursor on the same next item."""
    removed_before_cursor = sum(
        1
        for i, item in enumerate(playlist.items)
        if item.video_id == video_id and i < playlist.last_played_index
    )
    items = tuple(item for item in playlist.items if item.video_id != video_id)
    return replace(
        playlist,
        items=items,
        last_played_index=min(playlist.last_played_index - removed_before_cursor, len(items)),
    )
