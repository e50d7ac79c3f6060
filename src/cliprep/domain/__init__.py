# Domain Package
from .errors import (
    CliprepError,
    CollectionNotFoundError,
    ExtraNotOfferedError,
    NothingScheduledError,
    SessionNotFoundError,
    VideoNotFoundError,
)
from .models import (
    Collection,
    LearningStats,
    Playlist,
    PlaylistItem,
    PlaylistPreview,
    PresentedItem,
    SessionView,
    Video,
)
from .ports import LibrarySnapshot, MediaRepository, ProgressStore, StateStore

__all__ = [
    "CliprepError",
    "CollectionNotFoundError",
    "ExtraNotOfferedError",
    "NothingScheduledError",
    "SessionNotFoundError",
    "VideoNotFoundError",
    "Collection",
    "LearningStats",
    "Playlist",
    "PlaylistItem",
    "PlaylistPreview",
    "PresentedItem",
    "SessionView",
    "Video",
    "LibrarySnapshot",
    "MediaRepository",
    "ProgressStore",
    "StateStore",
]
