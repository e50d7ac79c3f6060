"""
Ports (interfaces) for storage.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

from .models import Collection, Playlist, Video


class MediaRepository(ABC):
    """
    Port for binary media storage.

    Implementations:
        - FileMediaRepository: one file per video id under a media directory.
    """

    @abstractmethod
    async def put(self, media_id: str, data: bytes, filename: str = "") -> Path:
        """
        Store the content for ``media_id``.

        Returns:
            A playable reference, valid until ``delete`` is called.
        """
        pass

    @abstractmethod
    async def get(self, media_id: str) -> Path | None:
        """Return the playable reference for ``media_id``, or None if absent."""
        pass

    @abstractmethod
    async def delete(self, media_id: str) -> bool:
        """Remove the content. Returns False if there was nothing to remove."""
        pass


@dataclass
class LibrarySnapshot:
    """Everything restored from persisted state at startup."""

    videos: list[Video] = field(default_factory=list)
    playlists: list[Playlist] = field(default_factory=list)
    collections: list[Collection] = field(default_factory=list)


class StateStore(ABC):
    """
    Port for the persisted mirror of in-memory state.

    Writes are best-effort: implementations report failure by returning
    False and must never raise for I/O errors.
    """

    @abstractmethod
    def load(self) -> LibrarySnapshot:
        pass

    @abstractmethod
    def save_videos(self, videos: list[Video]) -> bool:
        pass

    @abstractmethod
    def save_playlists(self, playlists: list[Playlist]) -> bool:
        pass

    @abstractmethod
    def save_collections(
        self, collections: list[Collection], totals: dict[str, tuple[int, int]]
    ) -> bool:
        """
        Args:
            totals: collection id -> (total_videos, completed_videos), derived
                by the caller and written alongside each record.
        """
        pass


class ProgressStore(ABC):
    """Port for resume offsets (video id -> seconds)."""

    @abstractmethod
    def load_offsets(self) -> dict[str, float]:
        pass

    @abstractmethod
    def save_offsets(self, offsets: dict[str, float]) -> bool:
        pass
