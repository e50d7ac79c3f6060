"""
Persisted record shapes and their mapping to domain models.

Records are flat camelCase JSON objects. Dates are written as ISO-8601;
on read, epoch numbers are accepted too and aware datetimes are converted
to naive local time, which is what the scheduler compares against.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from cliprep.domain.models import Collection, Playlist, PlaylistItem, Video


def _to_local_naive(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


class _Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class VideoRecord(_Record):
    id: str
    collection_id: str
    name: str = ""
    date_added: datetime
    status: Literal["new", "learning", "completed"] = "new"
    review_count: int = Field(default=0, ge=0)
    first_play_date: datetime | None = None
    next_review_date: datetime | None = None
    media_type: Literal["audio", "video"] = "video"
    file_size: int = 0
    mime_type: str = ""
    episode_number: int = 1

    @field_validator("date_added", "first_play_date", "next_review_date")
    @classmethod
    def local_time(cls, v: datetime | None) -> datetime | None:
        return _to_local_naive(v)

    @classmethod
    def from_domain(cls, video: Video) -> "VideoRecord":
        return cls(
            id=video.id,
            collection_id=video.collection_id,
            name=video.name,
            date_added=video.date_added,
            status=video.status,
            review_count=video.review_count,
            first_play_date=video.first_play_date,
            next_review_date=video.next_review_date,
            media_type=video.media_type,
            file_size=video.file_size,
            mime_type=video.mime_type,
            episode_number=video.episode_number,
        )

    def to_domain(self) -> Video:
        return Video(
            id=self.id,
            collection_id=self.collection_id,
            name=self.name,
            date_added=self.date_added,
            status=self.status,
            review_count=self.review_count,
            first_play_date=self.first_play_date,
            next_review_date=self.next_review_date,
            media_type=self.media_type,
            file_size=self.file_size,
            mime_type=self.mime_type,
            episode_number=self.episode_number,
        )


class CollectionRecord(_Record):
    id: str
    name: str
    description: str | None = None
    date_created: datetime
    is_active: bool = True
    color: str = "#3B82F6"
    # Written for external readers; recomputed from videos on load.
    total_videos: int = 0
    completed_videos: int = 0

    @field_validator("date_created")
    @classmethod
    def local_time(cls, v: datetime | None) -> datetime | None:
        return _to_local_naive(v)

    @classmethod
    def from_domain(cls, collection: Collection, totals: tuple[int, int]) -> "CollectionRecord":
        return cls(
            id=collection.id,
            name=collection.name,
            description=collection.description,
            date_created=collection.date_created,
            is_active=collection.is_active,
            color=collection.color,
            total_videos=totals[0],
            completed_videos=totals[1],
        )

    def to_domain(self) -> Collection:
        return Collection(
            id=self.id,
            name=self.name,
            description=self.description,
            date_created=self.date_created,
            is_active=self.is_active,
            color=self.color,
        )


class PlaylistItemRecord(_Record):
    video_id: str
    review_type: Literal["new", "review"]
    review_number: int = 1
    days_since_first_play: int | None = None
    is_recommended_for_video: bool = False


class PlaylistRecord(_Record):
    id: str
    date: datetime
    playlist_type: Literal["new", "review"]
    items: list[PlaylistItemRecord] = []
    is_extra_session: bool = False
    last_played_index: int = Field(default=0, ge=0)
    is_completed: bool = False
    skipped_video_ids: list[str] = []

    @field_validator("date")
    @classmethod
    def local_time(cls, v: datetime | None) -> datetime | None:
        return _to_local_naive(v)

    @classmethod
    def from_domain(cls, playlist: Playlist) -> "PlaylistRecord":
        return cls(
            id=playlist.id,
            date=playlist.date,
            playlist_type=playlist.playlist_type,
            items=[
                PlaylistItemRecord(
                    video_id=item.video_id,
                    review_type=item.review_type,
                    review_number=item.review_number,
                    days_since_first_play=item.days_since_first_play,
                    is_recommended_for_video=item.is_recommended_for_video,
                )
                for item in playlist.items
            ],
            is_extra_session=playlist.is_extra_session,
            last_played_index=playlist.last_played_index,
            is_completed=playlist.is_completed,
            skipped_video_ids=sorted(playlist.skipped_video_ids),
        )

    def to_domain(self) -> Playlist:
        return Playlist(
            id=self.id,
            date=self.date,
            playlist_type=self.playlist_type,
            items=tuple(
                PlaylistItem(
                    video_id=item.video_id,
                    review_type=item.review_type,
                    review_number=item.review_number,
                    days_since_first_play=item.days_since_first_play,
                    is_recommended_for_video=item.is_recommended_for_video,
                )
                for item in self.items
            ),
            is_extra_session=self.is_extra_session,
            last_played_index=min(self.last_played_index, len(self.items)),
            is_completed=self.is_completed,
            skipped_video_ids=frozenset(self.skipped_video_ids),
        )
