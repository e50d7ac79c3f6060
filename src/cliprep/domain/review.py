"""
Review-state transition and calendar helpers.

Pure computation: no I/O, no clock access. Callers pass ``now`` explicitly.
"""

from dataclasses import replace
from datetime import datetime, timedelta

from cliprep.domain.constants import REVIEW_INTERVALS, VIDEO_RECOMMENDED_REVIEW_COUNTS
from cliprep.domain.models import PlaylistItem, Video


def midnight(moment: datetime) -> datetime:
    """Truncate to local midnight of the same day."""
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def same_day(a: datetime, b: datetime) -> bool:
    return midnight(a) == midnight(b)


def next_review_after(now: datetime, days: int) -> datetime:
    return midnight(now + timedelta(days=days))


def advance_review(
    video: Video,
    now: datetime,
    intervals: tuple[int, ...] = REVIEW_INTERVALS,
) -> Video:
    """
    Apply one successful playthrough to a video.

    new       -> learning, review_count=1, due midnight(now + intervals[0])
    learning  -> review_count+1, due midnight(now + intervals[k]) or completed
    completed -> unchanged (terminal)
    """
    if video.status == "completed":
        return video

    if video.status == "new" or video.first_play_date is None:
        return replace(
            video,
            status="learning",
            review_count=1,
            first_play_date=now,
            next_review_date=next_review_after(now, intervals[0]),
        )

    k = video.review_count
    if k + 1 < len(intervals):
        return replace(
            video,
            review_count=k + 1,
            next_review_date=next_review_after(now, intervals[k]),
        )

    return replace(video, review_count=k + 1, status="completed", next_review_date=None)


def days_since(start: datetime, now: datetime) -> int:
    """Whole days elapsed between two moments (floor)."""
    return (now - start) // timedelta(days=1)


def new_item(video: Video) -> PlaylistItem:
    return PlaylistItem(video_id=video.id, review_type="new", review_number=1)


def review_item(video: Video, now: datetime) -> PlaylistItem:
    return PlaylistItem(
        video_id=video.id,
        review_type="review",
        review_number=video.review_count + 1,
        days_since_first_play=days_since(video.first_play_date, now) if video.first_play_date else 0,
        is_recommended_for_video=video.review_count in VIDEO_RECOMMENDED_REVIEW_COUNTS,
    )
