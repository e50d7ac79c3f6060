"""
Daily scheduler for spaced-repetition sessions.

Selects, from the item store, which videos are new-today and which are due
for review today. Nothing here mutates state: every call is a pure function
of the store snapshot and the clock, so previews can be rendered as often
as the UI likes.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from cliprep.domain.constants import EXTRA_NEW_BONUS, MAX_NEW_PER_DAY
from cliprep.domain.models import PlaylistItem, PlaylistPreview, Video
from cliprep.domain.review import midnight, new_item, review_item, same_day

from .item_store import ItemStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class Scheduler:
    def __init__(
        self,
        store: ItemStore,
        clock: Clock = datetime.now,
        max_new_per_day: int = MAX_NEW_PER_DAY,
        extra_new_bonus: int = EXTRA_NEW_BONUS,
        max_review_per_day: int | None = None,
    ):
        """
        Args:
            store: Item store to select from.
            clock: Returns "now" in local time.
            max_new_per_day: Daily quota of first plays.
            extra_new_bonus: How many more an extra session may pull in.
            max_review_per_day: Review cap; None leaves reviews unbounded.
        """
        self._store = store
        self._clock = clock
        self.max_new_per_day = max_new_per_day
        self.extra_new_bonus = extra_new_bonus
        self.max_review_per_day = max_review_per_day

    def now(self) -> datetime:
        return self._clock()

    def due_reviews(self, now: datetime | None = None) -> list[PlaylistItem]:
        """
        Videos due for review today, most overdue first.

        A video is due when it is not completed, belongs to an active
        collection, and its next review date is on or before today.
        """
        now = now or self._clock()
        today = midnight(now)

        due: list[Video] = [
            video
            for video in self._store.active_videos()
            if video.status != "completed"
            and video.next_review_date is not None
            and midnight(video.next_review_date) <= today
        ]
        # sort() is stable, so ties keep store order
        due.sort(key=lambda v: v.next_review_date)

        if self.max_review_per_day is not None:
            due = due[: self.max_review_per_day]

        logger.debug(f"{len(due)} reviews due for {today:%Y-%m-%d}")

        return [review_item(video, now) for video in due]

    def new_played_today(self, now: datetime | None = None) -> int:
        """Number of videos whose first play happened today."""
        now = now or self._clock()
        return sum(
            1
            for video in self._store.videos
            if video.first_play_date is not None and same_day(video.first_play_date, now)
        )

    def new_candidates(self, extra: bool = False, now: datetime | None = None) -> list[PlaylistItem]:
        """
        New videos to introduce, in store order.

        A normal selection is limited to what is left of today's quota; an
        extra selection may take up to ``max_new_per_day + extra_new_bonus``.
        """
        if extra:
            limit = self.max_new_per_day + self.extra_new_bonus
        else:
            limit = max(0, self.max_new_per_day - self.new_played_today(now))

        fresh = [v for v in self._store.active_videos() if v.status == "new"]
        return [new_item(video) for video in fresh[:limit]]

    def has_new_videos(self) -> bool:
        return any(v.status == "new" for v in self._store.active_videos())

    def can_offer_extra(self, now: datetime | None = None) -> bool:
        """An extra session is offered only once today's new quota is used up."""
        return not self.new_candidates(False, now) and self.has_new_videos()

    def preview(self, extra: bool = False, now: datetime | None = None) -> PlaylistPreview:
        now = now or self._clock()
        return PlaylistPreview(
            new_items=self.new_candidates(extra, now),
            review_items=self.due_reviews(now),
            is_extra_session=extra,
        )
