"""
Per-video resume offsets, independent of the session cursor.

Playback reports its position many times per second; offsets are kept in
memory and written to the ProgressStore at most once per save interval.
Clearing an offset is written immediately.
"""

import logging
import time
from collections.abc import Callable

from cliprep.domain.constants import (
    PROGRESS_SAVE_INTERVAL,
    RESUME_LEAD_IN_SECONDS,
    RESUME_TAIL_SECONDS,
)
from cliprep.domain.ports import ProgressStore

logger = logging.getLogger(__name__)


class ProgressTracker:
    def __init__(
        self,
        store: ProgressStore | None = None,
        save_interval: float = PROGRESS_SAVE_INTERVAL,
        timer: Callable[[], float] = time.monotonic,
    ):
        self._store = store
        self._save_interval = save_interval
        self._timer = timer
        self._offsets: dict[str, float] = store.load_offsets() if store else {}
        self._last_save: float | None = None
        self._dirty = False

    def record(self, video_id: str, seconds: float) -> bool:
        """
        Remember the playback position. Returns True if it was written through.

        Positions at or before the start are ignored.
        """
        if seconds <= 0:
            return False
        self._offsets[video_id] = seconds
        self._dirty = True

        now = self._timer()
        if self._last_save is None or now - self._last_save >= self._save_interval:
            return self._write(now)
        return False

    def offset(self, video_id: str) -> float | None:
        self._flush_if_due()
        return self._offsets.get(video_id)

    def resume_point(self, video_id: str, duration: float) -> float | None:
        """
        The offset to offer as "resume", or None to start from the beginning.

        Only offered past the lead-in and before the last seconds of the item.
        """
        self._flush_if_due()
        saved = self._offsets.get(video_id)
        if saved is None:
            return None
        if RESUME_LEAD_IN_SECONDS < saved < duration - RESUME_TAIL_SECONDS:
            return saved
        return None

    def clear(self, video_id: str) -> None:
        """Forget the offset (item ended, skipped, or "start over")."""
        if self._offsets.pop(video_id, None) is not None:
            self._dirty = True
            self._write(self._timer())

    def flush(self) -> None:
        if self._dirty:
            self._write(self._timer())

    def _flush_if_due(self) -> None:
        """Write a held-back offset once its save interval has passed."""
        if not self._dirty:
            return
        now = self._timer()
        if self._last_save is None or now - self._last_save >= self._save_interval:
            self._write(now)

    def _write(self, now: float) -> bool:
        self._last_save = now
        if self._store is None:
            self._dirty = False
            return True
        ok = self._store.save_offsets(dict(self._offsets))
        if ok:
            self._dirty = False
        else:
            logger.debug("Resume offsets not saved; will retry on next write")
        return ok
