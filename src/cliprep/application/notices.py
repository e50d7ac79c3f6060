"""Queue of transient messages for the UI (skipped media, finished sessions)."""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

logger = logging.getLogger(__name__)

NoticeLevel = Literal["info", "success", "warning", "error"]


@dataclass(frozen=True)
class Notice:
    message: str
    level: NoticeLevel = "info"
    created: datetime = field(default_factory=datetime.now)


class NoticeChannel:
    """
    Bounded FIFO of notices, owned by the application context.

    Old notices are dropped once ``maxlen`` is reached; nothing here renders.
    """

    def __init__(self, maxlen: int = 50):
        self._queue: deque[Notice] = deque(maxlen=maxlen)

    def post(self, message: str, level: NoticeLevel = "info") -> Notice:
        notice = Notice(message=message, level=level)
        self._queue.append(notice)
        logger.debug(f"Notice [{level}]: {message}")
        return notice

    def drain(self) -> list[Notice]:
        notices = list(self._queue)
        self._queue.clear()
        return notices

    def __len__(self) -> int:
        return len(self._queue)
