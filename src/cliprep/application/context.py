"""
Application context.

Owns every stateful component for the lifetime of the process: the item
store, scheduler, session manager, progress tracker, media repository and
the notice channel. Interfaces (CLI, server) build one with ``AppContext.create``
and must ``close`` it; nothing in the core reaches for a global.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from cliprep.domain.ports import MediaRepository, ProgressStore, StateStore
from cliprep.infrastructure.media import FileMediaRepository
from cliprep.infrastructure.persistence import JsonStateStore

from .config import AppConfig
from .item_store import ItemStore
from .notices import NoticeChannel
from .progress_tracker import ProgressTracker
from .scheduler import Scheduler
from .session_manager import SessionManager

logger = logging.getLogger(__name__)


class AppContext:
    def __init__(
        self,
        store: ItemStore,
        scheduler: Scheduler,
        sessions: SessionManager,
        progress: ProgressTracker,
        media: MediaRepository,
        notices: NoticeChannel,
        config: AppConfig | None = None,
    ):
        self.store = store
        self.scheduler = scheduler
        self.sessions = sessions
        self.progress = progress
        self.media = media
        self.notices = notices
        self.config = config
        self._closed = False

    @classmethod
    def create(
        cls,
        config: AppConfig,
        state_store: StateStore | None = None,
        media: MediaRepository | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> "AppContext":
        """
        Restore persisted state and wire the components together.

        Persisted state is fully loaded before the scheduler is built, so no
        scheduling call can observe a half-restored library.
        """
        state = state_store or JsonStateStore(config.data_dir)
        snapshot = state.load()

        notices = NoticeChannel()
        store = ItemStore(state, videos=snapshot.videos, collections=snapshot.collections)
        scheduler = Scheduler(
            store,
            clock=clock,
            max_new_per_day=config.max_new_per_day,
            extra_new_bonus=config.extra_new_bonus,
            max_review_per_day=config.max_review_per_day,
        )
        sessions = SessionManager(
            store, scheduler, state_store=state, notices=notices, playlists=snapshot.playlists
        )
        progress = ProgressTracker(
            state if isinstance(state, ProgressStore) else None,
            save_interval=config.progress_save_interval,
        )

        logger.debug(f"Context ready (data_dir={config.data_dir})")
        return cls(
            store=store,
            scheduler=scheduler,
            sessions=sessions,
            progress=progress,
            media=media or FileMediaRepository(config.media_dir or config.data_dir / "media"),
            notices=notices,
            config=config,
        )

    def close(self) -> None:
        if self._closed:
            return
        self.progress.flush()
        self._closed = True
        logger.debug("Context closed")

    def __enter__(self) -> "AppContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
