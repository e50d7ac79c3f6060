from datetime import datetime, timedelta

import pytest

from cliprep.application.item_store import ItemStore
from cliprep.application.scheduler import Scheduler
from cliprep.domain.models import Video

DAY0 = datetime(2024, 3, 4, 9, 30)


class FakeClock:
    """Settable clock; call it to get 'now'."""

    def __init__(self, start: datetime = DAY0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int = 0, hours: int = 0) -> datetime:
        self.now += timedelta(days=days, hours=hours)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return ItemStore()


@pytest.fixture
def collection(store):
    return store.create_collection("Spanish Podcast", now=DAY0)


def make_videos(collection_id: str, count: int, prefix: str = "ep") -> list[Video]:
    return [
        Video(
            id=f"{prefix}{i:02d}",
            collection_id=collection_id,
            name=f"Episode {i}",
            date_added=DAY0,
            episode_number=i,
        )
        for i in range(1, count + 1)
    ]


@pytest.fixture
def add_videos(store, collection):
    """Add ``count`` new videos (ids ep01, ep02, ...) to a collection in the store."""

    def _add(count: int, collection_id: str | None = None, prefix: str = "ep") -> list[Video]:
        return store.add_videos(make_videos(collection_id or collection.id, count, prefix))

    return _add


@pytest.fixture
def scheduler(store, clock):
    return Scheduler(store, clock=clock)


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Isolate config files and default data dirs from the real user
    monkeypatch.setenv("HOME", str(home))
    for var in ("CLIPREP_DATA_DIR", "CLIPREP_MEDIA_DIR", "CLIPREP_MAX_NEW_PER_DAY"):
        monkeypatch.delenv(var, raising=False)
    return home
