"""Tests for session creation, resumption, completion and reconciliation."""

import threading
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from cliprep.application.notices import NoticeChannel
from cliprep.application.session_manager import SessionManager
from cliprep.domain.errors import (
    ExtraNotOfferedError,
    NothingScheduledError,
    SessionNotFoundError,
    VideoNotFoundError,
)


@pytest.fixture
def state():
    return MagicMock()


@pytest.fixture
def notices():
    return NoticeChannel()


@pytest.fixture
def sessions(store, scheduler, state, notices):
    return SessionManager(store, scheduler, state_store=state, notices=notices)


class TestObtainSession:
    def test_creates_new_session_from_candidates(self, sessions, add_videos, state):
        videos = add_videos(10)

        playlist = sessions.obtain_session("new")

        assert [i.video_id for i in playlist.items] == [v.id for v in videos[:4]]
        assert playlist.last_played_index == 0
        assert playlist.is_completed is False
        assert playlist.is_extra_session is False
        state.save_playlists.assert_called_once()

    def test_idempotent_for_same_key(self, sessions, add_videos):
        add_videos(10)

        first = sessions.obtain_session("new")
        second = sessions.obtain_session("new")

        assert first.id == second.id
        assert len(sessions.history()) == 1

    def test_resumes_with_cursor_unchanged(self, sessions, add_videos):
        add_videos(10)
        playlist = sessions.obtain_session("new")
        sessions.advance(playlist.id, 2)

        resumed = sessions.obtain_session("new")

        assert resumed.id == playlist.id
        assert resumed.last_played_index == 2

    def test_different_keys_coexist(self, sessions, add_videos):
        add_videos(10)
        normal = sessions.obtain_session("new")
        sessions.complete(normal.id)

        extra = sessions.obtain_session("new", extra=True)

        assert extra.id != normal.id
        assert extra.is_extra_session is True

    def test_new_session_next_day(self, sessions, clock, add_videos):
        add_videos(10)
        yesterday = sessions.obtain_session("new")

        clock.advance(days=1)
        today = sessions.obtain_session("new")

        assert today.id != yesterday.id
        # the abandoned session's videos are still new and get picked again
        assert [i.video_id for i in today.items] == [i.video_id for i in yesterday.items]

    def test_most_recent_first(self, sessions, clock, add_videos):
        add_videos(10)
        first = sessions.obtain_session("new")
        clock.advance(days=1)
        second = sessions.obtain_session("new")

        assert [p.id for p in sessions.history()] == [second.id, first.id]

    def test_nothing_scheduled(self, sessions, add_videos, state):
        add_videos(2)

        with pytest.raises(NothingScheduledError):
            sessions.obtain_session("review")
        assert sessions.history() == []
        state.save_playlists.assert_not_called()

    def test_review_session_uses_due_reviews(self, sessions, clock, add_videos):
        videos = add_videos(3)
        sessions.complete(sessions.obtain_session("new").id)
        clock.advance(days=1)

        review = sessions.obtain_session("review")

        assert review.playlist_type == "review"
        assert [i.video_id for i in review.items] == [v.id for v in videos]
        assert all(i.review_number == 2 for i in review.items)


class TestAdvance:
    def test_moves_cursor_forward(self, sessions, add_videos):
        add_videos(4)
        playlist = sessions.obtain_session("new")

        updated = sessions.advance(playlist.id, 1)

        assert updated.last_played_index == 1
        assert sessions.get_session(playlist.id).last_played_index == 1

    def test_same_index_is_noop_without_write(self, sessions, add_videos, state):
        add_videos(4)
        playlist = sessions.obtain_session("new")
        sessions.advance(playlist.id, 2)
        writes = state.save_playlists.call_count

        again = sessions.advance(playlist.id, 2)

        assert again is sessions.get_session(playlist.id)
        assert state.save_playlists.call_count == writes

    def test_never_decreases(self, sessions, add_videos):
        add_videos(4)
        playlist = sessions.obtain_session("new")
        sessions.advance(playlist.id, 3)

        assert sessions.advance(playlist.id, 1).last_played_index == 3

    def test_clamped_and_does_not_complete(self, sessions, add_videos):
        add_videos(4)
        playlist = sessions.obtain_session("new")

        updated = sessions.advance(playlist.id, 99)

        assert updated.last_played_index == 4
        assert updated.is_completed is False

    def test_unknown_session_fails_loudly(self, sessions):
        with pytest.raises(SessionNotFoundError):
            sessions.advance("nope", 1)


class TestComplete:
    def test_advances_every_item(self, sessions, store, clock, add_videos):
        add_videos(4)
        playlist = sessions.obtain_session("new")

        finished = sessions.complete(playlist.id)

        assert finished.is_completed is True
        assert finished.last_played_index == 4
        for item in playlist.items:
            video = store.get_video(item.video_id)
            assert video.status == "learning"
            assert video.review_count == 1
            assert video.first_play_date == clock.now
            assert video.next_review_date == datetime(2024, 3, 5)

    def test_twice_advances_once(self, sessions, store, add_videos):
        add_videos(4)
        playlist = sessions.obtain_session("new")

        sessions.complete(playlist.id)
        sessions.complete(playlist.id)

        assert all(v.review_count == 1 for v in store.videos)

    def test_concurrent_duplicate_ended_events(self, sessions, store, add_videos):
        add_videos(4)
        playlist = sessions.obtain_session("new")

        threads = [threading.Thread(target=sessions.complete, args=(playlist.id,)) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert all(v.review_count == 1 for v in store.videos)

    def test_completed_session_is_not_reused(self, sessions, add_videos):
        add_videos(10)
        playlist = sessions.obtain_session("new")
        sessions.complete(playlist.id)

        # quota used up: a normal session has nothing left today
        with pytest.raises(NothingScheduledError):
            sessions.obtain_session("new")

    def test_skips_deleted_videos(self, sessions, store, add_videos):
        videos = add_videos(3)
        playlist = sessions.obtain_session("new")
        store.remove_video(videos[0].id)

        sessions.complete(playlist.id)

        assert [v.review_count for v in store.videos] == [1, 1]

    def test_posts_notice(self, sessions, notices, add_videos):
        add_videos(2)
        sessions.complete(sessions.obtain_session("new").id)
        assert [n.level for n in notices.drain()] == ["success"]

    def test_unknown_session_fails_loudly(self, sessions):
        with pytest.raises(SessionNotFoundError):
            sessions.complete("nope")


class TestLifecycle:
    def test_video_reaches_completed_after_six_playthroughs(self, sessions, store, clock, add_videos):
        (video,) = add_videos(1)

        sessions.complete(sessions.obtain_session("new").id)
        v = store.get_video(video.id)
        assert (v.status, v.review_count, v.next_review_date) == ("learning", 1, datetime(2024, 3, 5))

        expected_due = [
            datetime(2024, 3, 9),  # day 1 + 4
            datetime(2024, 3, 16),  # day 5 + 7
            datetime(2024, 3, 31),  # day 12 + 15
            datetime(2024, 4, 30),  # day 27 + 30
        ]
        for count, due in enumerate(expected_due, start=2):
            clock.now = store.get_video(video.id).next_review_date.replace(hour=9)
            sessions.complete(sessions.obtain_session("review").id)
            v = store.get_video(video.id)
            assert v.review_count == count
            assert v.status == "learning"
            assert v.next_review_date == due

        clock.now = datetime(2024, 4, 30, 9)
        sessions.complete(sessions.obtain_session("review").id)
        v = store.get_video(video.id)
        assert v.status == "completed"
        assert v.review_count == 6
        assert v.next_review_date is None

        clock.advance(days=200)
        assert sessions.due_review_count() == 0

    def test_extra_session_unlocks_after_daily_quota(self, sessions, store, add_videos):
        videos = add_videos(10)
        assert sessions.new_candidate_count() == 4
        assert sessions.can_offer_extra() is False

        sessions.complete(sessions.obtain_session("new").id)

        assert sessions.can_offer_extra() is True
        extra = sessions.obtain_session("new", extra=True)
        assert [i.video_id for i in extra.items] == [v.id for v in videos[4:]]

    def test_extra_refused_while_quota_open(self, sessions, store, add_videos, state):
        add_videos(10)
        normal = sessions.obtain_session("new")
        writes = state.save_playlists.call_count

        with pytest.raises(ExtraNotOfferedError):
            sessions.obtain_session("new", extra=True)

        assert [p.id for p in sessions.history()] == [normal.id]
        assert state.save_playlists.call_count == writes

        sessions.complete(normal.id)
        assert all(v.review_count <= 1 for v in store.videos)

    def test_open_extra_session_is_resumed(self, sessions, add_videos):
        add_videos(10)
        sessions.complete(sessions.obtain_session("new").id)
        extra = sessions.obtain_session("new", extra=True)
        sessions.advance(extra.id, 2)

        assert sessions.obtain_session("new", extra=True).id == extra.id


class TestOverlappingSessions:
    def test_new_session_left_open_from_yesterday(self, sessions, store, clock, add_videos):
        add_videos(4)
        yesterday = sessions.obtain_session("new")
        clock.advance(days=1)
        today = sessions.obtain_session("new")
        assert [i.video_id for i in today.items] == [i.video_id for i in yesterday.items]

        sessions.complete(today.id)
        sessions.complete(yesterday.id)

        for video in store.videos:
            assert video.review_count == 1
            assert video.first_play_date == clock.now
            assert video.next_review_date == datetime(2024, 3, 6)

    def test_stale_review_session(self, sessions, store, clock, add_videos):
        (video,) = add_videos(1)
        sessions.complete(sessions.obtain_session("new").id)

        clock.now = datetime(2024, 3, 5, 9)
        stale = sessions.obtain_session("review")
        clock.now = datetime(2024, 3, 6, 9)
        current = sessions.obtain_session("review")
        assert current.id != stale.id

        sessions.complete(current.id)
        sessions.complete(stale.id)

        v = store.get_video(video.id)
        assert v.review_count == 2
        assert v.next_review_date == datetime(2024, 3, 10)

    def test_stale_session_still_completes(self, sessions, store, clock, add_videos):
        add_videos(2)
        yesterday = sessions.obtain_session("new")
        clock.advance(days=1)
        sessions.complete(sessions.obtain_session("new").id)

        finished = sessions.complete(yesterday.id)

        assert finished.is_completed is True
        assert finished.last_played_index == 2


class TestReconcileMissing:
    def test_view_drops_deleted_videos_but_record_keeps_them(self, sessions, store, add_videos):
        videos = add_videos(3)
        playlist = sessions.obtain_session("new")
        store.remove_video(videos[1].id)

        view = sessions.reconcile_missing(playlist.id)

        assert [p.item.video_id for p in view.items] == [videos[0].id, videos[2].id]
        assert [p.original_index for p in view.items] == [0, 2]
        assert len(sessions.get_session(playlist.id).items) == 3

    def test_empty_new_session_is_purged(self, sessions, store, add_videos):
        videos = add_videos(2)
        playlist = sessions.obtain_session("new")
        for v in videos:
            store.remove_video(v.id)

        assert sessions.reconcile_missing(playlist.id) is None
        with pytest.raises(SessionNotFoundError):
            sessions.get_session(playlist.id)

    def test_purged_session_not_resurfaced(self, sessions, store, add_videos):
        videos = add_videos(6)
        playlist = sessions.obtain_session("new")
        for item in playlist.items:
            store.remove_video(item.video_id)

        assert sessions.last_unfinished_session("new") is None

        fresh = sessions.obtain_session("new")
        assert fresh.id != playlist.id
        assert [i.video_id for i in fresh.items] == [v.id for v in videos[4:]]

    def test_obtain_replaces_empty_open_session(self, sessions, store, add_videos):
        add_videos(5)
        playlist = sessions.obtain_session("new")
        for item in playlist.items:
            store.remove_video(item.video_id)

        fresh = sessions.obtain_session("new")

        assert fresh.id != playlist.id
        assert [p.id for p in sessions.history()] == [fresh.id]

    def test_completed_sessions_kept_for_history(self, sessions, store, add_videos):
        videos = add_videos(2)
        playlist = sessions.obtain_session("new")
        sessions.complete(playlist.id)
        for v in videos:
            store.remove_video(v.id)

        view = sessions.reconcile_missing(playlist.id)

        assert view is not None
        assert view.items == []


class TestReportMissing:
    def test_skips_without_reviewing(self, sessions, store, add_videos):
        videos = add_videos(3)
        playlist = sessions.obtain_session("new")

        sessions.report_missing(videos[0].id)
        finished = sessions.complete(playlist.id)

        assert videos[0].id in finished.skipped_video_ids
        assert store.get_video(videos[0].id).status == "new"
        assert store.get_video(videos[1].id).review_count == 1

    def test_moves_cursor_past_current_item(self, sessions, add_videos):
        videos = add_videos(3)
        playlist = sessions.obtain_session("new")
        sessions.advance(playlist.id, 1)

        (changed,) = sessions.report_missing(videos[1].id)

        assert changed.last_played_index == 2
        assert changed.is_completed is False

    def test_cursor_elsewhere_is_untouched(self, sessions, add_videos):
        videos = add_videos(3)
        playlist = sessions.obtain_session("new")

        (changed,) = sessions.report_missing(videos[2].id)

        assert changed.id == playlist.id
        assert changed.last_played_index == 0

    def test_unknown_video_is_harmless(self, sessions, notices, add_videos):
        add_videos(2)
        sessions.obtain_session("new")

        assert sessions.report_missing("ghost") == []
        assert [n.level for n in notices.drain()] == ["warning"]

    def test_skipped_item_flagged_in_view(self, sessions, add_videos):
        videos = add_videos(2)
        playlist = sessions.obtain_session("new")
        sessions.report_missing(videos[0].id)

        view = sessions.reconcile_missing(playlist.id)
        assert [p.skipped for p in view.items] == [True, False]


class TestRemoveVideo:
    def test_purges_from_open_sessions(self, sessions, store, add_videos):
        videos = add_videos(4)
        playlist = sessions.obtain_session("new")
        sessions.advance(playlist.id, 2)

        sessions.remove_video(videos[0].id)

        updated = sessions.get_session(playlist.id)
        assert [i.video_id for i in updated.items] == [v.id for v in videos[1:4]]
        assert updated.items[updated.last_played_index].video_id == videos[2].id
        assert store.get_video(videos[0].id) is None

    def test_completed_sessions_untouched(self, sessions, add_videos):
        videos = add_videos(2)
        playlist = sessions.obtain_session("new")
        sessions.complete(playlist.id)

        sessions.remove_video(videos[0].id)

        assert len(sessions.get_session(playlist.id).items) == 2

    def test_unknown_video(self, sessions):
        with pytest.raises(VideoNotFoundError):
            sessions.remove_video("ghost")


class TestPreviewAndStats:
    def test_preview_of_open_session(self, sessions, add_videos):
        add_videos(10)
        playlist = sessions.obtain_session("new")
        sessions.advance(playlist.id, 2)

        preview = sessions.preview("new")

        assert preview.session_id == playlist.id
        assert preview.last_played_index == 2
        assert preview.total_count == 4
        assert preview.review_items == []

    def test_preview_without_session_is_read_only(self, sessions, add_videos, state):
        add_videos(10)

        preview = sessions.preview("new", extra=True)

        assert preview.session_id is None
        assert preview.total_count == 6
        assert preview.is_extra_session is True
        assert sessions.history() == []
        state.save_playlists.assert_not_called()

    def test_stats(self, sessions, store, clock, add_videos, collection):
        add_videos(10)
        sessions.complete(sessions.obtain_session("new").id)
        clock.advance(days=1)

        s = sessions.stats()

        assert s.total_videos == 10
        assert s.completed_videos == 0
        assert s.today_new_count == 4
        assert s.today_review_count == 4
        assert s.today_audio_review_count == 4
        assert s.today_video_review_count == 0
        assert s.active_collections == 1
        assert s.can_add_extra is False
        assert s.overall_progress == 0
        assert store.collection_totals(collection.id) == (10, 0)
        assert sessions.due_review_count() == 4
        assert sessions.new_candidate_count() == 4
