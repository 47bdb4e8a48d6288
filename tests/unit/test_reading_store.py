from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from papercapsule.domain.paper import Paper, TopicCategory
from papercapsule.domain.reading import DailyBucket, HighlightColor
from papercapsule.errors import ReadingStoreError
from papercapsule.infrastructure.stores.reading_store import ReadingEventStore


@pytest.fixture
def store(db_url, clock):
    return ReadingEventStore(db_url, clock=clock)


def test_initialization_is_lazy_and_idempotent(store):
    assert store.initialized is False

    store.start_session("oa-1", "Title", TopicCategory.PHYSICS)

    assert store.initialized is True
    provider = store.initialize()
    assert store.initialize() is provider


def test_start_session_creates_open_session(store, clock):
    session_id = store.start_session("oa-1", "Title", "Physics")

    session = store.get_session(session_id)
    assert session_id.startswith("session-")
    assert session.is_open
    assert session.start_time == clock.now
    assert session.duration_seconds == 0
    assert session.category is TopicCategory.PHYSICS


@pytest.mark.parametrize("scroll, completed", [(79, False), (80, True), (100, True)])
def test_completion_threshold(store, scroll, completed):
    session_id = store.start_session("oa-1", "Title", TopicCategory.MEDICINE)

    ended = store.end_session(session_id, scroll, 300)

    assert ended.completed is completed
    assert store.get_session(session_id).completed is completed


def test_end_session_is_a_single_terminal_write(store, clock):
    session_id = store.start_session("oa-1", "Title", TopicCategory.MEDICINE)
    clock.advance(60_000)

    ended = store.end_session(session_id, 85, 120)
    again = store.end_session(session_id, 10, 999)

    assert ended.end_time == clock.now
    assert ended.duration_seconds == 120
    assert again is None
    stored = store.get_session(session_id)
    assert stored.duration_seconds == 120
    assert stored.scroll_percentage == 85


def test_end_unknown_session_is_noop(store):
    assert store.end_session("session-missing", 90, 60) is None


def test_end_session_notifies_listener(db_url, clock):
    listener = MagicMock()
    store = ReadingEventStore(db_url, clock=clock, on_session_end=listener)
    session_id = store.start_session("oa-1", "Title", TopicCategory.LAW)

    ended = store.end_session(session_id, 90, 60)

    listener.assert_called_once_with(ended)


def test_get_sessions_skips_zero_duration_and_orders_newest_first(store, clock):
    first = store.start_session("oa-1", "First", TopicCategory.LAW)
    store.end_session(first, 90, 60)
    clock.advance(1000)
    store.start_session("oa-2", "Open", TopicCategory.LAW)
    clock.advance(1000)
    third = store.start_session("oa-3", "Third", TopicCategory.LAW)
    store.end_session(third, 10, 30)

    sessions = store.get_sessions()

    assert [s.id for s in sessions] == [third, first]
    assert [s.id for s in store.get_sessions(limit=1)] == [third]


def test_notes_crud(store, clock):
    older = store.add_note("oa-1", "first thought")
    clock.advance(1000)
    newer = store.add_note("oa-1", "second thought")
    store.add_note("oa-2", "other paper")

    assert [n.id for n in store.get_notes("oa-1")] == [newer.id, older.id]

    clock.advance(5000)
    updated = store.update_note(older.id, "revised")
    assert updated.content == "revised"
    assert updated.updated_at == clock.now
    assert updated.created_at == older.created_at

    assert store.delete_note(newer.id) is True
    assert store.delete_note(newer.id) is False
    assert [n.content for n in store.get_notes("oa-1")] == ["revised"]
    assert store.update_note("note-missing", "x") is None


def test_highlights_crud(store):
    highlight = store.add_highlight("oa-1", "key sentence", "green", 10, 22)

    assert highlight.id.startswith("highlight-")
    assert highlight.color is HighlightColor.GREEN
    assert store.get_highlights("oa-1") == [highlight]

    assert store.delete_highlight(highlight.id) is True
    assert store.get_highlights("oa-1") == []


def test_highlight_rejects_unknown_color(store):
    with pytest.raises(ValueError):
        store.add_highlight("oa-1", "text", "orange", 0, 4)


def test_save_offline_round_trips_paper(store, clock):
    paper = Paper(id="arxiv-1", title="Offline", authors=["A"], citation_count=3)

    saved = store.save_offline(paper)

    assert saved.id == "arxiv-1"
    assert saved.saved_at == clock.now
    assert saved.reading_progress == 0.0
    assert store.get_saved_paper("arxiv-1").paper == paper
    assert store.is_saved_offline("arxiv-1") is True
    assert store.is_saved_offline("arxiv-2") is False


def test_resave_preserves_progress_and_last_read(store, clock):
    store.save_offline(Paper(id="oa-1", title="Old title"))
    clock.advance(1000)
    store.update_progress("oa-1", 55)
    last_read = clock.now

    clock.advance(1000)
    resaved = store.save_offline(Paper(id="oa-1", title="New title"))

    assert resaved.paper.title == "New title"
    assert resaved.reading_progress == 55
    assert resaved.last_read_at == last_read
    assert resaved.saved_at == clock.now


def test_progress_is_monotonic(store):
    store.save_offline(Paper(id="oa-1", title="T"))

    store.update_progress("oa-1", 40)
    store.update_progress("oa-1", 30)

    assert store.get_saved_paper("oa-1").reading_progress == 40


def test_progress_on_unsaved_paper_is_noop(store):
    assert store.update_progress("oa-unknown", 50) is None
    assert store.get_saved_paper("oa-unknown") is None


def test_list_and_remove_saved_papers(store, clock):
    store.save_offline(Paper(id="oa-1", title="One"))
    clock.advance(1000)
    store.save_offline(Paper(id="oa-2", title="Two"))

    assert [s.id for s in store.list_saved_papers()] == ["oa-2", "oa-1"]
    assert store.remove_saved_paper("oa-1") is True
    assert store.remove_saved_paper("oa-1") is False
    assert [s.id for s in store.list_saved_papers()] == ["oa-2"]


def test_daily_bucket_primitives(store):
    store.put_daily_bucket(DailyBucket("2024-03-10", 1, 20))
    store.put_daily_bucket(DailyBucket("2024-03-12", 2, 45))

    bumped = store.increment_daily_bucket("2024-03-12", papers_read=1, minutes=5)
    created = store.increment_daily_bucket("2024-03-14", minutes=3)

    assert bumped == DailyBucket("2024-03-12", 3, 50)
    assert created == DailyBucket("2024-03-14", 0, 3)
    assert store.get_daily_bucket("2024-03-11") is None
    assert [b.date for b in store.list_daily_buckets()] == ["2024-03-10", "2024-03-12", "2024-03-14"]
    assert [b.date for b in store.list_daily_buckets(since="2024-03-12")] == ["2024-03-12", "2024-03-14"]


def test_clear_all(store):
    store.save_offline(Paper(id="oa-1", title="T"))
    store.add_note("oa-1", "n")
    store.put_daily_bucket(DailyBucket("2024-03-10", 1, 20))

    store.clear_all()

    assert store.list_saved_papers() == []
    assert store.get_notes("oa-1") == []
    assert store.list_daily_buckets() == []


def test_storage_failure_surfaces_as_reading_store_error(store):
    provider = store.initialize()

    with patch.object(provider, "session", side_effect=SQLAlchemyError("disk I/O error")):
        with pytest.raises(ReadingStoreError):
            store.save_offline(Paper(id="oa-1", title="T"))
