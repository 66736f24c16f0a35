from conftest import DAY, lesson, snapshot
from untis_watch.differ import compute_diff
from untis_watch.errors import AuthError
from untis_watch.models import LessonStatus
from untis_watch.query import QueryInterface
from untis_watch.store import StateStore


def test_query_before_first_fetch():
    query = QueryInterface(StateStore())

    assert query.get_current_diff() is None
    assert query.get_current_snapshot() is None
    assert query.get_speakable(DAY) == ""
    health = query.get_health()
    assert health.has_data is False
    assert health.last_success is None
    assert health.last_error is None


def test_query_serves_last_good_state_with_error_indicator():
    store = StateStore()
    snap = snapshot(lesson(1, "M", status=LessonStatus.CANCELLED))
    diff = compute_diff(None, snap)
    store.publish(snap, diff)
    store.record_error(AuthError("session rejected"))
    query = QueryInterface(store)

    assert query.get_current_snapshot() is snap
    assert query.get_current_diff() is diff
    state = query.get_state()
    assert state.snapshot is snap and state.diff is diff
    health = query.get_health()
    assert health.has_data is True
    assert health.last_success == snap.fetched_at
    assert health.last_error == "AuthError: session rejected"
    assert health.stale is True
    assert query.get_speakable(DAY) == "Mathematik fällt zwischen 08:00 und 08:45 Uhr aus!"
