"""untis-watch: WebUntis timetable change tracker.

Periodically fetches the current week from WebUntis, diffs it against the
last known snapshot, and serves snapshot, diff and health to HTTP callers.
"""

from untis_watch.differ import ComparisonPolicy, compute_diff
from untis_watch.models import Diff, LessonRecord, ModifiedLesson, Snapshot
from untis_watch.query import QueryInterface
from untis_watch.scheduler import RefreshScheduler
from untis_watch.store import StateStore

__all__ = [
    "ComparisonPolicy",
    "compute_diff",
    "Diff",
    "LessonRecord",
    "ModifiedLesson",
    "Snapshot",
    "QueryInterface",
    "RefreshScheduler",
    "StateStore",
]
