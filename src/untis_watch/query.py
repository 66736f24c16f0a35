"""Read-only query interface used by the HTTP front end.

Nothing in here triggers a fetch; every call reads one StateStore view.
"""

from datetime import date

from untis_watch.models import CacheStateView, Diff, HealthStatus, Snapshot
from untis_watch.speakable import speakable_summary
from untis_watch.store import StateStore


class QueryInterface:
    def __init__(self, store: StateStore) -> None:
        self._store = store

    def get_state(self) -> CacheStateView:
        """Snapshot, diff and health fields of one generation."""
        return self._store.read()

    def get_current_diff(self) -> Diff | None:
        """Latest diff; None until the first successful refresh."""
        return self._store.read().diff

    def get_current_snapshot(self) -> Snapshot | None:
        return self._store.read().snapshot

    def get_health(self) -> HealthStatus:
        return HealthStatus.from_state(self._store.read())

    def get_speakable(self, day: date) -> str:
        """German summary of the non-standard lessons on day ("" without data)."""
        snapshot = self._store.read().snapshot
        if snapshot is None:
            return ""
        return speakable_summary(snapshot, day)
