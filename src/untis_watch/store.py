"""In-memory state store for the published snapshot and diff.

The current state is a single frozen CacheStateView. Writers build a new
view and swap the reference under a short lock; readers take the reference
without locking, so a reader always sees one complete generation.

Publishes are ordered by a sequence number handed out by next_sequence()
when a fetch starts, not by the wall clock.
"""

import itertools
import threading
from datetime import datetime, timezone

from untis_watch.logging import get_logger
from untis_watch.models import CacheStateView, Diff, Snapshot

logger = get_logger(__name__)


def _describe_error(err: BaseException) -> str:
    """Render an exception as "ClassName: message"."""
    message = str(err)
    name = type(err).__name__
    return f"{name}: {message}" if message else name


class StateStore:
    """Owner of the cache state.

    Mutated only through publish() and record_error(); read through read().
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = CacheStateView()
        self._sequences = itertools.count(1)
        self._published_sequence = 0

    def read(self) -> CacheStateView:
        """Return the current point-in-time view."""
        return self._state

    def next_sequence(self) -> int:
        """Reserve the ordering number for a fetch that is about to start."""
        with self._lock:
            return next(self._sequences)

    def publish(self, snapshot: Snapshot, diff: Diff, sequence: int | None = None) -> bool:
        """Replace snapshot and diff together, clear the error, bump the generation.

        Args:
            snapshot: Newly fetched snapshot.
            diff: Diff computed for snapshot.
            sequence: Value of next_sequence() taken when the fetch started.
                Omitted, the publish is ordered after everything reserved so far.

        Returns:
            False if a fetch that started later has already been published
            (the state is left unchanged), True otherwise.

        Raises:
            ValueError: If diff was not computed for snapshot.
        """
        if diff.current_fetched_at != snapshot.fetched_at:
            raise ValueError(
                "Diff belongs to a different snapshot "
                f"({diff.current_fetched_at.isoformat()} != {snapshot.fetched_at.isoformat()})"
            )

        with self._lock:
            if sequence is None:
                sequence = next(self._sequences)
            current = self._state
            if sequence <= self._published_sequence:
                logger.warning(
                    "stale_publish_rejected",
                    sequence=sequence,
                    published_sequence=self._published_sequence,
                    generation=current.generation,
                )
                return False

            self._published_sequence = sequence
            self._state = CacheStateView(
                snapshot=snapshot,
                diff=diff,
                last_error=None,
                last_error_at=None,
                last_success=snapshot.fetched_at,
                generation=current.generation + 1,
            )

        logger.info(
            "state_published",
            generation=current.generation + 1,
            sequence=sequence,
            records=len(snapshot),
            **diff.summary(),
        )
        return True

    def record_error(self, err: BaseException, at: datetime | None = None) -> None:
        """Record a failed refresh; snapshot and diff stay untouched."""
        at = at or datetime.now(timezone.utc)
        with self._lock:
            self._state = self._state.model_copy(
                update={"last_error": _describe_error(err), "last_error_at": at}
            )
