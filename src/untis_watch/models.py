"""Pydantic models for timetable snapshots and their differences.

All data structures use Pydantic v2 and are frozen: a Snapshot or Diff is
never edited after creation, only replaced by the next one.
"""

import hashlib
import json
from collections import Counter
from datetime import date, datetime, time
from enum import Enum

from pydantic import BaseModel, ConfigDict, computed_field, model_validator

from untis_watch.errors import DiffInvariantViolation


class LessonStatus(str, Enum):
    """Cell state of a lesson as reported by the provider."""

    STANDARD = "standard"  # cellState STANDARD
    CANCELLED = "cancelled"  # cellState CANCEL
    SUBSTITUTED = "substituted"  # cellState SUBSTITUTION


class ElementState(str, Enum):
    """State of a single lesson element (teacher, room, subject)."""

    REGULAR = "regular"
    ABSENT = "absent"
    SUBSTITUTED = "substituted"


def _digest(payload: dict) -> str:
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class LessonRecord(BaseModel):
    """One scheduled period from the weekly timetable.

    Built from an entry of data.result.data.elementPeriods with its teacher,
    subject and room elements resolved against data.result.data.elements.
    """

    model_config = ConfigDict(frozen=True)

    key: str  # Provider period id, unique within one snapshot
    subject: str | None = None  # Short subject name, e.g. "M"
    subject_long_name: str | None = None  # e.g. "Mathematik"
    teacher: str | None = None
    teacher_state: ElementState = ElementState.REGULAR
    original_teacher: str | None = None  # Teacher replaced by a substitution
    room: str | None = None
    room_long_name: str | None = None
    room_state: ElementState = ElementState.REGULAR
    original_room: str | None = None  # Long name of the replaced room
    date: date
    start_time: time
    end_time: time
    status: LessonStatus = LessonStatus.STANDARD
    lesson_text: str = ""
    period_text: str = ""
    info: str = ""
    substitution_text: str = ""

    @computed_field  # type: ignore[prop-decorator]
    @property
    def content_hash(self) -> str:
        """SHA-256 over every mutable field (everything but the key)."""
        return self.fingerprint(MUTABLE_FIELDS)

    def fingerprint(self, fields) -> str:
        """Hash restricted to the given mutable fields."""
        return _digest(self.model_dump(mode="json", include=set(fields)))

    def changed_fields(self, other: "LessonRecord") -> tuple[str, ...]:
        """Names of mutable fields whose values differ from other, sorted."""
        return tuple(
            sorted(name for name in MUTABLE_FIELDS if getattr(self, name) != getattr(other, name))
        )


MUTABLE_FIELDS: tuple[str, ...] = tuple(
    name for name in LessonRecord.model_fields if name != "key"
)


class Snapshot(BaseModel):
    """Timetable state observed by one successful fetch.

    Record order carries no meaning; records are matched by key.
    """

    model_config = ConfigDict(frozen=True)

    fetched_at: datetime
    records: tuple[LessonRecord, ...] = ()

    @model_validator(mode="after")
    def _unique_keys(self) -> "Snapshot":
        counts = Counter(record.key for record in self.records)
        duplicates = [key for key, count in counts.items() if count > 1]
        if duplicates:
            raise DiffInvariantViolation(duplicates)
        return self

    def __len__(self) -> int:
        return len(self.records)

    def by_key(self) -> dict[str, LessonRecord]:
        return {record.key: record for record in self.records}

    def keys(self) -> set[str]:
        return {record.key for record in self.records}

    def for_day(self, day: date) -> list[LessonRecord]:
        """Records scheduled on day, in start time order."""
        return sorted(
            (record for record in self.records if record.date == day),
            key=lambda record: (record.start_time, record.key),
        )


class ModifiedLesson(BaseModel):
    """A lesson present in both snapshots whose content changed."""

    model_config = ConfigDict(frozen=True)

    old: LessonRecord
    new: LessonRecord
    changed_fields: tuple[str, ...] = ()

    @computed_field  # type: ignore[prop-decorator]
    @property
    def key(self) -> str:
        return self.new.key


class Diff(BaseModel):
    """Added, removed and modified lessons between two consecutive snapshots.

    Each collection is sorted by key so equal inputs always produce equal diffs.
    """

    model_config = ConfigDict(frozen=True)

    added: tuple[LessonRecord, ...] = ()
    removed: tuple[LessonRecord, ...] = ()
    modified: tuple[ModifiedLesson, ...] = ()
    previous_fetched_at: datetime | None = None  # None on the first fetch
    current_fetched_at: datetime

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.modified)

    def summary(self) -> dict[str, int]:
        return {
            "added": len(self.added),
            "removed": len(self.removed),
            "modified": len(self.modified),
        }


class CacheStateView(BaseModel):
    """Point-in-time copy of the cache state.

    snapshot and diff always belong to the same generation.
    """

    model_config = ConfigDict(frozen=True)

    snapshot: Snapshot | None = None
    diff: Diff | None = None
    last_error: str | None = None
    last_error_at: datetime | None = None
    last_success: datetime | None = None
    generation: int = 0  # Number of publishes so far


class HealthStatus(BaseModel):
    """Freshness report for callers of the query interface."""

    model_config = ConfigDict(frozen=True)

    has_data: bool
    last_success: datetime | None = None
    last_error: str | None = None
    last_error_at: datetime | None = None
    generation: int = 0
    stale: bool = False  # An error was recorded after the last publish

    @classmethod
    def from_state(cls, state: CacheStateView) -> "HealthStatus":
        # publish() clears the error, so a recorded error is always the newer event
        stale = state.last_error is not None
        return cls(
            has_data=state.snapshot is not None,
            last_success=state.last_success,
            last_error=state.last_error,
            last_error_at=state.last_error_at,
            generation=state.generation,
            stale=stale,
        )
