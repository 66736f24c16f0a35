"""Snapshot differ.

Compares a new snapshot against the last published one and produces the
added / removed / modified lesson sets.

Identity key: LessonRecord.key (the provider period id). Positional order of
records is never used; outputs are sorted by key so the same pair of
snapshots always yields an equal Diff.
"""

from collections import Counter
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, field_validator

from untis_watch.errors import DiffInvariantViolation
from untis_watch.models import (
    MUTABLE_FIELDS,
    Diff,
    LessonRecord,
    ModifiedLesson,
    Snapshot,
)


class ComparisonPolicy(BaseModel):
    """Which mutable fields count towards a modification.

    fields=None compares the full content hash. A subset compares only those
    fields, e.g. everything except room changes.
    """

    model_config = ConfigDict(frozen=True)

    fields: frozenset[str] | None = None

    @field_validator("fields")
    @classmethod
    def _known_fields(cls, value: frozenset[str] | None) -> frozenset[str] | None:
        if value is None:
            return None
        if not value:
            raise ValueError("comparison policy needs at least one field")
        unknown = value - set(MUTABLE_FIELDS)
        if unknown:
            raise ValueError(
                f"Unknown lesson fields {sorted(unknown)}. Valid: {list(MUTABLE_FIELDS)}"
            )
        return value

    def is_modified(self, old: LessonRecord, new: LessonRecord) -> bool:
        if self.fields is None:
            return old.content_hash != new.content_hash
        return old.fingerprint(self.fields) != new.fingerprint(self.fields)


DEFAULT_POLICY = ComparisonPolicy()


def _index(records: Iterable[LessonRecord]) -> dict[str, LessonRecord]:
    """Build a key lookup, refusing duplicate keys."""
    records = list(records)
    by_key = {record.key: record for record in records}
    if len(by_key) != len(records):
        counts = Counter(record.key for record in records)
        raise DiffInvariantViolation([key for key, count in counts.items() if count > 1])
    return by_key


def compute_diff(
    previous: Snapshot | None,
    current: Snapshot,
    policy: ComparisonPolicy | None = None,
) -> Diff:
    """Compare two snapshots.

    Args:
        previous: Last published snapshot, or None before the first publish.
        current: Freshly fetched snapshot.
        policy: Comparison policy; defaults to comparing every mutable field.

    Returns:
        Diff with added, removed and modified sorted by key. Without a
        previous snapshot every current record is reported as added.

    Raises:
        DiffInvariantViolation: If either snapshot repeats an identity key.
    """
    policy = policy or DEFAULT_POLICY
    new_by_key = _index(current.records)

    if previous is None:
        return Diff(
            added=tuple(new_by_key[key] for key in sorted(new_by_key)),
            current_fetched_at=current.fetched_at,
        )

    old_by_key = _index(previous.records)

    added: list[LessonRecord] = []
    modified: list[ModifiedLesson] = []

    for key, new in new_by_key.items():
        old = old_by_key.get(key)
        if old is None:
            added.append(new)
        elif policy.is_modified(old, new):
            modified.append(
                ModifiedLesson(old=old, new=new, changed_fields=old.changed_fields(new))
            )

    removed = [old for key, old in old_by_key.items() if key not in new_by_key]

    return Diff(
        added=tuple(sorted(added, key=lambda record: record.key)),
        removed=tuple(sorted(removed, key=lambda record: record.key)),
        modified=tuple(sorted(modified, key=lambda change: change.key)),
        previous_fetched_at=previous.fetched_at,
        current_fetched_at=current.fetched_at,
    )
