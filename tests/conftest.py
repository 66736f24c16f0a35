"""Shared fixtures and builders for the untis-watch test suite."""

from __future__ import annotations

import asyncio
from datetime import date, datetime, time, timedelta, timezone

import pytest

from untis_watch.config import WatchConfig
from untis_watch.models import LessonRecord, Snapshot

T0 = datetime(2024, 3, 11, 6, 0, tzinfo=timezone.utc)
DAY = date(2024, 3, 11)


@pytest.fixture
def anyio_backend():
    return "asyncio"


def lesson(key, subject="M", **overrides) -> LessonRecord:
    fields = {
        "key": str(key),
        "subject": subject,
        "subject_long_name": {"M": "Mathematik", "Ph": "Physik", "Ku": "Kunst", "Sp": "Sport"}.get(
            subject, subject
        ),
        "teacher": "Huber",
        "room": "R101",
        "room_long_name": "Raum 101",
        "date": DAY,
        "start_time": time(8, 0),
        "end_time": time(8, 45),
    }
    fields.update(overrides)
    return LessonRecord(**fields)


def snapshot(*records, minutes: int = 0) -> Snapshot:
    return Snapshot(fetched_at=T0 + timedelta(minutes=minutes), records=tuple(records))


def make_config(**overrides) -> WatchConfig:
    fields = {
        "untis_host": "ikarus.webuntis.com",
        "untis_school": "demo-school",
        "untis_user": "max",
        "untis_password": "secret",
    }
    fields.update(overrides)
    return WatchConfig(_env_file=None, **fields)


class FakeFetcher:
    """In-memory TimetableFetcher returning queued results in order.

    Each queued item is a Snapshot (returned) or an exception (raised).
    """

    def __init__(self, *results, delay: float = 0.0) -> None:
        self.results = list(results)
        self.delay = delay
        self.calls = 0
        self.preflight_calls = 0
        self.preflight_error: Exception | None = None
        self.closed = False

    async def preflight(self) -> None:
        self.preflight_calls += 1
        if self.preflight_error is not None:
            raise self.preflight_error

    async def fetch_timetable(self) -> Snapshot:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, BaseException):
            raise result
        return result

    def close(self) -> None:
        self.closed = True


# WebUntis weekly/data payload builders

PERSON_ID = 4711


def element(type_, id_, org_id=None, state="REGULAR"):
    return {
        "type": type_,
        "id": id_,
        "orgId": id_ if org_id is None else org_id,
        "missing": False,
        "state": state,
    }


def period(id_, start, end, cell_state="STANDARD", elements=None, **extra):
    payload = {
        "id": id_,
        "lessonId": 900 + id_,
        "date": 20240311,
        "startTime": start,
        "endTime": end,
        "cellState": cell_state,
        "lessonText": "",
        "periodText": "",
        "periodInfo": "",
        "substText": "",
        "elements": elements if elements is not None else [element(2, 10), element(3, 20), element(4, 30)],
    }
    payload.update(extra)
    return payload


def payload(periods):
    return {
        "data": {
            "result": {
                "data": {
                    "elements": [
                        {"type": 2, "id": 10, "name": "Huber", "externKey": "", "canViewTimetable": True},
                        {"type": 2, "id": 11, "name": "Meier", "externKey": "", "canViewTimetable": True},
                        {"type": 3, "id": 20, "name": "M", "longName": "Mathematik"},
                        {"type": 3, "id": 21, "name": "PH", "longName": "Physik"},
                        {"type": 4, "id": 30, "name": "R101", "longName": "Raum 101"},
                        {"type": 4, "id": 31, "name": "R202", "longName": "Raum 202"},
                        {"type": 1, "id": 99, "name": "5a"},
                    ],
                    "elementPeriods": {str(PERSON_ID): periods},
                }
            }
        }
    }
