from datetime import date, time

import pytest

from conftest import PERSON_ID, T0, element, payload, period
from untis_watch.errors import DiffInvariantViolation, ParseError
from untis_watch.models import ElementState, LessonStatus
from untis_watch.provider.parser import parse_date, parse_time, parse_timetable


def test_parses_standard_period():
    snap = parse_timetable(payload([period(1, 800, 845)]), PERSON_ID, T0)

    assert snap.fetched_at == T0
    (record,) = snap.records
    assert record.key == "1"
    assert record.subject == "M"
    assert record.subject_long_name == "Mathematik"
    assert record.teacher == "Huber"
    assert record.room == "R101"
    assert record.room_long_name == "Raum 101"
    assert record.date == date(2024, 3, 11)
    assert record.start_time == time(8, 0)
    assert record.end_time == time(8, 45)
    assert record.status is LessonStatus.STANDARD
    assert record.original_teacher is None
    assert record.original_room is None


def test_parses_substitution_with_original_elements():
    elements = [
        element(2, 11, org_id=10, state="SUBSTITUTED"),
        element(3, 21),
        element(4, 31, org_id=30, state="SUBSTITUTED"),
    ]
    snap = parse_timetable(
        payload([period(2, 1000, 1045, "SUBSTITUTION", elements, substText="Vertretung")]),
        PERSON_ID,
        T0,
    )

    (record,) = snap.records
    assert record.status is LessonStatus.SUBSTITUTED
    assert record.teacher == "Meier"
    assert record.teacher_state is ElementState.SUBSTITUTED
    assert record.original_teacher == "Huber"
    assert record.room == "R202"
    assert record.original_room == "Raum 101"
    assert record.substitution_text == "Vertretung"


def test_cancelled_period():
    snap = parse_timetable(payload([period(3, 1130, 1215, "CANCEL")]), PERSON_ID, T0)
    assert snap.records[0].status is LessonStatus.CANCELLED


def test_period_without_elements():
    snap = parse_timetable(payload([period(4, 800, 845, elements=[])]), PERSON_ID, T0)
    record = snap.records[0]
    assert record.subject is None
    assert record.teacher is None


@pytest.mark.parametrize(
    ("value", "expected"),
    [(800, time(8, 0)), (945, time(9, 45)), (1330, time(13, 30))],
)
def test_parse_time(value, expected):
    assert parse_time(value) == expected


@pytest.mark.parametrize("value", [45, 12345, "0800", True, 2575])
def test_parse_time_rejects_bad_values(value):
    with pytest.raises(ParseError):
        parse_time(value)


def test_parse_date_rejects_garbage():
    assert parse_date(20240229) == date(2024, 2, 29)
    with pytest.raises(ParseError):
        parse_date(20230229)
    with pytest.raises(ParseError):
        parse_date("20240311")


def test_missing_top_level_data():
    with pytest.raises(ParseError, match="'data'"):
        parse_timetable({}, PERSON_ID, T0)


def test_missing_person_periods():
    with pytest.raises(ParseError, match="No timetable for element 1"):
        parse_timetable(payload([period(1, 800, 845)]), 1, T0)


@pytest.mark.parametrize("field", ["cellState", "lessonText", "date", "startTime", "elements"])
def test_missing_period_field(field):
    broken = period(1, 800, 845)
    del broken[field]
    with pytest.raises(ParseError, match=field):
        parse_timetable(payload([broken]), PERSON_ID, T0)


def test_unknown_cell_state():
    with pytest.raises(ParseError, match="cellState"):
        parse_timetable(payload([period(1, 800, 845, "EXAM")]), PERSON_ID, T0)


def test_unknown_element_state():
    elements = [element(2, 10, state="MISSING")]
    with pytest.raises(ParseError, match="state"):
        parse_timetable(payload([period(1, 800, 845, elements=elements)]), PERSON_ID, T0)


def test_unresolvable_element_reference():
    elements = [element(2, 12345)]
    with pytest.raises(ParseError, match="12345"):
        parse_timetable(payload([period(1, 800, 845, elements=elements)]), PERSON_ID, T0)


def test_wrong_type_is_parse_error():
    broken = period(1, 800, 845)
    broken["startTime"] = "08:00"
    with pytest.raises(ParseError, match="startTime"):
        parse_timetable(payload([broken]), PERSON_ID, T0)


def test_duplicate_period_ids_surface_loudly():
    periods = [period(1, 800, 845), period(1, 900, 945)]
    with pytest.raises(DiffInvariantViolation):
        parse_timetable(payload(periods), PERSON_ID, T0)
