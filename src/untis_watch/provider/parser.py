"""Parser for the WebUntis weekly timetable payload.

Payload structure (weekly/data, formatId=1):
  data.result.data.elements -> [{type, id, name, longName, ...}, ...]
    type 2 = teacher, 3 = subject, 4 = room
  data.result.data.elementPeriods -> {"<personId>": [period, ...]}
    period: {id, lessonId, date: 20240311, startTime: 800, endTime: 845,
             cellState: STANDARD|CANCEL|SUBSTITUTION, lessonText, periodText,
             periodInfo, substText, elements: [{type, id, orgId, missing, state}]}
    element state: REGULAR|ABSENT|SUBSTITUTED; orgId points at the element
    that was replaced (0 if none).

Everything provider specific stays in this module; the rest of the package
only sees LessonRecord and Snapshot.
"""

from datetime import date, datetime, time
from typing import Any

from untis_watch.errors import ParseError
from untis_watch.logging import get_logger
from untis_watch.models import ElementState, LessonRecord, LessonStatus, Snapshot

log = get_logger(__name__)

TEACHER = 2
SUBJECT = 3
ROOM = 4

CELL_STATES: dict[str, LessonStatus] = {
    "STANDARD": LessonStatus.STANDARD,
    "CANCEL": LessonStatus.CANCELLED,
    "SUBSTITUTION": LessonStatus.SUBSTITUTED,
}

ELEMENT_STATES: dict[str, ElementState] = {
    "REGULAR": ElementState.REGULAR,
    "ABSENT": ElementState.ABSENT,
    "SUBSTITUTED": ElementState.SUBSTITUTED,
}


def _field(obj: Any, name: str, kind: type | tuple[type, ...], where: str) -> Any:
    """Read a required field and check its JSON type."""
    if not isinstance(obj, dict) or name not in obj:
        raise ParseError(f"field '{name}' missing on {where}")
    value = obj[name]
    kinds = kind if isinstance(kind, tuple) else (kind,)
    # bool is an int subclass
    if not isinstance(value, kinds) or (isinstance(value, bool) and bool not in kinds):
        raise ParseError(f"field '{name}' on {where} has unexpected type {type(value).__name__}")
    return value


def parse_time(value: Any) -> time:
    """Parse an Untis time integer (HMM or HHMM), e.g. 800 -> 08:00."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ParseError(f"time ({value!r}) is not a non-negative integer")
    text = str(value)
    if len(text) == 4:
        hours, minutes = text[:2], text[2:]
    elif len(text) == 3:
        hours, minutes = text[:1], text[1:]
    else:
        raise ParseError(f"Invalid length for time ({text})")
    try:
        return time(int(hours), int(minutes))
    except ValueError as e:
        raise ParseError(f"Invalid time {hours}:{minutes}") from e


def parse_date(value: Any) -> date:
    """Parse an Untis date integer, e.g. 20240311."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ParseError(f"date ({value!r}) is not an integer")
    try:
        return datetime.strptime(str(value), "%Y%m%d").date()
    except ValueError as e:
        raise ParseError(f"Invalid date ({value})") from e


def _index_elements(elements: list) -> dict[int, dict[int, dict]]:
    """Group the global element list by type and id."""
    indexed: dict[int, dict[int, dict]] = {TEACHER: {}, SUBJECT: {}, ROOM: {}}
    for element in elements:
        element_type = _field(element, "type", int, "element")
        element_id = _field(element, "id", int, "element")
        if element_type not in indexed:
            log.error("unknown_element_type", element_type=element_type, element_id=element_id)
            continue
        indexed[element_type][element_id] = element
    return indexed


def _text(element: dict | None, name: str) -> str | None:
    if element is None:
        return None
    value = element.get(name)
    return value if isinstance(value, str) else None


def _parse_period(period: Any, indexed: dict[int, dict[int, dict]]) -> LessonRecord:
    where = "period"
    if isinstance(period, dict) and "id" in period:
        where = f"period {period['id']}"

    period_id = _field(period, "id", (int, str), where)
    elements = _field(period, "elements", list, where)

    resolved: dict[str, Any] = {}
    for element in elements:
        element_type = _field(element, "type", int, f"element of {where}")
        element_id = _field(element, "id", int, f"element of {where}")
        original_id = _field(element, "orgId", int, f"element of {where}")
        state_name = _field(element, "state", str, f"element of {where}")
        state = ELEMENT_STATES.get(state_name)
        if state is None:
            raise ParseError(f"Unknown element state {state_name!r} on {where}")

        if element_type not in indexed:
            raise ParseError(f"Unknown element type {element_type} on {where}")
        info = indexed[element_type].get(element_id)
        original = (
            indexed[element_type].get(original_id)
            if original_id and original_id != element_id
            else None
        )
        if info is None:
            raise ParseError(f"Element {element_type}/{element_id} of {where} has not been found")

        if element_type == TEACHER:
            resolved["teacher"] = _text(info, "name")
            resolved["teacher_state"] = state
            resolved["original_teacher"] = _text(original, "name")
        elif element_type == SUBJECT:
            resolved["subject"] = _text(info, "name")
            resolved["subject_long_name"] = _text(info, "longName")
        else:
            resolved["room"] = _text(info, "name")
            resolved["room_long_name"] = _text(info, "longName")
            resolved["room_state"] = state
            resolved["original_room"] = _text(original, "longName")

    cell_state = _field(period, "cellState", str, where)
    status = CELL_STATES.get(cell_state)
    if status is None:
        raise ParseError(f"Unknown cellState {cell_state!r} on {where}")

    return LessonRecord(
        key=str(period_id),
        date=parse_date(_field(period, "date", int, where)),
        start_time=parse_time(_field(period, "startTime", int, where)),
        end_time=parse_time(_field(period, "endTime", int, where)),
        status=status,
        lesson_text=_field(period, "lessonText", str, where),
        period_text=_field(period, "periodText", str, where),
        info=_field(period, "periodInfo", str, where),
        substitution_text=_field(period, "substText", str, where),
        **resolved,
    )


def parse_timetable(payload: Any, person_id: int, fetched_at: datetime) -> Snapshot:
    """Turn a weekly timetable response into a Snapshot.

    Args:
        payload: Decoded JSON of the weekly/data endpoint.
        person_id: Element id whose periods are extracted.
        fetched_at: Timestamp stored on the snapshot.

    Raises:
        ParseError: If the payload does not have the expected shape.
        DiffInvariantViolation: If two periods share an id.
    """
    data = _field(payload, "data", dict, "timetable")
    result = _field(data, "result", dict, "timetable.data")
    inner = _field(result, "data", dict, "timetable.data.result")

    indexed = _index_elements(_field(inner, "elements", list, "timetable data"))
    element_periods = _field(inner, "elementPeriods", dict, "timetable data")
    periods = element_periods.get(str(person_id))
    if periods is None:
        raise ParseError(f"No timetable for element {person_id} found in data")
    if not isinstance(periods, list):
        raise ParseError("Periods are not an array")

    records = tuple(_parse_period(period, indexed) for period in periods)
    log.debug("timetable_parsed", person_id=person_id, periods=len(records))
    return Snapshot(fetched_at=fetched_at, records=records)
