"""Speakable German sentences for changed lessons, e.g. for voice assistants."""

from datetime import date

from untis_watch.models import ElementState, LessonRecord, LessonStatus, Snapshot


def _hhmm(record: LessonRecord) -> tuple[str, str]:
    return record.start_time.strftime("%H:%M"), record.end_time.strftime("%H:%M")


def speakable_text(record: LessonRecord) -> str:
    """Describe one lesson. Lessons without a subject yield ""."""
    if record.subject is None:
        return ""
    subject = record.subject_long_name or record.subject
    start, end = _hhmm(record)

    if record.status is LessonStatus.CANCELLED:
        return f"{subject} fällt zwischen {start} und {end} Uhr aus!"
    if record.status is LessonStatus.STANDARD:
        return (
            f"Im Fach {subject} zwischen {start} und {end} Uhr gibt es keine Änderungen!"
        )

    out = f"Änderung bei {subject} zwischen {start} und {end} Uhr: "
    if record.original_teacher is not None:
        if record.teacher_state is ElementState.ABSENT:
            out += f"Unterricht ohne Lehrer (von '{record.original_teacher}'); "
        elif record.teacher_state is ElementState.SUBSTITUTED:
            out += f"Lehrerwechsel von '{record.original_teacher}' zu '{record.teacher}'; "
    if record.original_room is not None:
        if record.room_state is ElementState.ABSENT:
            out += f"Unterricht ohne Raum (von '{record.original_room}'); "
        elif record.room_state is ElementState.SUBSTITUTED:
            out += f"Raumwechsel von '{record.original_room}' zu '{record.room_long_name}'; "
    return out + record.substitution_text


def speakable_summary(snapshot: Snapshot, day: date) -> str:
    """One line per cancelled or substituted lesson on day, in time order."""
    return "\n".join(
        speakable_text(record)
        for record in snapshot.for_day(day)
        if record.status is not LessonStatus.STANDARD
    )
