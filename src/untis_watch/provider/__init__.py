"""WebUntis specific code: HTTP client and timetable payload parser."""

from untis_watch.provider.client import UntisClient, UntisSession
from untis_watch.provider.parser import parse_timetable

__all__ = [
    "UntisClient",
    "UntisSession",
    "parse_timetable",
]
