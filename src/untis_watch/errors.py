"""Error hierarchy for timetable refresh classification.

Fetch-time failures derive from FetchError and are recorded by the refresh
scheduler without touching the cached snapshot. TransientError covers failures
that may succeed on the next tick; PermanentError covers failures that need a
changed upstream or changed credentials.

Example usage with tenacity:
    @retry(retry=retry_if_exception_type(TransientError), stop=stop_after_attempt(2))
    def authenticate(self, user: str, password: str):
        ...
"""


class UntisWatchError(Exception):
    """Base exception for all untis-watch errors."""

    pass


class FetchError(UntisWatchError):
    """Base exception for failures while fetching the upstream timetable."""

    pass


class TransientError(FetchError):
    """Temporary failure that may succeed on the next refresh.

    Examples: connection refused, read timeouts, 503 Service Unavailable.
    """

    pass


class NetworkError(TransientError):
    """Upstream unreachable, timed out, or answered with a server error."""

    pass


class PermanentError(FetchError):
    """Failure that won't go away by simply asking again."""

    pass


class AuthError(PermanentError):
    """Credentials or session rejected by the provider.

    Retrying with the same credentials yields the same answer.
    """

    pass


class ParseError(PermanentError):
    """Upstream payload is malformed or has an unexpected shape."""

    pass


class DiffInvariantViolation(UntisWatchError):
    """A snapshot contains the same identity key twice.

    Indicates broken input or a parser bug. Never deduplicated silently.
    """

    def __init__(self, duplicate_keys: list[str]) -> None:
        self.duplicate_keys = sorted(duplicate_keys)
        super().__init__(
            f"Duplicate identity keys in snapshot: {', '.join(self.duplicate_keys)}"
        )


class ConfigurationError(UntisWatchError):
    """Unusable configuration detected at startup. Fatal."""

    pass


class StalePublishError(UntisWatchError):
    """A finished fetch was not published because a later one already was."""

    pass
