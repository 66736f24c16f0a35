"""WebUntis HTTP client.

UntisClient handles the JSON-RPC login/logout and the weekly timetable
request over one requests.Session. Every HTTP failure is translated into the
FetchError hierarchy so callers only deal with NetworkError, AuthError and
ParseError.
"""

import uuid
from dataclasses import dataclass
from datetime import date
from typing import Any

import requests
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from untis_watch.errors import AuthError, NetworkError, ParseError
from untis_watch.logging import get_logger

logger = get_logger(__name__)

JSONRPC_PATH = "/WebUntis/jsonrpc.do"
WEEKLY_TIMETABLE_PATH = "/WebUntis/api/public/timetable/weekly/data"

# WebUntis element type for students; used when login does not report one
STUDENT_ELEMENT_TYPE = 5

LOGIN_ATTEMPTS = 2
LOGIN_RETRY_WAIT_SECONDS = 1.0


def worst_case_fetch_seconds(request_timeout: float) -> float:
    """Longest a login, timetable and logout sequence can block.

    Every login attempt, the timetable request and the logout may each run
    into the request timeout, plus the pause between login attempts.
    """
    return (LOGIN_ATTEMPTS + 2) * request_timeout + (LOGIN_ATTEMPTS - 1) * LOGIN_RETRY_WAIT_SECONDS


@dataclass(frozen=True)
class UntisSession:
    """Result of a successful JSON-RPC authenticate call."""

    session_id: str
    person_id: int
    person_type: int = STUDENT_ELEMENT_TYPE
    klasse_id: int | None = None


class UntisClient:
    """Blocking WebUntis client bound to one host and school."""

    def __init__(
        self,
        host: str,
        school: str,
        *,
        client_name: str,
        timeout: float = 10.0,
        http: requests.Session | None = None,
    ) -> None:
        """Initialize UntisClient.

        Args:
            host: WebUntis host, e.g. ikarus.webuntis.com.
            school: School identifier passed as ?school=.
            client_name: Identifier sent in the login call and as User-Agent.
            timeout: Timeout in seconds for each request.
            http: Optional pre-built requests session (tests inject a mock).
        """
        self.base_url = f"https://{host}"
        self.school = school
        self.client_name = client_name
        self.timeout = timeout
        self.http = http or requests.Session()
        self.http.headers.update(
            {"User-Agent": client_name, "Content-Type": "application/json"}
        )

    def _send(self, method: str, url: str, **kwargs: Any) -> Any:
        """Perform one request and decode its JSON body."""
        try:
            resp = self.http.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise NetworkError(f"{method} {url} failed: {e}") from e

        if resp.status_code in (401, 403):
            raise AuthError(f"{method} {url} rejected with {resp.status_code}")
        if resp.status_code >= 400:
            raise NetworkError(f"{method} {url} returned {resp.status_code}")

        try:
            return resp.json()
        except ValueError as e:
            raise ParseError(f"{method} {url} returned non-JSON body") from e

    def _rpc(self, rpc_method: str, params: Any, session_id: str | None = None) -> Any:
        """Call a JSON-RPC 2.0 method and return its result member."""
        request_id = str(uuid.uuid4())
        body = {
            "id": request_id,
            "method": rpc_method,
            "params": params,
            "jsonrpc": "2.0",
        }
        cookies = {"JSESSIONID": session_id} if session_id else None
        data = self._send(
            "POST",
            f"{self.base_url}{JSONRPC_PATH}",
            params={"school": self.school},
            json=body,
            cookies=cookies,
        )

        if not isinstance(data, dict):
            raise ParseError(f"JSON-RPC {rpc_method} response is not an object")
        if data.get("id") != request_id:
            raise ParseError(
                f"JSON-RPC {rpc_method} response id {data.get('id')!r} does not match request"
            )
        if "error" in data and data["error"] is not None:
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else error
            raise AuthError(f"JSON-RPC {rpc_method} failed: {message}")
        return data.get("result")

    @retry(
        stop=stop_after_attempt(LOGIN_ATTEMPTS),
        wait=wait_fixed(LOGIN_RETRY_WAIT_SECONDS),
        retry=retry_if_exception_type(NetworkError),
        reraise=True,
    )
    def authenticate(self, user: str, password: str) -> UntisSession:
        """Log in and return the session.

        Retries once on NetworkError but fails fast on AuthError.

        Raises:
            AuthError: Credentials rejected or empty login result.
            NetworkError: Host unreachable after the retry.
            ParseError: Login result lacks sessionId or personId.
        """
        logger.debug("untis_login_started", user=user, school=self.school)
        result = self._rpc(
            "authenticate",
            {"user": user, "password": password, "client": self.client_name},
        )
        if not result:
            raise AuthError("Login result is empty, could not retrieve session information")

        try:
            session = UntisSession(
                session_id=str(result["sessionId"]),
                person_id=int(result["personId"]),
                person_type=int(result.get("personType") or STUDENT_ELEMENT_TYPE),
                klasse_id=result.get("klasseId"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ParseError(f"Login result has unexpected shape: {e}") from e

        logger.debug("untis_login_succeeded", person_id=session.person_id)
        return session

    def get_weekly_timetable(self, session: UntisSession, day: date) -> dict:
        """Fetch the raw weekly timetable containing day."""
        data = self._send(
            "GET",
            f"{self.base_url}{WEEKLY_TIMETABLE_PATH}",
            params={
                "elementType": session.person_type,
                "elementId": session.person_id,
                "date": day.strftime("%Y-%m-%d"),
                "formatId": 1,
            },
            cookies={"JSESSIONID": session.session_id},
        )
        if not isinstance(data, dict):
            raise ParseError("Timetable response is not an object")
        return data

    def logout(self, session: UntisSession) -> None:
        """End the session. Failures are logged, never raised."""
        try:
            self._rpc("logout", None, session_id=session.session_id)
        except (NetworkError, AuthError, ParseError) as e:
            logger.warning("untis_logout_failed", error=str(e), type=type(e).__name__)
            return
        logger.debug("untis_logout_succeeded")

    def close(self) -> None:
        self.http.close()
