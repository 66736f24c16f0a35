"""Fetcher adapter between the refresh scheduler and WebUntis.

The scheduler only depends on the TimetableFetcher protocol; UntisFetcher is
the production implementation (login, weekly timetable, logout, parse).
"""

import asyncio
import socket
import threading
from datetime import date, datetime, timezone
from typing import Protocol

from untis_watch.config import WatchConfig
from untis_watch.errors import ConfigurationError, NetworkError
from untis_watch.logging import get_logger
from untis_watch.models import Snapshot
from untis_watch.provider.client import UntisClient
from untis_watch.provider.parser import parse_timetable

logger = get_logger(__name__)


class TimetableFetcher(Protocol):
    async def preflight(self) -> None:
        """Validate startup prerequisites; raise ConfigurationError if unusable."""
        ...

    async def fetch_timetable(self) -> Snapshot:
        """Fetch the current timetable; raise a FetchError subclass on failure."""
        ...


class UntisFetcher:
    """TimetableFetcher for one WebUntis host, school and account."""

    def __init__(self, config: WatchConfig, client: UntisClient | None = None) -> None:
        self.config = config
        self.client = client or UntisClient(
            config.untis_host,
            config.untis_school,
            client_name=config.client_name,
            timeout=config.request_timeout_seconds,
        )

    async def preflight(self) -> None:
        """Resolve the configured host so a typo fails at startup, not every tick."""
        if not self.config.untis_user:
            raise ConfigurationError("UNTIS_USER is not set")
        if not self.config.resolve_host_on_start:
            logger.debug("preflight_host_resolution_skipped", host=self.config.untis_host)
            return
        try:
            await asyncio.to_thread(socket.getaddrinfo, self.config.untis_host, 443)
        except (socket.gaierror, UnicodeError) as e:
            raise ConfigurationError(
                f"Cannot resolve WebUntis host {self.config.untis_host!r}: {e}"
            ) from e
        logger.info("preflight_succeeded", host=self.config.untis_host)

    def _fetch_blocking(self, day: date, cancelled: threading.Event) -> Snapshot:
        session = self.client.authenticate(self.config.untis_user, self.config.untis_password)
        try:
            if cancelled.is_set():
                raise NetworkError("Fetch cancelled after login")
            payload = self.client.get_weekly_timetable(session, day)
        finally:
            self.client.logout(session)
        return parse_timetable(payload, session.person_id, datetime.now(timezone.utc))

    async def fetch_timetable(self) -> Snapshot:
        """Fetch and parse the week containing today.

        The blocking HTTP calls run in a worker thread; each request is bounded
        by request_timeout_seconds. On cancellation the worker skips the
        requests that remain (logout still runs) and CancelledError is
        re-raised only after the worker has returned.
        """
        cancelled = threading.Event()
        worker = asyncio.ensure_future(
            asyncio.to_thread(self._fetch_blocking, date.today(), cancelled)
        )
        try:
            return await asyncio.shield(worker)
        except asyncio.CancelledError:
            cancelled.set()
            logger.info("fetch_cancelled", waiting_for_worker=not worker.done())
            await asyncio.wait({worker})
            if not worker.cancelled() and worker.exception() is not None:
                logger.debug("cancelled_fetch_failed", error=str(worker.exception()))
            raise

    def close(self) -> None:
        self.client.close()
