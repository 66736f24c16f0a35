"""FastAPI front end exposing the query interface.

The application lifespan owns the StateStore and the RefreshScheduler: both
are built on startup, kept on app.state, and torn down on shutdown. Routes
only read through QueryInterface; upstream failures show up in the health
block, never as an error status.
"""

from contextlib import asynccontextmanager
from datetime import date

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from untis_watch.config import WatchConfig, get_config
from untis_watch.fetcher import TimetableFetcher, UntisFetcher
from untis_watch.logging import get_logger
from untis_watch.models import Diff, HealthStatus, Snapshot
from untis_watch.query import QueryInterface
from untis_watch.scheduler import RefreshScheduler
from untis_watch.store import StateStore

logger = get_logger(__name__)


class DiffResponse(BaseModel):
    diff: Diff | None
    health: HealthStatus


class SnapshotResponse(BaseModel):
    snapshot: Snapshot | None
    health: HealthStatus


def create_app(
    config: WatchConfig | None = None,
    fetcher: TimetableFetcher | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        config: Service configuration; defaults to get_config().
        fetcher: Timetable source; defaults to an UntisFetcher for config.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = config or get_config()
        source = fetcher or UntisFetcher(cfg)
        store = StateStore()
        scheduler = RefreshScheduler(
            source,
            store,
            interval=cfg.refresh_interval_seconds,
            fetch_timeout=cfg.fetch_timeout_seconds,
            policy=cfg.comparison_policy(),
        )
        app.state.store = store
        app.state.scheduler = scheduler
        app.state.query = QueryInterface(store)

        await scheduler.start()
        logger.info("app_started", host=cfg.untis_host, school=cfg.untis_school)
        try:
            yield
        finally:
            await scheduler.stop()
            close = getattr(source, "close", None)
            if close is not None:
                close()
            logger.info("app_stopped")

    app = FastAPI(title="untis-watch", lifespan=lifespan)

    @app.get("/", response_class=PlainTextResponse)
    def index() -> str:
        return "Hello, world!"

    @app.get("/health", response_model=HealthStatus)
    def health(request: Request) -> HealthStatus:
        return request.app.state.query.get_health()

    @app.get("/diff", response_model=DiffResponse)
    def current_diff(request: Request) -> DiffResponse:
        query: QueryInterface = request.app.state.query
        state = query.get_state()
        return DiffResponse(diff=state.diff, health=HealthStatus.from_state(state))

    @app.get("/snapshot", response_model=SnapshotResponse)
    def current_snapshot(request: Request) -> SnapshotResponse:
        query: QueryInterface = request.app.state.query
        state = query.get_state()
        return SnapshotResponse(snapshot=state.snapshot, health=HealthStatus.from_state(state))

    @app.get("/speakable", response_class=PlainTextResponse)
    def speakable(request: Request, day: date | None = None) -> str:
        return request.app.state.query.get_speakable(day or date.today())

    return app
