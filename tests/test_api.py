import time as _time

import pytest
from fastapi.testclient import TestClient

from conftest import DAY, FakeFetcher, lesson, make_config, snapshot
from untis_watch.api import create_app
from untis_watch.errors import ConfigurationError, NetworkError
from untis_watch.models import LessonStatus


def wait_for_generation(app, generation, timeout=2.0):
    deadline = _time.monotonic() + timeout
    while _time.monotonic() < deadline:
        if app.state.store.read().generation >= generation:
            return
        _time.sleep(0.01)
    raise AssertionError(f"generation {generation} not reached")


def test_routes_serve_published_state():
    fetcher = FakeFetcher(snapshot(lesson(1, "M", status=LessonStatus.CANCELLED), lesson(2, "Ph")))
    app = create_app(make_config(refresh_interval_seconds=3600), fetcher=fetcher)

    with TestClient(app) as client:
        wait_for_generation(app, 1)

        assert client.get("/").text == "Hello, world!"

        health = client.get("/health").json()
        assert health["has_data"] is True
        assert health["last_error"] is None
        assert health["generation"] == 1

        body = client.get("/diff").json()
        assert [record["key"] for record in body["diff"]["added"]] == ["1", "2"]
        assert body["diff"]["removed"] == []
        assert body["health"]["has_data"] is True

        body = client.get("/snapshot").json()
        assert {record["key"] for record in body["snapshot"]["records"]} == {"1", "2"}
        assert all("content_hash" in record for record in body["snapshot"]["records"])

        text = client.get("/speakable", params={"day": DAY.isoformat()}).text
        assert text == "Mathematik fällt zwischen 08:00 und 08:45 Uhr aus!"

    assert fetcher.closed is True
    assert not app.state.scheduler.running


def test_upstream_failure_is_reported_not_raised():
    fetcher = FakeFetcher(NetworkError("connection refused"))
    app = create_app(make_config(refresh_interval_seconds=3600), fetcher=fetcher)

    with TestClient(app) as client:
        deadline = _time.monotonic() + 2
        while app.state.store.read().last_error is None and _time.monotonic() < deadline:
            _time.sleep(0.01)

        response = client.get("/diff")
        assert response.status_code == 200
        body = response.json()
        assert body["diff"] is None
        assert body["health"]["has_data"] is False
        assert body["health"]["last_error"] == "NetworkError: connection refused"
        assert client.get("/snapshot").json()["snapshot"] is None


def test_configuration_error_stops_startup():
    fetcher = FakeFetcher(snapshot())
    fetcher.preflight_error = ConfigurationError("Cannot resolve WebUntis host")
    app = create_app(make_config(), fetcher=fetcher)

    with pytest.raises(ConfigurationError):
        with TestClient(app):
            pass
