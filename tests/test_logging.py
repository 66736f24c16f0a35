import logging

import pytest

from untis_watch.logging import setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    setup_logging()
    root.handlers = handlers
    root.setLevel(level)


def test_server_and_scheduler_loggers_follow_level(restore_root_logger):
    setup_logging(log_level="DEBUG")
    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("uvicorn.access").level == logging.DEBUG
    # APScheduler stays at WARNING so each job run is not logged
    assert logging.getLogger("apscheduler").level == logging.WARNING

    setup_logging(json_output=True, log_level="error")
    assert logging.getLogger("uvicorn").level == logging.ERROR
    assert logging.getLogger("apscheduler").level == logging.ERROR


def test_unknown_level_falls_back_to_info(restore_root_logger):
    setup_logging(log_level="chatty")
    assert logging.getLogger().level == logging.INFO
