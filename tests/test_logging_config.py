import logging

from tracker_import.core import logging_config
from tracker_import.core.config import settings


def test_service_and_sql_loggers_get_separate_levels(monkeypatch):
    monkeypatch.setattr(logging_config, "_is_configured", False)
    monkeypatch.setattr(settings, "sql_log_level", "ERROR")

    logging_config.configure_logging("debug")

    assert logging.getLogger("tracker_import").level == logging.DEBUG
    assert logging.getLogger("sqlalchemy.engine").level == logging.ERROR


def test_configure_logging_runs_once(monkeypatch):
    monkeypatch.setattr(logging_config, "_is_configured", True)
    before = logging.getLogger("tracker_import").level

    logging_config.configure_logging("critical")

    assert logging.getLogger("tracker_import").level == before
