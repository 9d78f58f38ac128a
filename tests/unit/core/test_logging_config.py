import logging

from app.core.logging_config import QUIET_LOGGERS, configure_logging


def test_explicit_level_overrides_environment(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "ERROR")

    configure_logging("debug")

    assert logging.getLogger("app").level == logging.DEBUG
    for name in QUIET_LOGGERS:
        assert logging.getLogger(name).level == logging.WARNING


def test_level_from_environment(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "warning")

    configure_logging()

    assert logging.getLogger("app").level == logging.WARNING
