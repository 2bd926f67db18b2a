import logging

from ws_relay.utils import logging as relay_logging
from ws_relay.utils.logging import get_logger, setup_logging


def test_loggers_live_under_package_root():
    assert get_logger("ws_relay.core.relay_server").name == "ws_relay.core.relay_server"
    assert get_logger("benchmark").name == "ws_relay.benchmark"


def test_get_logger_does_not_install_handlers(monkeypatch):
    root = logging.getLogger("ws_relay")
    monkeypatch.setattr(relay_logging, "_configured", False)
    monkeypatch.setattr(root, "handlers", [])

    get_logger("ws_relay.core.connector").info("quiet")

    assert root.handlers == []
    assert relay_logging._configured is False


def test_setup_is_idempotent(monkeypatch):
    root = logging.getLogger("ws_relay")
    monkeypatch.setattr(relay_logging, "_configured", False)
    monkeypatch.setattr(root, "handlers", [])

    assert setup_logging("WARNING") is root
    assert len(root.handlers) == 1
    assert setup_logging("debug") is root
    assert len(root.handlers) == 1
    assert root.level == logging.DEBUG


def test_unknown_level_falls_back_to_info():
    assert setup_logging("NOT_A_LEVEL").level == logging.INFO
