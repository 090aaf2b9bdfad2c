"""
tests.test_bootstrap

Composition root, settings and logging configuration.

Responsibilities:
- Settings read the `REQLOG_` environment.
- `install` wires a working pipeline onto the given bus and namespace.
- `configure_logging` installs the structlog JSON processor chain.
"""

from __future__ import annotations

import logging
import time

import pytest
import structlog
from pydantic import ValidationError

from reqlog.bootstrap import install
from reqlog.notifications import Notifier
from reqlog.observability.logging import configure_logging
from reqlog.settings import DEFAULT_INTERNAL_PARAMS, Settings, get_settings

from conftest import RecordingSink


@pytest.fixture
def clean_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_settings_defaults() -> None:
    settings = Settings()
    assert settings.namespace == "action_controller"
    assert settings.internal_params == DEFAULT_INTERNAL_PARAMS
    assert settings.log_message == "request"


def test_settings_from_environment(monkeypatch, clean_settings_cache) -> None:
    monkeypatch.setenv("REQLOG_NAMESPACE", "http_api")
    monkeypatch.setenv("REQLOG_INTERNAL_PARAMS", '["controller", "action"]')
    monkeypatch.setenv("REQLOG_LOG_MESSAGE", "http_request")

    settings = get_settings()
    assert settings.namespace == "http_api"
    assert settings.internal_params == ("controller", "action")
    assert settings.log_message == "http_request"


def test_settings_reject_empty_namespace() -> None:
    with pytest.raises(ValidationError):
        Settings(namespace="")


def test_install_uses_configured_namespace_and_message() -> None:
    bus = Notifier()
    sink = RecordingSink()
    inst = install(
        Settings(namespace="http_api", log_message="http_request"),
        bus=bus,
        sink=sink,
        setup_logging=False,
    )
    try:
        assert bus.is_listening("process_action.http_api")
        assert not bus.is_listening("process_action.action_controller")

        now = time.time()
        bus.publish("process_action.http_api", now, now, "t", {"method": "POST", "status": 201})
        assert sink.records[0][0] == "http_request"
        assert sink.records[0][1]["status"] == 201
    finally:
        inst.uninstall()

    assert not bus.is_listening("process_action.http_api")


def test_configure_logging_installs_json_chain() -> None:
    try:
        configure_logging(service_name="reqlog-test", level="debug")
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        assert structlog.contextvars.merge_contextvars in processors

        configure_logging(service_name="reqlog-test", level="info", json=False)
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
    finally:
        structlog.reset_defaults()


def test_configure_logging_keeps_request_sink_at_info() -> None:
    sink = logging.getLogger("reqlog.test_sink")
    root = logging.getLogger()
    root_level = root.level
    try:
        configure_logging(service_name="reqlog-test", level="warning", sink_logger=sink.name)
        root.setLevel(logging.WARNING)
        assert sink.isEnabledFor(logging.INFO)
        assert not logging.getLogger("reqlog.other").isEnabledFor(logging.INFO)
    finally:
        sink.setLevel(logging.NOTSET)
        root.setLevel(root_level)
        structlog.reset_defaults()


# --- Module Notes -----------------------------------------------------------
# `configure_logging` enables logger caching, so the test above restores structlog
# defaults before any module logger is used again.
