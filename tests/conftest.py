"""
tests.conftest

Shared fixtures for the aggregator tests.

Responsibilities:
- Provide fresh store/registry/bus instances per test (no shared global state).
- Provide recording and failing sinks standing in for the structlog request logger.
- Build notification events with controllable timestamps.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

import pytest

from reqlog.dispatcher import Dispatcher
from reqlog.notifications import Event, Notifier
from reqlog.registry import EventRegistry, default_registry
from reqlog.store import RequestContextStore
from reqlog.subscriber import LogSubscriber

NAMESPACE = "action_controller"


class RecordingSink:
    def __init__(self) -> None:
        self.records: list[tuple[str, dict[str, Any]]] = []
        self.levels: list[str] = []

    def info(self, event: str, **fields: Any) -> None:
        self.levels.append("info")
        self.records.append((event, fields))


class FailingSink:
    def info(self, event: str, **fields: Any) -> None:
        raise OSError("collector unreachable")


@pytest.fixture
def store() -> RequestContextStore:
    return RequestContextStore()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def subscriber(store: RequestContextStore, sink: RecordingSink) -> LogSubscriber:
    return LogSubscriber(store=store, sink=sink)


@pytest.fixture
def registry() -> EventRegistry:
    return default_registry(NAMESPACE)


@pytest.fixture
def bus() -> Notifier:
    return Notifier()


@pytest.fixture
def dispatcher(registry: EventRegistry, subscriber: LogSubscriber, bus: Notifier) -> Dispatcher:
    return Dispatcher(registry=registry, subscriber=subscriber, bus=bus)


@pytest.fixture
def make_event() -> Callable[..., Event]:
    def _make(
        name: str,
        payload: dict[str, Any] | None = None,
        *,
        transaction_id: str = "txn-1",
        start: float | None = None,
        duration_ms: float = 0.0,
    ) -> Event:
        started = time.time() if start is None else start
        return Event(
            name=f"{name}.{NAMESPACE}",
            time=started,
            end=started + duration_ms / 1000.0,
            transaction_id=transaction_id,
            payload=payload or {},
        )

    return _make


# --- Module Notes -----------------------------------------------------------
# Tests never call `configure_logging` through `install` (setup_logging=False) so that
# `structlog.testing.capture_logs` keeps working on module-level loggers.
