"""
tests.test_registry

Event registry semantics.

Responsibilities:
- Registration is idempotent (set semantics).
- Patterns are "<name>.<namespace>" for every known name.
"""

from __future__ import annotations

import pytest

from reqlog.registry import DEFAULT_EVENTS, EventRegistry, default_registry


def test_register_event_stores_the_name() -> None:
    registry = EventRegistry("action_controller")
    registry.register_event("foo")
    assert "foo" in registry.known_events()


def test_register_event_is_idempotent() -> None:
    registry = EventRegistry("action_controller")
    for name in ("foo", "foo", "bar", "bar"):
        registry.register_event(name)
    assert registry.known_events() == {"foo", "bar"}


def test_event_patterns_cover_every_known_event(registry) -> None:
    patterns = registry.event_patterns()
    assert patterns == {f"{name}.action_controller" for name in registry.known_events()}
    assert len(patterns) == len(DEFAULT_EVENTS)


def test_event_name_inverts_pattern(registry) -> None:
    assert registry.event_name("send_file.action_controller") == "send_file"
    assert registry.event_name("sql.active_record") is None


def test_namespace_is_injected() -> None:
    registry = default_registry("http_api")
    assert "process_action.http_api" in registry.event_patterns()


def test_known_events_is_a_snapshot() -> None:
    registry = EventRegistry("ns")
    snapshot = registry.known_events()
    registry.register_event("later")
    assert "later" not in snapshot


def test_empty_namespace_is_rejected() -> None:
    with pytest.raises(ValueError):
        EventRegistry("")


# --- Module Notes -----------------------------------------------------------
# Each test builds its own registry; nothing global is mutated and restored.
