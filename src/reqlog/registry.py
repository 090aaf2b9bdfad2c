"""
reqlog.registry

Registry of the event names monitored for one namespace.

Responsibilities:
- Hold the known event names as a set (registration is idempotent).
- Compute the fully-qualified subscription patterns "<name>.<namespace>".
"""

from __future__ import annotations

from threading import Lock

DEFAULT_EVENTS: tuple[str, ...] = (
    "start_processing",
    "process_action",
    "halted_callback",
    "send_file",
    "send_data",
    "redirect_to",
)


class EventRegistry:
    def __init__(self, namespace: str) -> None:
        if not namespace:
            raise ValueError("namespace must be a non-empty string")
        self.namespace = namespace
        self._lock = Lock()
        self._events: set[str] = set()

    def register_event(self, name: str) -> None:
        with self._lock:
            self._events.add(str(name))

    def known_events(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._events)

    def event_patterns(self) -> frozenset[str]:
        return frozenset(self.pattern_for(name) for name in self.known_events())

    def pattern_for(self, name: str) -> str:
        return f"{name}.{self.namespace}"

    def event_name(self, pattern: str) -> str | None:
        # Inverse of `pattern_for`; None for names outside this namespace.
        suffix = f".{self.namespace}"
        if not pattern.endswith(suffix):
            return None
        return pattern[: -len(suffix)]


def default_registry(namespace: str) -> EventRegistry:
    registry = EventRegistry(namespace)
    for name in DEFAULT_EVENTS:
        registry.register_event(name)
    return registry


# --- Module Notes -----------------------------------------------------------
# Extending the monitored set only needs `register_event` plus a handler entry in
# `LogSubscriber.handlers`; the dispatcher picks both up on the next subscription run.
