"""
reqlog.dispatcher

Subscription and routing between the notification bus and the log subscriber.

Responsibilities:
- Subscribe to every pattern the registry knows about.
- Route each incoming event to its handler through a fixed lookup table.
- Keep handler failures (other than sink failures) from reaching the publisher.
"""

from __future__ import annotations

from typing import Any

from reqlog.errors import SinkError
from reqlog.notifications import Event, Notifier
from reqlog.observability.logging import get_logger
from reqlog.registry import EventRegistry
from reqlog.subscriber import Handler, LogSubscriber

log = get_logger(__name__)


class Dispatcher:
    def __init__(
        self,
        *,
        registry: EventRegistry,
        subscriber: LogSubscriber,
        bus: Notifier,
    ) -> None:
        self._registry = registry
        self._subscriber = subscriber
        self._bus = bus
        self._table: dict[str, Handler] = {}

    @property
    def registry(self) -> EventRegistry:
        return self._registry

    def subscribe_to_events(self) -> frozenset[str]:
        """
        Subscribe to every known pattern and rebuild the routing table.

        Re-runnable: names registered since the last run get subscribed, and
        duplicate subscriptions are dropped by the bus.
        """

        handlers = self._subscriber.handlers()
        patterns = self._registry.event_patterns()
        table: dict[str, Handler] = {}
        for pattern in patterns:
            self._bus.subscribe(pattern, self)
            name = self._registry.event_name(pattern)
            if name in handlers:
                table[pattern] = handlers[name]
        self._table = table

        log.debug(
            "subscribed_to_events",
            namespace=self._registry.namespace,
            patterns=sorted(patterns),
            unhandled=sorted(set(patterns) - set(table)),
        )
        return patterns

    def unsubscribe(self) -> None:
        self._bus.unsubscribe(self)
        self._table = {}

    def handler_for(self, name: str) -> Handler | None:
        return self._table.get(name)

    def __call__(self, event: Event) -> Any:
        handler = self._table.get(event.name)
        if handler is None:
            # Registered but not (yet) handled; the subscription itself is still live.
            log.debug("unhandled_event", event_name=event.name)
            return None
        try:
            return handler(event)
        except SinkError:
            raise
        except Exception:
            log.exception(
                "event_handler_failed",
                event_name=event.name,
                correlation_id=event.transaction_id,
            )
            return None


# --- Module Notes -----------------------------------------------------------
# The table is keyed by the full pattern ("send_file.action_controller") because that
# is the name the bus delivers on `Event.name`.
