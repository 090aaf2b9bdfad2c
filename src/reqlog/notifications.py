"""
reqlog.notifications

In-process publish/subscribe bus for request lifecycle notifications.

Responsibilities:
- Carry named events `{name, time, end, transaction_id, payload}` from producers to subscribers.
- Keep subscriptions per exact name pattern ("<event>.<namespace>").
- Bind the current transaction (correlation) id per request via contextvars.
"""

from __future__ import annotations

import time as _time
import uuid
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from threading import Lock
from typing import Any

from reqlog.observability.logging import get_logger

log = get_logger(__name__)

_current_transaction: ContextVar[str | None] = ContextVar(
    "reqlog_transaction_id", default=None
)


@dataclass(frozen=True, slots=True)
class Event:
    """
    One published notification. `time` and `end` are epoch seconds.
    """

    name: str
    time: float
    end: float
    transaction_id: str
    payload: Mapping[str, Any] = field(default_factory=dict)

    @property
    def duration(self) -> float:
        # Milliseconds, the unit every duration field in a request record uses.
        return (self.end - self.time) * 1000.0


Subscriber = Callable[[Event], Any]


def current_transaction_id() -> str | None:
    return _current_transaction.get()


def new_transaction_id() -> str:
    return uuid.uuid4().hex[:20]


class Notifier:
    """
    Synchronous bus: `publish` calls every subscriber of the event name in
    subscription order, on the publishing thread/task. Subscriber exceptions
    propagate to the publisher.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._subscribers: dict[str, list[Subscriber]] = {}

    def subscribe(self, pattern: str, subscriber: Subscriber) -> None:
        with self._lock:
            subs = self._subscribers.setdefault(pattern, [])
            # Re-subscribing the same callable to the same pattern is a no-op.
            if subscriber not in subs:
                subs.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber, pattern: str | None = None) -> None:
        with self._lock:
            patterns = [pattern] if pattern is not None else list(self._subscribers)
            for p in patterns:
                subs = self._subscribers.get(p)
                if not subs:
                    continue
                self._subscribers[p] = [s for s in subs if s != subscriber]
                if not self._subscribers[p]:
                    del self._subscribers[p]

    def subscribers_for(self, name: str) -> list[Subscriber]:
        with self._lock:
            return list(self._subscribers.get(name, ()))

    def is_listening(self, name: str) -> bool:
        return bool(self.subscribers_for(name))

    def publish(
        self,
        name: str,
        time: float,
        end: float,
        transaction_id: str,
        payload: Mapping[str, Any],
    ) -> Event:
        event = Event(
            name=name,
            time=time,
            end=end,
            transaction_id=transaction_id,
            payload=payload,
        )
        for subscriber in self.subscribers_for(name):
            subscriber(event)
        return event

    @contextmanager
    def instrument(
        self, name: str, payload: dict[str, Any] | None = None
    ) -> Iterator[dict[str, Any]]:
        """
        Time the wrapped block and publish `name` when it exits.

        The yielded payload dict may be extended inside the block. If the block
        raises, `exception` (`[class name, message]`) is added to the payload
        before publishing and the error is re-raised.
        """

        payload = {} if payload is None else payload
        transaction_id = current_transaction_id() or new_transaction_id()
        started = _time.time()
        try:
            yield payload
        except Exception as e:
            payload["exception"] = [type(e).__name__, str(e)]
            try:
                self.publish(name, started, _time.time(), transaction_id, payload)
            except Exception:
                # The block's own error is the one the caller needs to see.
                log.warning("notification_publish_failed", event_name=name, exc_info=True)
            raise
        else:
            self.publish(name, started, _time.time(), transaction_id, payload)

    @contextmanager
    def transaction(self, transaction_id: str | None = None) -> Iterator[str]:
        """
        Bind a correlation id for every event instrumented inside the block.
        Bound per contextvars context, so interleaved asyncio requests never share it.
        """

        tid = transaction_id or new_transaction_id()
        token = _current_transaction.set(tid)
        try:
            yield tid
        finally:
            _current_transaction.reset(token)


_DEFAULT_NOTIFIER: Notifier | None = None


def get_notifier() -> Notifier:
    global _DEFAULT_NOTIFIER
    if _DEFAULT_NOTIFIER is None:
        _DEFAULT_NOTIFIER = Notifier()
    return _DEFAULT_NOTIFIER


# --- Module Notes -----------------------------------------------------------
# Producers normally use `reqlog.instrumentation` or the ASGI middleware rather than
# calling `publish` directly; `publish` stays public for hosts with their own timers.
