"""
reqlog.instrumentation

Producer-side helpers that publish request lifecycle events for the current transaction.

Responsibilities:
- Publish enrichment events (redirect, halted callback, timed file/data transfers).
- Accumulate per-request view/db runtimes for the completion payload.
"""

from __future__ import annotations

import time as _time
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

from reqlog.notifications import Notifier, current_transaction_id, new_transaction_id

_runtimes: ContextVar[dict[str, float] | None] = ContextVar("reqlog_runtimes", default=None)


def reset_runtimes() -> None:
    _runtimes.set({"view": 0.0, "db": 0.0})


def record_runtime(kind: str, elapsed_ms: float) -> None:
    """
    Add `elapsed_ms` to the "view" or "db" runtime of the current request.
    No-op outside a request started by the middleware.
    """

    acc = _runtimes.get()
    if acc is None:
        return
    acc[kind] = acc.get(kind, 0.0) + float(elapsed_ms)


def runtimes() -> dict[str, float]:
    return dict(_runtimes.get() or {})


class Instrumenter:
    """
    Publishes "<event>.<namespace>" events on `bus`, tagged with the transaction
    bound by `Notifier.transaction` (or a fresh id outside one).
    """

    def __init__(self, *, bus: Notifier, namespace: str) -> None:
        self._bus = bus
        self._namespace = namespace

    @property
    def bus(self) -> Notifier:
        return self._bus

    def _name(self, event: str) -> str:
        return f"{event}.{self._namespace}"

    def publish(
        self,
        event: str,
        payload: dict[str, Any],
        *,
        time: float | None = None,
        end: float | None = None,
    ) -> None:
        end = _time.time() if end is None else end
        tid = current_transaction_id() or new_transaction_id()
        self._bus.publish(self._name(event), end if time is None else time, end, tid, payload)

    def start_processing(self, **payload: Any) -> None:
        self.publish("start_processing", payload)

    def redirect_to(self, location: str, **payload: Any) -> None:
        self.publish("redirect_to", {"location": location, **payload})

    def halted_callback(self, filter: Any) -> None:
        self.publish("halted_callback", {"filter": filter})

    @contextmanager
    def send_file(self, path: str, **payload: Any) -> Iterator[dict[str, Any]]:
        with self._bus.instrument(self._name("send_file"), {"path": path, **payload}) as p:
            yield p

    @contextmanager
    def send_data(self, filename: str, **payload: Any) -> Iterator[dict[str, Any]]:
        with self._bus.instrument(
            self._name("send_data"), {"filename": filename, **payload}
        ) as p:
            yield p

    @contextmanager
    def process_action(self, **payload: Any) -> Iterator[dict[str, Any]]:
        with self._bus.instrument(self._name("process_action"), payload) as p:
            yield p


# --- Module Notes -----------------------------------------------------------
# Database or template layers call `record_runtime("db", ms)` / `record_runtime("view", ms)`;
# the middleware copies the totals into the completion payload.
