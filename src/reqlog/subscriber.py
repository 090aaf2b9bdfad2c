"""
reqlog.subscriber

Handlers that fold request lifecycle events into one aggregator per request.

Responsibilities:
- Enrichment handlers (start, halt, redirect, file/data transfer) mutate the aggregator.
- The completion handler (`process_action`) fills the remaining fields, emits the record
  to the sink at info level and evicts the aggregator.
- Absorb malformed payloads: missing keys become `MISSING` plus a warning.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterable, Mapping
from enum import Enum
from typing import Any, Protocol

from reqlog.aggregator import MISSING, RequestAggregator, TransferRecord
from reqlog.errors import SinkError
from reqlog.notifications import Event
from reqlog.observability.logging import get_logger
from reqlog.settings import DEFAULT_INTERNAL_PARAMS
from reqlog.store import RequestContextStore

log = get_logger(__name__)

Handler = Callable[[Event], RequestAggregator]


class LogSink(Protocol):
    def info(self, event: str, **fields: Any) -> Any: ...


class LogSubscriber:
    def __init__(
        self,
        *,
        store: RequestContextStore,
        sink: LogSink,
        message: str = "request",
        internal_params: Iterable[str] = DEFAULT_INTERNAL_PARAMS,
    ) -> None:
        self._store = store
        self._sink = sink
        self._message = message
        self._internal_params = frozenset(internal_params)

    @property
    def store(self) -> RequestContextStore:
        return self._store

    def handlers(self) -> dict[str, Handler]:
        # Event name (without namespace) -> handler. Read by the dispatcher on each
        # subscription run.
        return {
            "start_processing": self.start_processing,
            "process_action": self.process_action,
            "halted_callback": self.halted_callback,
            "send_file": self.send_file,
            "send_data": self.send_data,
            "redirect_to": self.redirect_to,
        }

    # -- enrichment ---------------------------------------------------------

    def start_processing(self, event: Event) -> RequestAggregator:
        with self._store.locked(event.transaction_id, started_at=event.time) as agg:
            payload = _payload(event)
            # Only what the start event actually carries; completion fills the rest.
            for name in ("method", "controller", "action", "path"):
                if name in payload:
                    setattr(agg, name, payload[name])
            if "format" in payload:
                agg.format = _format_tag(payload["format"])
            return agg

    def halted_callback(self, event: Event) -> RequestAggregator:
        with self._store.locked(event.transaction_id, started_at=event.time) as agg:
            flt = self._field(event, "filter")
            agg.halting_filter = flt if flt is MISSING else qualified_name(flt)
            return agg

    def send_file(self, event: Event) -> RequestAggregator:
        with self._store.locked(event.transaction_id, started_at=event.time) as agg:
            agg.sent_file = TransferRecord(
                path=self._field(event, "path"), transfer_time=event.duration
            )
            return agg

    def send_data(self, event: Event) -> RequestAggregator:
        with self._store.locked(event.transaction_id, started_at=event.time) as agg:
            agg.sent_data = TransferRecord(
                path=self._field(event, "filename"), transfer_time=event.duration
            )
            return agg

    def redirect_to(self, event: Event) -> RequestAggregator:
        with self._store.locked(event.transaction_id, started_at=event.time) as agg:
            agg.redirect_location = self._field(event, "location")
            return agg

    # -- completion ---------------------------------------------------------

    def process_action(self, event: Event) -> RequestAggregator:
        """
        Complete and flush the request record.

        Works without any prior event for the key: the aggregator is then built from
        this payload alone. Raises `SinkError` if the sink fails; the aggregator has
        been evicted by then either way.
        """

        with self._store.locked(event.transaction_id, started_at=event.time) as agg:
            payload = _payload(event)
            agg.method = self._field(event, "method")
            agg.controller = self._field(event, "controller")
            agg.action = self._field(event, "action")
            agg.format = _format_tag(self._field(event, "format"))
            agg.path = self._field(event, "path")
            agg.request_id = self._field(event, "request_id")
            agg.ip = self._field(event, "ip")
            agg.status = self._field(event, "status")
            agg.view = self._number(event, "view_runtime")
            agg.db = self._number(event, "db_runtime")
            agg.params = self._params(event)

            exc = payload.get("exception")
            if exc is not None:
                agg.exception = list(exc) if isinstance(exc, (list, tuple)) else [str(exc)]

            # A supplied duration wins unless it is absent or unusable.
            duration = self._number(event, "duration") if "duration" in payload else None
            if duration is None or duration is MISSING:
                duration = max(event.end - agg.started_at, 0.0) * 1000.0
            agg.duration = round(duration, 3)

            self._flush(agg)
            return agg

    def _flush(self, agg: RequestAggregator) -> None:
        if agg.flushed:
            return
        agg.flushed = True
        record = agg.to_log_dict()
        # Evict before emitting: a failing sink must not leave the entry behind.
        self._store.clear(agg.correlation_id)
        try:
            self._sink.info(self._message, **record)
        except Exception as e:
            log.warning(
                "request_log_sink_failed",
                correlation_id=agg.correlation_id,
                error=repr(e),
            )
            raise SinkError(agg.correlation_id, e) from e

    # -- payload access -----------------------------------------------------

    def _field(self, event: Event, key: str) -> Any:
        payload = _payload(event)
        if key not in payload:
            log.warning(
                "payload_field_missing",
                event_name=event.name,
                field=key,
                correlation_id=event.transaction_id,
            )
            return MISSING
        return payload[key]

    def _number(self, event: Event, key: str) -> Any:
        value = self._field(event, key)
        if value is MISSING or value is None:
            return value
        try:
            return float(value)
        except (TypeError, ValueError):
            log.warning(
                "payload_field_invalid",
                event_name=event.name,
                field=key,
                value=repr(value),
                correlation_id=event.transaction_id,
            )
            return MISSING

    def _params(self, event: Event) -> Any:
        raw = self._field(event, "params")
        if raw is MISSING or raw is None:
            return raw
        if not isinstance(raw, Mapping):
            log.warning(
                "payload_field_invalid",
                event_name=event.name,
                field="params",
                value=type(raw).__name__,
                correlation_id=event.transaction_id,
            )
            return MISSING
        return {
            str(k): v for k, v in raw.items() if str(k) not in self._internal_params
        }


def qualified_name(obj: Any) -> str:
    """
    "module.QualName" for classes and functions, the string itself for strings, and
    the qualified name of the type for anything else.
    """

    if isinstance(obj, str):
        return obj
    target = obj if inspect.isclass(obj) or inspect.isroutine(obj) else type(obj)
    module = getattr(target, "__module__", None)
    name = getattr(target, "__qualname__", None) or getattr(target, "__name__", repr(target))
    if not module or module == "builtins":
        return name
    return f"{module}.{name}"


def _payload(event: Event) -> Mapping[str, Any]:
    payload = event.payload
    return payload if isinstance(payload, Mapping) else {}


def _format_tag(value: Any) -> Any:
    # Formats arrive as enums, strings or ":html"-style tags; the record wants "html".
    if value is MISSING or value is None:
        return value
    if isinstance(value, Enum):
        value = value.value
    return str(value).lstrip(":")


# --- Module Notes -----------------------------------------------------------
# Handlers overwrite on repeat events and never raise for bad payloads; the only
# exception that leaves this module is `SinkError` from `process_action`.
