"""
reqlog.aggregator

Mutable per-request record that enrichment events write into and the completion
event flushes.

Responsibilities:
- Hold the merged fields for one in-flight request.
- Serialize to a flat dict suitable for a single structured log line.
- Provide the `MISSING` marker for fields whose payload key was absent.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Final


class _Missing:
    """
    Marker for "the event fired but its payload lacked this key".
    Rendered as null in the emitted record.
    """

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Final = _Missing()


@dataclass(slots=True)
class TransferRecord:
    # Used for both send_file and send_data; transfer_time is in milliseconds.
    path: Any
    transfer_time: float

    def as_dict(self) -> dict[str, Any]:
        return {"path": _render(self.path), "transfer_time": _render(self.transfer_time)}


# Scalar fields in the order they appear in the emitted record.
_RECORD_FIELDS: tuple[str, ...] = (
    "request_id",
    "method",
    "path",
    "format",
    "controller",
    "action",
    "status",
    "ip",
    "duration",
    "view",
    "db",
    "params",
    "halting_filter",
    "redirect_location",
    "exception",
)


@dataclass(slots=True)
class RequestAggregator:
    correlation_id: str
    started_at: float

    request_id: Any = None
    method: Any = None
    controller: Any = None
    action: Any = None
    format: Any = None
    path: Any = None
    ip: Any = None
    status: Any = None
    params: Any = None
    view: Any = None
    db: Any = None
    duration: Any = None
    exception: Any = None

    halting_filter: Any = None
    redirect_location: Any = None
    sent_file: TransferRecord | None = None
    sent_data: TransferRecord | None = None

    flushed: bool = field(default=False, repr=False)

    def to_log_dict(self) -> dict[str, Any]:
        """
        Flat record of every field set so far. Fields whose event never fired
        are omitted; fields set to `MISSING` are present with a null value.
        """

        out: dict[str, Any] = {"correlation_id": self.correlation_id}
        for name in _RECORD_FIELDS:
            value = getattr(self, name)
            if value is None:
                continue
            out[name] = _render(value)
        if self.sent_file is not None:
            out["sent_file"] = self.sent_file.as_dict()
        if self.sent_data is not None:
            out["sent_data"] = self.sent_data.as_dict()
        out["started_at"] = datetime.fromtimestamp(self.started_at, tz=UTC).isoformat()
        return out


def _render(value: Any) -> Any:
    if value is MISSING:
        return None
    if isinstance(value, dict):
        return {k: _render(v) for k, v in value.items()}
    return value


# --- Module Notes -----------------------------------------------------------
# Handlers overwrite fields on repeat events of the same kind; nothing here merges or
# accumulates values.
