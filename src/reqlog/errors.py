"""
reqlog.errors

Domain-specific exceptions.

Responsibilities:
- Give callers one base class to catch for anything raised by this package.
- Mark the only failure that crosses the subsystem boundary (sink failures).
"""

from __future__ import annotations


class ReqlogError(Exception):
    pass


class SinkError(ReqlogError):
    """
    Raised when the log sink fails while flushing a request record.
    The record's aggregator has already been evicted: delivery is at-most-once.
    """

    def __init__(self, correlation_id: str, cause: BaseException) -> None:
        super().__init__(f"log sink failed for {correlation_id}: {cause!r}")
        self.correlation_id = correlation_id
        self.cause = cause


# --- Module Notes -----------------------------------------------------------
# Missing payload fields are deliberately not represented here: they are absorbed by
# handlers and recorded as `reqlog.aggregator.MISSING`.
