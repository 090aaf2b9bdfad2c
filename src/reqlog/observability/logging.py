"""
reqlog.observability.logging

Structured logging configuration for request records and side-channel warnings.

Responsibilities:
- Render every structlog event as one JSON line (or console output for local dev).
- Keep the request sink logger at info even when the process runs quieter.
- Provide `get_logger`, used both for module loggers and for the request sink.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog


def configure_logging(
    *,
    service_name: str,
    level: str,
    json: bool = True,
    sink_logger: str | None = None,
) -> None:
    """
    Configure stdlib + structlog once at startup.

    `sink_logger` names the logger request records go to; it is pinned to INFO so a
    root level of WARNING silences side-channel chatter but never the records.
    """

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )
    if sink_logger:
        logging.getLogger(sink_logger).setLevel(logging.INFO)

    # ConsoleRenderer formats exc_info itself; JSON needs tracebacks turned into dicts first.
    renderers: list[Any] = (
        [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
        if json
        else [structlog.dev.ConsoleRenderer()]
    )

    structlog.configure(
        processors=[
            # Request-scoped fields bound by the middleware (request_id, path, method).
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _static_fields(service=service_name),
            *renderers,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _static_fields(**fields: Any):
    # Fields every line carries unless the event already set them.
    def processor(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        for key, value in fields.items():
            event_dict.setdefault(key, value)
        return event_dict

    return processor


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


# --- Module Notes -----------------------------------------------------------
# Records emitted through the sink carry the aggregator fields as top-level keys, so the
# processor chain must not rename or drop keys it does not own.
