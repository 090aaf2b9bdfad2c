"""
reqlog.observability.middleware

ASGI middleware that turns each HTTP request into a stream of lifecycle events.

Responsibilities:
- Generate/propagate request IDs (echoed on the response).
- Bind one notification transaction per request and publish `start_processing` and
  `process_action` for it.
- Bind request metadata into structlog contextvars.
"""

from __future__ import annotations

import inspect
import time
import uuid
from typing import Any, Callable

import structlog
from starlette.datastructures import Headers, MutableHeaders, QueryParams

from reqlog.errors import SinkError
from reqlog.instrumentation import Instrumenter, reset_runtimes, runtimes
from reqlog.observability.logging import get_logger

log = get_logger(__name__)

_ACCEPT_FORMATS: tuple[tuple[str, str], ...] = (
    ("application/json", "json"),
    ("text/html", "html"),
    ("text/plain", "text"),
    ("application/xml", "xml"),
    ("text/csv", "csv"),
)


class RequestEventsMiddleware:
    """
    - Ensures every request has a request id
    - Publishes start/completion events so the log subscriber emits one record per request
    - Never lets a failing log sink break the response
    """

    def __init__(
        self,
        app: Callable[..., Any],
        *,
        instrumenter: Instrumenter,
        request_id_header: str = "x-request-id",
    ) -> None:
        self.app = app
        self._instrumenter = instrumenter
        self._header = request_id_header.lower()

    async def __call__(
        self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]
    ) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        # Prefer a caller-provided request id for trace continuity; otherwise generate one.
        request_id = headers.get(self._header) or str(uuid.uuid4())
        path = scope.get("path")
        method = scope.get("method")
        fmt = _request_format(path or "", headers)

        structlog.contextvars.bind_contextvars(request_id=request_id, path=path, method=method)
        reset_runtimes()

        status_code: int | None = None

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal status_code

            if message.get("type") == "http.response.start":
                status_code = int(message.get("status", 500))
                MutableHeaders(scope=message)[self._header] = request_id

            await send(message)

        with self._instrumenter.bus.transaction():
            self._instrumenter.start_processing(method=method, path=path, format=fmt)
            started = time.time()
            error: Exception | None = None
            try:
                await self.app(scope, receive, send_wrapper)
            except Exception as e:
                error = e
                raise
            finally:
                payload = _completion_payload(scope, request_id=request_id, fmt=fmt)
                # An exception before the response started is rendered as a 500 upstream.
                payload["status"] = status_code if status_code is not None else 500
                if error is not None:
                    payload["exception"] = [type(error).__name__, str(error)]
                self._complete(payload, started)
                structlog.contextvars.clear_contextvars()

    def _complete(self, payload: dict[str, Any], started: float) -> None:
        try:
            self._instrumenter.publish("process_action", payload, time=started)
        except SinkError as e:
            log.warning("request_log_dropped", correlation_id=e.correlation_id, error=repr(e.cause))


def _completion_payload(scope: dict[str, Any], *, request_id: str, fmt: str) -> dict[str, Any]:
    controller, action = _endpoint_names(scope)
    client = scope.get("client")
    params: dict[str, Any] = dict(QueryParams(scope.get("query_string", b"")))
    params.update(scope.get("path_params") or {})
    totals = runtimes()
    return {
        "controller": controller,
        "action": action,
        "params": params,
        "format": fmt,
        "method": scope.get("method"),
        "path": scope.get("path"),
        "request_id": request_id,
        "ip": client[0] if client else None,
        "view_runtime": totals.get("view", 0.0),
        "db_runtime": totals.get("db", 0.0),
    }


def _endpoint_names(scope: dict[str, Any]) -> tuple[str | None, str | None]:
    # The router stores the matched endpoint on the scope; unmatched requests have none.
    endpoint = scope.get("endpoint")
    if endpoint is None:
        return None, None
    if inspect.isclass(endpoint):
        return endpoint.__qualname__, str(scope.get("method", "")).lower()
    module = getattr(endpoint, "__module__", None)
    name = getattr(endpoint, "__name__", None) or type(endpoint).__name__
    return module, name


def _request_format(path: str, headers: Headers) -> str:
    last = path.rsplit("/", 1)[-1]
    if "." in last:
        return last.rsplit(".", 1)[-1].lower()
    accept = headers.get("accept", "")
    for mime, fmt in _ACCEPT_FORMATS:
        if mime in accept:
            return fmt
    return "*/*"


# --- Module Notes -----------------------------------------------------------
# Application code inside a request can add enrichment events through the same
# `Instrumenter` (redirect_to/send_file/send_data/halted_callback); they share the
# transaction bound here and so land on the same record.
