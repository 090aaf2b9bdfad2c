"""
reqlog.bootstrap

Composition root for the request log aggregator.

Responsibilities:
- Build the registry, store, subscriber and dispatcher from settings.
- Subscribe them to a notification bus and hand back everything a host needs
  (including an `Instrumenter` for producers and the ASGI middleware).
"""

from __future__ import annotations

from dataclasses import dataclass

from reqlog.dispatcher import Dispatcher
from reqlog.instrumentation import Instrumenter
from reqlog.notifications import Notifier, get_notifier
from reqlog.observability.logging import configure_logging, get_logger
from reqlog.registry import EventRegistry, default_registry
from reqlog.settings import Settings
from reqlog.store import RequestContextStore
from reqlog.subscriber import LogSink, LogSubscriber

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Installation:
    settings: Settings
    bus: Notifier
    registry: EventRegistry
    store: RequestContextStore
    subscriber: LogSubscriber
    dispatcher: Dispatcher
    instrumenter: Instrumenter

    def uninstall(self) -> None:
        self.dispatcher.unsubscribe()
        self.store.clear_all()


def install(
    settings: Settings,
    *,
    bus: Notifier | None = None,
    sink: LogSink | None = None,
    registry: EventRegistry | None = None,
    setup_logging: bool = True,
) -> Installation:
    if setup_logging:
        # Configure structured logging once at process startup (before events flow).
        configure_logging(
            service_name=settings.service_name,
            level=settings.log_level,
            json=settings.log_json,
            sink_logger=settings.sink_logger_name,
        )

    bus = bus or get_notifier()
    registry = registry or default_registry(settings.namespace)
    store = RequestContextStore()
    subscriber = LogSubscriber(
        store=store,
        sink=sink or get_logger(settings.sink_logger_name),
        message=settings.log_message,
        internal_params=settings.internal_params,
    )
    dispatcher = Dispatcher(registry=registry, subscriber=subscriber, bus=bus)
    patterns = dispatcher.subscribe_to_events()
    log.info("reqlog_installed", env=settings.env, patterns=sorted(patterns))

    return Installation(
        settings=settings,
        bus=bus,
        registry=registry,
        store=store,
        subscriber=subscriber,
        dispatcher=dispatcher,
        instrumenter=Instrumenter(bus=bus, namespace=registry.namespace),
    )


# --- Module Notes -----------------------------------------------------------
# Typical ASGI wiring:
#   inst = install(get_settings())
#   app.add_middleware(RequestEventsMiddleware, instrumenter=inst.instrumenter,
#                      request_id_header=inst.settings.request_id_header)
