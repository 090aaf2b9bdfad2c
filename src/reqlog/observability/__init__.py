"""
reqlog.observability

Observability package.

Responsibilities:
- Structured logging configuration.
- ASGI integration that publishes request lifecycle events.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# The aggregation core (store/registry/dispatcher/subscriber) does not import from here
# except for `get_logger`.
