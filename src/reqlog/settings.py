"""
reqlog.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide env-driven settings for the aggregator, its sink and the ASGI integration.
- Offer a cached settings instance for the composition root.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Routing metadata the host framework mixes into request params.
DEFAULT_INTERNAL_PARAMS: tuple[str, ...] = (
    "controller",
    "action",
    "format",
    "_method",
    "only_path",
)


class Settings(BaseSettings):
    """
    - Strict env-driven configuration (prefix `REQLOG_`)
    - Defaults safe for local dev
    - Single settings object handed to `reqlog.bootstrap.install`
    """

    model_config = SettingsConfigDict(env_prefix="REQLOG_", case_sensitive=False)

    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "reqlog"
    log_level: str = "INFO"
    # Console rendering is easier to read locally; collectors want JSON.
    log_json: bool = True

    # Events are subscribed as "<event>.<namespace>".
    namespace: str = Field(default="action_controller", min_length=1)

    # Sink: logger name and event name of the one-per-request record.
    sink_logger_name: str = Field(default="reqlog.requests", min_length=1)
    log_message: str = Field(default="request", min_length=1)

    internal_params: tuple[str, ...] = DEFAULT_INTERNAL_PARAMS

    # ASGI integration
    request_id_header: str = Field(default="x-request-id", min_length=1)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars on every install.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# `internal_params` accepts a JSON list from the environment, e.g.
# REQLOG_INTERNAL_PARAMS='["controller","action"]'.
