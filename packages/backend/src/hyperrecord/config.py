"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with HYPERRECORD_ prefix.

Learn: The key prefix, channel prefix and event name default to the values
existing browser clients already listen on. Change them only when no
deployed client depends on the old names.
"""

from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings

PUSHER_MAX_CHANNELS = 100


class Settings(BaseSettings):
    """All app configuration. Set via HYPERRECORD_* env vars."""

    # Redis (subscription store)
    redis_url: str = "redis://localhost:6379/0"

    # Transport: which delivery backend is active
    resource_transport: Literal["none", "pusher", "redis"] = "none"
    transport_batch_size: int = 50  # channels per trigger call

    # Pusher
    pusher_app_id: str = ""
    pusher_key: str = ""
    pusher_secret: str = ""
    pusher_cluster: str = "mt1"
    pusher_timeout_seconds: int = 5

    # Subscriptions
    freshness_window_seconds: float = 24 * 60 * 60
    key_prefix: str = "HRPS"
    channel_prefix: str = "hyper-record-update-channel-"
    update_event: str = "update"

    # When False, notification failures are logged and swallowed so they
    # never abort the write that triggered them.
    notification_errors_fatal: bool = False

    # Server
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000

    # Logging
    log_level: str = "info"
    log_format: Literal["json", "console"] = "console"

    model_config = {"env_prefix": "HYPERRECORD_"}

    @model_validator(mode="after")
    def validate_transport_settings(self):
        """Pusher needs credentials everywhere except local development."""
        if (
            self.resource_transport == "pusher"
            and self.environment != "development"
            and not (self.pusher_app_id and self.pusher_key and self.pusher_secret)
        ):
            raise ValueError(
                "HYPERRECORD_PUSHER_APP_ID, HYPERRECORD_PUSHER_KEY and "
                "HYPERRECORD_PUSHER_SECRET must be set when the pusher "
                "transport is selected outside development."
            )
        if self.transport_batch_size < 1:
            raise ValueError("HYPERRECORD_TRANSPORT_BATCH_SIZE must be at least 1")
        if (
            self.resource_transport == "pusher"
            and self.transport_batch_size > PUSHER_MAX_CHANNELS
        ):
            raise ValueError(
                f"HYPERRECORD_TRANSPORT_BATCH_SIZE must be at most {PUSHER_MAX_CHANNELS} "
                "with the pusher transport"
            )
        if self.freshness_window_seconds <= 0:
            raise ValueError("HYPERRECORD_FRESHNESS_WINDOW_SECONDS must be positive")
        return self


# Singleton — import this everywhere
settings = Settings()
