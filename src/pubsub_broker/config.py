"""BrokerConfig: settings consumed by the broker and the notification service."""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BrokerConfig(BaseSettings):
    """Configuration for the broker core and the notification service.

    Every field can be set from the environment under its upper-case name
    (``DEFAULT_RETENTION_PERIOD``, ``WEBHOOK_SECRET``...); the connection
    settings are read from ``MONGODB_URI`` and ``MONGODB_DATABASE``. Empty
    variables fall back to the default.

    Attributes:
        mongodb_uri: MongoDB connection string.
        database: Database holding queues, messages, topics and notifications.
        default_retention_period: Retention in days for queues created without one.
        default_visibility_timeout: Seconds a received message stays hidden.
        default_max_messages: Batch size of a receive call without an explicit one.
        change_stream_batch_size: Documents per change stream batch.
        change_stream_max_await_ms: Max server wait for new changes per batch.
        feed_restart_delay: Seconds to wait before reattaching a failed feed.
        close_timeout: Grace period for closing feeds and draining notifications.
        push_timeout: Timeout for a single webhook push.
        webhook_secret: HMAC secret for signing pushes; unsigned when unset.
        reaper_interval: Seconds between expiry sweeps.
        reaper_batch_size: Messages removed per sweep batch.
        max_concurrency: Notifications processed concurrently.
        log_level: Root log level for the notifier entrypoint.
    """

    model_config = SettingsConfigDict(
        frozen=True,
        env_ignore_empty=True,
        populate_by_name=True,
        extra="ignore",
    )

    mongodb_uri: str = Field(
        default="mongodb://localhost:27017", validation_alias="MONGODB_URI"
    )
    database: str = Field(default="pubsub", validation_alias="MONGODB_DATABASE")
    default_retention_period: int = Field(default=14, ge=1)
    default_visibility_timeout: int = Field(default=30, ge=0)
    default_max_messages: int = Field(default=10, ge=1)
    change_stream_batch_size: int = Field(default=100, ge=1)
    change_stream_max_await_ms: int = Field(default=1000, ge=0)
    feed_restart_delay: float = Field(default=1.0, ge=0)
    close_timeout: float = Field(default=10.0, ge=0)
    push_timeout: float = Field(default=10.0, gt=0)
    webhook_secret: str | None = None
    reaper_interval: float = Field(default=60.0, gt=0)
    reaper_batch_size: int = Field(default=500, ge=1)
    max_concurrency: int = Field(default=16, ge=1)
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()
