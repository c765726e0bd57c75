"""Composition roots wiring adapters into the broker and notification service."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .broker import Broker
from .config import BrokerConfig
from .notifications import (
    ChangeCapture,
    NotificationDispatcher,
    PushNotificationHandler,
    WebhookPushSender,
)
from .notifications.events import MESSAGE_CREATED
from .notifier import NotificationService
from .services import (
    MessageReaper,
    MessageStore,
    MetricsAggregator,
    QueueRegistry,
    TopicRouter,
)
from .utils import utcnow

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .adapters.memory import InMemoryChangeFeed
    from .adapters.mongo import MongoConnectionManager
    from .ports import (
        IChangeFeed,
        IMessageRepository,
        IMetricsRepository,
        INotificationRepository,
        IPushSender,
        IQueueRepository,
        IResumePositionStore,
        ITopicRepository,
    )
    from .utils import Clock


def build_broker(
    *,
    queue_repository: IQueueRepository,
    message_repository: IMessageRepository,
    topic_repository: ITopicRepository,
    metrics_repository: IMetricsRepository,
    config: BrokerConfig,
    clock: Clock = utcnow,
    with_reaper: bool = True,
    on_open: Callable[[], Awaitable[object]] | None = None,
) -> Broker:
    metrics = MetricsAggregator(metrics_repository)
    queues = QueueRegistry(
        queue_repository, default_retention_period=config.default_retention_period
    )
    messages = MessageStore(
        message_repository,
        queues,
        metrics,
        default_visibility_timeout=config.default_visibility_timeout,
        default_max_messages=config.default_max_messages,
        clock=clock,
    )
    topics = TopicRouter(topic_repository, queues, messages)
    reaper = (
        MessageReaper(
            messages,
            interval_seconds=config.reaper_interval,
            batch_size=config.reaper_batch_size,
        )
        if with_reaper
        else None
    )
    return Broker(
        queues=queues,
        messages=messages,
        topics=topics,
        metrics=metrics,
        reaper=reaper,
        on_open=on_open,
    )


def create_memory_broker(
    config: BrokerConfig | None = None,
    change_feed: InMemoryChangeFeed | None = None,
    *,
    clock: Clock = utcnow,
    with_reaper: bool = True,
) -> Broker:
    """Broker over in-memory storage, optionally publishing into ``change_feed``."""
    from .adapters.memory import (
        InMemoryMessageRepository,
        InMemoryMetricsRepository,
        InMemoryQueueRepository,
        InMemoryTopicRepository,
    )

    return build_broker(
        queue_repository=InMemoryQueueRepository(change_feed),
        message_repository=InMemoryMessageRepository(change_feed),
        topic_repository=InMemoryTopicRepository(),
        metrics_repository=InMemoryMetricsRepository(),
        config=config or BrokerConfig(),
        clock=clock,
        with_reaper=with_reaper,
    )


def create_mongo_broker(
    connection: MongoConnectionManager,
    config: BrokerConfig | None = None,
    *,
    clock: Clock = utcnow,
    with_reaper: bool = True,
) -> Broker:
    from .adapters.mongo import (
        MongoMessageRepository,
        MongoMetricsRepository,
        MongoQueueRepository,
        MongoTopicRepository,
        ensure_indexes,
    )

    return build_broker(
        queue_repository=MongoQueueRepository(connection),
        message_repository=MongoMessageRepository(connection),
        topic_repository=MongoTopicRepository(connection),
        metrics_repository=MongoMetricsRepository(connection),
        config=config or BrokerConfig(),
        clock=clock,
        with_reaper=with_reaper,
        on_open=lambda: ensure_indexes(connection),
    )


def build_notification_service(
    *,
    change_feed: IChangeFeed,
    notification_repository: INotificationRepository,
    position_store: IResumePositionStore,
    queue_repository: IQueueRepository,
    config: BrokerConfig,
    push_sender: IPushSender | None = None,
    clock: Clock = utcnow,
    on_initialize: Callable[[], Awaitable[object]] | None = None,
) -> NotificationService:
    dispatcher = NotificationDispatcher(
        notification_repository,
        max_concurrency=config.max_concurrency,
        clock=clock,
    )
    sender = push_sender or WebhookPushSender(
        timeout=config.push_timeout, secret=config.webhook_secret
    )
    dispatcher.register(MESSAGE_CREATED, PushNotificationHandler(queue_repository, sender))
    capture = ChangeCapture(
        change_feed,
        dispatcher,
        notification_repository,
        position_store,
        restart_delay=config.feed_restart_delay,
        close_timeout=config.close_timeout,
    )
    return NotificationService(
        capture,
        dispatcher,
        drain_timeout=config.close_timeout,
        on_initialize=on_initialize,
    )


def create_notification_service(
    connection: MongoConnectionManager,
    config: BrokerConfig | None = None,
    *,
    push_sender: IPushSender | None = None,
) -> NotificationService:
    from .adapters.mongo import (
        MongoChangeFeed,
        MongoNotificationRepository,
        MongoQueueRepository,
        MongoResumePositionStore,
        ensure_indexes,
    )

    config = config or BrokerConfig()
    return build_notification_service(
        change_feed=MongoChangeFeed(
            connection,
            batch_size=config.change_stream_batch_size,
            max_await_time_ms=config.change_stream_max_await_ms,
        ),
        notification_repository=MongoNotificationRepository(connection),
        position_store=MongoResumePositionStore(connection),
        queue_repository=MongoQueueRepository(connection),
        config=config,
        push_sender=push_sender,
        on_initialize=lambda: ensure_indexes(connection),
    )
