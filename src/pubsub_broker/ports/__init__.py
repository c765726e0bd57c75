from .background_worker import IBackgroundWorker
from .change_feed import IChangeFeed, IChangeStream
from .notifications import INotificationRepository, IPushSender, IResumePositionStore
from .repositories import (
    IMessageRepository,
    IMetricsRepository,
    IQueueRepository,
    ITopicRepository,
)

__all__ = [
    "IBackgroundWorker",
    "IChangeFeed",
    "IChangeStream",
    "IMessageRepository",
    "IMetricsRepository",
    "INotificationRepository",
    "IPushSender",
    "IQueueRepository",
    "IResumePositionStore",
    "ITopicRepository",
]
