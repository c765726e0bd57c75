"""NotificationService and the ``pubsub-notifier`` entrypoint."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import TYPE_CHECKING

from .config import BrokerConfig

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .notifications.change_capture import ChangeCapture
    from .notifications.dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)


class NotificationService:
    """Companion process core: change capture feeding the dispatcher.

    ``close()`` closes the feeds first (bounded by the capture's close
    timeout), then lets in-flight processing finish up to ``drain_timeout``.
    """

    def __init__(
        self,
        capture: ChangeCapture,
        dispatcher: NotificationDispatcher,
        *,
        drain_timeout: float = 10.0,
        on_initialize: Callable[[], Awaitable[object]] | None = None,
    ) -> None:
        self.capture = capture
        self.dispatcher = dispatcher
        self._drain_timeout = drain_timeout
        self._on_initialize = on_initialize
        self._initialized = False

    async def initialize(self) -> None:
        if self._initialized:
            return
        if self._on_initialize is not None:
            await self._on_initialize()
        await self.dispatcher.recover_pending()
        await self.capture.initialize()
        self._initialized = True
        logger.info("Notification service started")

    async def close(self) -> None:
        if not self._initialized:
            return
        self._initialized = False
        await self.capture.close()
        abandoned = await self.dispatcher.close(self._drain_timeout)
        logger.info("Notification service stopped (%d abandoned)", abandoned)


async def run(config: BrokerConfig) -> None:
    from .adapters.mongo import MongoConnectionManager
    from .bootstrap import create_notification_service

    connection = MongoConnectionManager(config.mongodb_uri, config.database)
    await connection.connect()
    service = create_notification_service(connection, config)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    try:
        await service.initialize()
        await stop.wait()
        logger.info("Shutdown requested")
    finally:
        # Hard deadline: feeds get close_timeout, processing gets close_timeout.
        try:
            await asyncio.wait_for(service.close(), timeout=config.close_timeout * 2 + 1)
        except asyncio.TimeoutError:
            logger.error("Shutdown deadline exceeded, exiting anyway")
        connection.close()


def main() -> None:
    config = BrokerConfig()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(run(config))


if __name__ == "__main__":
    main()
