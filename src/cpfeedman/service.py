"""Feed service: turns queue messages into feed kicks.

At startup the service reads the gateway and feed catalog once. Each queue
message whose body is exactly a known feed name triggers a kick of that
feed on every gateway. Catalog changes need a restart.
"""

import asyncio
import logging
from collections.abc import Callable

from cpfeedman.checkpoint.directory import list_feed_names, list_gateway_names
from cpfeedman.checkpoint.feeds import kick_feed, run_inventory
from cpfeedman.checkpoint.poller import PollResult, TaskPoller
from cpfeedman.checkpoint.session import CheckPointSession
from cpfeedman.config import Settings
from cpfeedman.errors import CheckPointError
from cpfeedman.sqs.consumer import MessageHandler, QueueConsumer, QueueMessage

logger = logging.getLogger(__name__)

ConsumerFactory = Callable[[MessageHandler], QueueConsumer]


def log_poll_result(result: PollResult) -> None:
    """Log decoded task output and a one-line summary."""
    for task_id, text in result.messages().items():
        logger.info(f"Task {task_id} finished with message:\n===\n{text}===")
    if result.timed_out:
        logger.warning(f"Tasks still running after timeout: {result.unfinished_ids}")
    elif result.non_success_count:
        logger.warning(f"Tasks by status: {result.status_counts}")


class FeedService:
    """Wires the queue consumer to the Check Point API.

    Example:
        async with CheckPointSession.from_settings(settings) as session:
            service = FeedService(session, settings)
            await service.run()
    """

    def __init__(
        self,
        session: CheckPointSession,
        settings: Settings,
        consumer_factory: ConsumerFactory | None = None,
    ):
        """Initialize the service.

        Args:
            session: Management API session
            settings: Application settings
            consumer_factory: Builds the queue consumer for a handler
                (defaults to an SQS consumer on settings.sqs_endpoint)
        """
        self.session = session
        self.settings = settings
        self.poller = TaskPoller(
            session,
            poll_interval=settings.task_poll_interval,
            timeout=settings.task_timeout,
        )
        self._consumer_factory = consumer_factory or self._default_consumer
        self._consumer: QueueConsumer | None = None
        self._stop_event = asyncio.Event()
        self.gateways: list[str] = []
        self.feeds: list[str] = []

    def _default_consumer(self, handler: MessageHandler) -> QueueConsumer:
        return QueueConsumer(
            self.settings.sqs_endpoint,
            handler,
            region=self.settings.get_aws_region(),
            wait_seconds=self.settings.queue_wait_seconds,
            error_delay=self.settings.queue_error_delay,
        )

    async def load_catalog(self) -> None:
        """Fetch gateway and feed names.

        Raises:
            CheckPointError: If either listing fails; the service must not
                run with an incomplete catalog
        """
        self.gateways = await list_gateway_names(self.session)
        logger.info(f"Gateways: {self.gateways}")
        self.feeds = await list_feed_names(self.session)
        logger.info(f"Feeds: {self.feeds}")

        if self.settings.notified_gateways:
            logger.warning(
                f"CPFEEDMAN_NOTIFIED_GATEWAYS is set ({self.settings.notified_gateways}) "
                "but is not applied; feeds are kicked on all gateways"
            )

    async def run_inventory(self) -> PollResult:
        """Run the inventory script on all gateways and wait for it."""
        response = await run_inventory(self.session, self.gateways)
        result = await self.poller.poll_until_done(response.task_ids(), self._stop_event)
        log_poll_result(result)
        return result

    async def handle_message(self, message: QueueMessage) -> None:
        """Kick the feed named by the message body, if it is a known feed.

        Unknown bodies are ignored. Kick failures are logged and swallowed
        so the consumer keeps running.
        """
        feed = message.body
        if feed not in self.feeds:
            logger.info(f"Message body {feed!r} is not a known feed, ignoring")
            return

        # TODO: rate limit repeated kicks of the same feed
        try:
            response = await kick_feed(self.session, feed, self.gateways)
            logger.info(f"Kicked feed '{feed}', tasks: {response.task_ids()}")
            if self.settings.wait_for_kick:
                result = await self.poller.poll_until_done(response.task_ids(), self._stop_event)
                log_poll_result(result)
        except CheckPointError as e:
            logger.error(f"Error kicking feed '{feed}': {e}")

    async def run(self) -> None:
        """Load the catalog, optionally run the inventory, then consume forever.

        Raises:
            CheckPointError: If the startup catalog or inventory fails
        """
        await self.load_catalog()

        if self.settings.inventory_on_startup:
            await self.run_inventory()

        # The next kick logs in again.
        try:
            await self.session.logout()
        except CheckPointError as e:
            logger.warning(f"Logout failed: {e}")

        if self._stop_event.is_set():
            logger.info("Stop requested during startup, not consuming")
            return

        self._consumer = self._consumer_factory(self.handle_message)
        await self._consumer.listen()

    def stop(self) -> None:
        """Stop consuming and abort any task wait in progress."""
        self._stop_event.set()
        if self._consumer is not None:
            self._consumer.stop()
