"""SQS queue consumer.

Receives one message at a time, hands it to a handler, then deletes it.
The delete happens whatever the handler does, so a failing handler never
causes redelivery.

AWS credentials are resolved by boto3 (environment, profile or role).
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from functools import partial
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

DEFAULT_WAIT_SECONDS = 20
DEFAULT_ERROR_DELAY = 5.0


class QueueMessage(BaseModel):
    """A message received from the queue."""

    message_id: str = Field(default="", alias="MessageId")
    body: str = Field(default="", alias="Body")
    receipt_handle: str = Field(alias="ReceiptHandle")
    attributes: dict[str, str] = Field(default_factory=dict, alias="Attributes")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


MessageHandler = Callable[[QueueMessage], Awaitable[None]]


def make_sqs_client(region: str | None = None) -> Any:
    """Create a boto3 SQS client."""
    kwargs: dict[str, Any] = {
        "config": Config(retries={"max_attempts": 3, "mode": "standard"}),
    }
    if region:
        kwargs["region_name"] = region
    return boto3.client("sqs", **kwargs)


class QueueConsumer:
    """Long-polls an SQS queue and delivers each message to a handler.

    This consumer:
    - Receives at most one message per call (long poll)
    - Waits a fixed delay after a failed receive
    - Awaits the handler, then deletes the message unconditionally
    """

    def __init__(
        self,
        queue_url: str,
        handler: MessageHandler,
        client: Any = None,
        region: str | None = None,
        wait_seconds: int = DEFAULT_WAIT_SECONDS,
        error_delay: float = DEFAULT_ERROR_DELAY,
    ):
        """Initialize the consumer.

        Args:
            queue_url: SQS queue URL
            handler: Async function called with each received message
            client: Preconfigured boto3 SQS client (created lazily when None)
            region: AWS region for the lazily created client
            wait_seconds: Long-poll wait time per receive call
            error_delay: Seconds to sleep after a failed receive
        """
        self.queue_url = queue_url
        self.handler = handler
        self.region = region
        self.wait_seconds = wait_seconds
        self.error_delay = error_delay
        self._client = client
        self._running = False

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = make_sqs_client(self.region)
        return self._client

    async def _call(self, method: Callable[..., Any], **kwargs: Any) -> Any:
        """Run a blocking boto3 call in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(method, **kwargs))

    async def _receive(self) -> list[QueueMessage]:
        output = await self._call(
            self.client.receive_message,
            QueueUrl=self.queue_url,
            MaxNumberOfMessages=1,
            WaitTimeSeconds=self.wait_seconds,
            MessageSystemAttributeNames=["SentTimestamp"],
        )
        return [QueueMessage.model_validate(raw) for raw in output.get("Messages", [])]

    async def _delete(self, message: QueueMessage) -> None:
        try:
            await self._call(
                self.client.delete_message,
                QueueUrl=self.queue_url,
                ReceiptHandle=message.receipt_handle,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to delete message {message.message_id}: {e}")
            return
        logger.info(f"Deleted message {message.message_id}")

    async def receive_once(self) -> int:
        """Run one receive/deliver/delete cycle.

        Returns:
            Number of messages delivered to the handler

        Raises:
            BotoCoreError, ClientError: If the receive call fails
        """
        messages = await self._receive()
        for message in messages:
            logger.info(f"Received message {message.message_id}: {message.body!r}")
            try:
                await self.handler(message)
            except Exception as e:
                logger.exception(f"Handler failed for message {message.message_id}: {e}")
            finally:
                await self._delete(message)
        return len(messages)

    async def listen(self) -> None:
        """Receive and handle messages until :meth:`stop` is called.

        Cancelling the task running this loop propagates CancelledError.
        """
        self._running = True
        logger.info(f"Listening on {self.queue_url}")

        try:
            while self._running:
                try:
                    await self.receive_once()
                except (BotoCoreError, ClientError) as e:
                    logger.error(f"Error receiving message: {e}")
                    await asyncio.sleep(self.error_delay)
                except Exception as e:
                    logger.exception(f"Unexpected error receiving message: {e}")
                    await asyncio.sleep(self.error_delay)
        finally:
            self._running = False
            logger.info("Queue consumer stopped")

    def stop(self) -> None:
        """Stop the loop after the current iteration."""
        self._running = False
