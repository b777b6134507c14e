"""SQS input for cpfeedman."""

from cpfeedman.sqs.consumer import QueueConsumer, QueueMessage

__all__ = ["QueueConsumer", "QueueMessage"]
