"""An anyio-based long-running consumer for Amazon SQS queues"""

from fastsqs.clients.sqs import QueueClient, SQSClient
from fastsqs.consumer import Consumer
from fastsqs.datastructures import Message, MessageAttribute
from fastsqs.exceptions import FastSQSException

__all__ = [
    "Consumer",
    "QueueClient",
    "SQSClient",
    "Message",
    "MessageAttribute",
    "FastSQSException",
]
