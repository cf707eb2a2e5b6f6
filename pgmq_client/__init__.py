from pgmq_client.async_queue import Pgmq as AsyncPgmq
from pgmq_client.config import ConnectionOptions, PgmqConfig, TLSMode, TLSOptions, parse_options_from_uri
from pgmq_client.decorators import async_transaction, transaction
from pgmq_client.errors import (
    BackingStoreError,
    CertificateReadError,
    ConfigurationError,
    ConnectionConfigError,
    InvalidArgumentError,
    MalformedRecordError,
    PgmqError,
    QueueNotFoundError,
)
from pgmq_client.messages import Message, Queue, QueueMetrics
from pgmq_client.queue import Pgmq

__all__ = [
    "AsyncPgmq",
    "BackingStoreError",
    "CertificateReadError",
    "ConfigurationError",
    "ConnectionConfigError",
    "ConnectionOptions",
    "InvalidArgumentError",
    "MalformedRecordError",
    "Message",
    "Pgmq",
    "PgmqConfig",
    "PgmqError",
    "Queue",
    "QueueMetrics",
    "QueueNotFoundError",
    "TLSMode",
    "TLSOptions",
    "async_transaction",
    "parse_options_from_uri",
    "transaction",
]
