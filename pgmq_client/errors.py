from typing import Optional

# SQLSTATE raised by the store when a queue's relation does not exist.
UNDEFINED_TABLE = "42P01"


class PgmqError(Exception):
    """Base class for every error raised by pgmq_client."""


class ConfigurationError(PgmqError, ValueError):
    """The client could not be configured."""


class ConnectionConfigError(ConfigurationError):
    """The connection descriptor or its TLS settings are invalid."""


class CertificateReadError(ConnectionConfigError, OSError):
    """A CA certificate file could not be read."""


class MalformedRecordError(PgmqError, ValueError):
    """A composite record did not have the expected shape."""

    def __init__(self, message: str, expected: Optional[int] = None) -> None:
        super().__init__(message)
        self.expected = expected


class InvalidArgumentError(PgmqError, ValueError):
    """An argument was rejected before reaching the store."""


class BackingStoreError(PgmqError):
    """The store or the connection to it failed.

    The driver's message is kept as-is; the original exception is available
    as ``__cause__``.
    """

    def __init__(self, message: str, sqlstate: Optional[str] = None) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate

    @classmethod
    def from_driver_error(cls, error: BaseException) -> "BackingStoreError":
        sqlstate = getattr(error, "sqlstate", None)
        message = str(error) or error.__class__.__name__
        if sqlstate == UNDEFINED_TABLE:
            return QueueNotFoundError(message, sqlstate)
        return cls(message, sqlstate)


class QueueNotFoundError(BackingStoreError):
    """The operation targeted a queue that does not exist."""
