import logging
import os
import tempfile
from typing import Any, Callable, Generic, List, Optional, Union

from orjson import dumps, loads
from psycopg.types.json import Jsonb
from psycopg_pool import ConnectionPool

from pgmq_client import _statements as sql
from pgmq_client._utils import initialize_logging, positive_int, whole_seconds
from pgmq_client.config import ConnectionOptions, PgmqConfig
from pgmq_client.decorators import scoped_connection
from pgmq_client.errors import UNDEFINED_TABLE, QueueNotFoundError
from pgmq_client.messages import Message, Queue, QueueMetrics, T
from pgmq_client.parser import parse_message, parse_queue, parse_queue_metrics


class QueueManager:
    """Create, drop and inspect queues."""

    def __init__(self, pool: ConnectionPool, logger: Optional[logging.Logger] = None) -> None:
        self.pool = pool
        self.logger = logger or logging.getLogger(__name__)

    @scoped_connection
    def list(self, conn=None) -> List[Queue]:
        """List all queues."""
        self.logger.debug(f"list called with conn: {conn}")
        rows = conn.execute(sql.LIST_QUEUES).fetchall()
        return [parse_queue(row[0]) for row in rows]

    @scoped_connection
    def create(self, name: str, conn=None) -> None:
        """Create a new queue."""
        self.logger.debug(f"create called with name: {name}, conn: {conn}")
        conn.execute(sql.CREATE_QUEUE, [name])

    @scoped_connection
    def create_unlogged(self, name: str, conn=None) -> None:
        """Create a new unlogged queue."""
        self.logger.debug(f"create_unlogged called with name: {name}, conn: {conn}")
        conn.execute(sql.CREATE_UNLOGGED_QUEUE, [name])

    @scoped_connection
    def create_partitioned(
        self,
        name: str,
        partition_interval: Union[int, str] = 10000,
        retention_interval: Union[int, str] = 100000,
        conn=None,
    ) -> None:
        """Create a new partitioned queue."""
        self.logger.debug(
            f"create_partitioned called with name: {name}, partition_interval: {partition_interval}, "
            f"retention_interval: {retention_interval}, conn: {conn}"
        )
        conn.execute(sql.CREATE_PARTITIONED_QUEUE, [name, str(partition_interval), str(retention_interval)])

    @scoped_connection
    def drop(self, name: str, conn=None) -> bool:
        """Drop a queue and its archive; a missing queue raises :class:`QueueNotFoundError`."""
        self.logger.debug(f"drop called with name: {name}, conn: {conn}")
        dropped = conn.execute(sql.DROP_QUEUE, [name]).fetchone()[0]
        if not dropped:
            raise QueueNotFoundError(f"Queue '{name}' does not exist", UNDEFINED_TABLE)
        return dropped

    @scoped_connection
    def purge(self, name: str, conn=None) -> int:
        """Delete every message in a queue; returns how many were removed."""
        self.logger.debug(f"purge called with name: {name}, conn: {conn}")
        return conn.execute(sql.PURGE_QUEUE, [name]).fetchone()[0]

    @scoped_connection
    def detach_archive(self, name: str, conn=None) -> None:
        """Detach a queue's archive table from the extension."""
        self.logger.debug(f"detach_archive called with name: {name}, conn: {conn}")
        conn.execute(sql.DETACH_ARCHIVE, [name])

    @scoped_connection
    def get_metrics(self, name: str, conn=None) -> QueueMetrics:
        """Get metrics for a specific queue."""
        self.logger.debug(f"get_metrics called with name: {name}, conn: {conn}")
        return parse_queue_metrics(conn.execute(sql.METRICS, [name]).fetchone())

    @scoped_connection
    def get_all_metrics(self, conn=None) -> List[QueueMetrics]:
        """Get metrics for all queues."""
        self.logger.debug(f"get_all_metrics called with conn: {conn}")
        return [parse_queue_metrics(row) for row in conn.execute(sql.METRICS_ALL).fetchall()]


class MsgManager(Generic[T]):
    """Send, read and settle messages."""

    def __init__(
        self,
        pool: ConnectionPool,
        logger: Optional[logging.Logger] = None,
        dumps: Callable[[T], Any] = dumps,
        loads: Callable[[str], T] = loads,
    ) -> None:
        self.pool = pool
        self.logger = logger or logging.getLogger(__name__)
        self.dumps = dumps
        self.loads = loads

    def _jsonb(self, message: T) -> Jsonb:
        return Jsonb(message, dumps=self.dumps)

    def _messages(self, rows) -> List[Message[T]]:
        return [parse_message(row, self.loads) for row in rows]

    def send(self, queue: str, message: T, delay: int = 0, conn=None) -> int:
        """Send a message to a queue."""
        delay = whole_seconds("delay", delay)
        return self._send(queue, message, delay, conn=conn)

    @scoped_connection
    def _send(self, queue, message, delay, conn=None):
        self.logger.debug(f"send called with queue: {queue}, message: {message}, delay: {delay}, conn: {conn}")
        return conn.execute(sql.SEND, [queue, self._jsonb(message), delay]).fetchone()[0]

    def send_batch(self, queue: str, messages: List[T], delay: int = 0, conn=None) -> List[int]:
        """Send a batch of messages to a queue."""
        delay = whole_seconds("delay", delay)
        if not messages:
            return []
        return self._send_batch(queue, messages, delay, conn=conn)

    @scoped_connection
    def _send_batch(self, queue, messages, delay, conn=None):
        self.logger.debug(f"send_batch called with queue: {queue}, messages: {messages}, delay: {delay}, conn: {conn}")
        params = [queue, [self._jsonb(message) for message in messages], delay]
        return [row[0] for row in conn.execute(sql.SEND_BATCH, params).fetchall()]

    def read(self, queue: str, vt: int = 0, conn=None) -> Optional[Message[T]]:
        """Read a message from a queue."""
        messages = self.read_batch(queue, vt, 1, conn=conn)
        return messages[0] if messages else None

    def read_batch(self, queue: str, vt: int = 0, num_messages: int = 1, conn=None) -> List[Message[T]]:
        """Read a batch of messages from a queue."""
        vt = whole_seconds("vt", vt)
        num_messages = positive_int("num_messages", num_messages)
        return self._read_batch(queue, vt, num_messages, conn=conn)

    @scoped_connection
    def _read_batch(self, queue, vt, num_messages, conn=None):
        self.logger.debug(f"read_batch called with queue: {queue}, vt: {vt}, num_messages: {num_messages}, conn: {conn}")
        return self._messages(conn.execute(sql.READ, [queue, vt, num_messages]).fetchall())

    def read_with_poll(
        self,
        queue: str,
        vt: int = 0,
        num_messages: int = 1,
        max_poll_seconds: int = 5,
        poll_interval_ms: int = 100,
        conn=None,
    ) -> List[Message[T]]:
        """Read messages from a queue with polling."""
        vt = whole_seconds("vt", vt)
        num_messages = positive_int("num_messages", num_messages)
        max_poll_seconds = whole_seconds("max_poll_seconds", max_poll_seconds)
        poll_interval_ms = positive_int("poll_interval_ms", poll_interval_ms)
        return self._read_with_poll(queue, vt, num_messages, max_poll_seconds, poll_interval_ms, conn=conn)

    @scoped_connection
    def _read_with_poll(self, queue, vt, num_messages, max_poll_seconds, poll_interval_ms, conn=None):
        self.logger.debug(
            f"read_with_poll called with queue: {queue}, vt: {vt}, num_messages: {num_messages}, "
            f"max_poll_seconds: {max_poll_seconds}, poll_interval_ms: {poll_interval_ms}, conn: {conn}"
        )
        params = [queue, vt, num_messages, max_poll_seconds, poll_interval_ms]
        return self._messages(conn.execute(sql.READ_WITH_POLL, params).fetchall())

    @scoped_connection
    def pop(self, queue: str, conn=None) -> Optional[Message[T]]:
        """Pop a message from a queue."""
        self.logger.debug(f"pop called with queue: {queue}, conn: {conn}")
        return parse_message(conn.execute(sql.POP, [queue]).fetchone(), self.loads)

    @scoped_connection
    def archive(self, queue: str, msg_id: int, conn=None) -> bool:
        """Archive a message from a queue."""
        self.logger.debug(f"archive called with queue: {queue}, msg_id: {msg_id}, conn: {conn}")
        return conn.execute(sql.ARCHIVE, [queue, msg_id]).fetchone()[0]

    @scoped_connection
    def archive_batch(self, queue: str, msg_ids: List[int], conn=None) -> List[int]:
        """Archive multiple messages from a queue."""
        self.logger.debug(f"archive_batch called with queue: {queue}, msg_ids: {msg_ids}, conn: {conn}")
        return [row[0] for row in conn.execute(sql.ARCHIVE_BATCH, [queue, list(msg_ids)]).fetchall()]

    @scoped_connection
    def delete(self, queue: str, msg_id: int, conn=None) -> bool:
        """Delete a message from a queue."""
        self.logger.debug(f"delete called with queue: {queue}, msg_id: {msg_id}, conn: {conn}")
        return conn.execute(sql.DELETE, [queue, msg_id]).fetchone()[0]

    @scoped_connection
    def delete_batch(self, queue: str, msg_ids: List[int], conn=None) -> List[int]:
        """Delete multiple messages from a queue."""
        self.logger.debug(f"delete_batch called with queue: {queue}, msg_ids: {msg_ids}, conn: {conn}")
        return [row[0] for row in conn.execute(sql.DELETE_BATCH, [queue, list(msg_ids)]).fetchall()]

    def set_vt(self, queue: str, msg_id: int, vt: int, conn=None) -> Optional[Message[T]]:
        """Set the visibility timeout for a specific message."""
        vt = whole_seconds("vt", vt)
        return self._set_vt(queue, msg_id, vt, conn=conn)

    @scoped_connection
    def _set_vt(self, queue, msg_id, vt, conn=None):
        self.logger.debug(f"set_vt called with queue: {queue}, msg_id: {msg_id}, vt: {vt}, conn: {conn}")
        return parse_message(conn.execute(sql.SET_VT, [queue, msg_id, vt]).fetchone(), self.loads)


def _write_ca_bundle(options: ConnectionOptions) -> Optional[str]:
    """libpq reads trust anchors from a file, so loaded certificates are written to one."""
    if options.tls is None or not options.tls.ca_certificates:
        return None
    with tempfile.NamedTemporaryFile("w", suffix=".pem", prefix="pgmq_ca_", delete=False) as bundle:
        bundle.write("\n".join(options.tls.ca_certificates))
    return bundle.name


class Pgmq(Generic[T]):
    """Synchronous pgmq client backed by a psycopg connection pool."""

    def __init__(
        self,
        config: Optional[PgmqConfig] = None,
        dumps: Callable[[T], Any] = dumps,
        loads: Callable[[str], T] = loads,
        **pool_kwargs,
    ) -> None:
        self.config = config or PgmqConfig()
        self.logger = initialize_logging(self.config.verbose, self.config.log_filename)

        options = self.config.resolve()
        self._ca_file = _write_ca_bundle(options)
        self.logger.debug("Creating psycopg connection pool")
        try:
            self.pool = ConnectionPool(
                kwargs=options.to_psycopg_kwargs(self._ca_file),
                min_size=1,
                max_size=self.config.max_pool_size,
                open=True,
                **pool_kwargs,
            )
        except Exception:
            self._remove_ca_bundle()
            raise

        self.queue = QueueManager(self.pool, self.logger)
        self.msg: MsgManager[T] = MsgManager(self.pool, self.logger, dumps=dumps, loads=loads)
        if self.config.create_extension:
            try:
                self.create_extension()
            except Exception:
                self.close()
                raise

    @scoped_connection
    def create_extension(self, conn=None) -> None:
        self.logger.debug("Initializing pgmq extension")
        conn.execute(sql.CREATE_EXTENSION)

    def _remove_ca_bundle(self) -> None:
        if self._ca_file:
            os.unlink(self._ca_file)
            self._ca_file = None

    def close(self) -> None:
        self.pool.close()
        self._remove_ca_bundle()

    def __enter__(self) -> "Pgmq[T]":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
