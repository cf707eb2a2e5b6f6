"""SQL for every pgmq call, written with psycopg ``%s`` placeholders.

The asyncpg client renders the same statements with :func:`numbered`.
Message payloads are always selected as text so the caller's deserializer
sees the same input regardless of the driver.
"""

import itertools
import re

_MESSAGE_COLUMNS = "msg_id, read_ct, enqueued_at, vt, message::text"
_METRICS_COLUMNS = "queue_name, queue_length, newest_msg_age_sec, oldest_msg_age_sec, total_messages, scrape_time"

CREATE_EXTENSION = "create extension if not exists pgmq cascade;"

LIST_QUEUES = "select pgmq.list_queues()::text as list_queues;"
CREATE_QUEUE = "select pgmq.create(%s::text);"
CREATE_UNLOGGED_QUEUE = "select pgmq.create_unlogged(%s::text);"
CREATE_PARTITIONED_QUEUE = "select pgmq.create_partitioned(%s::text, %s::text, %s::text);"
DROP_QUEUE = "select pgmq.drop_queue(%s::text);"
PURGE_QUEUE = "select pgmq.purge_queue(%s::text);"
DETACH_ARCHIVE = "select pgmq.detach_archive(%s::text);"
METRICS = f"select {_METRICS_COLUMNS} from pgmq.metrics(%s::text);"
METRICS_ALL = f"select {_METRICS_COLUMNS} from pgmq.metrics_all();"

SEND = "select * from pgmq.send(%s::text, %s::jsonb, %s::integer);"
SEND_BATCH = "select * from pgmq.send_batch(%s::text, %s::jsonb[], %s::integer);"
READ = f"select {_MESSAGE_COLUMNS} from pgmq.read(%s::text, %s::integer, %s::integer);"
READ_WITH_POLL = (
    f"select {_MESSAGE_COLUMNS} from pgmq.read_with_poll(%s::text, %s::integer, %s::integer, %s::integer, %s::integer);"
)
POP = f"select {_MESSAGE_COLUMNS} from pgmq.pop(%s::text);"
ARCHIVE = "select pgmq.archive(%s::text, %s::bigint);"
ARCHIVE_BATCH = "select * from pgmq.archive(%s::text, %s::bigint[]);"
DELETE = "select pgmq.delete(%s::text, %s::bigint);"
DELETE_BATCH = "select * from pgmq.delete(%s::text, %s::bigint[]);"
SET_VT = f"select {_MESSAGE_COLUMNS} from pgmq.set_vt(%s::text, %s::bigint, %s::integer);"


def numbered(query: str) -> str:
    """Rewrite ``%s`` placeholders as asyncpg's ``$1, $2, ...``."""
    counter = itertools.count(1)
    return re.sub(r"%s", lambda _: f"${next(counter)}", query)
