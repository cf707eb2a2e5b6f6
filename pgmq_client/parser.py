"""Decoding of the store's textual record output into typed values.

``select pgmq.list_queues()::text`` yields one composite per row, e.g.::

    (87t96jquy2,f,t,"2024-09-17 15:35:16.007417+00")

Fields are separated by commas. A field may be wrapped in double quotes, in
which case ``""`` or ``\\"`` stands for a literal quote and ``\\\\`` for a
backslash. An empty unquoted field is NULL.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, Sequence, Tuple

from pgmq_client.errors import MalformedRecordError
from pgmq_client.messages import Message, Queue, QueueMetrics

QUEUE_FIELDS = 4
MESSAGE_FIELDS = 5
METRICS_FIELDS = 6

_TIMESTAMP_RE = re.compile(
    r"^(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})[ T]"
    r"(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2})(?:\.(?P<fraction>\d+))?"
    r"(?P<sign>[+-])(?P<off_h>\d{2})(?::?(?P<off_m>\d{2}))?(?::?(?P<off_s>\d{2}))?$"
)

_NEEDS_QUOTES = re.compile(r'[",\\()\s]')


def _field(chars: List[str], quoted: bool) -> Optional[str]:
    if not chars and not quoted:
        return None
    return "".join(chars)


def _split_fields(body: str) -> List[Optional[str]]:
    fields = []
    chars: List[str] = []
    quoted = False
    in_quotes = False
    i = 0
    while i < len(body):
        c = body[i]
        if c == "\\":
            i += 1
            if i >= len(body):
                raise MalformedRecordError("Malformed input: dangling escape character")
            chars.append(body[i])
            quoted = True
        elif c == '"':
            if in_quotes and body[i + 1 : i + 2] == '"':
                chars.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
                quoted = True
        elif c == "," and not in_quotes:
            fields.append(_field(chars, quoted))
            chars, quoted = [], False
        else:
            chars.append(c)
        i += 1

    if in_quotes:
        raise MalformedRecordError("Malformed input: unterminated quoted field")
    fields.append(_field(chars, quoted))
    return fields


def parse_composite(text: str, arity: int) -> Tuple[Optional[str], ...]:
    """Split a composite record into exactly ``arity`` raw fields."""
    if not isinstance(text, str) or len(text) < 2 or text[0] != "(" or text[-1] != ")":
        raise MalformedRecordError(f"Malformed input: expected a record of {arity} parts", expected=arity)

    fields = _split_fields(text[1:-1])
    if len(fields) != arity:
        raise MalformedRecordError(f"Malformed input: expected {arity} parts", expected=arity)
    return tuple(fields)


def format_composite(values: Sequence[Any]) -> str:
    """Encode values the way the store prints a composite record."""
    parts = []
    for value in values:
        if value is None:
            parts.append("")
            continue
        if isinstance(value, bool):
            text = "t" if value else "f"
        elif isinstance(value, datetime):
            text = value.isoformat(sep=" ")
        else:
            text = str(value)
        if text == "" or _NEEDS_QUOTES.search(text):
            text = '"' + text.replace("\\", "\\\\").replace('"', '""') + '"'
        parts.append(text)
    return "(" + ",".join(parts) + ")"


def parse_bool(value: Optional[str]) -> bool:
    if value == "t":
        return True
    if value == "f":
        return False
    raise MalformedRecordError(f"Malformed boolean field: {value!r}")


def parse_timestamp(value: Any) -> datetime:
    """Parse a ``timestamp with time zone`` into an aware UTC datetime.

    Drivers that already decode timestamps hand over ``datetime`` objects;
    those are only normalized to UTC.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    match = _TIMESTAMP_RE.match(value) if isinstance(value, str) else None
    if match is None:
        raise MalformedRecordError(f"Malformed timestamp field: {value!r}")

    parts = match.groupdict()
    offset = timedelta(
        hours=int(parts["off_h"]),
        minutes=int(parts["off_m"] or 0),
        seconds=int(parts["off_s"] or 0),
    )
    if parts["sign"] == "-":
        offset = -offset

    fraction = (parts["fraction"] or "").ljust(6, "0")[:6]
    try:
        local = datetime(
            int(parts["year"]),
            int(parts["month"]),
            int(parts["day"]),
            int(parts["hour"]),
            int(parts["minute"]),
            int(parts["second"]),
            int(fraction),
            tzinfo=timezone(offset),
        )
    except ValueError as e:
        raise MalformedRecordError(f"Malformed timestamp field: {value!r}") from e
    return local.astimezone(timezone.utc)


def _optional_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


def parse_queue(text: str) -> Queue:
    name, is_partitioned, is_unlogged, created_at = parse_composite(text, QUEUE_FIELDS)
    if name is None:
        raise MalformedRecordError("Malformed input: queue name is NULL", expected=QUEUE_FIELDS)
    return Queue(
        name=name,
        created_at=parse_timestamp(created_at),
        is_partitioned=parse_bool(is_partitioned),
        is_unlogged=parse_bool(is_unlogged),
    )


def _check_row(row: Sequence[Any], arity: int) -> None:
    if len(row) != arity:
        raise MalformedRecordError(f"Malformed row: expected {arity} columns, got {len(row)}", expected=arity)


def parse_message(row: Optional[Sequence[Any]], loads: Callable[[Any], Any]) -> Optional[Message]:
    """Build a :class:`Message` from a ``(msg_id, read_ct, enqueued_at, vt, message)`` row."""
    if row is None:
        return None
    _check_row(row, MESSAGE_FIELDS)
    return Message(
        msg_id=int(row[0]),
        read_ct=int(row[1]),
        enqueued_at=parse_timestamp(row[2]),
        vt=parse_timestamp(row[3]),
        message=None if row[4] is None else loads(row[4]),
    )


def parse_queue_metrics(row: Sequence[Any]) -> QueueMetrics:
    _check_row(row, METRICS_FIELDS)
    return QueueMetrics(
        queue_name=row[0],
        queue_length=int(row[1]),
        newest_msg_age_sec=_optional_int(row[2]),
        oldest_msg_age_sec=_optional_int(row[3]),
        total_messages=int(row[4]),
        scrape_time=parse_timestamp(row[5]),
    )
