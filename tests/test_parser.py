from datetime import datetime, timedelta, timezone

import pytest

from pgmq_client import MalformedRecordError, Message, Queue, QueueMetrics
from pgmq_client.parser import (
    format_composite,
    parse_bool,
    parse_composite,
    parse_message,
    parse_queue,
    parse_queue_metrics,
    parse_timestamp,
)


def test_parse_queue() -> None:
    queue = parse_queue('(87t96jquy2,f,t,"2024-09-17 15:35:16.007417+00")')
    assert queue == Queue(
        name="87t96jquy2",
        created_at=datetime(2024, 9, 17, 15, 35, 16, 7417, tzinfo=timezone.utc),
        is_partitioned=False,
        is_unlogged=True,
    )


def test_parse_queue_flags() -> None:
    queue = parse_queue('(abc123,t,f,"2023-12-10 10:30:00+00")')
    assert queue.name == "abc123"
    assert queue.is_partitioned is True
    assert queue.is_unlogged is False


def test_parse_queue_epoch_edge() -> None:
    queue = parse_queue('(abc123,f,t,"2000-01-01 00:00:00+00")')
    assert queue.created_at == datetime(2000, 1, 1, tzinfo=timezone.utc)


@pytest.mark.parametrize("text", ["(abc123,f)", "(a,f,t,2024-01-01 00:00:00+00,extra)", "abc123,f,t,x", ""])
def test_parse_queue_wrong_arity(text: str) -> None:
    with pytest.raises(MalformedRecordError) as e:
        parse_queue(text)
    assert e.value.expected == 4
    assert "expected" in str(e.value) and "4" in str(e.value)


def test_parse_queue_bad_boolean() -> None:
    with pytest.raises(MalformedRecordError):
        parse_queue('(abc123,yes,f,"2023-12-10 10:30:00+00")')


def test_parse_queue_null_name() -> None:
    with pytest.raises(MalformedRecordError):
        parse_queue('(,f,f,"2023-12-10 10:30:00+00")')


def test_parse_composite_quoted_delimiters() -> None:
    fields = parse_composite('("a,b",")(","say ""hi""","back\\\\slash")', 4)
    assert fields == ("a,b", ")(", 'say "hi"', "back\\slash")


def test_parse_composite_null_and_empty() -> None:
    assert parse_composite('(,"",x)', 3) == (None, "", "x")


def test_parse_composite_unterminated_quote() -> None:
    with pytest.raises(MalformedRecordError):
        parse_composite('("abc,f)', 2)


def test_format_then_parse_keeps_fields() -> None:
    created = datetime(2024, 9, 17, 15, 35, 16, 7417, tzinfo=timezone.utc)
    text = format_composite(["odd,(name)", False, True, created])
    queue = parse_queue(text)
    assert queue.name == "odd,(name)"
    assert queue.is_partitioned is False
    assert queue.is_unlogged is True
    assert queue.created_at == created


def test_parse_bool() -> None:
    assert parse_bool("t") is True
    assert parse_bool("f") is False
    with pytest.raises(MalformedRecordError):
        parse_bool("true")


@pytest.mark.parametrize(
    "text, expected",
    [
        ("2024-09-17 15:35:16+00", datetime(2024, 9, 17, 15, 35, 16, tzinfo=timezone.utc)),
        ("2024-09-17 17:35:16.5+02", datetime(2024, 9, 17, 15, 35, 16, 500000, tzinfo=timezone.utc)),
        ("2024-09-17 10:05:16-05:30", datetime(2024, 9, 17, 15, 35, 16, tzinfo=timezone.utc)),
        ("2024-09-17T15:35:16.123456789+00:00", datetime(2024, 9, 17, 15, 35, 16, 123456, tzinfo=timezone.utc)),
    ],
)
def test_parse_timestamp(text: str, expected: datetime) -> None:
    parsed = parse_timestamp(text)
    assert parsed == expected
    assert parsed.utcoffset() == timedelta(0)


@pytest.mark.parametrize("text", ["2024-09-17 15:35:16", "yesterday", "2024-13-01 00:00:00+00", None])
def test_parse_timestamp_malformed(text) -> None:
    with pytest.raises(MalformedRecordError):
        parse_timestamp(text)


def test_parse_timestamp_passes_datetimes_through() -> None:
    local = datetime(2024, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
    assert parse_timestamp(local) == datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
    naive = datetime(2024, 1, 1, 12, 0)
    assert parse_timestamp(naive).tzinfo is timezone.utc


def test_parse_message() -> None:
    now = datetime.now(timezone.utc)
    message = parse_message((7, 1, now, now, '{"data": "x"}'), lambda text: {"decoded": text})
    assert message == Message(msg_id=7, read_ct=1, enqueued_at=now, vt=now, message={"decoded": '{"data": "x"}'})


def test_parse_message_absent_row() -> None:
    assert parse_message(None, lambda text: text) is None


def test_parse_message_wrong_columns() -> None:
    with pytest.raises(MalformedRecordError) as e:
        parse_message((1, 2, 3), lambda text: text)
    assert e.value.expected == 5


def test_parse_queue_metrics() -> None:
    scraped = datetime(2024, 1, 1, tzinfo=timezone.utc)
    metrics = parse_queue_metrics(("jobs", 3, None, 12, 40, scraped))
    assert metrics == QueueMetrics(
        queue_name="jobs",
        queue_length=3,
        newest_msg_age_sec=None,
        oldest_msg_age_sec=12,
        total_messages=40,
        scrape_time=scraped,
    )
