from dataclasses import dataclass
from datetime import datetime
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Queue:
    name: str
    created_at: datetime
    is_partitioned: bool
    is_unlogged: bool


@dataclass(frozen=True)
class Message(Generic[T]):
    msg_id: int
    read_ct: int
    enqueued_at: datetime
    vt: datetime
    message: T


@dataclass(frozen=True)
class QueueMetrics:
    queue_name: str
    queue_length: int
    newest_msg_age_sec: Optional[int]
    oldest_msg_age_sec: Optional[int]
    total_messages: int
    scrape_time: datetime
