"""
Partitioned Log Base

A topic is split into N partitions; each partition is an ordered,
append-only stream read through consumer groups. Records with the same key
always land in the same partition, so per-key order survives as long as one
partition is owned by one consumer instance at a time.
"""

import zlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class LogRecord:
    """A record read from (or appended to) a log partition."""

    topic: str
    partition: int
    offset: str
    key: str
    value: str
    delivery_count: int = 1

    @property
    def stream(self) -> str:
        return stream_name(self.topic, self.partition)

    @property
    def record_id(self) -> str:
        """Identity stable across redeliveries of this record."""
        return f"{self.topic}:{self.partition}/{self.offset}"


def partition_for(key: str, partitions: int) -> int:
    """Stable partition for a key (CRC32, identical across processes)."""
    return zlib.crc32(key.encode("utf-8")) % partitions


def stream_name(topic: str, partition: int) -> str:
    return f"{topic}:{partition}"


class EventLog(ABC):
    """
    Abstract partitioned log.

    Implementations must:
    - keep records of one partition in append order
    - track delivered-but-unacknowledged records per consumer group
    - hand idle unacknowledged records to another consumer on reclaim
    """

    def __init__(self, partitions: int = 4):
        if partitions < 1:
            raise ValueError("partitions must be at least 1")
        self.partitions = partitions

    def owned(self, partitions: list[int] | None) -> list[int]:
        """Resolve an explicit partition set (None = every partition)."""
        if partitions is None:
            return list(range(self.partitions))
        return sorted(set(partitions))

    def partition_for(self, key: str) -> int:
        return partition_for(key, self.partitions)

    @abstractmethod
    def ensure_group(self, topic: str, group: str, start_id: str = "0") -> None:
        """Create the consumer group on every partition. Safe to call repeatedly."""
        ...

    @abstractmethod
    def publish(self, topic: str, key: str, value: str) -> LogRecord:
        """Append a record to the partition owning ``key``."""
        ...

    @abstractmethod
    def read(
        self,
        topic: str,
        group: str,
        consumer: str,
        partitions: list[int] | None = None,
        count: int = 10,
        block_ms: int = 5000,
    ) -> list[LogRecord]:
        """Read never-delivered records for the group, oldest first per partition."""
        ...

    @abstractmethod
    def ack(self, group: str, record: LogRecord) -> int:
        """Acknowledge a record (commit its offset). Returns 0 or 1."""
        ...

    @abstractmethod
    def pending(
        self,
        topic: str,
        group: str,
        partitions: list[int] | None = None,
        min_idle_ms: int = 60000,
        count: int = 100,
    ) -> list[dict[str, Any]]:
        """Delivered-but-unacknowledged records idle for at least ``min_idle_ms``."""
        ...

    @abstractmethod
    def reclaim(
        self,
        topic: str,
        group: str,
        consumer: str,
        partitions: list[int] | None = None,
        min_idle_ms: int = 60000,
        count: int = 100,
    ) -> list[LogRecord]:
        """Take over idle pending records (crashed or stuck consumers)."""
        ...

    @abstractmethod
    def replay(
        self,
        topic: str,
        partitions: list[int] | None = None,
        count: int = 100,
    ) -> list[LogRecord]:
        """Read records from the earliest offset without a group (diagnostics)."""
        ...
