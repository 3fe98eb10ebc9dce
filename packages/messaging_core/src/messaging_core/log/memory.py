"""
In-Memory Log

Development log with the same consumer-group semantics as Redis Streams:
per-group delivery cursor, pending entries list, acknowledgement and reclaim
of idle entries. Nothing survives the process.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any

from messaging_core.log.base import EventLog, LogRecord, stream_name

logger = logging.getLogger(__name__)


@dataclass
class _PendingEntry:
    consumer: str
    delivered_at: float
    delivery_count: int


@dataclass
class _Group:
    cursor: int
    pending: dict[int, _PendingEntry]


class InMemoryLog(EventLog):
    """Partitioned log kept in process memory."""

    def __init__(self, partitions: int = 4):
        super().__init__(partitions)
        self._lock = threading.Lock()
        self._streams: dict[str, list[tuple[str, str, str]]] = {}
        self._groups: dict[tuple[str, str], _Group] = {}
        self._seq = 0

    def ensure_group(self, topic: str, group: str, start_id: str = "0") -> None:
        with self._lock:
            for partition in self.owned(None):
                stream = stream_name(topic, partition)
                entries = self._streams.setdefault(stream, [])
                if (stream, group) not in self._groups:
                    # "$" skips what is already in the stream
                    cursor = len(entries) if start_id == "$" else 0
                    self._groups[(stream, group)] = _Group(cursor=cursor, pending={})

    def publish(self, topic: str, key: str, value: str) -> LogRecord:
        partition = self.partition_for(key)
        with self._lock:
            self._seq += 1
            offset = f"{self._seq}-0"
            self._streams.setdefault(stream_name(topic, partition), []).append((offset, key, value))
        logger.debug(f"[MEMORY] Appended {offset} to {topic}:{partition}", extra={"key": key})
        return LogRecord(topic=topic, partition=partition, offset=offset, key=key, value=value)

    def read(
        self,
        topic: str,
        group: str,
        consumer: str,
        partitions: list[int] | None = None,
        count: int = 10,
        block_ms: int = 5000,
    ) -> list[LogRecord]:
        records = []
        now = time.monotonic()
        with self._lock:
            for partition in self.owned(partitions):
                stream = stream_name(topic, partition)
                state = self._group(stream, group)
                entries = self._streams.get(stream, [])
                while state.cursor < len(entries) and len(records) < count:
                    index = state.cursor
                    offset, key, value = entries[index]
                    state.pending[index] = _PendingEntry(consumer, now, 1)
                    state.cursor += 1
                    records.append(LogRecord(topic, partition, offset, key, value, 1))
        return records

    def ack(self, group: str, record: LogRecord) -> int:
        with self._lock:
            state = self._groups.get((record.stream, group))
            if state is None:
                return 0
            index = self._index_of(record.stream, record.offset)
            if index is None or index not in state.pending:
                return 0
            del state.pending[index]
            return 1

    def pending(
        self,
        topic: str,
        group: str,
        partitions: list[int] | None = None,
        min_idle_ms: int = 60000,
        count: int = 100,
    ) -> list[dict[str, Any]]:
        now = time.monotonic()
        idle = []
        with self._lock:
            for partition in self.owned(partitions):
                stream = stream_name(topic, partition)
                state = self._groups.get((stream, group))
                if state is None:
                    continue
                for index, entry in sorted(state.pending.items()):
                    idle_ms = int((now - entry.delivered_at) * 1000)
                    if idle_ms >= min_idle_ms:
                        idle.append({
                            "partition": partition,
                            "offset": self._streams[stream][index][0],
                            "consumer": entry.consumer,
                            "idle_ms": idle_ms,
                            "delivery_count": entry.delivery_count,
                        })
        return idle[:count]

    def reclaim(
        self,
        topic: str,
        group: str,
        consumer: str,
        partitions: list[int] | None = None,
        min_idle_ms: int = 60000,
        count: int = 100,
    ) -> list[LogRecord]:
        now = time.monotonic()
        records = []
        with self._lock:
            for partition in self.owned(partitions):
                stream = stream_name(topic, partition)
                state = self._groups.get((stream, group))
                if state is None:
                    continue
                for index, entry in sorted(state.pending.items()):
                    if len(records) >= count:
                        break
                    if (now - entry.delivered_at) * 1000 < min_idle_ms:
                        continue
                    entry.consumer = consumer
                    entry.delivered_at = now
                    entry.delivery_count += 1
                    offset, key, value = self._streams[stream][index]
                    records.append(
                        LogRecord(topic, partition, offset, key, value, entry.delivery_count)
                    )
        return records

    def replay(
        self,
        topic: str,
        partitions: list[int] | None = None,
        count: int = 100,
    ) -> list[LogRecord]:
        records = []
        with self._lock:
            for partition in self.owned(partitions):
                for offset, key, value in self._streams.get(stream_name(topic, partition), [])[:count]:
                    records.append(LogRecord(topic, partition, offset, key, value))
        return records

    def _group(self, stream: str, group: str) -> _Group:
        state = self._groups.get((stream, group))
        if state is None:
            raise KeyError(f"NOGROUP consumer group {group} does not exist for {stream}")
        return state

    def _index_of(self, stream: str, offset: str) -> int | None:
        for index, entry in enumerate(self._streams.get(stream, [])):
            if entry[0] == offset:
                return index
        return None
