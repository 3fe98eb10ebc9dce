"""
Redis Streams Log

Each partition is a Redis stream named ``<topic>:<partition>``.
Uses XADD / XREADGROUP / XACK / XPENDING / XCLAIM / XRANGE.
"""

import logging
from typing import Any

import redis

from basecore.redis import ensure_stream_group
from messaging_core.log.base import EventLog, LogRecord, stream_name

logger = logging.getLogger(__name__)


class RedisStreamLog(EventLog):
    """Partitioned log on Redis Streams."""

    def __init__(
        self,
        redis_client: redis.Redis,
        partitions: int = 4,
        max_len: int | None = 100000,
    ):
        super().__init__(partitions)
        self.redis = redis_client
        self.max_len = max_len

    def ensure_group(self, topic: str, group: str, start_id: str = "0") -> None:
        for partition in self.owned(None):
            created = ensure_stream_group(self.redis, stream_name(topic, partition), group, start_id)
            if created:
                logger.info(f"Created consumer group '{group}' for stream '{stream_name(topic, partition)}'")

    def publish(self, topic: str, key: str, value: str) -> LogRecord:
        partition = self.partition_for(key)
        stream = stream_name(topic, partition)
        fields = {"key": key, "value": value}

        if self.max_len:
            offset = self.redis.xadd(stream, fields, maxlen=self.max_len, approximate=True)
        else:
            offset = self.redis.xadd(stream, fields)

        logger.debug(
            f"Published to {stream}",
            extra={"stream": stream, "key": key, "offset": offset},
        )
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
        streams = {stream_name(topic, p): ">" for p in self.owned(partitions)}

        try:
            result = self.redis.xreadgroup(group, consumer, streams, count=count, block=block_ms)
        except redis.ResponseError as e:
            if "NOGROUP" in str(e):
                logger.error(f"Consumer group {group} does not exist for {topic}")
            raise

        if not result:
            return []

        # Result format: [[stream_name, [(msg_id, data), ...]], ...]
        records = []
        for stream, entries in result:
            partition = int(stream.rsplit(":", 1)[1])
            for offset, data in entries:
                records.append(self._to_record(topic, partition, offset, data))
        return records

    def ack(self, group: str, record: LogRecord) -> int:
        return self.redis.xack(record.stream, group, record.offset)

    def pending(
        self,
        topic: str,
        group: str,
        partitions: list[int] | None = None,
        min_idle_ms: int = 60000,
        count: int = 100,
    ) -> list[dict[str, Any]]:
        idle = []
        for partition in self.owned(partitions):
            stream = stream_name(topic, partition)
            try:
                summary = self.redis.xpending(stream, group)
                if not summary or summary.get("pending", 0) == 0:
                    continue
                entries = self.redis.xpending_range(stream, group, min="-", max="+", count=count)
            except redis.ResponseError:
                continue

            for entry in entries:
                if entry["time_since_delivered"] >= min_idle_ms:
                    idle.append({
                        "partition": partition,
                        "offset": entry["message_id"],
                        "consumer": entry["consumer"],
                        "idle_ms": entry["time_since_delivered"],
                        "delivery_count": entry["times_delivered"],
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
        pending = self.pending(topic, group, partitions, min_idle_ms, count)
        if not pending:
            return []

        by_partition: dict[int, list[dict[str, Any]]] = {}
        for entry in pending:
            by_partition.setdefault(entry["partition"], []).append(entry)

        records = []
        for partition, entries in sorted(by_partition.items()):
            deliveries = {e["offset"]: e["delivery_count"] for e in entries}
            try:
                claimed = self.redis.xclaim(
                    stream_name(topic, partition),
                    group,
                    consumer,
                    min_idle_ms,
                    list(deliveries),
                )
            except redis.ResponseError as e:
                logger.error(f"Failed to claim records on {topic}:{partition}: {e}")
                continue

            for offset, data in claimed:
                # Trimmed entries come back without data
                if not data:
                    continue
                records.append(
                    self._to_record(topic, partition, offset, data, deliveries.get(offset, 1) + 1)
                )
        return records

    def replay(
        self,
        topic: str,
        partitions: list[int] | None = None,
        count: int = 100,
    ) -> list[LogRecord]:
        records = []
        for partition in self.owned(partitions):
            entries = self.redis.xrange(stream_name(topic, partition), min="-", max="+", count=count)
            for offset, data in entries:
                records.append(self._to_record(topic, partition, offset, data))
        return records

    @staticmethod
    def _to_record(
        topic: str,
        partition: int,
        offset: str,
        data: dict[str, str],
        delivery_count: int = 1,
    ) -> LogRecord:
        return LogRecord(
            topic=topic,
            partition=partition,
            offset=offset,
            key=data.get("key", ""),
            value=data.get("value", ""),
            delivery_count=delivery_count,
        )
