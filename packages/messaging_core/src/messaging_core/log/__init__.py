"""
Partitioned Log

Ordered, replayable topics consumed through consumer groups.
Supports Redis Streams (production) and in-memory (development).
"""

from messaging_core.log.base import EventLog, LogRecord, partition_for, stream_name
from messaging_core.log.memory import InMemoryLog
from messaging_core.log.redis_streams import RedisStreamLog

__all__ = [
    "EventLog",
    "InMemoryLog",
    "LogRecord",
    "RedisStreamLog",
    "partition_for",
    "stream_name",
]
