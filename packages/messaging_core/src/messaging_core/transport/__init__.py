"""
Pub/Sub Transports

Topic-based publish/subscribe clients.
Supports Redis (production) and in-memory (development).
"""

from messaging_core.transport.base import MessageHandler, PubSubTransport
from messaging_core.transport.memory import InMemoryBroker, InMemoryTransport
from messaging_core.transport.redis_pubsub import RedisPubSubTransport
from messaging_core.transport.topics import last_segment, to_redis_pattern, topic_matches

__all__ = [
    "InMemoryBroker",
    "InMemoryTransport",
    "MessageHandler",
    "PubSubTransport",
    "RedisPubSubTransport",
    "last_segment",
    "to_redis_pattern",
    "topic_matches",
]
