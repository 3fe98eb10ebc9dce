"""
Topic names and wildcard patterns.

Topics are slash-separated (``games/response/<correlationId>``). Patterns use
MQTT-style wildcards: ``+`` matches exactly one segment, ``#`` (last segment
only) matches any number of remaining segments, including none.
"""

# Characters with special meaning in Redis glob patterns
_GLOB_SPECIAL = set("*?[]\\")


def topic_matches(pattern: str, topic: str) -> bool:
    """Check whether a topic matches a subscription pattern."""
    pattern_parts = pattern.split("/")
    topic_parts = topic.split("/")

    for i, part in enumerate(pattern_parts):
        if part == "#":
            return i == len(pattern_parts) - 1
        if i >= len(topic_parts):
            return False
        if part != "+" and part != topic_parts[i]:
            return False

    return len(pattern_parts) == len(topic_parts)


def to_redis_pattern(pattern: str) -> str:
    """
    Translate an MQTT-style pattern to a Redis PSUBSCRIBE glob.

    The glob is wider than the pattern (``*`` crosses slashes), so received
    messages are filtered again with ``topic_matches``.
    """
    parts = []
    for part in pattern.split("/"):
        if part in ("+", "#"):
            parts.append("*")
        else:
            parts.append("".join(f"\\{c}" if c in _GLOB_SPECIAL else c for c in part))
    glob = "/".join(parts)
    # "a/#" must also match "a" itself
    if pattern.endswith("/#"):
        return glob[: -len("/*")] + "*"
    return glob


def last_segment(topic: str) -> str:
    """Trailing segment of a topic (the correlation id on response topics)."""
    return topic.rsplit("/", 1)[-1]
