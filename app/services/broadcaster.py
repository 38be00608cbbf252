"""
app/services/broadcaster.py

Progress broadcaster: fire-and-forget fan-out of ingestion events to every
subscriber listening under a routing key (owner identity or job id).

Delivery is at-most-once. Subscribers that are offline miss events and
recover state from the persisted tracker (history query) on reconnect.
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any, Protocol

from redis import Redis
from redis.exceptions import RedisError

from app.config import get_queue_settings

logger = logging.getLogger(__name__)


class Broadcaster(Protocol):
    def publish(self, routing_key: str, event: str, payload: Any) -> None:
        ...


def channel_name(prefix: str, routing_key: str) -> str:
    return f"{prefix}:{routing_key}"


def encode_message(event: str, payload: Any) -> str:
    return json.dumps({"event": event, "payload": payload}, default=str)


def decode_message(raw: str | bytes) -> dict[str, Any]:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    message = json.loads(raw)
    if not isinstance(message, dict) or "event" not in message:
        raise ValueError("Broadcast message must be an object with an 'event' key.")
    return message


class RedisBroadcaster:
    """
    Publishes events on Redis pub/sub channels ``<prefix>:<routing_key>``.
    """

    def __init__(self, client: Redis, *, channel_prefix: str = "ingestion-events") -> None:
        self._client = client
        self._channel_prefix = channel_prefix

    @property
    def channel_prefix(self) -> str:
        return self._channel_prefix

    def publish(self, routing_key: str, event: str, payload: Any) -> None:
        channel = channel_name(self._channel_prefix, routing_key)
        try:
            receivers = self._client.publish(channel, encode_message(event, payload))
        except RedisError as exc:
            logger.warning("Broadcast failed channel=%s event=%s: %s", channel, event, exc)
            return
        logger.debug("Broadcast channel=%s event=%s receivers=%s", channel, event, receivers)


@lru_cache(maxsize=1)
def get_broadcaster() -> RedisBroadcaster:
    """
    Build the process-wide broadcaster from env-driven settings.
    """

    settings = get_queue_settings()
    return RedisBroadcaster(
        Redis.from_url(settings.redis_url),
        channel_prefix=settings.channel_prefix,
    )
