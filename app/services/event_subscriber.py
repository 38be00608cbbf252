"""
Subscriber side of the progress broadcast, used by the websocket endpoint.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from functools import lru_cache
from typing import Protocol

from redis import asyncio as aioredis

from app.config import get_queue_settings
from app.services.broadcaster import channel_name

logger = logging.getLogger(__name__)


class EventSubscriber(Protocol):
    def listen(self, routing_keys: Sequence[str]) -> AsyncIterator[str]:
        """Yield encoded broadcast messages until the consumer stops iterating."""
        ...


class RedisEventSubscriber:
    def __init__(self, *, redis_url: str, channel_prefix: str) -> None:
        self._redis_url = redis_url
        self._channel_prefix = channel_prefix

    async def listen(self, routing_keys: Sequence[str]) -> AsyncIterator[str]:
        channels = [channel_name(self._channel_prefix, key) for key in routing_keys]
        client = aioredis.Redis.from_url(self._redis_url, decode_responses=True)
        pubsub = client.pubsub(ignore_subscribe_messages=True)
        try:
            await pubsub.subscribe(*channels)
            logger.debug("Subscribed channels=%s", channels)
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                yield message["data"]
        finally:
            await pubsub.unsubscribe()
            await pubsub.aclose()
            await client.aclose()


@lru_cache(maxsize=1)
def get_event_subscriber() -> EventSubscriber:
    settings = get_queue_settings()
    return RedisEventSubscriber(redis_url=settings.redis_url, channel_prefix=settings.channel_prefix)
