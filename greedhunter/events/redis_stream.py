from typing import Any

import redis.asyncio as aioredis

from greedhunter.core.config import get_settings
from greedhunter.events.base import EventPublisher, serialize_event


class RedisStreamPublisher(EventPublisher):
    """XADD every event onto a capped Redis stream named after the topic."""

    def __init__(self, topic: str, client: aioredis.Redis | None = None, maxlen: int | None = None):
        super().__init__(topic)
        settings = get_settings()
        self._client = client
        self._maxlen = maxlen if maxlen is not None else settings.activity_stream_maxlen

    def _redis(self) -> aioredis.Redis:
        if self._client is None:
            self._client = aioredis.from_url(get_settings().redis_url)
        return self._client

    async def publish(self, event: dict[str, Any]) -> None:
        await self._redis().xadd(
            self.topic,
            {"event_type": event.get("event_type") or "", "value": serialize_event(event)},
            maxlen=self._maxlen,
            approximate=True,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
