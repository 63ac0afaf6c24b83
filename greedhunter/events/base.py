from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any

import orjson

from greedhunter.core.config import get_settings


def serialize_event(event: dict[str, Any]) -> bytes:
    """JSON bytes for transport; anything orjson cannot encode falls back to str()."""
    return orjson.dumps(event, default=str)


class EventPublisher(ABC):
    """Sink for flattened activity events (see services.activity.to_bus_event)."""

    def __init__(self, topic: str):
        self.topic = topic

    @abstractmethod
    async def publish(self, event: dict[str, Any]) -> None:
        """Deliver one event. May raise; callers run it detached."""
        ...

    async def close(self) -> None:
        """Release connections held by the publisher."""
        return None


@lru_cache
def get_publisher() -> EventPublisher:
    settings = get_settings()
    if settings.event_bus_backend == "redis":
        from greedhunter.events.redis_stream import RedisStreamPublisher
        return RedisStreamPublisher(settings.activity_topic)
    from greedhunter.events.log import LogEventPublisher
    return LogEventPublisher(settings.activity_topic)
