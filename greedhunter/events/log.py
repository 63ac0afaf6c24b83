from typing import Any

from greedhunter.core.logging import get_logger
from greedhunter.events.base import EventPublisher, serialize_event

log = get_logger(__name__)


class LogEventPublisher(EventPublisher):
    """Stand-in for a broker: writes each event to the application log."""

    async def publish(self, event: dict[str, Any]) -> None:
        log.info("activity_event", topic=self.topic, payload=serialize_event(event).decode())
