"""Fire-and-forget delivery of activity events.

Publishing runs as a detached task. Failures never reach the code that logged
the activity: they are written to the log and to the failed_events collection.
"""

import asyncio
from typing import Any

from greedhunter.core.logging import get_logger
from greedhunter.events.base import EventPublisher, get_publisher

log = get_logger(__name__)

# Strong references; the event loop only keeps weak ones to running tasks.
_pending: set[asyncio.Task] = set()


async def _dead_letter(topic: str, event: dict[str, Any], reason: str) -> None:
    from greedhunter.models.failed_event import FailedEvent
    try:
        await FailedEvent(topic=topic, event=event, reason=reason[:2000]).insert()
    except Exception as e:
        log.error("event_dead_letter_failed", topic=topic, event_type=event.get("event_type"), error=str(e))


async def _publish_safely(publisher: EventPublisher, event: dict[str, Any]) -> None:
    try:
        await publisher.publish(event)
    except Exception as e:
        log.exception(
            "event_publish_failed",
            topic=publisher.topic,
            event_type=event.get("event_type"),
            user_id=event.get("user_id"),
        )
        await _dead_letter(publisher.topic, event, str(e))


def publish_in_background(event: dict[str, Any], publisher: EventPublisher | None = None) -> asyncio.Task | None:
    """Schedule delivery and return immediately. Returns None when no loop is running."""
    try:
        publisher = publisher or get_publisher()
        loop = asyncio.get_running_loop()
    except Exception as e:
        log.warning("event_publish_skipped", event_type=event.get("event_type"), reason=str(e))
        return None
    task = loop.create_task(_publish_safely(publisher, event))
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    return task


def pending_count() -> int:
    return len(_pending)


async def drain(timeout: float | None = None) -> None:
    """Wait for outstanding publishes (shutdown, tests)."""
    if not _pending:
        return
    done, not_done = await asyncio.wait(list(_pending), timeout=timeout)
    if not_done:
        log.warning("event_drain_timeout", still_pending=len(not_done))
