import asyncio

import orjson
import pytest
from beanie import PydanticObjectId

from greedhunter.events import dispatcher
from greedhunter.events.base import EventPublisher, serialize_event
from greedhunter.events.log import LogEventPublisher
from greedhunter.events.redis_stream import RedisStreamPublisher

EVENT = {
    "user_id": "65f000000000000000000001",
    "event_type": "login",
    "description": "hello",
    "entity_type": None,
    "entity_id": None,
    "session_id": "tok",
    "props": {"device": "Desktop"},
    "occurred_at": "2026-01-01T00:00:00",
}


class FakeRedis:
    def __init__(self):
        self.calls = []
        self.closed = False

    async def xadd(self, name, fields, maxlen=None, approximate=True):
        self.calls.append((name, fields, maxlen, approximate))
        return b"1-0"

    async def aclose(self):
        self.closed = True


class SlowPublisher(EventPublisher):
    def __init__(self):
        super().__init__("slow")
        self.release = asyncio.Event()
        self.delivered = []

    async def publish(self, event):
        await self.release.wait()
        self.delivered.append(event)


def test_serialize_event_handles_non_json_values():
    oid = PydanticObjectId()
    data = orjson.loads(serialize_event({"id": oid, "n": 1}))
    assert data == {"id": str(oid), "n": 1}


@pytest.mark.asyncio
async def test_log_publisher_does_not_raise():
    await LogEventPublisher("user-activities").publish(EVENT)


@pytest.mark.asyncio
async def test_redis_stream_publisher_xadds_serialized_event():
    fake = FakeRedis()
    publisher = RedisStreamPublisher("user-activities", client=fake, maxlen=500)
    await publisher.publish(EVENT)
    name, fields, maxlen, approximate = fake.calls[0]
    assert name == "user-activities"
    assert fields["event_type"] == "login"
    assert orjson.loads(fields["value"]) == EVENT
    assert (maxlen, approximate) == (500, True)
    await publisher.close()
    assert fake.closed


@pytest.mark.asyncio
async def test_publish_in_background_does_not_block_caller():
    publisher = SlowPublisher()
    task = dispatcher.publish_in_background(EVENT, publisher)
    assert task is not None
    assert not task.done()
    assert dispatcher.pending_count() >= 1
    publisher.release.set()
    await dispatcher.drain()
    assert publisher.delivered == [EVENT]
    assert task.done()


def test_publish_without_running_loop_is_skipped():
    assert dispatcher.publish_in_background(EVENT, LogEventPublisher("t")) is None


@pytest.mark.asyncio
async def test_default_publisher_delivers_without_dead_letters(user_factory):
    from greedhunter.events.base import get_publisher
    from greedhunter.models.failed_event import FailedEvent
    from greedhunter.services import activity

    assert isinstance(get_publisher(), LogEventPublisher)
    user = await user_factory()
    assert await activity.log_activity(user.id, "login", "hi") is not None
    await dispatcher.drain()
    assert await FailedEvent.find_all().to_list() == []
