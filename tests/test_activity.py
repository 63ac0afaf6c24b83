"""Activity logging: entry building, append-only storage, best-effort guarantees."""

from datetime import datetime, timedelta

import pytest
from beanie import PydanticObjectId
from conftest import CHROME_WINDOWS_UA, make_request

from greedhunter.events import dispatcher
from greedhunter.events.base import EventPublisher
from greedhunter.models.activity_log import ActivityLog
from greedhunter.models.failed_event import FailedEvent
from greedhunter.services import activity

pytestmark = pytest.mark.asyncio


class RecordingPublisher(EventPublisher):
    def __init__(self):
        super().__init__("test-activities")
        self.events = []

    async def publish(self, event):
        self.events.append(event)


class ExplodingPublisher(EventPublisher):
    async def publish(self, event):
        raise RuntimeError("event bus unavailable")


async def test_build_entry_from_request():
    req = make_request({
        "User-Agent": CHROME_WINDOWS_UA,
        "Authorization": "Bearer tok-1",
        "X-User-Latitude": "6.52",
        "X-User-Longitude": "3.37",
    })
    entity = PydanticObjectId()
    entry = activity.build_activity_entry("login", "signed in", req, "user", str(entity))
    assert entry.session_id == "tok-1"
    assert entry.entity_id == entity
    assert entry.props == {
        "geo_location": "6.52,3.37",
        "ip_address": "203.0.113.9",
        "device": "Desktop",
        "browser": "Chrome",
        "platform": "Windows",
    }
    assert entry.created_at == entry.updated_at


async def test_build_entry_geo_defaults():
    with_request = activity.build_activity_entry("login", "", make_request())
    assert with_request.props["geo_location"] == ","
    without_request = activity.build_activity_entry("login", "", None, session_id="sess-9")
    assert without_request.props["geo_location"] == ""
    assert without_request.session_id == "sess-9"
    assert without_request.props["device"] == ""


async def test_build_entry_extra_props_win_and_geo_is_normalized():
    entry = activity.build_activity_entry(
        "quiz_completed",
        "finished",
        make_request({"User-Agent": CHROME_WINDOWS_UA}),
        extra_props={"browser": "Custom", "score": 9, "geo_location": {"latitude": 1.5, "longitude": 2.5}},
    )
    assert entry.props["browser"] == "Custom"
    assert entry.props["score"] == 9
    assert entry.props["geo_location"] == "1.5,2.5"

    malformed = activity.build_activity_entry("x", "", None, extra_props={"geo_location": {"latitude": 1}})
    assert malformed.props["geo_location"] == ""
    numeric = activity.build_activity_entry("x", "", None, extra_props={"geo_location": 42})
    assert numeric.props["geo_location"] == ""


async def test_invalid_entity_id_is_stored_as_null():
    assert activity.build_activity_entry("x", "", None, "quiz", "not-an-id").entity_id is None
    assert activity.build_activity_entry("x", "", None, "quiz", 12345).entity_id is None


async def test_sensitive_props_are_redacted():
    entry = activity.build_activity_entry(
        "update-profile",
        "",
        None,
        extra_props={
            "password": "hunter2",
            "meta": {"apiKey": "k", "plan": "gold"},
            "AccessToken": "t",
            "refresh_token": "r",
        },
    )
    assert entry.props["password"] == activity.REDACTED
    assert entry.props["AccessToken"] == activity.REDACTED
    assert entry.props["refresh_token"] == activity.REDACTED
    assert entry.props["meta"] == {"apiKey": activity.REDACTED, "plan": "gold"}


async def test_props_merely_containing_secret_words_are_kept(db):
    user_id = PydanticObjectId()
    entry = await activity.log_activity(
        user_id,
        "search",
        "looked for pizza",
        extra_props={"search_keyword": "pizza", "monkey_count": 3, "token_reward": 5, "passwordless": True},
    )
    assert entry is not None
    doc = await ActivityLog.find_one(ActivityLog.user_id == user_id)
    props = doc.activities[0].props
    assert props["search_keyword"] == "pizza"
    assert props["monkey_count"] == 3
    assert props["token_reward"] == 5
    assert props["passwordless"] is True


async def test_append_only_in_call_order(db):
    user_id = PydanticObjectId()
    for i in range(5):
        await activity.log_activity(user_id, "quiz_participation", f"round {i}")
    doc = await ActivityLog.find_one(ActivityLog.user_id == user_id)
    first = doc.activities[0].model_dump()
    assert [a.description for a in doc.activities] == [f"round {i}" for i in range(5)]

    await activity.log_activity(user_id, "login", "later")
    doc = await ActivityLog.find_one(ActivityLog.user_id == user_id)
    assert len(doc.activities) == 6
    assert doc.activities[0].model_dump() == first
    assert await ActivityLog.find(ActivityLog.user_id == user_id).count() == 1


async def test_log_activity_publishes_flat_event(db):
    user_id = PydanticObjectId()
    entity = PydanticObjectId()
    publisher = RecordingPublisher()
    entry = await activity.log_activity(
        user_id, "event_joined", "joined", make_request(), "event", entity, publisher=publisher
    )
    await dispatcher.drain()
    assert entry is not None
    assert len(publisher.events) == 1
    event = publisher.events[0]
    assert event["user_id"] == str(user_id)
    assert event["entity_id"] == str(entity)
    assert event["occurred_at"] == entry.created_at.isoformat()
    assert set(event) == {
        "user_id", "event_type", "description", "entity_type", "entity_id", "session_id", "props", "occurred_at",
    }


async def test_publisher_failure_never_reaches_caller(db):
    user_id = PydanticObjectId()
    entry = await activity.log_activity(user_id, "login", "x", None, publisher=ExplodingPublisher("acts"))
    await dispatcher.drain()
    assert entry is not None
    doc = await ActivityLog.find_one(ActivityLog.user_id == user_id)
    assert len(doc.activities) == 1
    failed = await FailedEvent.find_all().to_list()
    assert len(failed) == 1
    assert failed[0].topic == "acts"
    assert failed[0].event["user_id"] == str(user_id)
    assert "unavailable" in failed[0].reason


async def test_store_failure_never_reaches_caller(db, monkeypatch):
    def broken_find_one(*args, **kwargs):
        raise RuntimeError("database down")

    monkeypatch.setattr(ActivityLog, "find_one", broken_find_one)
    result = await activity.log_activity(PydanticObjectId(), "login", "x", make_request())
    assert result is None


async def test_garbage_inputs_resolve(db):
    assert await activity.log_activity("nope", "login", "x") is None
    entry = await activity.log_activity(PydanticObjectId(), "login", {"structured": True}, object(), "user", "bad")
    assert entry is not None
    assert entry.entity_id is None
    assert entry.props["ip_address"] == ""


async def test_get_activities_newest_first_with_filters(db):
    user_id = PydanticObjectId()
    for i in range(3):
        await activity.log_activity(user_id, "login", f"login {i}")
    await activity.log_activity(user_id, "quiz_completed", "quiz")
    page = await activity.get_activities(user_id, page=1, limit=2)
    assert [a.description for a in page.items] == ["quiz", "login 2"]
    assert page.total == 4
    assert page.pagination()["has_next"] is True

    logins = await activity.get_activities(user_id, event_type="login")
    assert [a.description for a in logins.items] == ["login 2", "login 1", "login 0"]

    future = await activity.get_activities(user_id, start=datetime.utcnow() + timedelta(days=1))
    assert future.total == 0
    assert (await activity.get_activities(PydanticObjectId())).total == 0


async def test_search_and_stats(db):
    user_id = PydanticObjectId()
    await activity.log_activity(user_id, "login", "Morning login")
    await activity.log_activity(user_id, "coins_spent", "Bought a ticket")
    await activity.log_activity(user_id, "login", "Evening login")

    hits = await activity.search_activities(user_id, query="TICKET")
    assert [a.event_type for a in hits.items] == ["coins_spent"]
    by_type = await activity.search_activities(user_id, query="login", event_type="login")
    assert by_type.total == 2

    stats = await activity.activity_stats(user_id)
    assert stats["total"] == 3
    assert stats["by_type"] == {"login": 2, "coins_spent": 1}
    assert stats["streak"] == 1
    assert stats["latest"].description == "Evening login"

    empty = await activity.activity_stats(PydanticObjectId())
    assert empty == {"total": 0, "by_type": {}, "latest": None, "streak": 0}


async def test_streak_counts_consecutive_days():
    today = datetime(2026, 3, 10).date()
    entries = [
        activity.build_activity_entry("login", "", None).model_copy(update={"created_at": datetime(2026, 3, d, 12)})
        for d in (10, 9, 8, 6)
    ]
    assert activity.activity_streak(entries, today=today) == 3
    assert activity.activity_streak(entries, today=datetime(2026, 3, 12).date()) == 0


async def test_system_summary(db):
    a, b = PydanticObjectId(), PydanticObjectId()
    await activity.log_activity(a, "login", "")
    await activity.log_activity(b, "login", "")
    await activity.log_activity(a, "quiz_completed", "")
    summary = await activity.system_activity_summary()
    assert summary["total"] == 3
    assert summary["unique_users"] == 2
    assert summary["by_type"][0] == {"event_type": "login", "count": 2, "unique_users": 2}
