"""Per-user activity log: build, append, publish, and read back.

Logging is best-effort. Nothing in the write path may raise into the caller:
an audit-trail failure must not abort the action it describes.
"""

from collections import Counter
from collections.abc import Mapping
from datetime import date, datetime, timedelta
from typing import Any

from beanie import PydanticObjectId
from beanie.odm.queries.update import UpdateResponse
from bson import ObjectId

from greedhunter.core.logging import get_logger
from greedhunter.core.pagination import Page, slice_page
from greedhunter.core.request_context import extract_request_context, parse_user_agent
from greedhunter.events.base import EventPublisher
from greedhunter.events.dispatcher import publish_in_background
from greedhunter.models.activity_log import ActivityEntry, ActivityLog

log = get_logger(__name__)

# Common event types. The log accepts any string.
REGISTER = "register"
LOGIN = "login"
LOGOUT = "logout"
WALLET_TRANSACTION = "wallet_transaction"
WALLET_FROZEN = "wallet_frozen"
WALLET_UNFROZEN = "wallet_unfrozen"
ADMIN_COINS_ADDED = "admin_coins_added"
ADMIN_COINS_DEDUCTED = "admin_coins_deducted"

# Compared against the key lowercased with "_" and "-" removed.
SENSITIVE_KEYS = frozenset(
    {
        "password",
        "token",
        "accesstoken",
        "refreshtoken",
        "authorization",
        "secret",
        "secretkey",
        "apikey",
        "privatekey",
    }
)
REDACTED = "[REDACTED]"


def redact(props: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of props with secret-named keys masked, recursively. Names match whole, not as substrings."""
    out: dict[str, Any] = {}
    for k, v in props.items():
        name = str(k).lower().replace("_", "").replace("-", "")
        if name in SENSITIVE_KEYS:
            out[k] = REDACTED
        elif isinstance(v, Mapping):
            out[k] = redact(v)
        else:
            out[k] = v
    return out


def _header_geo(request: Any) -> str:
    try:
        lat = request.headers.get("x-user-latitude") or ""
        lng = request.headers.get("x-user-longitude") or ""
    except Exception:
        return ""
    return f"{lat},{lng}"


def normalize_geo(value: Any) -> str:
    """"lat,long" from a mapping, strings pass through, anything else is ""."""
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        lat, lng = value.get("latitude"), value.get("longitude")
        if lat and lng:
            return f"{lat},{lng}"
    return ""


def coerce_object_id(value: Any) -> PydanticObjectId | None:
    if value is None or value == "":
        return None
    try:
        if ObjectId.is_valid(value):
            return PydanticObjectId(value)
    except Exception:
        pass
    return None


def build_activity_entry(
    event_type: str,
    description: Any,
    request: Any | None = None,
    entity_type: str | None = None,
    entity_id: Any = None,
    session_id: str | None = None,
    extra_props: Mapping[str, Any] | None = None,
) -> ActivityEntry:
    """Normalize one activity: request context, UA classification, merged props."""
    ctx = extract_request_context(request, session_id)
    ua = parse_user_agent(ctx.user_agent)
    now = datetime.utcnow()

    props: dict[str, Any] = {
        "geo_location": _header_geo(request) if request is not None else "",
        "ip_address": ctx.ip_address,
        "device": ua.device,
        "browser": ua.browser,
        "platform": ua.platform,
    }
    props.update(extra_props or {})
    props["geo_location"] = normalize_geo(props.get("geo_location"))

    return ActivityEntry(
        event_type=event_type,
        description=description,
        entity_type=entity_type,
        entity_id=coerce_object_id(entity_id),
        session_id=ctx.token,
        props=redact(props),
        created_at=now,
        updated_at=now,
    )


def to_bus_event(user_id: Any, entry: ActivityEntry) -> dict[str, Any]:
    """Flat, string-safe projection of an entry for cross-process transport."""
    return {
        "user_id": str(user_id),
        "event_type": entry.event_type,
        "description": entry.description,
        "entity_type": entry.entity_type,
        "entity_id": str(entry.entity_id) if entry.entity_id is not None else None,
        "session_id": entry.session_id,
        "props": entry.props,
        "occurred_at": entry.created_at.isoformat(),
    }


async def append_activity(user_id: PydanticObjectId, entry: ActivityEntry) -> ActivityLog | None:
    """Push entry onto the user's log, creating the log on first write. Never raises."""
    try:
        now = datetime.utcnow()
        return await ActivityLog.find_one({"user_id": user_id}).update(
            {
                "$push": {"activities": entry.model_dump()},
                "$set": {"updated_at": now},
                "$setOnInsert": {"created_at": now},
            },
            response_type=UpdateResponse.NEW_DOCUMENT,
            upsert=True,
        )
    except Exception:
        log.exception("activity_log_failed", user_id=str(user_id), event_type=entry.event_type)
        return None


async def log_activity(
    user_id: Any,
    event_type: str,
    description: Any = "",
    request: Any | None = None,
    entity_type: str | None = None,
    entity_id: Any = None,
    session_id: str | None = None,
    extra_props: Mapping[str, Any] | None = None,
    publisher: EventPublisher | None = None,
) -> ActivityEntry | None:
    """Record an activity and hand it to the event bus without waiting on delivery.

    Resolves without raising for any input; returns the stored entry, or None
    when the entry could not be built or persisted.
    """
    try:
        uid = coerce_object_id(user_id)
        if uid is None:
            log.warning("activity_log_skipped", reason="invalid user_id", user_id=str(user_id), event_type=event_type)
            return None
        entry = build_activity_entry(
            event_type, description, request, entity_type, entity_id, session_id, extra_props
        )
    except Exception:
        log.exception("activity_build_failed", user_id=str(user_id), event_type=event_type)
        return None

    stored = await append_activity(uid, entry)
    try:
        publish_in_background(to_bus_event(uid, entry), publisher)
    except Exception:
        log.exception("activity_publish_schedule_failed", user_id=str(uid), event_type=event_type)
    return entry if stored is not None else None


# Read side


async def get_activity_log(user_id: PydanticObjectId) -> ActivityLog | None:
    return await ActivityLog.find_one(ActivityLog.user_id == user_id)


def _within(entry: ActivityEntry, start: datetime | None, end: datetime | None) -> bool:
    if start and entry.created_at < start:
        return False
    if end and entry.created_at > end:
        return False
    return True


def _newest_first(entries: list[ActivityEntry]) -> list[ActivityEntry]:
    # Stable: entries with equal timestamps keep reverse insertion order.
    return list(reversed(sorted(entries, key=lambda a: a.created_at)))


async def get_activities(
    user_id: PydanticObjectId,
    page: int = 1,
    limit: int = 20,
    event_type: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> Page[ActivityEntry]:
    """Newest-first page of a user's activities, optionally filtered by type and window."""
    doc = await get_activity_log(user_id)
    entries = doc.activities if doc else []
    filtered = [
        a for a in entries
        if (not event_type or a.event_type == event_type) and _within(a, start, end)
    ]
    return slice_page(_newest_first(filtered), page, limit)


async def search_activities(
    user_id: PydanticObjectId,
    query: str | None = None,
    event_type: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int = 1,
    limit: int = 20,
) -> Page[ActivityEntry]:
    """Substring search over description and event type."""
    doc = await get_activity_log(user_id)
    entries = doc.activities if doc else []
    term = (query or "").strip().lower()
    out = []
    for a in entries:
        if event_type and a.event_type != event_type:
            continue
        if not _within(a, start, end):
            continue
        if term and term not in str(a.description).lower() and term not in a.event_type.lower():
            continue
        out.append(a)
    return slice_page(_newest_first(out), page, limit)


def activity_streak(entries: list[ActivityEntry], today: date | None = None) -> int:
    """Consecutive days with at least one activity, counting back from today."""
    today = today or datetime.utcnow().date()
    days = {a.created_at.date() for a in entries}
    streak = 0
    while today - timedelta(days=streak) in days:
        streak += 1
    return streak


async def activity_stats(user_id: PydanticObjectId) -> dict[str, Any]:
    doc = await get_activity_log(user_id)
    if not doc or not doc.activities:
        return {"total": 0, "by_type": {}, "latest": None, "streak": 0}
    entries = doc.activities
    latest = max(reversed(entries), key=lambda a: a.created_at)
    return {
        "total": len(entries),
        "by_type": dict(Counter(a.event_type for a in entries)),
        "latest": latest,
        "streak": activity_streak(entries),
    }


async def system_activity_summary(start: datetime | None = None, end: datetime | None = None) -> dict[str, Any]:
    """Per event type: count and distinct users over a window (default: last 30 days)."""
    end = end or datetime.utcnow()
    start = start or end - timedelta(days=30)
    pipeline = [
        {"$unwind": "$activities"},
        {"$match": {"activities.created_at": {"$gte": start, "$lte": end}}},
        {
            "$group": {
                "_id": "$activities.event_type",
                "count": {"$sum": 1},
                "users": {"$addToSet": "$user_id"},
            }
        },
        {"$sort": {"count": -1}},
    ]
    rows = await ActivityLog.aggregate(pipeline).to_list()
    all_users = set()
    by_type = []
    for row in rows:
        all_users.update(str(u) for u in row["users"])
        by_type.append({"event_type": row["_id"], "count": row["count"], "unique_users": len(row["users"])})
    return {
        "start": start,
        "end": end,
        "total": sum(r["count"] for r in by_type),
        "unique_users": len(all_users),
        "by_type": by_type,
    }
