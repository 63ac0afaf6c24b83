from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query

from greedhunter.deps import get_current_user, parse_object_id, require_admin
from greedhunter.models.activity_log import ActivityEntry
from greedhunter.models.user import User
from greedhunter.services import activity as activity_service

router = APIRouter()


def _naive_utc(value: datetime | None) -> datetime | None:
    # Stored timestamps are naive UTC.
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _entry_out(a: ActivityEntry) -> dict:
    return {
        "event_type": a.event_type,
        "description": a.description,
        "entity_type": a.entity_type,
        "entity_id": str(a.entity_id) if a.entity_id else None,
        "session_id": a.session_id,
        "props": a.props,
        "created_at": a.created_at.isoformat(),
    }


@router.get("")
async def my_activities(
    user: User = Depends(get_current_user),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    event_type: str | None = Query(None),
    start: datetime | None = Query(None),
    end: datetime | None = Query(None),
):
    """Activity timeline for current user (newest first)."""
    result = await activity_service.get_activities(
        user.id, page, limit, event_type, _naive_utc(start), _naive_utc(end)
    )
    return {"activities": [_entry_out(a) for a in result.items], "pagination": result.pagination()}


@router.get("/stats")
async def my_activity_stats(user: User = Depends(get_current_user)):
    stats = await activity_service.activity_stats(user.id)
    latest = stats["latest"]
    return {"stats": {**stats, "latest": _entry_out(latest) if latest else None}}


@router.get("/search")
async def search_my_activities(
    user: User = Depends(get_current_user),
    q: str | None = Query(None),
    event_type: str | None = Query(None),
    start: datetime | None = Query(None),
    end: datetime | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
):
    result = await activity_service.search_activities(
        user.id, q, event_type, _naive_utc(start), _naive_utc(end), page, limit
    )
    return {"activities": [_entry_out(a) for a in result.items], "pagination": result.pagination()}


@router.get("/admin/users/{user_id}")
async def user_activities(
    user_id: str,
    admin: User = Depends(require_admin),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    event_type: str | None = Query(None),
):
    """Admin: another user's activity timeline."""
    result = await activity_service.get_activities(parse_object_id(user_id, "user_id"), page, limit, event_type)
    return {
        "user_id": user_id,
        "activities": [_entry_out(a) for a in result.items],
        "pagination": result.pagination(),
    }


@router.get("/admin/summary")
async def activity_summary(
    admin: User = Depends(require_admin),
    start: datetime | None = Query(None),
    end: datetime | None = Query(None),
):
    """Admin: activity counts per event type across all users."""
    summary = await activity_service.system_activity_summary(_naive_utc(start), _naive_utc(end))
    return {
        "summary": {
            **summary,
            "start": summary["start"].isoformat(),
            "end": summary["end"].isoformat(),
        }
    }
