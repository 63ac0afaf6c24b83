from datetime import datetime
from typing import Any

import pymongo
from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field
from pymongo import IndexModel


class ActivityEntry(BaseModel):
    """One immutable user action; never updated once pushed."""
    event_type: str
    description: Any = ""
    entity_type: str | None = None  # user, quiz, event, post, comment, community, wallet
    entity_id: PydanticObjectId | None = None
    session_id: str | None = None
    props: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class ActivityLog(Document):
    user_id: PydanticObjectId
    activities: list[ActivityEntry] = Field(default_factory=list)  # append-only, chronological
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "activity_logs"
        indexes = [
            IndexModel([("user_id", pymongo.ASCENDING)], unique=True),
            [("activities.event_type", pymongo.ASCENDING)],
            [("activities.created_at", pymongo.DESCENDING)],
        ]
