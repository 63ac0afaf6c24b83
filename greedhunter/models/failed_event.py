"""Dead-letter: activity events the event bus rejected."""

from datetime import datetime
from typing import Any

from beanie import Document
from pydantic import Field


class FailedEvent(Document):
    topic: str
    event: dict[str, Any] = Field(default_factory=dict)
    reason: str = ""
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "failed_events"
        indexes = [[("topic", 1)], [("created_at", -1)]]
