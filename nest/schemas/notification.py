"""Notification schemas."""

from datetime import datetime

from pydantic import BaseModel


class RelatedToOut(BaseModel):
    model: str
    id: int


class NotificationOut(BaseModel):
    id: int
    recipient: int
    type: str
    title: str
    message: str
    related_to: RelatedToOut
    priority: str
    read: bool
    sent_via: list[str]
    created_at: datetime
    expires_at: datetime | None = None

    @classmethod
    def from_model(cls, n) -> "NotificationOut":
        return cls(
            id=n.id,
            recipient=n.recipient_id,
            type=n.type,
            title=n.title,
            message=n.message,
            related_to=RelatedToOut(model=n.related_model, id=n.related_id),
            priority=n.priority,
            read=n.read,
            sent_via=list(n.sent_via or []),
            created_at=n.created_at,
            expires_at=n.expires_at,
        )


class UnreadCountOut(BaseModel):
    count: int


class ReadAllOut(BaseModel):
    updated: int
