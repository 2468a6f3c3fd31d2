"""Notification dispatcher and notification queries.

Notification rows are written in the caller's transaction. Real-time pushes
and emails are queued and delivered by `NotificationDispatcher.flush`, which
the API layer schedules as a background task, so they never hold up or roll
back the triggering mutation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.orm import Session

from nest.core.errors import NotFoundError
from nest.core.report_policies import STAFF_ROLES
from nest.core.ws_manager import ConnectionManager, ws_manager
from nest.models.notification import Notification
from nest.models.user import User
from nest.services.email_service import OutgoingEmail, render_notification_email, send_email

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RelatedTo:
    """The entity a notification is about."""

    model: str
    id: int


@dataclass
class _Push:
    event: str
    payload: dict[str, Any]
    user_id: int | None = None
    room: str | None = None


class NotificationDispatcher:
    """Persists notifications and queues their real-time and email delivery."""

    def __init__(self, db: Session, connections: ConnectionManager | None = None) -> None:
        self.db = db
        self._connections = connections or ws_manager
        self._pushes: list[_Push] = []
        self._emails: list[OutgoingEmail] = []

    def notify_users(
        self,
        user_ids: list[int],
        type: str,
        title: str,
        message: str,
        related_to: RelatedTo,
        priority: str = "normal",
        expires_at: datetime | None = None,
    ) -> list[Notification]:
        """Write one notification per user; queue email for users who opted in."""
        unique_ids = list(dict.fromkeys(user_ids))
        if not unique_ids:
            return []

        users = {u.id: u for u in self.db.execute(select(User).where(User.id.in_(unique_ids))).scalars()}
        created: list[Notification] = []
        for uid in unique_ids:
            user = users.get(uid)
            if user is None:
                logger.warning("Skipping notification for unknown user=%s", uid)
                continue
            channels = ["app"]
            if user.notify_email and user.email:
                channels.append("email")
                self._emails.append(render_notification_email(user.email, type, title, message))
            notification = Notification(
                recipient_id=uid,
                type=type,
                title=title,
                message=message,
                related_model=related_to.model,
                related_id=related_to.id,
                priority=priority,
                read=False,
                sent_via=channels,
                expires_at=expires_at,
            )
            self.db.add(notification)
            created.append(notification)

        self.db.flush()
        return created

    def push_realtime(self, user_id: int, event: str, payload: dict[str, Any]) -> None:
        """Queue an event for the user's room. Offline users simply miss it."""
        self._pushes.append(_Push(event=event, payload=payload, user_id=user_id))

    def push_to_users(self, user_ids: list[int], event: str, payload: dict[str, Any]) -> None:
        for uid in dict.fromkeys(user_ids):
            self.push_realtime(uid, event, payload)

    def push_to_room(self, room: str, event: str, payload: dict[str, Any]) -> None:
        self._pushes.append(_Push(event=event, payload=payload, room=room))

    @property
    def pending_pushes(self) -> list[tuple[int | None, str | None, str]]:
        return [(p.user_id, p.room, p.event) for p in self._pushes]

    @property
    def pending_emails(self) -> list[OutgoingEmail]:
        return list(self._emails)

    async def flush(self) -> None:
        """Deliver queued pushes and emails. Each failure is logged and skipped."""
        pushes, self._pushes = self._pushes, []
        emails, self._emails = self._emails, []

        for push in pushes:
            try:
                if push.room is not None:
                    await self._connections.send_to_room(push.room, push.event, push.payload)
                elif push.user_id is not None:
                    await self._connections.send_to_user(push.user_id, push.event, push.payload)
            except Exception:  # noqa: BLE001 - persisted notification is the fallback
                logger.exception("Real-time push failed: event=%s user=%s room=%s", push.event, push.user_id, push.room)

        for email in emails:
            try:
                await send_email(email)
            except Exception:  # noqa: BLE001 - email is best-effort per recipient
                logger.exception("Email delivery failed: to=%s subject=%s", email.to, email.subject)


# ---------- Audiences ----------


def staff_audience(db: Session) -> list[int]:
    """Admins and moderators with app notifications enabled."""
    result = db.execute(
        select(User.id)
        .where(User.role.in_(STAFF_ROLES), User.notify_app.is_(True), User.is_active.is_(True))
        .order_by(User.id)
    )
    return list(result.scalars().all())


def admin_audience(db: Session) -> list[int]:
    """Admins with app notifications enabled."""
    result = db.execute(
        select(User.id)
        .where(User.role == "admin", User.notify_app.is_(True), User.is_active.is_(True))
        .order_by(User.id)
    )
    return list(result.scalars().all())


# ---------- Queries ----------


def _not_expired(now: datetime):
    return or_(Notification.expires_at.is_(None), Notification.expires_at > now)


def list_notifications(
    db: Session,
    user_id: int,
    read: bool | None = None,
    type: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Notification], int]:
    """The user's unexpired notifications, newest first, plus total count."""
    now = datetime.now(timezone.utc)
    conditions = [Notification.recipient_id == user_id, _not_expired(now)]
    if read is not None:
        conditions.append(Notification.read.is_(read))
    if type:
        conditions.append(Notification.type == type)

    total = db.execute(select(func.count()).select_from(Notification).where(*conditions)).scalar_one()
    result = db.execute(
        select(Notification)
        .where(*conditions)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


def unread_count(db: Session, user_id: int) -> int:
    now = datetime.now(timezone.utc)
    return db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.recipient_id == user_id, Notification.read.is_(False), _not_expired(now))
    ).scalar_one()


def _get_own(db: Session, notification_id: int, user_id: int) -> Notification:
    notification = db.get(Notification, notification_id)
    if not notification or notification.recipient_id != user_id:
        raise NotFoundError("Notification not found")
    return notification


def mark_read(db: Session, notification_id: int, user_id: int) -> Notification:
    """Mark one of the user's notifications read. Other notifications are untouched."""
    notification = _get_own(db, notification_id, user_id)
    notification.read = True
    db.commit()
    db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: int) -> int:
    result = db.execute(
        update(Notification)
        .where(Notification.recipient_id == user_id, Notification.read.is_(False))
        .values(read=True)
    )
    db.commit()
    return result.rowcount or 0


def delete_notification(db: Session, notification_id: int, user_id: int) -> None:
    notification = _get_own(db, notification_id, user_id)
    db.delete(notification)
    db.commit()


def purge_expired_notifications(db: Session, now: datetime | None = None) -> int:
    """Delete notifications whose expiry has passed. Returns rows removed."""
    cutoff = now or datetime.now(timezone.utc)
    result = db.execute(
        delete(Notification).where(Notification.expires_at.is_not(None), Notification.expires_at <= cutoff)
    )
    db.commit()
    removed = result.rowcount or 0
    if removed:
        logger.info("Purged %s expired notifications", removed)
    return removed
