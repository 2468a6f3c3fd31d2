"""Notifications API: the caller's own notifications."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from nest.core.deps import get_current_user
from nest.db.session import get_db
from nest.models.user import User
from nest.schemas.common import ApiResponse, MessageResponse, PaginatedResponse, Pagination
from nest.schemas.notification import NotificationOut, ReadAllOut, UnreadCountOut
from nest.services import notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=PaginatedResponse[NotificationOut])
def list_mine(
    read: bool | None = None,
    type: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Unexpired notifications for the current user, newest first."""
    items, total = notification_service.list_notifications(db, current_user.id, read, type, page, limit)
    return PaginatedResponse[NotificationOut](
        data=[NotificationOut.from_model(n) for n in items],
        pagination=Pagination.build(total, page, limit),
    )


@router.get("/unread-count", response_model=ApiResponse[UnreadCountOut])
def unread(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return ApiResponse(data=UnreadCountOut(count=notification_service.unread_count(db, current_user.id)))


@router.put("/read-all", response_model=ApiResponse[ReadAllOut])
def read_all(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    updated = notification_service.mark_all_read(db, current_user.id)
    return ApiResponse(data=ReadAllOut(updated=updated))


@router.put("/{notification_id}/read", response_model=ApiResponse[NotificationOut])
def read_one(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Mark one notification read. Other notifications keep their flag."""
    notification = notification_service.mark_read(db, notification_id, current_user.id)
    return ApiResponse(data=NotificationOut.from_model(notification))


@router.delete("/{notification_id}", response_model=MessageResponse)
def delete_one(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    notification_service.delete_notification(db, notification_id, current_user.id)
    return MessageResponse(message="Notification deleted")
