"""FastAPI dependencies."""

from typing import Annotated

from fastapi import BackgroundTasks, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from nest.core.errors import AuthenticationError, AuthorizationError
from nest.core.report_policies import is_staff
from nest.db.session import get_db
from nest.models.user import User
from nest.services.auth_service import resolve_bearer
from nest.services.notification_service import NotificationDispatcher

security = HTTPBearer(auto_error=False)


def get_current_user(
    db: Annotated[Session, Depends(get_db)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> User:
    """Require authenticated user. Raises 401 if not authenticated."""
    if not credentials:
        raise AuthenticationError("No token provided")
    return resolve_bearer(db, credentials.credentials)


def require_staff(current_user: Annotated[User, Depends(get_current_user)]) -> User:
    """Require an admin or moderator."""
    if not is_staff(current_user.role):
        raise AuthorizationError("You do not have permission to perform this action")
    return current_user


def require_admin(current_user: Annotated[User, Depends(get_current_user)]) -> User:
    if current_user.role != "admin":
        raise AuthorizationError("You do not have permission to perform this action")
    return current_user


def get_dispatcher(
    db: Annotated[Session, Depends(get_db)],
    background_tasks: BackgroundTasks,
) -> NotificationDispatcher:
    """Notification dispatcher whose deliveries run after the response is sent."""
    dispatcher = NotificationDispatcher(db)
    background_tasks.add_task(dispatcher.flush)
    return dispatcher
