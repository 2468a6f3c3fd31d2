"""Auth endpoints."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from nest.core.config import settings
from nest.core.deps import get_current_user
from nest.core.errors import AuthenticationError
from nest.core.security import create_access_token, new_socket_token
from nest.db.session import get_db
from nest.models.user import User
from nest.schemas.auth import (
    FirebaseLoginRequest,
    LoginRequest,
    NotificationPreferencesUpdate,
    RegisterRequest,
    SocketTokenResponse,
    TokenResponse,
    UserMe,
)
from nest.schemas.common import ApiResponse
from nest.services import kv_store
from nest.services.auth_service import (
    authenticate_user,
    create_user,
    get_or_create_firebase_user,
    verify_firebase_token,
)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=ApiResponse[UserMe], status_code=status.HTTP_201_CREATED)
def register(
    data: RegisterRequest,
    db: Session = Depends(get_db),
):
    """Register a user under the password scheme. Role defaults to resident."""
    user = create_user(db, data)
    return ApiResponse(data=UserMe.from_user(user))


@router.post("/login", response_model=ApiResponse[TokenResponse])
def login(
    data: LoginRequest,
    db: Session = Depends(get_db),
):
    """Login and return access token."""
    user = authenticate_user(db, data.email, data.password)
    if not user:
        raise AuthenticationError("Invalid email or password")
    token = create_access_token(user.id, user.role, user.email)
    return ApiResponse(data=TokenResponse(access_token=token))


@router.post("/firebase", response_model=ApiResponse[TokenResponse])
def firebase_login(
    data: FirebaseLoginRequest,
    db: Session = Depends(get_db),
):
    """Exchange a Firebase ID token for a session token."""
    identity = verify_firebase_token(data.id_token)
    if identity is None:
        raise AuthenticationError("Invalid Firebase token")
    user = get_or_create_firebase_user(db, identity)
    if not user.is_active:
        raise AuthenticationError("User is inactive")
    token = create_access_token(user.id, user.role, user.email)
    return ApiResponse(data=TokenResponse(access_token=token))


@router.get("/me", response_model=ApiResponse[UserMe])
def me(current_user: User = Depends(get_current_user)):
    """Get current authenticated user."""
    return ApiResponse(data=UserMe.from_user(current_user))


@router.put("/me/preferences", response_model=ApiResponse[UserMe])
def update_preferences(
    data: NotificationPreferencesUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Toggle notification channels for the current user."""
    if data.app is not None:
        current_user.notify_app = data.app
    if data.email is not None:
        current_user.notify_email = data.email
    if data.sms is not None:
        current_user.notify_sms = data.sms
    if data.push is not None:
        current_user.notify_push = data.push
    db.commit()
    db.refresh(current_user)
    return ApiResponse(data=UserMe.from_user(current_user))


@router.post("/socket-token", response_model=ApiResponse[SocketTokenResponse])
async def issue_socket_token(current_user: User = Depends(get_current_user)):
    """Issue the opaque token a client presents when opening /ws."""
    token = new_socket_token()
    await kv_store.store_socket_token(token, current_user.id)
    return ApiResponse(data=SocketTokenResponse(token=token, expires_in=settings.socket_token_ttl_seconds))
