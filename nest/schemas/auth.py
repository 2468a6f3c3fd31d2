"""Auth schemas."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: str = Field(min_length=1, max_length=120)


class FirebaseLoginRequest(BaseModel):
    id_token: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class SocketTokenResponse(BaseModel):
    token: str
    expires_in: int


class NotificationPreferences(BaseModel):
    app: bool
    email: bool
    sms: bool
    push: bool


class NotificationPreferencesUpdate(BaseModel):
    app: bool | None = None
    email: bool | None = None
    sms: bool | None = None
    push: bool | None = None


class UserMe(BaseModel):
    id: int
    email: str
    name: str
    role: str
    is_active: bool
    profile_picture: str | None = None
    notification_preferences: NotificationPreferences
    is_online: bool
    last_seen: datetime | None = None
    created_at: datetime

    @classmethod
    def from_user(cls, user) -> "UserMe":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            is_active=user.is_active,
            profile_picture=user.profile_picture,
            notification_preferences=NotificationPreferences(
                app=user.notify_app,
                email=user.notify_email,
                sms=user.notify_sms,
                push=user.notify_push,
            ),
            is_online=user.is_online,
            last_seen=user.last_seen,
            created_at=user.created_at,
        )
