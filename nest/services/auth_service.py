"""Auth service: local users and bearer-token resolution."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from nest.core.config import settings
from nest.core.errors import AuthenticationError, ValidationError
from nest.core.security import decode_access_token, hash_password, verify_password
from nest.models.user import User
from nest.schemas.auth import RegisterRequest

logger = logging.getLogger(__name__)


@dataclass
class FirebaseIdentity:
    uid: str
    email: str | None
    email_verified: bool
    name: str | None


def get_user_by_email(db: Session, email: str) -> User | None:
    """Get user by email."""
    return db.execute(select(User).where(User.email == email)).scalar_one_or_none()


def get_user_by_firebase_uid(db: Session, uid: str) -> User | None:
    return db.execute(select(User).where(User.firebase_uid == uid)).scalar_one_or_none()


def create_user(db: Session, data: RegisterRequest) -> User:
    """Create a resident with a password (fallback auth scheme). Staff roles are granted out of band."""
    if get_user_by_email(db, data.email):
        raise ValidationError("Email already registered")
    user = User(
        email=data.email,
        name=data.name,
        hashed_password=hash_password(data.password),
        role="resident",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def authenticate_user(db: Session, email: str, password: str) -> User | None:
    """Authenticate user by email and password."""
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        return None
    if not user.is_active:
        return None
    return user


def _get_firebase_auth() -> Any | None:
    """Return the firebase_admin auth module, or None when Firebase is not configured."""
    if not settings.firebase_credentials_path:
        return None
    try:
        import firebase_admin
        from firebase_admin import auth, credentials
    except ImportError as exc:
        raise RuntimeError("firebase-admin is not installed. Add 'firebase-admin' to dependencies.") from exc

    if not firebase_admin._apps:
        cred = credentials.Certificate(settings.firebase_credentials_path)
        options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
        firebase_admin.initialize_app(cred, options)
    return auth


def verify_firebase_token(token: str) -> FirebaseIdentity | None:
    """Verify a Firebase ID token. Returns None if invalid or Firebase is off."""
    firebase_auth = _get_firebase_auth()
    if firebase_auth is None:
        return None
    try:
        decoded = firebase_auth.verify_id_token(token)
    except Exception:  # noqa: BLE001 - any failure means "not a Firebase token"
        return None
    return FirebaseIdentity(
        uid=decoded["uid"],
        email=decoded.get("email"),
        email_verified=bool(decoded.get("email_verified", False)),
        name=decoded.get("name"),
    )


def get_or_create_firebase_user(db: Session, identity: FirebaseIdentity) -> User:
    """Find the local mirror of a Firebase user, creating it on first sight."""
    user = get_user_by_firebase_uid(db, identity.uid)
    if user:
        return user
    if not identity.email:
        raise ValidationError("Firebase account has no email address")
    user = get_user_by_email(db, identity.email)
    if user:
        user.firebase_uid = identity.uid
    else:
        user = User(
            email=identity.email,
            name=identity.name or identity.email.split("@")[0],
            firebase_uid=identity.uid,
            role="resident",
        )
        db.add(user)
    db.commit()
    db.refresh(user)
    return user


def resolve_bearer(db: Session, token: str) -> User:
    """Resolve a bearer credential to an active user.

    Firebase ID tokens are tried first, then the signed fallback token.
    """
    identity = verify_firebase_token(token)
    if identity is not None:
        user = get_user_by_firebase_uid(db, identity.uid)
        if not user:
            raise AuthenticationError("User not found")
    else:
        payload = decode_access_token(token)
        if not payload or "sub" not in payload:
            raise AuthenticationError("Invalid or expired token")
        try:
            user_id = int(payload["sub"])
        except (TypeError, ValueError) as exc:
            raise AuthenticationError("Invalid or expired token") from exc
        user = db.get(User, user_id)
        if not user:
            raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthenticationError("User is inactive")
    return user
