# app/core/auth.py
import uuid
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlmodel import Session

from app.core.config import get_settings
from app.core.errors import AuthorizationError
from app.database import get_session
from app.models.user import ROLE_USER, User
from app.repositories.user_repo import UserRepository

# auto_error=False => a missing Authorization header means "guest",
# so public endpoints can still see who is calling when a token is sent.
bearer_scheme = HTTPBearer(auto_error=False)

user_repo = UserRepository()

MAX_NAME_LENGTH = 50


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a Supabase access token (JWT).

    Verification:
      - signature (HS256 using SUPABASE_JWT_SECRET)
      - expiration time (exp)
      - audience is NOT verified (Supabase 'aud' may vary)

    Raises:
        HTTPException(401): if token is invalid/expired.
    """
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.SUPABASE_JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )


def _default_name_from_email(email: str) -> str:
    """
    Derive a default display name from the email's local part.
    """
    name = email.split("@", 1)[0] if "@" in email else email
    return name[:MAX_NAME_LENGTH] or "Customer"


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User | None:
    """
    Resolve the current user from a Supabase JWT.

    Flow:
      1. No Authorization header => guest => None.
      2. Decode JWT => 'sub' (auth user id) and 'email'.
      3. Load the profile row; auto-provision it on first sight
         (role 'user', order emails on).

    Raises:
        HTTPException(401): if token is malformed or missing required claims.
    """
    if credentials is None:
        return None

    payload = decode_access_token(credentials.credentials)
    sub = payload.get("sub")
    email = payload.get("email")

    if not sub or not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing sub/email",
        )

    try:
        sub_uuid = uuid.UUID(sub)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid sub in token",
        )

    user = user_repo.get_by_id(session, sub_uuid)
    if user is None:
        # Admins are promoted manually
        user = user_repo.create(
            session,
            User(
                id=sub_uuid,
                email=email,
                name=_default_name_from_email(email),
                role=ROLE_USER,
            ),
        )

    return user


def require_auth(user: User | None = Depends(get_current_user)) -> User:
    """
    Reject guests with 401.
    """
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return user


def require_admin(user: User = Depends(require_auth)) -> User:
    """
    Reject authenticated non-admins with 403.
    """
    if not user.is_admin:
        raise AuthorizationError("Admin access required")
    return user
