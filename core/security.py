"""
Security utilities for password hashing, JWT handling and identity resolution.

Identity is only ever derived from a verified bearer token; request bodies
never carry a trusted user id.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import or_
from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import AuthenticationException, AuthorizationException
from core.logging import security_logger
from db_config import get_db
from models.models import User, UserSession

logger = security_logger

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Missing headers are reported as NO_AUTH by get_current_user, not by FastAPI
security = HTTPBearer(auto_error=False)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a stored timestamp to an aware UTC datetime (SQLite drops tzinfo)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against its hash.

    Args:
        plain_password: The plain text password
        hashed_password: The hashed password to verify against

    Returns:
        bool: True if password matches, False otherwise
    """
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        logger.error("Password verification error", error=str(e))
        return False


def get_password_hash(password: str) -> str:
    """Hash a plain password."""
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: The data to encode in the token
        expires_delta: Optional custom expiration time

    Returns:
        str: The encoded JWT token
    """
    to_encode = data.copy()
    now = utcnow()
    expire = now + (expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes))
    # iat plus a nonce keep tokens unique even when issued within the same second
    to_encode.update({"exp": expire, "iat": now, "jti": now.strftime("%Y%m%d%H%M%S%f")})
    encoded_jwt = jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

    logger.info("Access token created", username=data.get("sub"), expires_at=expire.isoformat())
    return encoded_jwt


def verify_token(token: str) -> Optional[dict]:
    """Verify and decode a JWT token. Returns None when invalid."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.warning("Token verification failed", error=str(e))
        return None


async def get_current_user(
    token: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the caller from the bearer token.

    Raises:
        AuthenticationException: NO_AUTH when the header is missing,
            AUTH_FAILED for any other failure.
    """
    if token is None or not token.credentials:
        raise AuthenticationException(detail="Unauthorized", code="NO_AUTH")

    payload = verify_token(token.credentials)
    username = payload.get("sub") if payload else None
    if not username:
        raise AuthenticationException()

    user = db.query(User).filter(User.username == username).first()
    if user is None:
        logger.warning("User not found for token", username=username)
        raise AuthenticationException()

    # The token must belong to a live session (logout revokes it)
    session = db.query(UserSession).filter(
        UserSession.user_id == user.id,
        UserSession.session_token == token.credentials,
        or_(UserSession.expires_at > utcnow(), UserSession.expires_at.is_(None)),
    ).first()
    if session is None:
        logger.warning("No valid session found", username=username, user_id=user.id)
        raise AuthenticationException()

    return user


async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    """Reject deactivated accounts the same way as bad credentials."""
    if not current_user.is_active:
        logger.warning("Inactive user attempted access", username=current_user.username, user_id=current_user.id)
        raise AuthenticationException()
    return current_user


async def get_current_admin_user(current_user: User = Depends(get_current_active_user)) -> User:
    """Check if the current user holds a platform administrator role."""
    if not current_user.is_admin:
        logger.warning("Non-admin user attempted admin action",
                       username=current_user.username, user_id=current_user.id)
        raise AuthorizationException(detail="Admin privileges required", code="ADMIN_REQUIRED")
    return current_user
