"""
Authentication routes: login, logout and the current identity.
"""
from datetime import timedelta
from fastapi import APIRouter, Depends
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import AuthenticationException
from core.logging import get_logger
from core.security import (
    create_access_token,
    get_current_active_user,
    security,
    utcnow,
    verify_password,
)
from db_config import get_db
from models.models import User, UserSession
from schemas.auth import LoginRequest, LoginResponse, LogoutResponse
from schemas.user import UserRead

router = APIRouter(prefix="/auth", tags=["Authentication"])

# Initialize logger for auth operations
logger = get_logger("auth")


@router.post("/login", response_model=LoginResponse)
async def login_user(login_data: LoginRequest, db: Session = Depends(get_db)):
    """
    Login user and return JWT token.

    - **username**: Username or email address
    - **password**: User's password
    """
    logger.info("Login attempt", username_or_email=login_data.username)

    user = db.query(User).filter(
        (User.username == login_data.username) | (User.email == login_data.username)
    ).first()

    if not user or not verify_password(login_data.password, user.password_hash):
        logger.warning("Login failed - invalid credentials", username_or_email=login_data.username)
        raise AuthenticationException(detail="Incorrect username/email or password")

    if not user.is_active:
        logger.warning("Login failed - account deactivated", username=user.username, user_id=user.id)
        raise AuthenticationException(detail="Incorrect username/email or password")

    access_token_expires = timedelta(minutes=settings.jwt_access_token_expire_minutes)
    access_token = create_access_token(data={"sub": user.username}, expires_delta=access_token_expires)

    now = utcnow()
    user.last_login = now
    db.add(UserSession(
        user_id=user.id,
        session_token=access_token,
        expires_at=now + access_token_expires,
    ))
    db.commit()
    db.refresh(user)

    logger.info("Login successful", username=user.username, user_id=user.id,
                roles=sorted(r.value for r in user.role_set))

    return LoginResponse(
        access_token=access_token,
        token_type="bearer",
        user=UserRead.model_validate(user),
        expires_in=settings.jwt_access_token_expire_minutes * 60,  # Convert to seconds
    )


@router.post("/logout", response_model=LogoutResponse)
async def logout_user(
    token: HTTPAuthorizationCredentials = Depends(security),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """
    Logout user by revoking the session bound to the presented token.
    """
    logger.info("Logout request", username=current_user.username, user_id=current_user.id)

    deleted = db.query(UserSession).filter(
        UserSession.user_id == current_user.id,
        UserSession.session_token == token.credentials,
    ).delete(synchronize_session=False)
    db.commit()

    logger.info("User session deleted", username=current_user.username,
                user_id=current_user.id, sessions_removed=deleted)
    return LogoutResponse(message="Successfully logged out")


@router.get("/me", response_model=UserRead)
async def get_current_user_info(current_user: User = Depends(get_current_active_user)):
    """
    Get current authenticated user's information.
    """
    logger.debug("User info requested", username=current_user.username, user_id=current_user.id)
    return current_user
