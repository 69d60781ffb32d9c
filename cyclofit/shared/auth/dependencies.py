"""FastAPI dependencies for authentication and authorization."""

import logging
from typing import Optional

import jwt
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from cyclofit.shared.auth.database import get_db, User, ADMIN_ROLES, utcnow
from cyclofit.shared.auth.security import decode_access_token
from cyclofit.shared.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=message,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _resolve_user(credentials: Optional[HTTPAuthorizationCredentials], db: Session, settings: Settings) -> User:
    if credentials is None or not credentials.credentials:
        raise _unauthorized("No token, authorization denied")

    try:
        user_id = decode_access_token(credentials.credentials, settings)
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected bearer token: {str(e)}")
        raise _unauthorized("Token is not valid")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise _unauthorized("Token is not valid or user not found")
    if not user.is_active:
        raise _unauthorized("Account has been deactivated")

    user.last_login_at = utcnow()
    db.commit()
    return user


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    """Resolve the authenticated user from the Authorization: Bearer header."""
    return _resolve_user(credentials, db, settings)


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Optional[User]:
    """Like get_current_user, but anonymous callers get None instead of a 401."""
    if credentials is None:
        return None
    try:
        return _resolve_user(credentials, db, settings)
    except HTTPException:
        return None


def require_admin(user: User = Depends(get_current_user)) -> User:
    """Allow admin and super_admin roles only."""
    if user.role not in ADMIN_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Admin privileges required.",
        )
    return user


def require_super_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != "super_admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Super admin privileges required.",
        )
    return user


def verify_admin_api_key(
    x_api_key: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Simple shared-secret check used by the contact/newsletter admin listings."""
    if not settings.ADMIN_API_KEY or x_api_key != settings.ADMIN_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized - Invalid API key",
        )
