"""Password hashing, JWT access tokens and one-time email tokens."""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import bcrypt
import jwt

from cyclofit.shared.auth.database import utcnow
from cyclofit.shared.config.settings import Settings

JWT_ALGORITHM = "HS256"
EMAIL_VERIFICATION_TTL = timedelta(hours=24)
PASSWORD_RESET_TTL = timedelta(hours=1)


def hash_password(password: str) -> str:
    """Hash a plain password with bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: Optional[str]) -> bool:
    """Check a plain password against a stored bcrypt hash."""
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database
        return False


def create_access_token(user_id: str, settings: Settings, expires_in: Optional[timedelta] = None) -> str:
    """Sign a JWT whose payload identifies the user as {"id": user_id}."""
    expires_in = expires_in or timedelta(days=settings.JWT_EXPIRES_DAYS)
    payload = {
        "id": user_id,
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str, settings: Settings) -> str:
    """
    Verify a JWT and return the user id it carries.

    Raises:
        jwt.InvalidTokenError (incl. ExpiredSignatureError) when the token
        is malformed, expired, signed with another secret or has no id.
    """
    payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[JWT_ALGORITHM])
    user_id = payload.get("id")
    if not user_id:
        raise jwt.InvalidTokenError("Token payload has no user id")
    return str(user_id)


def generate_email_token(ttl: timedelta) -> Tuple[str, datetime]:
    """Random URL-safe token plus its expiry (naive UTC)."""
    return secrets.token_urlsafe(32), utcnow() + ttl
