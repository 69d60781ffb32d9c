"""Authentication routes (register, email verification, login, password reset) and the profile routes."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from cyclofit.shared.auth.database import get_db, User, utcnow
from cyclofit.shared.auth.dependencies import get_current_user
from cyclofit.shared.auth.rate_limit_utils import get_client_ip, login_limiter
from cyclofit.shared.auth.schemas import (
    AuthResponse,
    EmailRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    UpdateProfileRequest,
    UserEnvelope,
    UserResponse,
)
from cyclofit.shared.auth.security import (
    EMAIL_VERIFICATION_TTL,
    PASSWORD_RESET_TTL,
    create_access_token,
    generate_email_token,
    hash_password,
    verify_password,
)
from cyclofit.shared.config.settings import Settings, get_settings
from cyclofit.shared.notifications.mailer import EmailResult, send_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])
users_router = APIRouter(prefix="/api/users", tags=["users"])


def _button(url: str, label: str) -> str:
    return (
        f'<a href="{url}" style="display: inline-block; background-color: #4a90e2; color: white; '
        f'padding: 10px 20px; text-decoration: none; border-radius: 5px;">{label}</a>'
    )


def send_verification_email(settings: Settings, user: User) -> EmailResult:
    url = f"{settings.CLIENT_URL}/verify-email?token={user.email_verification_token}"
    html = f"""
      <h1>Welcome to CycloFit!</h1>
      <p>Please verify your email by clicking the link below:</p>
      {_button(url, "Verify Email")}
      <p>This link will expire in 24 hours.</p>
      <p>If the button doesn't work, copy and paste this URL into your browser:</p>
      <p>{url}</p>
    """
    return send_email(settings, user.email, "Verify your CycloFit account", html)


def send_password_reset_email(settings: Settings, user: User) -> EmailResult:
    url = f"{settings.CLIENT_URL}/reset-password?token={user.password_reset_token}"
    html = f"""
      <h1>Reset your CycloFit password</h1>
      <p>Someone asked to reset the password of this account. Click the link below to choose a new one:</p>
      {_button(url, "Reset Password")}
      <p>This link will expire in 1 hour. If you did not ask for a reset you can ignore this email.</p>
      <p>{url}</p>
    """
    return send_email(settings, user.email, "Reset your CycloFit password", html)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    request: RegisterRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Create an unverified account and email a verification link."""
    if db.query(User).filter(User.email == request.email).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already exists")

    token, expires = generate_email_token(EMAIL_VERIFICATION_TTL)
    user = User(
        email=request.email,
        password_hash=hash_password(request.password),
        first_name=request.first_name,
        last_name=request.last_name,
        email_verification_token=token,
        email_verification_expires=expires,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Registered user {user.id} ({user.email})")

    email_result = send_verification_email(settings, user)
    message = (
        "Registration successful! Please check your email to verify your account."
        if email_result.success
        else "Registration successful! Email verification could not be sent. Please contact support."
    )
    return AuthResponse(
        token=create_access_token(user.id, settings),
        user=UserResponse.model_validate(user),
        message=message,
        dev=email_result.dev,
    )


@router.get("/verify-email", response_model=UserEnvelope)
def verify_email(token: str = Query(default=""), db: Session = Depends(get_db)):
    if not token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Verification token is missing")

    user = (
        db.query(User)
        .filter(User.email_verification_token == token, User.email_verification_expires > utcnow())
        .first()
    )
    if not user:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired verification token")

    user.is_email_verified = True
    user.email_verification_token = None
    user.email_verification_expires = None
    db.commit()
    db.refresh(user)
    logger.info(f"Email verified for {user.email}")
    return UserEnvelope(message="Email verified successfully", user=UserResponse.model_validate(user))


@router.post("/resend-verification", response_model=MessageResponse)
def resend_verification(
    request: EmailRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = db.query(User).filter(User.email == request.email).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if user.is_email_verified:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is already verified")

    user.email_verification_token, user.email_verification_expires = generate_email_token(EMAIL_VERIFICATION_TTL)
    db.commit()

    email_result = send_verification_email(settings, user)
    return MessageResponse(message="Verification email sent successfully", dev=email_result.dev)


@router.post("/login", response_model=AuthResponse)
def login(
    credentials: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Exchange email and password for a bearer token.

    Rate limited per client IP. Unverified accounts get a 403 with
    needs_verification so the frontend can offer to resend the link.
    """
    login_limiter.check(get_client_ip(request))

    user = db.query(User).filter(User.email == credentials.email).first()
    if not user or not verify_password(credentials.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")

    if not user.is_email_verified:
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={
                "detail": "Please verify your email before logging in",
                "needs_verification": True,
                "email": user.email,
            },
        )
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account has been deactivated")

    user.last_login_at = utcnow()
    db.commit()
    db.refresh(user)
    logger.info(f"User {user.id} logged in")
    return AuthResponse(token=create_access_token(user.id, settings), user=UserResponse.model_validate(user))


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    request: EmailRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = db.query(User).filter(User.email == request.email).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    user.password_reset_token, user.password_reset_expires = generate_email_token(PASSWORD_RESET_TTL)
    db.commit()

    email_result = send_password_reset_email(settings, user)
    if not email_result.success:
        logger.warning(f"Password reset email to {user.email} was not delivered: {email_result.error}")
    return MessageResponse(message="Password reset email sent", dev=email_result.dev)


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(request: ResetPasswordRequest, db: Session = Depends(get_db)):
    user = (
        db.query(User)
        .filter(User.password_reset_token == request.token, User.password_reset_expires > utcnow())
        .first()
    )
    if not user:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired reset token")

    user.password_hash = hash_password(request.password)
    user.password_reset_token = None
    user.password_reset_expires = None
    db.commit()
    logger.info(f"Password reset for user {user.id}")
    return MessageResponse(message="Password has been reset. You can now log in.")


@router.get("/me", response_model=UserEnvelope)
def get_me(current_user: User = Depends(get_current_user)):
    return UserEnvelope(user=UserResponse.model_validate(current_user))


@users_router.get("/me", response_model=UserEnvelope)
def get_profile(current_user: User = Depends(get_current_user)):
    return UserEnvelope(user=UserResponse.model_validate(current_user))


@users_router.put("/me", response_model=UserEnvelope)
def update_profile(
    request: UpdateProfileRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update name and rider profile; only the fields sent are changed."""
    for field, value in request.model_dump(exclude_unset=True).items():
        if field in ("first_name", "last_name") and not value:
            continue
        setattr(current_user, field, value)
    db.commit()
    db.refresh(current_user)
    logger.info(f"Profile updated for user {current_user.id}")
    return UserEnvelope(message="Profile updated successfully", user=UserResponse.model_validate(current_user))
