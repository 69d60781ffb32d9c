"""
Admin account bootstrap.

Used by the /api/admin-setup routes and by the create_admin.py and
check_user_admin.py scripts.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from cyclofit.shared.auth.database import get_db, User, ADMIN_ROLES
from cyclofit.shared.auth.dependencies import verify_admin_api_key
from cyclofit.shared.auth.security import hash_password, create_access_token
from cyclofit.shared.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin-setup", tags=["admin-setup"])


def get_admin_counts(db: Session) -> dict:
    total_admins = db.query(User).filter(User.role.in_(ADMIN_ROLES)).count()
    super_admins = db.query(User).filter(User.role == "super_admin").count()
    return {
        "has_admins": total_admins > 0,
        "has_super_admin": super_admins > 0,
        "total_admins": total_admins,
        "super_admins": super_admins,
    }


def create_admin_user(db: Session, email: str, password: str, first_name: str, last_name: str, role: str = "admin") -> User:
    """
    Create a verified, active admin account.

    Raises:
        ValueError: invalid role or an account with this email already exists
    """
    if role not in ADMIN_ROLES:
        raise ValueError("Invalid role. Must be admin or super_admin")

    email = email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise ValueError("User already exists with this email")

    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        role=role,
        is_email_verified=True,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Created {role} account {user.email} ({user.id})")
    return user


class CreateAdminRequest(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=8)
    role: str = "admin"


@router.get("/check-admins")
def check_admins(db: Session = Depends(get_db)):
    """Lets the frontend know whether initial admin setup is still needed."""
    return {"success": True, "data": get_admin_counts(db)}


@router.post("/create-admin", dependencies=[Depends(verify_admin_api_key)])
def create_admin(
    request: CreateAdminRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    try:
        user = create_admin_user(
            db,
            email=request.email,
            password=request.password,
            first_name=request.first_name,
            last_name=request.last_name,
            role=request.role,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return {
        "success": True,
        "message": f"{user.role.replace('_', ' ')} account created successfully",
        "data": {
            "id": user.id,
            "email": user.email,
            "full_name": user.full_name,
            "role": user.role,
            "is_email_verified": user.is_email_verified,
            "token": create_access_token(user.id, settings),
        },
    }
