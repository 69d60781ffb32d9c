"""Pydantic schemas for authentication requests and responses."""

from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime

PROFILE_BIKE_TYPES = ("Road Bike", "Mountain Bike", "Hybrid", "Time Trial", "Gravel", "Commuter", "")
EXPERIENCE_LEVELS = ("Beginner", "Intermediate", "Advanced", "Expert", "")


class RegisterRequest(BaseModel):
    """Register request schema."""
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8)

    @field_validator('first_name', 'last_name')
    @classmethod
    def strip_name(cls, v):
        if not v.strip():
            raise ValueError("Name cannot be empty")
        return v.strip()

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class LoginRequest(BaseModel):
    """Login request schema."""
    email: EmailStr
    password: str

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class EmailRequest(BaseModel):
    """Resend-verification and forgot-password request schema."""
    email: EmailStr

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8)


class UserResponse(BaseModel):
    """User response schema."""
    id: str
    email: str
    first_name: str
    last_name: str
    full_name: str
    role: str
    is_email_verified: bool
    height: Optional[float] = None  # cm
    weight: Optional[float] = None  # kg
    bike_type: Optional[str] = None
    experience: Optional[str] = None
    bio: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    """Token response schema for register and login."""
    token: str
    token_type: str = "bearer"
    user: UserResponse
    message: Optional[str] = None
    dev: bool = False


class UserEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    user: UserResponse


class MessageResponse(BaseModel):
    success: bool = True
    message: str
    dev: bool = False


class UpdateProfileRequest(BaseModel):
    """Update rider profile request schema; omitted fields are left unchanged."""
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    height: Optional[float] = Field(None, ge=100, le=250)  # cm
    weight: Optional[float] = Field(None, ge=30, le=200)  # kg
    bike_type: Optional[str] = None
    experience: Optional[str] = None
    bio: Optional[str] = Field(None, max_length=500)

    @field_validator('bike_type')
    @classmethod
    def validate_bike_type(cls, v):
        if v is not None and v not in PROFILE_BIKE_TYPES:
            raise ValueError(f"Bike type must be one of: {', '.join(t for t in PROFILE_BIKE_TYPES if t)}")
        return v

    @field_validator('experience')
    @classmethod
    def validate_experience(cls, v):
        if v is not None and v not in EXPERIENCE_LEVELS:
            raise ValueError(f"Experience must be one of: {', '.join(e for e in EXPERIENCE_LEVELS if e)}")
        return v
