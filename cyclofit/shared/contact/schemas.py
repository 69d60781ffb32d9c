"""Pydantic schemas for contact API."""

from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import List, Literal, Optional
from datetime import datetime


class ContactRequest(BaseModel):
    """Schema for contact form submission."""
    name: str = Field(..., min_length=1, max_length=100, description="Your name")
    email: EmailStr = Field(..., description="Your email address")
    subject: str = Field(..., min_length=1, max_length=200, description="Message subject")
    message: str = Field(..., min_length=10, max_length=2000, description="Your message (10-2000 characters)")

    @field_validator('name', 'subject')
    @classmethod
    def strip_text(cls, v):
        cleaned = v.strip()
        if not cleaned:
            raise ValueError("Field cannot be empty")
        return cleaned

    @field_validator('message')
    @classmethod
    def validate_message(cls, v):
        cleaned = v.strip()
        if len(cleaned) < 10:
            raise ValueError("Message must be at least 10 characters")
        return cleaned


class ContactOut(BaseModel):
    id: str
    name: str
    email: str
    subject: str
    message: str
    status: str
    user_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ContactResponse(BaseModel):
    """Schema for contact form response."""
    success: bool
    message: str
    data: ContactOut


class ContactListResponse(BaseModel):
    success: bool = True
    count: int
    data: List[ContactOut]


class ContactStatusUpdate(BaseModel):
    status: Literal["new", "read", "replied", "closed"]


class ContactStatusResponse(BaseModel):
    success: bool = True
    data: ContactOut
