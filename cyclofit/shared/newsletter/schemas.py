"""Pydantic schemas for newsletter API."""

from pydantic import BaseModel, EmailStr, field_validator
from typing import List, Literal, Optional
from datetime import datetime


class SubscribeRequest(BaseModel):
    email: EmailStr
    source: Literal["footer", "blog", "other"] = "other"

    @field_validator('email', mode='before')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class SubscriberOut(BaseModel):
    email: str
    subscribed: bool
    source: str
    subscribed_at: datetime
    unsubscribed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class NewsletterResponse(BaseModel):
    success: bool = True
    message: str


class SubscriberListResponse(BaseModel):
    success: bool = True
    count: int
    data: List[SubscriberOut]
