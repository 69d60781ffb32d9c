"""Database model for newsletter subscribers."""

from sqlalchemy import Column, String, Boolean, DateTime

from cyclofit.shared.auth.database import Base, utcnow, new_id

NEWSLETTER_SOURCES = ("footer", "blog", "other")


class NewsletterSubscriber(Base):
    __tablename__ = "newsletters"

    id = Column(String, primary_key=True, default=new_id)
    email = Column(String, unique=True, index=True, nullable=False)  # trimmed, lower-case
    subscribed = Column(Boolean, default=True, nullable=False)
    source = Column(String, default="other", nullable=False)
    subscribed_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    unsubscribed_at = Column(DateTime, nullable=True)
