"""Database model for contact form submissions."""

from sqlalchemy import Column, String, DateTime, Text, Index
from sqlalchemy.orm import validates

from cyclofit.shared.auth.database import Base, utcnow, new_id

CONTACT_STATUSES = ("new", "read", "replied", "closed")


class Contact(Base):
    """A message sent through the public contact form."""
    __tablename__ = "contacts"

    id = Column(String, primary_key=True, default=new_id)
    name = Column(String(100), nullable=False)
    email = Column(String, nullable=False)
    subject = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    status = Column(String, default="new", nullable=False)
    user_id = Column(String, nullable=True)  # set when the sender was logged in

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_contacts_status_created", "status", "created_at"),
    )

    @validates("status")
    def validate_status(self, key, value):
        if value not in CONTACT_STATUSES:
            raise ValueError(f"Invalid status value: {value}")
        return value
