"""Contact routes for sending messages to support."""

import html
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from cyclofit.shared.auth.database import get_db, User
from cyclofit.shared.auth.dependencies import get_optional_user, verify_admin_api_key
from cyclofit.shared.auth.rate_limit_utils import contact_limiter, get_client_ip
from cyclofit.shared.config.settings import Settings, get_settings
from cyclofit.shared.contact.database import Contact
from cyclofit.shared.contact.schemas import (
    ContactListResponse,
    ContactOut,
    ContactRequest,
    ContactResponse,
    ContactStatusResponse,
    ContactStatusUpdate,
)
from cyclofit.shared.notifications.mailer import send_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/contact", tags=["contact"])


def notify_admin(settings: Settings, contact: Contact) -> None:
    """Email the submission to ADMIN_EMAIL; failures are logged only."""
    recipient = settings.ADMIN_EMAIL or settings.SMTP_USER
    if not recipient:
        logger.info(f"No admin email configured; contact {contact.id} stored without notification")
        return

    body = html.escape(contact.message).replace("\n", "<br>")
    result = send_email(
        settings,
        recipient,
        f"New Contact Form Submission: {contact.subject}",
        f"""
          <h3>New contact form submission from CycloFit</h3>
          <p><strong>Name:</strong> {html.escape(contact.name)}</p>
          <p><strong>Email:</strong> {html.escape(contact.email)}</p>
          <p><strong>Subject:</strong> {html.escape(contact.subject)}</p>
          <p><strong>Message:</strong></p>
          <p>{body}</p>
        """,
        reply_to=contact.email,
    )
    if not result.success:
        logger.warning(f"Notification email for contact {contact.id} failed: {result.error}")


@router.post("", response_model=ContactResponse, status_code=status.HTTP_201_CREATED)
def submit_contact_form(
    contact_data: ContactRequest,
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    user: Optional[User] = Depends(get_optional_user),
):
    """
    Store a contact form message and notify the support inbox.

    Features:
    - Rate limiting: Max 3 messages per hour per IP address
    - If the sender is logged in, their account id is attached
    - The notification email is best effort
    """
    contact_limiter.check(get_client_ip(request))

    message = contact_data.message
    if user is not None:
        message += f"\n\n---\nUser ID: {user.id}"

    contact = Contact(
        name=contact_data.name,
        email=contact_data.email,
        subject=contact_data.subject,
        message=message,
        user_id=user.id if user is not None else None,
    )
    db.add(contact)
    db.commit()
    db.refresh(contact)
    logger.info(f"Contact form submission {contact.id} from {contact.email}")

    notify_admin(settings, contact)

    return ContactResponse(
        success=True,
        message="Your message has been received. We will get back to you soon!",
        data=ContactOut.model_validate(contact),
    )


@router.get("", response_model=ContactListResponse, dependencies=[Depends(verify_admin_api_key)])
def get_contact_submissions(db: Session = Depends(get_db)):
    contacts = db.query(Contact).order_by(Contact.created_at.desc()).all()
    return ContactListResponse(count=len(contacts), data=[ContactOut.model_validate(c) for c in contacts])


@router.patch("/{contact_id}", response_model=ContactStatusResponse, dependencies=[Depends(verify_admin_api_key)])
def update_contact_status(contact_id: str, update: ContactStatusUpdate, db: Session = Depends(get_db)):
    contact = db.query(Contact).filter(Contact.id == contact_id).first()
    if not contact:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact submission not found")

    contact.status = update.status
    db.commit()
    db.refresh(contact)
    return ContactStatusResponse(data=ContactOut.model_validate(contact))
