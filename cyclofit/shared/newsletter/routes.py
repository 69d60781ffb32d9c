"""Newsletter subscription routes."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from cyclofit.shared.auth.database import get_db, utcnow
from cyclofit.shared.auth.dependencies import verify_admin_api_key
from cyclofit.shared.config.settings import Settings, get_settings
from cyclofit.shared.newsletter.database import NewsletterSubscriber
from cyclofit.shared.newsletter.schemas import (
    NewsletterResponse,
    SubscribeRequest,
    SubscriberListResponse,
    SubscriberOut,
)
from cyclofit.shared.notifications.mailer import send_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/newsletter", tags=["newsletter"])

WELCOME_EMAIL = """
  <h2>Thanks for subscribing to CycloFit Newsletter!</h2>
  <p>You'll be the first to know about new features, cycling tips, and special offers.</p>
  <p>If you ever want to unsubscribe, you can click the unsubscribe link at the bottom of any newsletter.</p>
  <p>Happy cycling!</p>
  <p>The CycloFit Team</p>
"""


@router.post("", response_model=NewsletterResponse, status_code=status.HTTP_201_CREATED)
def subscribe(
    request: SubscribeRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Subscribe an email address.

    New address: 201 and a welcome email. Already subscribed: 200.
    Previously unsubscribed: resubscribed, 200.
    """
    subscriber = db.query(NewsletterSubscriber).filter(NewsletterSubscriber.email == request.email).first()

    if subscriber is not None:
        if subscriber.subscribed:
            return JSONResponse(
                status_code=status.HTTP_200_OK,
                content={"success": True, "message": "You are already subscribed to our newsletter"},
            )
        subscriber.subscribed = True
        subscriber.unsubscribed_at = None
        subscriber.subscribed_at = utcnow()
        subscriber.source = request.source
        db.commit()
        logger.info(f"Resubscribed {subscriber.email}")
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"success": True, "message": "Welcome back! You have been resubscribed to our newsletter"},
        )

    subscriber = NewsletterSubscriber(email=request.email, source=request.source)
    db.add(subscriber)
    db.commit()
    logger.info(f"New newsletter subscriber {subscriber.email} (source: {subscriber.source})")

    result = send_email(settings, subscriber.email, "Welcome to CycloFit Newsletter", WELCOME_EMAIL)
    if not result.success:
        logger.warning(f"Welcome email to {subscriber.email} failed: {result.error}")

    return NewsletterResponse(message="Successfully subscribed to the newsletter")


@router.delete("/{email}", response_model=NewsletterResponse)
def unsubscribe(email: str, db: Session = Depends(get_db)):
    subscriber = (
        db.query(NewsletterSubscriber)
        .filter(NewsletterSubscriber.email == email.strip().lower())
        .first()
    )
    if not subscriber:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Email not found in our subscription list")

    subscriber.subscribed = False
    subscriber.unsubscribed_at = utcnow()
    db.commit()
    logger.info(f"Unsubscribed {subscriber.email}")
    return NewsletterResponse(message="Successfully unsubscribed from the newsletter")


@router.get("", response_model=SubscriberListResponse, dependencies=[Depends(verify_admin_api_key)])
def get_subscribers(db: Session = Depends(get_db)):
    subscribers = db.query(NewsletterSubscriber).order_by(NewsletterSubscriber.subscribed_at.desc()).all()
    return SubscriberListResponse(count=len(subscribers), data=[SubscriberOut.model_validate(s) for s in subscribers])
