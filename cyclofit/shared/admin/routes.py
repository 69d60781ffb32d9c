"""Admin routes for managing users, analyses, contacts and subscribers."""

import logging
import math
import platform
import time
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy import func, or_, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cyclofit.shared.analyses.database import Analysis
from cyclofit.shared.analyses.routes import lookup_errors
from cyclofit.shared.analyses.service import AnalysisService, build_analysis_detail, get_analysis_service
from cyclofit.shared.auth.database import get_db, User, USER_ROLES, utcnow
from cyclofit.shared.auth.dependencies import require_admin
from cyclofit.shared.config.settings import Settings, get_settings
from cyclofit.shared.contact.database import Contact
from cyclofit.shared.contact.schemas import ContactOut, ContactStatusUpdate
from cyclofit.shared.newsletter.database import NewsletterSubscriber
from cyclofit.shared.newsletter.schemas import SubscriberOut
from cyclofit.shared.storage.object_store import S3ObjectStore, get_object_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])

STARTED_AT = time.time()


class UpdateRoleRequest(BaseModel):
    """Request schema for changing a user's role."""
    role: str


def paginate(query, page: int, limit: int):
    """Apply page/limit to a query; returns (items, pagination)."""
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, {
        "current_page": page,
        "total_pages": math.ceil(total / limit) if total else 0,
        "total": total,
        "limit": limit,
    }


def daily_counts(db: Session, column, since: datetime) -> list:
    day = func.date(column)
    rows = (
        db.query(day.label("day"), func.count().label("count"))
        .filter(column >= since)
        .group_by(day)
        .order_by(day)
        .all()
    )
    return [{"date": str(row.day), "count": row.count} for row in rows]


def user_summary(user: User, analysis_count: int = 0) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "role": user.role,
        "is_active": user.is_active,
        "is_email_verified": user.is_email_verified,
        "created_at": user.created_at,
        "last_login_at": user.last_login_at,
        "analysis_count": analysis_count,
    }


# ----------------------------------------------------------------------
# Dashboard
# ----------------------------------------------------------------------

@router.get("/dashboard/stats")
def get_dashboard_stats(db: Session = Depends(get_db)):
    now = utcnow()
    thirty_days_ago = now - timedelta(days=30)
    seven_days_ago = now - timedelta(days=7)

    def count(model, column=None, since=None, *criteria):
        query = db.query(model)
        if since is not None:
            query = query.filter(column >= since)
        if criteria:
            query = query.filter(*criteria)
        return query.count()

    overview = {
        "total_users": count(User),
        "active_users": count(User, None, None, User.is_active.is_(True)),
        "new_users_last_30_days": count(User, User.created_at, thirty_days_ago),
        "new_users_last_7_days": count(User, User.created_at, seven_days_ago),
        "total_analyses": count(Analysis),
        "analyses_last_30_days": count(Analysis, Analysis.created_at, thirty_days_ago),
        "analyses_last_7_days": count(Analysis, Analysis.created_at, seven_days_ago),
        "total_contacts": count(Contact),
        "contacts_last_30_days": count(Contact, Contact.created_at, thirty_days_ago),
        "total_subscribers": count(NewsletterSubscriber),
        "subscribers_last_30_days": count(NewsletterSubscriber, NewsletterSubscriber.subscribed_at, thirty_days_ago),
    }

    analysis_count = func.count(Analysis.id).label("analysis_count")
    most_active = (
        db.query(User, analysis_count, func.max(Analysis.created_at).label("last_analysis"))
        .join(Analysis, Analysis.user_id == User.id)
        .group_by(User.id)
        .order_by(analysis_count.desc())
        .limit(10)
        .all()
    )

    return {
        "success": True,
        "data": {
            "overview": overview,
            "charts": {
                "user_growth": daily_counts(db, User.created_at, thirty_days_ago),
                "analysis_growth": daily_counts(db, Analysis.created_at, thirty_days_ago),
            },
            "most_active_users": [
                {
                    "user_id": user.id,
                    "full_name": user.full_name,
                    "email": user.email,
                    "analysis_count": n,
                    "last_analysis": last,
                }
                for user, n, last in most_active
            ],
        },
    }


# ----------------------------------------------------------------------
# Users
# ----------------------------------------------------------------------

@router.get("/users")
def get_all_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: str = "",
    role: str = "",
    status_filter: str = Query("", alias="status"),
    db: Session = Depends(get_db),
):
    query = db.query(User)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(User.first_name.ilike(pattern), User.last_name.ilike(pattern), User.email.ilike(pattern)))
    if role:
        query = query.filter(User.role == role)
    if status_filter:
        query = query.filter(User.is_active.is_(status_filter == "active"))

    users, pagination = paginate(query.order_by(User.created_at.desc()), page, limit)

    counts = dict(
        db.query(Analysis.user_id, func.count(Analysis.id))
        .filter(Analysis.user_id.in_([u.id for u in users]))
        .group_by(Analysis.user_id)
        .all()
    ) if users else {}

    return {
        "success": True,
        "data": {
            "users": [user_summary(u, counts.get(u.id, 0)) for u in users],
            "pagination": pagination,
        },
    }


@router.patch("/users/{user_id}/status")
def toggle_user_status(user_id: str, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if user.role == "super_admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cannot deactivate super admin accounts")

    user.is_active = not user.is_active
    db.commit()
    logger.info(f"User {user.id} {'activated' if user.is_active else 'deactivated'}")
    return {
        "success": True,
        "message": f"User {'activated' if user.is_active else 'deactivated'} successfully",
        "data": {"user_id": user.id, "is_active": user.is_active},
    }


@router.patch("/users/{user_id}/role")
def update_user_role(
    user_id: str,
    request: UpdateRoleRequest,
    admin_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if request.role not in USER_ROLES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid role specified")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    if request.role == "super_admin" and admin_user.role != "super_admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only super admins can create other super admins",
        )

    user.role = request.role
    db.commit()
    logger.info(f"Admin {admin_user.id} set role of {user.id} to {user.role}")
    return {
        "success": True,
        "message": f"User role updated to {user.role} successfully",
        "data": {"user_id": user.id, "role": user.role},
    }


# ----------------------------------------------------------------------
# Analyses (no ownership filter)
# ----------------------------------------------------------------------

@router.get("/analyses")
def get_all_analyses(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    bike_type: str = "",
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: Session = Depends(get_db),
):
    query = db.query(Analysis, User).outerjoin(User, User.id == Analysis.user_id)
    if bike_type:
        query = query.filter(Analysis.bike_type == bike_type)
    if start_date:
        query = query.filter(Analysis.created_at >= start_date.replace(tzinfo=None))
    if end_date:
        query = query.filter(Analysis.created_at <= end_date.replace(tzinfo=None))

    rows, pagination = paginate(query.order_by(Analysis.created_at.desc()), page, limit)
    analyses = []
    for analysis, user in rows:
        item = build_analysis_detail(analysis)
        item["user"] = {"id": user.id, "full_name": user.full_name, "email": user.email} if user else None
        analyses.append(item)

    return {"success": True, "data": {"analyses": analyses, "pagination": pagination}}


@router.get("/analyses/{analysis_id}")
def get_analysis(
    analysis_id: str,
    service: AnalysisService = Depends(get_analysis_service),
    settings: Settings = Depends(get_settings),
):
    with lookup_errors(settings, "Error fetching analysis"):
        analysis = service.require(analysis_id, None)
    return {"success": True, "data": build_analysis_detail(analysis)}


@router.get("/analyses/{analysis_id}/processed-video")
def get_processed_video(
    analysis_id: str,
    service: AnalysisService = Depends(get_analysis_service),
    settings: Settings = Depends(get_settings),
):
    with lookup_errors(settings, "Error getting processed video"):
        url = service.get_video_url(analysis_id, None, "processed")
    return {"url": url}


@router.get("/analyses/{analysis_id}/original-video")
def get_original_video(
    analysis_id: str,
    service: AnalysisService = Depends(get_analysis_service),
    settings: Settings = Depends(get_settings),
):
    with lookup_errors(settings, "Error getting original video"):
        url = service.get_video_url(analysis_id, None, "original")
    return {"url": url}


@router.get("/analyses/{analysis_id}/keyframes")
def get_keyframes(
    analysis_id: str,
    service: AnalysisService = Depends(get_analysis_service),
    settings: Settings = Depends(get_settings),
):
    with lookup_errors(settings, "Error getting keyframes"):
        keyframes = service.get_keyframe_urls(analysis_id, None)
    return {"keyframes": keyframes}


@router.delete("/analyses/{analysis_id}")
def delete_analysis(
    analysis_id: str,
    service: AnalysisService = Depends(get_analysis_service),
    settings: Settings = Depends(get_settings),
):
    with lookup_errors(settings, "Failed to delete analysis"):
        deleted = service.delete_analysis(analysis_id, None)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Analysis not found")
    return {"success": True, "message": "Analysis deleted successfully"}


# ----------------------------------------------------------------------
# Contacts and subscribers
# ----------------------------------------------------------------------

@router.get("/contacts")
def get_all_contacts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: str = Query("", alias="status"),
    db: Session = Depends(get_db),
):
    query = db.query(Contact)
    if status_filter:
        query = query.filter(Contact.status == status_filter)
    contacts, pagination = paginate(query.order_by(Contact.created_at.desc()), page, limit)
    return {
        "success": True,
        "data": {
            "contacts": [ContactOut.model_validate(c) for c in contacts],
            "pagination": pagination,
        },
    }


@router.patch("/contacts/{contact_id}/status")
def update_contact_status(contact_id: str, update: ContactStatusUpdate, db: Session = Depends(get_db)):
    contact = db.query(Contact).filter(Contact.id == contact_id).first()
    if not contact:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found")

    contact.status = update.status
    db.commit()
    db.refresh(contact)
    return {
        "success": True,
        "message": "Contact status updated successfully",
        "data": ContactOut.model_validate(contact),
    }


@router.get("/subscribers")
def get_all_subscribers(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    query = db.query(NewsletterSubscriber).order_by(NewsletterSubscriber.subscribed_at.desc())
    subscribers, pagination = paginate(query, page, limit)
    return {
        "success": True,
        "data": {
            "subscribers": [SubscriberOut.model_validate(s) for s in subscribers],
            "pagination": pagination,
        },
    }


# ----------------------------------------------------------------------
# System
# ----------------------------------------------------------------------

@router.get("/system/health")
def get_system_health(
    db: Session = Depends(get_db),
    store: S3ObjectStore = Depends(get_object_store),
):
    start = time.perf_counter()
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {str(e)}")
        db_status = "disconnected"
    db_response_ms = round((time.perf_counter() - start) * 1000, 2)

    storage = store.check_connection()
    healthy = db_status == "connected" and storage["connected"]

    return {
        "success": True,
        "data": {
            "status": "healthy" if healthy else "degraded",
            "timestamp": utcnow(),
            "database": {
                "status": db_status,
                "response_time": f"{db_response_ms}ms",
            },
            "storage": storage,
            "uptime": round(time.time() - STARTED_AT, 1),
            "version": platform.python_version(),
        },
    }
