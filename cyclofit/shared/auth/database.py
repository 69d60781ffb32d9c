"""Database setup and configuration."""

from sqlalchemy import create_engine, Column, String, Boolean, DateTime, Float, Text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from datetime import datetime, timezone
import logging
import os
import uuid

from cyclofit.shared.config.settings import Settings, validate_settings_or_exit

logger = logging.getLogger(__name__)


def build_engine(settings: Settings) -> Engine:
    """Engine for settings.DATABASE_URL (environment or .env, postgres:// already rewritten)."""
    database_url = settings.DATABASE_URL

    # SQLite-specific connection args
    connect_args = {}
    if "sqlite" in database_url:
        connect_args = {"check_same_thread": False}
        # Ensure directory exists for SQLite
        if database_url.startswith("sqlite:///"):
            db_path = database_url.replace("sqlite:///", "")
            if db_path != ":memory:":
                db_dir = os.path.dirname(db_path)
                if db_dir:
                    os.makedirs(db_dir, exist_ok=True)

    return create_engine(database_url, connect_args=connect_args)


engine = build_engine(validate_settings_or_exit())
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

USER_ROLES = ("user", "admin", "super_admin")
ADMIN_ROLES = ("admin", "super_admin")


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """User model for authentication and rider profile."""
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True, default=new_id)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    role = Column(String, default="user", nullable=False, index=True)  # user, admin, super_admin
    is_active = Column(Boolean, default=True, nullable=False)

    is_email_verified = Column(Boolean, default=False, nullable=False)
    email_verification_token = Column(String, nullable=True, index=True)
    email_verification_expires = Column(DateTime, nullable=True)
    password_reset_token = Column(String, nullable=True, index=True)
    password_reset_expires = Column(DateTime, nullable=True)

    # Rider profile
    height = Column(Float, nullable=True)  # cm
    weight = Column(Float, nullable=True)  # kg
    bike_type = Column(String, nullable=True)
    experience = Column(String, nullable=True)
    bio = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    last_login_at = Column(DateTime, nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


def init_db():
    """Initialize database tables."""
    # Register every model on Base.metadata before creating tables
    from cyclofit.shared.analyses import database as _analyses  # noqa: F401
    from cyclofit.shared.contact import database as _contact  # noqa: F401
    from cyclofit.shared.newsletter import database as _newsletter  # noqa: F401

    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        logger.warning(f"Database initialization warning: {str(e)}")
        # Try again table by table - handles the case where some tables exist
        try:
            Base.metadata.create_all(bind=engine, checkfirst=True)
        except Exception as e2:
            logger.error(f"Database initialization error: {str(e2)}")
            raise


def get_db():
    """Dependency to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
