"""Database models for bike fit analyses.

One Analysis row per uploaded video per user. Angle maps, body lengths and
recommendations are produced by the pose service and stored as received.
Media (processed video, keyframes) live in S3; the row keeps pointers.
"""

from sqlalchemy import Column, String, Float, DateTime, Text, ForeignKey, Index, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import validates

from cyclofit.shared.auth.database import Base, utcnow, new_id

JSONType = JSON().with_variant(JSONB(), "postgresql")

BIKE_TYPES = ("road", "tt", "mtb", "gravel", "hybrid")
STORAGE_TYPES = ("local", "s3")


class Analysis(Base):
    """
    Analysis model - a user's bike fit analysis.

    JSON columns:
    - original_video: {filename, size, content_type, duration, asset}
      (asset only for legacy records; new uploads keep metadata only)
    - processed_video: {asset, content_type, duration} or null
    - keyframes: [{asset, timestamp, timestamp_estimated}, ...] in capture order
    """
    __tablename__ = "analyses"

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String, default="Bike Fit Analysis", nullable=False)
    description = Column(Text, default="", nullable=False)

    storage_type = Column(String, default="local", nullable=False)  # local (legacy) or s3
    original_video = Column(JSONType, nullable=True)
    processed_video = Column(JSONType, nullable=True)
    keyframes = Column(JSONType, nullable=False, default=list)
    duration = Column(Float, nullable=True)  # seconds, None when unknown

    bike_type = Column(String, default="road", nullable=False, index=True)
    user_height_cm = Column(Float, nullable=False)

    max_angles = Column(JSONType, nullable=True)
    min_angles = Column(JSONType, nullable=True)
    body_lengths_cm = Column(JSONType, nullable=True)
    recommendations = Column(JSONType, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        # User history queries, newest first
        Index("idx_analyses_user_created", "user_id", "created_at"),
    )

    @validates("storage_type")
    def validate_storage_type(self, key, value):
        if value not in STORAGE_TYPES:
            raise ValueError(f"Invalid storage type: {value}")
        # Migration to S3 is one-directional
        if self.storage_type == "s3" and value != "s3":
            raise ValueError("An analysis stored in S3 cannot revert to local storage")
        return value

    @validates("bike_type")
    def validate_bike_type(self, key, value):
        if value not in BIKE_TYPES:
            raise ValueError(f"Invalid bike type: {value}. Must be one of {', '.join(BIKE_TYPES)}")
        return value

    @property
    def formatted_duration(self) -> str:
        if not self.duration:
            return "Unknown"
        minutes = int(self.duration // 60)
        seconds = int(self.duration % 60)
        return f"{minutes}:{seconds:02d}"
