"""
review/models.py

Defines the Review model for storing engagement feedback.
- One customer review of the worker and one worker rating of the customer
  per completed engagement.
- Reviews are hidden (soft-deleted), never removed.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.schema import CheckConstraint

from fixlink.core.clock import utcnow
from fixlink.database.base import Base


class ReviewDirection(str, enum.Enum):
    CUSTOMER_TO_WORKER = "customer_to_worker"
    WORKER_TO_CUSTOMER = "worker_to_customer"


class Review(Base):
    """
    Star rating (1-5) left by one party of a completed engagement about the other.
    Only visible reviews count towards the rated party's average.
    """

    __tablename__ = "reviews"
    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="rating_range"),
        UniqueConstraint("engagement_id", "direction", name="uq_reviews_engagement_direction"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4, comment="Unique identifier for the review"
    )
    engagement_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("engagements.id"),
        index=True,
        nullable=False,
        comment="Completed engagement being reviewed",
    )
    direction: Mapped[ReviewDirection] = mapped_column(
        Enum(ReviewDirection, name="review_direction"), nullable=False
    )

    # Parties
    author_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    worker_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    customer_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)

    # Review content
    rating: Mapped[int] = mapped_column(Integer, nullable=False, comment="Star rating from 1 to 5")
    comment: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Moderation
    is_visible: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    hidden_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    hidden_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )
