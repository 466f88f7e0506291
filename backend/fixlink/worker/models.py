"""
worker/models.py

Defines SQLAlchemy models specific to the Worker module:
- WorkerProfile: the worker aggregate read by the matcher and updated by
  booking transitions and reviews (rating, job counters, response stats)
- WorkerServiceCategory: one row per service category a worker offers

Profiles are created by the profile service; this package only mutates the
statistics columns, always through single-statement updates.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fixlink.core.clock import utcnow
from fixlink.database.base import Base
from fixlink.database.enums import ProfileStatus, ServiceCategory


# ------------------------------------------------------
# WorkerProfile Model
# ------------------------------------------------------
class WorkerProfile(Base):
    """
    Aggregate for users with the 'WORKER' role.
    Holds matching inputs (location, rate, categories) and running statistics.
    """

    __tablename__ = "worker_profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4, comment="Unique identifier for the worker profile"
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, index=True, nullable=False, comment="Subject id from the identity provider"
    )

    # Matching inputs
    years_experience: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False, comment="Number of years of experience"
    )
    hourly_rate: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2), nullable=True, comment="Advertised hourly rate"
    )
    is_available: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False, comment="Currently accepting new work"
    )
    profile_status: Mapped[ProfileStatus] = mapped_column(
        Enum(ProfileStatus, name="profile_status"),
        default=ProfileStatus.INCOMPLETE,
        nullable=False,
        comment="Only active profiles are matched",
    )
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Rating aggregate
    rating_average: Mapped[float] = mapped_column(
        Float, default=0.0, nullable=False, comment="Mean of the included customer ratings"
    )
    rating_count: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False, comment="Number of included customer ratings"
    )

    # Engagement statistics
    completed_jobs: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    acceptance_rate: Mapped[float] = mapped_column(
        Float, default=0.0, nullable=False, comment="Accepted responses as a percentage"
    )
    response_time: Mapped[float | None] = mapped_column(
        Float, nullable=True, comment="Rolling average response time in minutes"
    )
    responses_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    accepted_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Audit Fields
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    categories: Mapped[list["WorkerServiceCategory"]] = relationship(
        "WorkerServiceCategory",
        back_populates="worker",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def service_categories(self) -> list[ServiceCategory]:
        return [c.category for c in self.categories]


class WorkerServiceCategory(Base):
    """Service category declared by a worker."""

    __tablename__ = "worker_service_categories"
    __table_args__ = (UniqueConstraint("worker_id", "category", name="uq_worker_category"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    worker_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("worker_profiles.id", ondelete="CASCADE"), index=True, nullable=False
    )
    category: Mapped[ServiceCategory] = mapped_column(
        Enum(ServiceCategory, name="service_category"), index=True, nullable=False
    )

    worker: Mapped["WorkerProfile"] = relationship("WorkerProfile", back_populates="categories")
