"""
engagement/models.py

Defines the Engagement model and its companions:
- Engagement: one customer request (ancestry record) or one customer-worker
  pairing derived from it, carrying its own lifecycle status
- EngagementDispatch: append-only ledger of workers an ancestry was sent to
- EngagementProgress: append-only work progress entries
Records are never deleted; cancellation and decline are states.
"""

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fixlink.core.clock import utcnow
from fixlink.database.base import Base
from fixlink.database.enums import ServiceCategory, TimeSlot, Urgency


# ENUM: Engagement Status
class EngagementStatus(str, enum.Enum):
    QUOTE_REQUESTED = "quote_requested"
    QUOTES_SENT = "quotes_sent"
    PENDING = "pending"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DISPUTED = "disputed"


class ResponseAction(str, enum.Enum):
    ACCEPTED = "accepted"
    DECLINED = "declined"


class QuoteStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


class PartyRole(str, enum.Enum):
    CUSTOMER = "customer"
    WORKER = "worker"
    ADMIN = "admin"


# MODEL: Engagement
class Engagement(Base):
    __tablename__ = "engagements"
    __table_args__ = (
        UniqueConstraint("ancestry_id", "worker_id", name="uq_engagements_ancestry_worker"),
    )

    # Basic Identifiers & Parties
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4, comment="Unique identifier for the engagement"
    )
    ancestry_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("engagements.id"),
        index=True,
        nullable=True,
        comment="Ancestry record this engagement was fanned out from",
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, index=True, nullable=False, comment="Customer who raised the request"
    )
    worker_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, index=True, nullable=True, comment="Worker the engagement is offered to"
    )

    # Descriptive Payload
    service_category: Mapped[ServiceCategory] = mapped_column(
        Enum(ServiceCategory, name="service_category"), nullable=False
    )
    problem_description: Mapped[str] = mapped_column(String(1000), nullable=False)
    problem_images: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    district: Mapped[str | None] = mapped_column(String(100), nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    scheduled_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    preferred_time_slot: Mapped[TimeSlot] = mapped_column(
        Enum(TimeSlot, name="time_slot"), default=TimeSlot.ANYTIME, nullable=False
    )
    budget_min: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    budget_max: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2), nullable=True, comment="Null means an unbounded budget"
    )
    urgency: Mapped[Urgency] = mapped_column(
        Enum(Urgency, name="urgency"), default=Urgency.MEDIUM, nullable=False
    )
    special_instructions: Mapped[str | None] = mapped_column(String(500), nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Status
    status: Mapped[EngagementStatus] = mapped_column(
        Enum(EngagementStatus, name="engagement_status"),
        default=EngagementStatus.PENDING,
        index=True,
        nullable=False,
        comment="Current status of the engagement",
    )

    # Worker Response
    response_action: Mapped[ResponseAction | None] = mapped_column(
        Enum(ResponseAction, name="response_action"), nullable=True
    )
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    response_time_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    decline_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Quote
    quote_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    quote_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    quote_valid_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    quote_status: Mapped[QuoteStatus | None] = mapped_column(
        Enum(QuoteStatus, name="quote_status"), nullable=True
    )
    quoted_price: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2), nullable=True, comment="Price agreed when the customer accepted the quote"
    )

    # Lifecycle Timestamps & Metadata
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    final_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    completion_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_by: Mapped[PartyRole | None] = mapped_column(
        Enum(PartyRole, name="party_role"), nullable=True
    )
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    disputed_by: Mapped[PartyRole | None] = mapped_column(
        Enum(PartyRole, name="party_role"), nullable=True
    )
    dispute_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    disputed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Audit Fields
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="Timestamp when the engagement was created",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
        comment="Timestamp when the engagement was last updated",
    )

    # Relationships
    progress: Mapped[list["EngagementProgress"]] = relationship(
        "EngagementProgress",
        back_populates="engagement",
        order_by="EngagementProgress.created_at",
    )
    dispatches: Mapped[list["EngagementDispatch"]] = relationship(
        "EngagementDispatch",
        foreign_keys="EngagementDispatch.ancestry_id",
        order_by="EngagementDispatch.sent_at",
    )

    @property
    def is_ancestry(self) -> bool:
        return self.ancestry_id is None and self.worker_id is None

    @property
    def sent_to_workers(self) -> list[uuid.UUID]:
        return [d.worker_id for d in self.dispatches]


# MODEL: Dispatch ledger (sentToWorkers)
class EngagementDispatch(Base):
    __tablename__ = "engagement_dispatches"
    __table_args__ = (
        UniqueConstraint("ancestry_id", "worker_id", name="uq_dispatch_ancestry_worker"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    ancestry_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("engagements.id"), index=True, nullable=False
    )
    worker_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    engagement_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("engagements.id"), nullable=False, comment="Record created for the worker"
    )
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


# MODEL: Progress entry
class EngagementProgress(Base):
    __tablename__ = "engagement_progress"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    engagement_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("engagements.id"), index=True, nullable=False
    )
    status_label: Mapped[str] = mapped_column(String(50), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    images: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    engagement: Mapped["Engagement"] = relationship("Engagement", back_populates="progress")
