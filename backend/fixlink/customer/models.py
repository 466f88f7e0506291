"""
customer/models.py

Defines the CustomerProfile aggregate.
- Rating received from workers (worker-to-customer reviews)
- Booking counters maintained by the booking lifecycle
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from fixlink.core.clock import utcnow
from fixlink.database.base import Base


class CustomerProfile(Base):
    __tablename__ = "customer_profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4, comment="Unique identifier for the customer profile"
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, index=True, nullable=False, comment="Subject id from the identity provider"
    )

    rating_average: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    rating_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    total_requests: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False, comment="Quote requests and direct bookings raised"
    )
    completed_bookings: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    cancelled_bookings: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )
