"""
customer/services.py

Booking counters on the customer aggregate, updated in the same
transaction as the engagement transition that caused them.
"""

import logging
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fixlink.core.exceptions import NotFoundError
from fixlink.customer.models import CustomerProfile

logger = logging.getLogger(__name__)

COUNTERS = ("total_requests", "completed_bookings", "cancelled_bookings")


class CustomerCounters:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def ensure_exists(self, customer_id: UUID) -> None:
        result = await self.db.execute(
            select(CustomerProfile.id).where(CustomerProfile.user_id == customer_id)
        )
        if result.scalar_one_or_none() is None:
            logger.warning(f"Customer profile not found: user_id={customer_id}")
            raise NotFoundError("Customer profile not found")

    async def increment(self, customer_id: UUID, counter: str) -> None:
        if counter not in COUNTERS:
            raise ValueError(f"Unknown customer counter: {counter}")
        column = getattr(CustomerProfile, counter)
        result = await self.db.execute(
            update(CustomerProfile)
            .where(CustomerProfile.user_id == customer_id)
            .values({counter: column + 1})
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(f"[STATS] No customer aggregate for {customer_id}, {counter} unchanged")
