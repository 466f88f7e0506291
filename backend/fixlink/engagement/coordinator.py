"""
backend/fixlink/engagement/coordinator.py

Quote Request Coordinator
- Creates the ancestry record for a customer's problem description and,
  on request, ranks suitable workers for it
- Fans the request out into one pending engagement per selected worker

Fan-out is idempotent per worker id: the dispatch ledger carries a unique
(ancestry_id, worker_id) constraint, each worker's record is committed on
its own, and a re-invocation only creates records for workers that are not
in the ledger yet. Records committed before a failure stay committed.
"""

import logging
import uuid
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fixlink.core.clock import utcnow
from fixlink.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from fixlink.core.schemas import IdentityContext
from fixlink.customer.services import CustomerCounters
from fixlink.database.enums import UserRole
from fixlink.database.session import store_errors
from fixlink.engagement import schemas
from fixlink.engagement.models import Engagement, EngagementDispatch, EngagementStatus
from fixlink.engagement.services import get_engagement_or_404
from fixlink.engagement.state_machine import BookingStateMachine, EngagementEvent
from fixlink.notifications.events import NotificationEvent
from fixlink.notifications.gateway import NotificationDispatcher
from fixlink.worker.models import WorkerProfile
from fixlink.worker.schemas import MatchResult
from fixlink.worker.services import WorkerMatchService

logger = logging.getLogger(__name__)

# Columns copied from the ancestry record into every fanned-out engagement
PAYLOAD_COLUMNS = (
    "service_category",
    "problem_description",
    "problem_images",
    "address",
    "city",
    "district",
    "latitude",
    "longitude",
    "scheduled_date",
    "preferred_time_slot",
    "budget_min",
    "budget_max",
    "urgency",
    "special_instructions",
    "contact_phone",
)


def copy_payload(ancestry: Engagement) -> dict[str, Any]:
    payload = {column: getattr(ancestry, column) for column in PAYLOAD_COLUMNS}
    payload["problem_images"] = list(payload["problem_images"] or [])
    return payload


class QuoteRequestCoordinator:
    """Creates quote requests and fans them out to workers."""

    def __init__(
        self,
        db: AsyncSession,
        notifier: NotificationDispatcher,
        match_service: WorkerMatchService | None = None,
    ) -> None:
        self.db = db
        self.notifier = notifier
        self.match_service = match_service or WorkerMatchService(db)

    # ---------------------------------------------------
    # Quote Request Creation
    # ---------------------------------------------------
    async def create_quote_request(
        self, identity: IdentityContext, payload: schemas.QuoteRequestCreate
    ) -> tuple[Engagement, MatchResult | None]:
        """Create the ancestry record in `quote_requested` and optionally suggest workers."""
        logger.info(
            f"Customer {identity.subject_id} requesting quotes for {payload.service_category.value}"
        )
        if identity.role != UserRole.CUSTOMER:
            raise AuthorizationError("Only customers can request quotes.")

        counters = CustomerCounters(self.db)
        ancestry_id = uuid.uuid4()
        async with store_errors(self.db, "create quote request"):
            await counters.ensure_exists(identity.subject_id)
            self.db.add(
                Engagement(
                    id=ancestry_id,
                    customer_id=identity.subject_id,
                    worker_id=None,
                    status=EngagementStatus.QUOTE_REQUESTED,
                    **payload.to_columns(),
                )
            )
            await counters.increment(identity.subject_id, "total_requests")
            await self.db.commit()

        ancestry = await get_engagement_or_404(self.db, ancestry_id)
        logger.info(f"[FANOUT] Quote request created: ancestry_id={ancestry.id}")

        suggestions: MatchResult | None = None
        if payload.suggest_workers:
            suggestions = await self.match_service.suggest_for(ancestry, payload.suggestion_limit)
        return ancestry, suggestions

    # ---------------------------------------------------
    # Fan-out
    # ---------------------------------------------------
    async def _existing_workers(self, worker_ids: list[UUID]) -> set[UUID]:
        result = await self.db.execute(
            select(WorkerProfile.user_id).where(WorkerProfile.user_id.in_(worker_ids))
        )
        return set(result.scalars().all())

    async def send_to_workers(
        self, ancestry_id: UUID, identity: IdentityContext, worker_ids: list[UUID]
    ) -> list[Engagement]:
        """
        Create one pending engagement per worker not yet offered this request.
        Returns only the newly created engagements, in the order requested.
        """
        if not worker_ids:
            raise ValidationError("At least one worker must be selected")
        requested = list(dict.fromkeys(worker_ids))

        ancestry = await get_engagement_or_404(self.db, ancestry_id)
        if not ancestry.is_ancestry:
            raise ValidationError("Only an original quote request can be sent to workers")
        BookingStateMachine.authorize(ancestry, EngagementEvent.FAN_OUT, identity)

        async with store_errors(self.db, "resolve workers"):
            known = await self._existing_workers(requested)
        missing = [str(w) for w in requested if w not in known]
        if missing:
            raise NotFoundError(f"Worker(s) not found: {', '.join(missing)}")

        already_sent = set(ancestry.sent_to_workers)
        payload = copy_payload(ancestry)
        customer_id = ancestry.customer_id
        created: list[UUID] = []

        for worker_id in requested:
            if worker_id in already_sent:
                logger.info(f"[FANOUT] Worker {worker_id} already offered {ancestry_id}, skipping")
                continue
            engagement_id = uuid.uuid4()
            try:
                async with store_errors(self.db, f"fan-out to {worker_id}"):
                    self.db.add(
                        Engagement(
                            id=engagement_id,
                            ancestry_id=ancestry_id,
                            customer_id=customer_id,
                            worker_id=worker_id,
                            status=EngagementStatus.PENDING,
                            **payload,
                        )
                    )
                    await self.db.flush()
                    self.db.add(
                        EngagementDispatch(
                            ancestry_id=ancestry_id,
                            worker_id=worker_id,
                            engagement_id=engagement_id,
                        )
                    )
                    await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                logger.info(f"[FANOUT] Worker {worker_id} was offered {ancestry_id} concurrently, skipping")
                continue
            created.append(engagement_id)
            logger.info(f"[FANOUT] Engagement {engagement_id} created for worker {worker_id}")

        async with store_errors(self.db, "mark quotes sent"):
            # A concurrent fan-out may already have moved the ancestry on.
            await self.db.execute(
                update(Engagement)
                .where(
                    Engagement.id == ancestry_id,
                    Engagement.status == EngagementStatus.QUOTE_REQUESTED,
                )
                .values(status=EngagementStatus.QUOTES_SENT, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()

        engagements = await self._load_many(created)
        for engagement in engagements:
            self.notifier.dispatch(
                engagement.worker_id,
                NotificationEvent.QUOTE_REQUEST_RECEIVED,
                {
                    "engagement_id": str(engagement.id),
                    "ancestry_id": str(ancestry_id),
                    "service_category": engagement.service_category.value,
                    "urgency": engagement.urgency.value,
                },
            )
        logger.info(
            f"[FANOUT] Ancestry {ancestry_id}: {len(engagements)} new of {len(requested)} requested workers"
        )
        return engagements

    async def _load_many(self, engagement_ids: list[UUID]) -> list[Engagement]:
        if not engagement_ids:
            return []
        stmt = (
            select(Engagement)
            .options(selectinload(Engagement.progress), selectinload(Engagement.dispatches))
            .where(Engagement.id.in_(engagement_ids))
            .execution_options(populate_existing=True)
        )
        async with store_errors(self.db, "load fanned-out engagements"):
            result = await self.db.execute(stmt)
        by_id = {e.id: e for e in result.scalars().all()}
        return [by_id[engagement_id] for engagement_id in engagement_ids]
