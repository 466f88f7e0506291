"""
backend/fixlink/engagement/services.py

Booking Service Layer
Drives single engagement records through the booking state machine:
- Direct booking of a specific worker (Customer)
- Accept / decline a pending engagement (Worker)
- Start, complete, cancel and dispute transitions (per transition table)
- Progress notes while work is ongoing (Worker)
- Accept / decline a worker's quote (Customer)

Every status change is a compare-and-set UPDATE conditioned on the status
the caller observed; losing the race surfaces as ConflictError. Aggregate
side effects run in the same transaction and notifications are dispatched
only after commit.
"""

import logging
import uuid
from datetime import timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import ColumnElement, and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fixlink.core.clock import ensure_utc, minutes_between, utcnow
from fixlink.core.config import settings
from fixlink.core.exceptions import (
    AuthorizationError,
    ConflictError,
    ForbiddenTransitionError,
    NotFoundError,
    ValidationError,
)
from fixlink.core.schemas import IdentityContext
from fixlink.customer.services import CustomerCounters
from fixlink.database.enums import ProfileStatus, UserRole
from fixlink.database.session import store_errors
from fixlink.engagement import schemas
from fixlink.engagement.models import (
    Engagement,
    EngagementProgress,
    EngagementStatus,
    QuoteStatus,
    ResponseAction,
)
from fixlink.engagement.schemas import to_decimal
from fixlink.engagement.state_machine import (
    PARTY_ROLES,
    BookingStateMachine,
    EngagementEvent,
)
from fixlink.notifications.events import NotificationEvent
from fixlink.notifications.gateway import NotificationDispatcher
from fixlink.worker.models import WorkerProfile
from fixlink.worker.services import WorkerStatistics

logger = logging.getLogger(__name__)

STATUS_EVENTS = frozenset(
    {
        EngagementEvent.START,
        EngagementEvent.COMPLETE,
        EngagementEvent.CANCEL,
        EngagementEvent.DISPUTE,
    }
)


# ---------------------------------------------------
# Shared Helpers
# ---------------------------------------------------
async def get_engagement_or_404(
    db: AsyncSession, engagement_id: UUID, refresh: bool = True
) -> Engagement:
    """Load an engagement with progress and dispatch ledger, or raise NotFoundError."""
    stmt = (
        select(Engagement)
        .options(selectinload(Engagement.progress), selectinload(Engagement.dispatches))
        .where(Engagement.id == engagement_id)
    )
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    async with store_errors(db, "load engagement"):
        result = await db.execute(stmt)
    engagement = result.scalar_one_or_none()
    if not engagement:
        logger.warning(f"Engagement not found: engagement_id={engagement_id}")
        raise NotFoundError("Engagement not found")
    return engagement


async def compare_and_set(
    db: AsyncSession,
    engagement_id: UUID,
    precondition: ColumnElement[bool],
    values: dict[str, Any],
) -> None:
    """
    Apply `values` only if `precondition` still holds for the stored row.
    Rolls back and raises ConflictError when another writer got there first.
    """
    stmt = (
        update(Engagement)
        .where(Engagement.id == engagement_id, precondition)
        .values(**values, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    if result.rowcount != 1:
        await db.rollback()
        logger.warning(f"[TRANSITION] Compare-and-set lost for engagement {engagement_id}")
        raise ConflictError("Engagement was modified by another request, reload and retry")


class BookingService:
    """Service class for engagement lifecycle business logic."""

    def __init__(self, db: AsyncSession, notifier: NotificationDispatcher) -> None:
        self.db = db
        self.notifier = notifier

    def _notify(
        self,
        recipient_id: UUID | None,
        event: NotificationEvent,
        engagement: Engagement,
        **extra: Any,
    ) -> None:
        payload = {
            "engagement_id": str(engagement.id),
            "status": engagement.status.value,
            "service_category": engagement.service_category.value,
            **extra,
        }
        self.notifier.dispatch(recipient_id, event, payload)

    # ---------------------------------------------------
    # Direct Booking
    # ---------------------------------------------------
    async def create_booking(
        self, identity: IdentityContext, payload: schemas.BookingCreate
    ) -> Engagement:
        """Customer books one specific worker; the record starts as pending."""
        logger.info(f"Customer {identity.subject_id} booking worker {payload.worker_id}")
        if identity.role != UserRole.CUSTOMER:
            raise AuthorizationError("Only customers can create bookings.")

        counters = CustomerCounters(self.db)
        async with store_errors(self.db, "create booking"):
            await counters.ensure_exists(identity.subject_id)
            worker_result = await self.db.execute(
                select(WorkerProfile.profile_status).where(
                    WorkerProfile.user_id == payload.worker_id
                )
            )
            worker_status = worker_result.scalar_one_or_none()
            if worker_status is None:
                raise NotFoundError("Worker not found")
            if worker_status != ProfileStatus.ACTIVE:
                raise ValidationError("Worker is not accepting bookings")

            engagement = Engagement(
                id=uuid.uuid4(),
                customer_id=identity.subject_id,
                worker_id=payload.worker_id,
                status=EngagementStatus.PENDING,
                **payload.to_columns(),
            )
            self.db.add(engagement)
            await counters.increment(identity.subject_id, "total_requests")
            await self.db.commit()

        engagement = await get_engagement_or_404(self.db, engagement.id)
        logger.info(f"Booking created: engagement_id={engagement.id}")
        self._notify(engagement.worker_id, NotificationEvent.BOOKING_REQUESTED, engagement)
        return engagement

    # ---------------------------------------------------
    # Worker Response (Accept / Decline)
    # ---------------------------------------------------
    async def respond_to_engagement(
        self,
        engagement_id: UUID,
        identity: IdentityContext,
        action: ResponseAction,
        details: schemas.RespondRequest | None = None,
    ) -> Engagement:
        """Worker accepts or declines a pending engagement exactly once."""
        details = details or schemas.RespondRequest(action=action)
        logger.info(f"Worker {identity.subject_id} responding {action.value} to {engagement_id}")

        engagement = await get_engagement_or_404(self.db, engagement_id)
        event = EngagementEvent.ACCEPT if action == ResponseAction.ACCEPTED else EngagementEvent.DECLINE

        if engagement.response_action is not None and BookingStateMachine.is_party(
            engagement, identity
        ):
            raise ConflictError("This engagement has already been answered")
        rule = BookingStateMachine.authorize(engagement, event, identity)

        now = utcnow()
        minutes = minutes_between(engagement.created_at, now)
        values: dict[str, Any] = {
            "status": rule.target,
            "response_action": action,
            "responded_at": now,
            "response_time_minutes": minutes,
        }

        if action == ResponseAction.ACCEPTED:
            if details.quote_amount is None and engagement.ancestry_id is not None:
                raise ValidationError("quote_amount is required when answering a quote request")
            if details.quote_amount is not None:
                valid_days = details.quote_valid_days or settings.QUOTE_VALIDITY_DAYS
                values.update(
                    quote_amount=to_decimal(details.quote_amount),
                    quote_notes=details.quote_notes,
                    quote_valid_until=now + timedelta(days=valid_days),
                    quote_status=QuoteStatus.PENDING,
                )
        else:
            values.update(
                decline_reason=details.reason,
                cancelled_by=PARTY_ROLES[identity.role],
                cancel_reason=details.reason,
                cancelled_at=now,
            )

        async with store_errors(self.db, f"{event.value} engagement"):
            await compare_and_set(
                self.db, engagement.id, Engagement.status == engagement.status, values
            )
            await WorkerStatistics(self.db).record_response(
                identity.subject_id, minutes, accepted=action == ResponseAction.ACCEPTED
            )
            await self.db.commit()

        engagement = await get_engagement_or_404(self.db, engagement_id)
        logger.info(
            f"[TRANSITION] Engagement {engagement.id} {event.value}ed after {minutes} min -> {engagement.status.value}"
        )
        notification = (
            NotificationEvent.ENGAGEMENT_ACCEPTED
            if action == ResponseAction.ACCEPTED
            else NotificationEvent.ENGAGEMENT_DECLINED
        )
        self._notify(
            engagement.customer_id,
            notification,
            engagement,
            worker_id=str(identity.subject_id),
            reason=details.reason,
        )
        return engagement

    # ---------------------------------------------------
    # Status Transitions (Start, Complete, Cancel, Dispute)
    # ---------------------------------------------------
    async def transition_engagement(
        self,
        engagement_id: UUID,
        identity: IdentityContext,
        event: EngagementEvent,
        details: schemas.TransitionRequest | None = None,
    ) -> Engagement:
        """Apply a status-changing event as `identity`."""
        details = details or schemas.TransitionRequest(event=event)

        if event in (EngagementEvent.ACCEPT, EngagementEvent.DECLINE):
            action = ResponseAction.ACCEPTED if event == EngagementEvent.ACCEPT else ResponseAction.DECLINED
            respond = schemas.RespondRequest(
                action=action,
                quote_amount=details.quote_amount,
                quote_notes=details.quote_notes,
                quote_valid_days=details.quote_valid_days,
                reason=details.reason,
            )
            return await self.respond_to_engagement(engagement_id, identity, action, respond)
        if event not in STATUS_EVENTS:
            raise ValidationError(f"Event {event.value} is not applied through transitions")

        logger.info(f"{identity.role.value} {identity.subject_id} applying {event.value} to {engagement_id}")
        engagement = await get_engagement_or_404(self.db, engagement_id)
        rule = BookingStateMachine.authorize(engagement, event, identity)

        now = utcnow()
        values: dict[str, Any] = {"status": rule.target}
        if event == EngagementEvent.START:
            values["started_at"] = now
        elif event == EngagementEvent.COMPLETE:
            values.update(
                completed_at=now,
                final_price=to_decimal(details.final_price),
                completion_notes=details.completion_notes,
            )
            if engagement.started_at is None:
                values["started_at"] = now
        elif event == EngagementEvent.CANCEL:
            values.update(
                cancelled_by=PARTY_ROLES[identity.role],
                cancel_reason=details.reason,
                cancelled_at=now,
            )
        elif event == EngagementEvent.DISPUTE:
            if not details.reason:
                raise ValidationError("A reason is required to raise a dispute")
            values.update(
                disputed_by=PARTY_ROLES[identity.role],
                dispute_reason=details.reason,
                disputed_at=now,
            )

        async with store_errors(self.db, f"{event.value} engagement"):
            await compare_and_set(
                self.db, engagement.id, Engagement.status == engagement.status, values
            )
            if event == EngagementEvent.START:
                self.db.add(
                    EngagementProgress(
                        engagement_id=engagement.id,
                        status_label=EngagementStatus.IN_PROGRESS.value,
                        note=details.note or "Work started",
                        images=list(details.images),
                        created_at=now,
                    )
                )
            elif event == EngagementEvent.COMPLETE:
                await WorkerStatistics(self.db).record_completion(engagement.worker_id)
                await CustomerCounters(self.db).increment(engagement.customer_id, "completed_bookings")
            elif event == EngagementEvent.CANCEL:
                await CustomerCounters(self.db).increment(engagement.customer_id, "cancelled_bookings")
            await self.db.commit()

        engagement = await get_engagement_or_404(self.db, engagement_id)
        logger.info(f"[TRANSITION] Engagement {engagement.id} -> {engagement.status.value}")
        self._notify_transition(engagement, event, identity, details)
        return engagement

    def _notify_transition(
        self,
        engagement: Engagement,
        event: EngagementEvent,
        identity: IdentityContext,
        details: schemas.TransitionRequest,
    ) -> None:
        if event == EngagementEvent.START:
            self._notify(engagement.customer_id, NotificationEvent.ENGAGEMENT_STARTED, engagement)
        elif event == EngagementEvent.COMPLETE:
            self._notify(engagement.customer_id, NotificationEvent.ENGAGEMENT_COMPLETED, engagement)
            if identity.role == UserRole.CUSTOMER:
                self._notify(engagement.worker_id, NotificationEvent.ENGAGEMENT_COMPLETED, engagement)
        else:
            notification = (
                NotificationEvent.ENGAGEMENT_CANCELLED
                if event == EngagementEvent.CANCEL
                else NotificationEvent.ENGAGEMENT_DISPUTED
            )
            for recipient in self._other_parties(engagement, identity):
                self._notify(recipient, notification, engagement, reason=details.reason)

    @staticmethod
    def _other_parties(engagement: Engagement, identity: IdentityContext) -> list[UUID]:
        parties = [engagement.customer_id, engagement.worker_id]
        return [p for p in parties if p is not None and p != identity.subject_id]

    # ---------------------------------------------------
    # Progress Notes
    # ---------------------------------------------------
    async def add_progress_note(
        self, engagement_id: UUID, identity: IdentityContext, payload: schemas.ProgressNoteCreate
    ) -> Engagement:
        """Assigned worker appends a progress entry while work is in progress."""
        engagement = await get_engagement_or_404(self.db, engagement_id)
        if identity.role != UserRole.WORKER or not BookingStateMachine.is_party(engagement, identity):
            raise AuthorizationError("Only the assigned worker can post progress updates")
        if engagement.status != EngagementStatus.IN_PROGRESS:
            raise ForbiddenTransitionError(
                f"Progress can only be added while in progress (status {engagement.status.value})"
            )

        async with store_errors(self.db, "add progress note"):
            self.db.add(
                EngagementProgress(
                    engagement_id=engagement.id,
                    status_label=EngagementStatus.IN_PROGRESS.value,
                    note=payload.note,
                    images=list(payload.images),
                )
            )
            await self.db.commit()

        engagement = await get_engagement_or_404(self.db, engagement_id)
        self._notify(
            engagement.customer_id, NotificationEvent.ENGAGEMENT_PROGRESS, engagement, note=payload.note
        )
        return engagement

    # ---------------------------------------------------
    # Quote Decisions (Customer)
    # ---------------------------------------------------
    async def _get_quoted_engagement(
        self, engagement_id: UUID, identity: IdentityContext
    ) -> Engagement:
        engagement = await get_engagement_or_404(self.db, engagement_id)
        if identity.role != UserRole.CUSTOMER or engagement.customer_id != identity.subject_id:
            raise AuthorizationError("Only the requesting customer can act on this quote")
        if engagement.quote_status is None:
            raise ForbiddenTransitionError("This engagement has no quote")
        if engagement.status != EngagementStatus.ACCEPTED:
            raise ForbiddenTransitionError(
                f"Quotes cannot be decided in status {engagement.status.value}"
            )
        if engagement.quote_status != QuoteStatus.PENDING:
            raise ConflictError(f"Quote already {engagement.quote_status.value}")
        return engagement

    @staticmethod
    def _quote_still_pending() -> ColumnElement[bool]:
        # The engagement may have been cancelled or disputed since it was read.
        return and_(
            Engagement.quote_status == QuoteStatus.PENDING,
            Engagement.status == EngagementStatus.ACCEPTED,
        )

    async def accept_quote(self, engagement_id: UUID, identity: IdentityContext) -> Engagement:
        """Customer accepts a pending, unexpired quote."""
        engagement = await self._get_quoted_engagement(engagement_id, identity)
        pending = self._quote_still_pending()

        valid_until = ensure_utc(engagement.quote_valid_until)
        if valid_until is not None and valid_until < utcnow():
            async with store_errors(self.db, "expire quote"):
                await compare_and_set(
                    self.db, engagement.id, pending, {"quote_status": QuoteStatus.EXPIRED}
                )
                await self.db.commit()
            logger.info(f"Quote expired for engagement {engagement.id}")
            raise ConflictError("Quote has expired")

        async with store_errors(self.db, "accept quote"):
            await compare_and_set(
                self.db,
                engagement.id,
                pending,
                {"quote_status": QuoteStatus.ACCEPTED, "quoted_price": engagement.quote_amount},
            )
            await self.db.commit()

        engagement = await get_engagement_or_404(self.db, engagement_id)
        self._notify(engagement.worker_id, NotificationEvent.QUOTE_ACCEPTED, engagement)
        return engagement

    async def decline_quote(self, engagement_id: UUID, identity: IdentityContext) -> Engagement:
        """Customer declines a pending quote."""
        engagement = await self._get_quoted_engagement(engagement_id, identity)
        async with store_errors(self.db, "decline quote"):
            await compare_and_set(
                self.db,
                engagement.id,
                self._quote_still_pending(),
                {"quote_status": QuoteStatus.DECLINED},
            )
            await self.db.commit()

        engagement = await get_engagement_or_404(self.db, engagement_id)
        self._notify(engagement.worker_id, NotificationEvent.QUOTE_DECLINED, engagement)
        return engagement
