"""
backend/fixlink/review/services.py

Review Services
Business logic for engagement reviews:
- Review the worker of a completed engagement (Authenticated Customer)
- Rate the customer of a completed engagement (Authenticated Worker)
- Edit an own review (Author)
- Hide a review (Author or Admin) and restore it (Admin)

Each write raises one explicit rating event handled by RatingAggregator in
the same transaction; notifications go out after commit.
"""

import logging
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fixlink.core.clock import utcnow
from fixlink.core.exceptions import (
    AuthorizationError,
    ConflictError,
    ForbiddenTransitionError,
    NotFoundError,
)
from fixlink.core.schemas import IdentityContext
from fixlink.database.enums import UserRole
from fixlink.database.session import store_errors
from fixlink.engagement.models import EngagementStatus
from fixlink.engagement.services import get_engagement_or_404
from fixlink.notifications.events import NotificationEvent
from fixlink.notifications.gateway import NotificationDispatcher
from fixlink.review import schemas
from fixlink.review.aggregator import (
    RatingAggregator,
    RatingEvent,
    ReviewCreated,
    ReviewEdited,
    ReviewHidden,
    ReviewRestored,
    rated_party,
    subject_for,
)
from fixlink.review.models import Review, ReviewDirection

logger = logging.getLogger(__name__)


# ---------------------------------------------------
# Review Service
# ---------------------------------------------------
class ReviewService:
    """Service layer for reviews and the rating aggregates they feed."""

    def __init__(self, db: AsyncSession, notifier: NotificationDispatcher) -> None:
        self.db = db
        self.notifier = notifier
        self.aggregator = RatingAggregator(db)

    async def get_review_or_404(self, review_id: UUID) -> Review:
        async with store_errors(self.db, "load review"):
            result = await self.db.execute(
                select(Review)
                .where(Review.id == review_id)
                .execution_options(populate_existing=True)
            )
        review = result.scalar_one_or_none()
        if not review:
            logger.warning(f"Review not found: review_id={review_id}")
            raise NotFoundError("Review not found")
        return review

    # ---------------------------------------------------
    # Review Submission
    # ---------------------------------------------------
    async def record_review(
        self, engagement_id: UUID, identity: IdentityContext, data: schemas.ReviewCreate
    ) -> schemas.ReviewOutcome:
        """
        Customer reviews the worker of a completed engagement.
        Returns the review and the worker's new average.
        """
        logger.info(f"[SUBMIT] Customer {identity.subject_id} reviewing engagement {engagement_id}")
        if identity.role != UserRole.CUSTOMER:
            raise AuthorizationError("Only customers can review workers.")
        return await self._submit(
            engagement_id, identity, data, ReviewDirection.CUSTOMER_TO_WORKER
        )

    async def rate_customer(
        self, engagement_id: UUID, identity: IdentityContext, data: schemas.ReviewCreate
    ) -> schemas.ReviewOutcome:
        """Worker rates the customer of a completed engagement."""
        logger.info(f"[SUBMIT] Worker {identity.subject_id} rating customer of {engagement_id}")
        if identity.role != UserRole.WORKER:
            raise AuthorizationError("Only workers can rate customers.")
        return await self._submit(
            engagement_id, identity, data, ReviewDirection.WORKER_TO_CUSTOMER
        )

    async def _submit(
        self,
        engagement_id: UUID,
        identity: IdentityContext,
        data: schemas.ReviewCreate,
        direction: ReviewDirection,
    ) -> schemas.ReviewOutcome:
        engagement = await get_engagement_or_404(self.db, engagement_id)
        author_id = (
            engagement.customer_id
            if direction == ReviewDirection.CUSTOMER_TO_WORKER
            else engagement.worker_id
        )
        if author_id != identity.subject_id:
            raise AuthorizationError("You are not a party to this engagement")
        if engagement.status != EngagementStatus.COMPLETED or engagement.worker_id is None:
            raise ForbiddenTransitionError(
                f"Only completed engagements can be reviewed (status {engagement.status.value})"
            )

        async with store_errors(self.db, "check existing review"):
            existing = await self.db.execute(
                select(Review.id).where(
                    Review.engagement_id == engagement_id, Review.direction == direction
                )
            )
        if existing.scalar_one_or_none() is not None:
            logger.warning(f"[SUBMIT] Duplicate review attempt: engagement_id={engagement_id}")
            raise ConflictError("Review already submitted for this engagement")

        review = Review(
            engagement_id=engagement.id,
            direction=direction,
            author_id=identity.subject_id,
            worker_id=engagement.worker_id,
            customer_id=engagement.customer_id,
            rating=data.rating,
            comment=data.comment,
        )
        subject_id = rated_party(review)
        try:
            async with store_errors(self.db, "record review"):
                self.db.add(review)
                await self.db.flush()
                new_average = await self.aggregator.handle(
                    ReviewCreated(subject_for(direction), subject_id, data.rating)
                )
                await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.warning(f"[SUBMIT] Concurrent duplicate review: engagement_id={engagement_id}")
            raise ConflictError("Review already submitted for this engagement")

        logger.info(f"[SUBMIT] Review created successfully: review_id={review.id}")
        self.notifier.dispatch(
            subject_id,
            NotificationEvent.REVIEW_RECEIVED,
            {
                "review_id": str(review.id),
                "engagement_id": str(engagement_id),
                "rating": data.rating,
                "new_average": new_average,
            },
        )
        return schemas.ReviewOutcome(
            review=schemas.ReviewRead.model_validate(review), new_average=new_average
        )

    # ---------------------------------------------------
    # Review Edits (Author)
    # ---------------------------------------------------
    async def edit_review(
        self, review_id: UUID, identity: IdentityContext, data: schemas.ReviewUpdate
    ) -> schemas.ReviewOutcome:
        review = await self.get_review_or_404(review_id)
        if review.author_id != identity.subject_id:
            raise AuthorizationError("Only the author can edit this review")

        rating_changed = data.rating is not None and data.rating != review.rating
        new_average: float | None = None
        async with store_errors(self.db, "edit review"):
            if data.rating is not None:
                review.rating = data.rating
            if data.comment is not None:
                review.comment = data.comment
            review.updated_at = utcnow()
            await self.db.flush()
            if rating_changed and review.is_visible:
                new_average = await self.aggregator.handle(
                    ReviewEdited(subject_for(review.direction), rated_party(review))
                )
            await self.db.commit()

        logger.info(f"Review {review_id} edited (rating changed: {rating_changed})")
        return schemas.ReviewOutcome(
            review=schemas.ReviewRead.model_validate(review), new_average=new_average
        )

    # ---------------------------------------------------
    # Moderation (Hide / Restore)
    # ---------------------------------------------------
    async def hide_review(
        self, review_id: UUID, identity: IdentityContext, reason: str | None = None
    ) -> schemas.ReviewOutcome:
        """Author soft-deletes, or an admin moderates, a visible review."""
        review = await self.get_review_or_404(review_id)
        if identity.role != UserRole.ADMIN and review.author_id != identity.subject_id:
            raise AuthorizationError("Only the author or an admin can hide this review")
        return await self._set_visibility(
            review, visible=False, reason=reason, event_type=ReviewHidden
        )

    async def restore_review(
        self, review_id: UUID, identity: IdentityContext
    ) -> schemas.ReviewOutcome:
        review = await self.get_review_or_404(review_id)
        if identity.role != UserRole.ADMIN:
            raise AuthorizationError("Only admins can restore reviews")
        return await self._set_visibility(
            review, visible=True, reason=None, event_type=ReviewRestored
        )

    async def _set_visibility(
        self,
        review: Review,
        visible: bool,
        reason: str | None,
        event_type: type[RatingEvent],
    ) -> schemas.ReviewOutcome:
        if review.is_visible == visible:
            raise ConflictError(f"Review is already {'visible' if visible else 'hidden'}")

        now = utcnow()
        async with store_errors(self.db, "change review visibility"):
            result = await self.db.execute(
                update(Review)
                .where(Review.id == review.id, Review.is_visible.is_(not visible))
                .values(
                    is_visible=visible,
                    hidden_reason=None if visible else reason,
                    hidden_at=None if visible else now,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await self.db.rollback()
                raise ConflictError("Review was modified by another request, reload and retry")
            new_average = await self.aggregator.handle(
                event_type(subject_for(review.direction), rated_party(review))
            )
            await self.db.commit()

        review = await self.get_review_or_404(review.id)
        logger.info(f"Review {review.id} {'restored' if visible else 'hidden'}")
        return schemas.ReviewOutcome(
            review=schemas.ReviewRead.model_validate(review), new_average=new_average
        )
