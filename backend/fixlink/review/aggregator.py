"""
review/aggregator.py

Rating Aggregator
Keeps `rating_average` / `rating_count` on worker and customer profiles in
step with their visible reviews. Each review write emits one explicit event:

- ReviewCreated  -> incremental update:
      avg = (avg * count + rating) / (count + 1), count = count + 1
  as a single UPDATE on the profile row, so concurrent reviews never lose an update.
- ReviewEdited / ReviewHidden / ReviewRestored -> full recompute over the
  visible reviews, with the profile row locked for the duration.

The caller owns the transaction; nothing here commits.
"""

import enum
import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import Float, and_, cast, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fixlink.core.exceptions import NotFoundError
from fixlink.customer.models import CustomerProfile
from fixlink.review.models import Review, ReviewDirection
from fixlink.worker.models import WorkerProfile

logger = logging.getLogger(__name__)


class RatingSubject(str, enum.Enum):
    WORKER = "worker"
    CUSTOMER = "customer"


@dataclass(frozen=True)
class ReviewCreated:
    subject: RatingSubject
    subject_id: UUID
    rating: int


@dataclass(frozen=True)
class ReviewEdited:
    subject: RatingSubject
    subject_id: UUID


@dataclass(frozen=True)
class ReviewHidden:
    subject: RatingSubject
    subject_id: UUID


@dataclass(frozen=True)
class ReviewRestored:
    subject: RatingSubject
    subject_id: UUID


RatingEvent = ReviewCreated | ReviewEdited | ReviewHidden | ReviewRestored

PROFILE_MODELS = {
    RatingSubject.WORKER: WorkerProfile,
    RatingSubject.CUSTOMER: CustomerProfile,
}

REVIEW_DIRECTIONS = {
    RatingSubject.WORKER: ReviewDirection.CUSTOMER_TO_WORKER,
    RatingSubject.CUSTOMER: ReviewDirection.WORKER_TO_CUSTOMER,
}


def subject_for(direction: ReviewDirection) -> RatingSubject:
    if direction == ReviewDirection.CUSTOMER_TO_WORKER:
        return RatingSubject.WORKER
    return RatingSubject.CUSTOMER


def rated_party(review: Review) -> UUID:
    if review.direction == ReviewDirection.CUSTOMER_TO_WORKER:
        return review.worker_id
    return review.customer_id


class RatingAggregator:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def handle(self, event: RatingEvent) -> float:
        """Apply `event` and return the subject's new average."""
        if isinstance(event, ReviewCreated):
            return await self.apply_review(event.subject, event.subject_id, event.rating)
        return await self.recompute(event.subject, event.subject_id)

    async def apply_review(self, subject: RatingSubject, subject_id: UUID, rating: int) -> float:
        """Fold one new rating into the running mean with a single atomic UPDATE."""
        profile = PROFILE_MODELS[subject]
        result = await self.db.execute(
            update(profile)
            .where(profile.user_id == subject_id)
            .values(
                rating_average=(profile.rating_average * profile.rating_count + rating)
                / (profile.rating_count + 1),
                rating_count=profile.rating_count + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(f"[RATING] No {subject.value} profile for {subject_id}")
            raise NotFoundError(f"{subject.value.capitalize()} profile not found")

        new_average = await self._current_average(subject, subject_id)
        logger.info(f"[RATING] {subject.value} {subject_id} +{rating} -> average {new_average:.4f}")
        return new_average

    async def recompute(self, subject: RatingSubject, subject_id: UUID) -> float:
        """Rebuild average and count from the subject's visible reviews."""
        profile = PROFILE_MODELS[subject]
        locked = await self.db.execute(
            select(profile.id).where(profile.user_id == subject_id).with_for_update()
        )
        if locked.scalar_one_or_none() is None:
            logger.warning(f"[RATING] No {subject.value} profile for {subject_id}")
            raise NotFoundError(f"{subject.value.capitalize()} profile not found")

        party_column = Review.worker_id if subject == RatingSubject.WORKER else Review.customer_id
        visible = and_(
            Review.direction == REVIEW_DIRECTIONS[subject],
            party_column == subject_id,
            Review.is_visible.is_(True),
        )
        average_q = (
            select(func.coalesce(func.avg(cast(Review.rating, Float)), 0.0))
            .where(visible)
            .scalar_subquery()
        )
        count_q = select(func.count(Review.id)).where(visible).scalar_subquery()

        await self.db.execute(
            update(profile)
            .where(profile.user_id == subject_id)
            .values(rating_average=average_q, rating_count=count_q)
            .execution_options(synchronize_session=False)
        )
        new_average = await self._current_average(subject, subject_id)
        logger.info(f"[RATING] {subject.value} {subject_id} recomputed -> average {new_average:.4f}")
        return new_average

    async def _current_average(self, subject: RatingSubject, subject_id: UUID) -> float:
        profile = PROFILE_MODELS[subject]
        result = await self.db.execute(
            select(profile.rating_average).where(profile.user_id == subject_id)
        )
        return float(result.scalar_one())
