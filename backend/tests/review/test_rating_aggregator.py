"""
tests/review/test_rating_aggregator.py

Incremental and recomputed rating aggregates on worker and customer
profiles, including concurrent reviews of the same worker.
"""

import asyncio
from uuid import UUID, uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fixlink.core.exceptions import NotFoundError
from fixlink.core.schemas import IdentityContext
from fixlink.customer.models import CustomerProfile
from fixlink.database.enums import UserRole
from fixlink.engagement.models import EngagementStatus
from fixlink.review.aggregator import (
    RatingAggregator,
    RatingSubject,
    ReviewCreated,
    ReviewHidden,
    subject_for,
)
from fixlink.review.models import Review, ReviewDirection
from fixlink.review.schemas import ReviewCreate
from fixlink.review.services import ReviewService
from fixlink.worker.models import WorkerProfile


async def worker_rating(
    session_factory: async_sessionmaker[AsyncSession], user_id: UUID
) -> tuple[float, int]:
    async with session_factory() as session:
        result = await session.execute(
            select(WorkerProfile.rating_average, WorkerProfile.rating_count).where(
                WorkerProfile.user_id == user_id
            )
        )
        average, count = result.one()
        return average, count


def test_subject_for_direction() -> None:
    assert subject_for(ReviewDirection.CUSTOMER_TO_WORKER) == RatingSubject.WORKER
    assert subject_for(ReviewDirection.WORKER_TO_CUSTOMER) == RatingSubject.CUSTOMER


# ---------------------------------------------------
# Incremental Updates
# ---------------------------------------------------
@pytest.mark.asyncio
async def test_new_review_folds_into_running_mean(
    make_worker, db: AsyncSession, session_factory
) -> None:
    worker = await make_worker(rating_average=4.0, rating_count=10)

    new_average = await RatingAggregator(db).apply_review(RatingSubject.WORKER, worker.user_id, 5)
    await db.commit()

    assert new_average == pytest.approx(45 / 11)
    assert await worker_rating(session_factory, worker.user_id) == (pytest.approx(4.0909, abs=1e-4), 11)


@pytest.mark.asyncio
async def test_first_review_sets_the_average(make_customer, db: AsyncSession) -> None:
    customer = await make_customer()

    aggregator = RatingAggregator(db)
    assert await aggregator.handle(ReviewCreated(RatingSubject.CUSTOMER, customer.user_id, 3)) == 3.0
    assert await aggregator.handle(ReviewCreated(RatingSubject.CUSTOMER, customer.user_id, 4)) == 3.5
    await db.commit()

    profile = await db.scalar(
        select(CustomerProfile)
        .where(CustomerProfile.user_id == customer.user_id)
        .execution_options(populate_existing=True)
    )
    assert profile.rating_count == 2


@pytest.mark.asyncio
async def test_unknown_subject_raises_not_found(db: AsyncSession) -> None:
    aggregator = RatingAggregator(db)
    with pytest.raises(NotFoundError):
        await aggregator.apply_review(RatingSubject.WORKER, uuid4(), 5)
    with pytest.raises(NotFoundError):
        await aggregator.recompute(RatingSubject.CUSTOMER, uuid4())


# ---------------------------------------------------
# Recompute
# ---------------------------------------------------
@pytest.mark.asyncio
async def test_recompute_counts_only_visible_reviews_in_direction(
    make_worker, make_customer, make_engagement, db: AsyncSession
) -> None:
    worker = await make_worker(rating_average=1.0, rating_count=99)
    customer = await make_customer()
    rows = [
        (ReviewDirection.CUSTOMER_TO_WORKER, 5, True),
        (ReviewDirection.CUSTOMER_TO_WORKER, 2, True),
        (ReviewDirection.CUSTOMER_TO_WORKER, 1, False),
        (ReviewDirection.WORKER_TO_CUSTOMER, 1, True),
    ]
    for direction, rating, visible in rows:
        engagement = await make_engagement(
            customer.user_id, worker.user_id, status=EngagementStatus.COMPLETED
        )
        db.add(
            Review(
                engagement_id=engagement.id,
                direction=direction,
                author_id=customer.user_id
                if direction == ReviewDirection.CUSTOMER_TO_WORKER
                else worker.user_id,
                worker_id=worker.user_id,
                customer_id=customer.user_id,
                rating=rating,
                is_visible=visible,
            )
        )
    await db.flush()

    new_average = await RatingAggregator(db).handle(
        ReviewHidden(RatingSubject.WORKER, worker.user_id)
    )
    await db.commit()

    assert new_average == pytest.approx(3.5)
    profile = await db.scalar(
        select(WorkerProfile)
        .where(WorkerProfile.user_id == worker.user_id)
        .execution_options(populate_existing=True)
    )
    assert profile.rating_count == 2


@pytest.mark.asyncio
async def test_recompute_without_reviews_resets_to_zero(make_worker, db: AsyncSession) -> None:
    worker = await make_worker(rating_average=4.2, rating_count=7)

    assert await RatingAggregator(db).recompute(RatingSubject.WORKER, worker.user_id) == 0.0


# ---------------------------------------------------
# Concurrency
# ---------------------------------------------------
@pytest.mark.asyncio
async def test_concurrent_reviews_lose_no_update(
    make_worker, make_customer, make_engagement, session_factory, notifier
) -> None:
    worker = await make_worker()
    ratings = [5, 4, 3, 5, 1, 2]
    submissions = []
    for rating in ratings:
        customer = await make_customer()
        engagement = await make_engagement(
            customer.user_id, worker.user_id, status=EngagementStatus.COMPLETED
        )
        identity = IdentityContext(subject_id=customer.user_id, role=UserRole.CUSTOMER)
        submissions.append((engagement.id, identity, rating))

    async def submit(engagement_id: UUID, identity: IdentityContext, rating: int) -> None:
        async with session_factory() as session:
            await ReviewService(session, notifier).record_review(
                engagement_id, identity, ReviewCreate(rating=rating)
            )

    await asyncio.gather(*(submit(*s) for s in submissions))

    average, count = await worker_rating(session_factory, worker.user_id)
    assert count == len(ratings)
    assert average == pytest.approx(sum(ratings) / len(ratings))
