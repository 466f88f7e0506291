"""
tests/worker/test_worker_match_service.py

Candidate pool loading and store-side worker statistics against SQLite.
"""

import asyncio
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fixlink.database.enums import ProfileStatus, ServiceCategory, Urgency
from fixlink.worker import schemas
from fixlink.worker.matching import WorkerMatchScorer
from fixlink.worker.models import WorkerProfile
from fixlink.worker.services import WorkerMatchService, WorkerStatistics


async def load_profile(
    session_factory: async_sessionmaker[AsyncSession], user_id: UUID
) -> WorkerProfile:
    async with session_factory() as session:
        result = await session.execute(select(WorkerProfile).where(WorkerProfile.user_id == user_id))
        return result.scalar_one()


# ---------------------------------------------------
# Matching
# ---------------------------------------------------
@pytest.mark.asyncio
async def test_match_only_active_available_workers_in_category(
    db: AsyncSession, make_worker
) -> None:
    eligible = await make_worker()
    await make_worker(profile_status=ProfileStatus.SUSPENDED)
    await make_worker(profile_status=ProfileStatus.PENDING_REVIEW)
    await make_worker(is_available=False)
    await make_worker(categories=(ServiceCategory.ELECTRICAL,))
    multi = await make_worker(categories=(ServiceCategory.ELECTRICAL, ServiceCategory.PLUMBING))

    result = await WorkerMatchService(db).match_workers(
        schemas.MatchCriteria(service_category=ServiceCategory.PLUMBING)
    )

    assert result.no_workers_available is False
    assert {c.worker_id for c in result.candidates} == {eligible.user_id, multi.user_id}
    assert result.total == 2


@pytest.mark.asyncio
async def test_no_workers_available_is_flagged(db: AsyncSession, make_worker) -> None:
    await make_worker(categories=(ServiceCategory.PLUMBING,))

    result = await WorkerMatchService(db).match_workers(
        schemas.MatchCriteria(service_category=ServiceCategory.CLEANING)
    )

    assert result.candidates == []
    assert result.total == 0
    assert result.no_workers_available is True


@pytest.mark.asyncio
async def test_location_radius_and_discovery_order(db: AsyncSession, make_worker) -> None:
    first = await make_worker(latitude=6.51, longitude=3.4)
    second = await make_worker(latitude=6.51, longitude=3.4)
    await make_worker(latitude=8.0, longitude=3.4)  # ~167 km
    await make_worker(latitude=None, longitude=None)

    result = await WorkerMatchService(db).match_workers(
        schemas.MatchCriteria(
            service_category=ServiceCategory.PLUMBING,
            latitude=6.5,
            longitude=3.4,
            max_radius_km=50,
        )
    )

    assert [c.worker_id for c in result.candidates] == [first.user_id, second.user_id]
    assert result.candidates[0].score == result.candidates[1].score
    assert result.candidates[0].distance_km == pytest.approx(1.11, abs=0.01)


@pytest.mark.asyncio
async def test_budget_and_urgency_reach_the_scorer(db: AsyncSession, make_worker) -> None:
    cheap = await make_worker(hourly_rate=Decimal("1000.00"), latitude=6.7, longitude=3.4)
    near = await make_worker(hourly_rate=Decimal("1000.00"), latitude=6.51, longitude=3.4)
    service = WorkerMatchService(db, scorer=WorkerMatchScorer(urgent_multiplier=1.3))

    result = await service.match_workers(
        schemas.MatchCriteria(
            service_category=ServiceCategory.PLUMBING,
            latitude=6.5,
            longitude=3.4,
            budget=5000,
            urgency=Urgency.EMERGENCY,
        )
    )

    assert [c.worker_id for c in result.candidates] == [near.user_id, cheap.user_id]
    assert result.candidates[0].hourly_rate == pytest.approx(1000.0)
    assert "Within your budget" in result.candidates[0].reasons


# ---------------------------------------------------
# Statistics
# ---------------------------------------------------
@pytest.mark.asyncio
async def test_record_response_rolls_average_and_acceptance(
    session_factory: async_sessionmaker[AsyncSession], make_worker
) -> None:
    worker = await make_worker()

    async with session_factory() as session:
        stats = WorkerStatistics(session)
        await stats.record_response(worker.user_id, minutes=10, accepted=True)
        await stats.record_response(worker.user_id, minutes=20, accepted=False)
        await stats.record_response(worker.user_id, minutes=30, accepted=True)
        await session.commit()

    profile = await load_profile(session_factory, worker.user_id)
    assert profile.response_time == pytest.approx(20.0)
    assert profile.responses_count == 3
    assert profile.accepted_count == 2
    assert profile.acceptance_rate == pytest.approx(200 / 3)


@pytest.mark.asyncio
async def test_record_completion_counts_jobs(
    session_factory: async_sessionmaker[AsyncSession], make_worker
) -> None:
    worker = await make_worker()

    async with session_factory() as session:
        stats = WorkerStatistics(session)
        await stats.record_response(worker.user_id, minutes=5, accepted=True)
        await stats.record_completion(worker.user_id)
        await stats.record_completion(uuid4())  # unknown worker is a no-op
        await session.commit()

    profile = await load_profile(session_factory, worker.user_id)
    assert profile.completed_jobs == 1
    assert profile.acceptance_rate == pytest.approx(100.0)


@pytest.mark.asyncio
async def test_concurrent_responses_are_not_lost(
    session_factory: async_sessionmaker[AsyncSession], make_worker
) -> None:
    worker = await make_worker()

    async def respond(minutes: int) -> None:
        async with session_factory() as session:
            await WorkerStatistics(session).record_response(worker.user_id, minutes, accepted=True)
            await session.commit()

    await asyncio.gather(*(respond(m) for m in (6, 12, 18, 24)))

    profile = await load_profile(session_factory, worker.user_id)
    assert profile.responses_count == 4
    assert profile.response_time == pytest.approx(15.0)
    assert profile.acceptance_rate == pytest.approx(100.0)
