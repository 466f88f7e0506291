"""
backend/fixlink/worker/services.py

Worker Service Layer
- WorkerMatchService: loads the candidate pool and ranks it with the scorer
- WorkerStatistics: atomic updates of a worker's response and job counters

Statistic updates are single UPDATE statements evaluated by the store, so
concurrent transitions for the same worker never lose an increment.
"""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import Float, case, cast, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fixlink.core.config import settings
from fixlink.database.enums import ProfileStatus
from fixlink.database.session import store_errors
from fixlink.geo.distance import GeoPoint
from fixlink.worker import schemas
from fixlink.worker.matching import WorkerMatchScorer, WorkerSnapshot
from fixlink.worker.models import WorkerProfile, WorkerServiceCategory

logger = logging.getLogger(__name__)


def build_scorer() -> WorkerMatchScorer:
    return WorkerMatchScorer(
        result_limit=settings.MATCH_RESULT_LIMIT,
        urgent_radius_km=settings.URGENT_RADIUS_KM,
        urgent_multiplier=settings.URGENT_SCORE_MULTIPLIER,
    )


# ---------------------------------------------------
# Worker Matching
# ---------------------------------------------------
class WorkerMatchService:
    """Ranks active, available workers for a service request."""

    def __init__(self, db: AsyncSession, scorer: WorkerMatchScorer | None = None) -> None:
        self.db = db
        self.scorer = scorer or build_scorer()

    async def _load_candidates(self, criteria: schemas.MatchCriteria) -> list[WorkerSnapshot]:
        stmt = (
            select(WorkerProfile)
            .join(WorkerServiceCategory, WorkerServiceCategory.worker_id == WorkerProfile.id)
            .where(
                WorkerServiceCategory.category == criteria.service_category,
                WorkerProfile.profile_status == ProfileStatus.ACTIVE,
                WorkerProfile.is_available.is_(True),
            )
            .order_by(WorkerProfile.created_at, WorkerProfile.id)
        )
        async with store_errors(self.db, "load match candidates"):
            result = await self.db.execute(stmt)
        return [WorkerSnapshot.from_profile(p) for p in result.scalars().all()]

    async def match_workers(self, criteria: schemas.MatchCriteria) -> schemas.MatchResult:
        """Return up to `limit` ranked candidates for `criteria`."""
        logger.info(
            f"[MATCH] Matching workers for category={criteria.service_category.value} "
            f"location={'yes' if criteria.has_location else 'no'} budget={criteria.budget}"
        )
        pool = await self._load_candidates(criteria)

        location = GeoPoint.from_optional(criteria.latitude, criteria.longitude)
        radius = min(
            criteria.max_radius_km or settings.MATCH_DEFAULT_RADIUS_KM,
            settings.MATCH_MAX_RADIUS_KM,
        )
        ranked = self.scorer.rank(
            pool,
            location=location,
            budget=criteria.budget,
            urgency=criteria.urgency,
            max_radius_km=radius if location is not None else None,
            limit=criteria.limit,
        )

        if not ranked:
            logger.info(f"[MATCH] No workers available for {criteria.service_category.value}")
            return schemas.MatchResult(candidates=[], total=0, no_workers_available=True)

        candidates = [
            schemas.MatchCandidate(
                worker_id=r.worker.worker_id,
                score=r.score,
                reasons=r.reasons,
                distance_km=r.distance_km,
                rating_average=r.worker.rating_average,
                hourly_rate=r.worker.hourly_rate,
            )
            for r in ranked
        ]
        logger.info(f"[MATCH] Returning {len(candidates)} of {len(pool)} pooled workers")
        return schemas.MatchResult(candidates=candidates, total=len(candidates))

    async def suggest_for(self, request: Any, limit: int | None = None) -> schemas.MatchResult:
        """
        Suggest workers for a stored quote request. A bounded budget range is
        scored against its maximum; an unbounded one counts as unknown.
        """
        budget = float(request.budget_max) if request.budget_max is not None else None
        criteria = schemas.MatchCriteria(
            service_category=request.service_category,
            latitude=request.latitude,
            longitude=request.longitude,
            budget=budget if budget else None,
            urgency=request.urgency,
            limit=limit,
        )
        return await self.match_workers(criteria)


# ---------------------------------------------------
# Worker Statistics
# ---------------------------------------------------
class WorkerStatistics:
    """Store-side counter updates keyed on the worker's subject id."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def record_response(self, worker_id: UUID, minutes: int, accepted: bool) -> None:
        """Fold one accept/decline into the rolling response time and acceptance rate."""
        accepted_inc = 1 if accepted else 0
        stmt = (
            update(WorkerProfile)
            .where(WorkerProfile.user_id == worker_id)
            .values(
                response_time=(
                    func.coalesce(WorkerProfile.response_time, 0.0) * WorkerProfile.responses_count
                    + minutes
                )
                / (WorkerProfile.responses_count + 1),
                responses_count=WorkerProfile.responses_count + 1,
                accepted_count=WorkerProfile.accepted_count + accepted_inc,
                acceptance_rate=cast(WorkerProfile.accepted_count + accepted_inc, Float)
                * 100
                / (WorkerProfile.responses_count + 1),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            logger.warning(f"[STATS] No worker aggregate for {worker_id}, response not recorded")

    async def record_completion(self, worker_id: UUID) -> None:
        """Increment completed jobs and recompute the acceptance rate."""
        stmt = (
            update(WorkerProfile)
            .where(WorkerProfile.user_id == worker_id)
            .values(
                completed_jobs=WorkerProfile.completed_jobs + 1,
                acceptance_rate=case(
                    (
                        WorkerProfile.responses_count > 0,
                        cast(WorkerProfile.accepted_count, Float)
                        * 100
                        / WorkerProfile.responses_count,
                    ),
                    else_=WorkerProfile.acceptance_rate,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            logger.warning(f"[STATS] No worker aggregate for {worker_id}, completion not recorded")
