"""
Worker match scoring.

Ranks candidate workers for a service request with a weighted heuristic
(weights sum to 100):

  rating          (average / 5) * 40
  experience      min(years / 10, 1) * 20
  price           max(0, 1 - rate / budget) * 15, flat 10 without a budget
  response time   max(0, 1 - minutes / 60) * 10, flat 5 when unknown
  acceptance      (rate / 100) * 10
  completed jobs  min(jobs / 100, 1) * 5
  proximity       +10 under 5 km, +5 under 10 km, +2 under 20 km

Totals are rounded to integers. Urgent requests boost workers whose exact
distance is at most the urgent radius and re-sort. Sorting is stable, so
equal scores keep the discovery order of the candidate pool.

Everything here is pure computation; loading candidates is done by
`WorkerMatchService`.
"""

import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from fixlink.database.enums import Urgency
from fixlink.geo.distance import GeoPoint, haversine_km

logger = logging.getLogger(__name__)

URGENT_LEVELS = frozenset({Urgency.HIGH, Urgency.EMERGENCY})
MAX_REASONS = 3


@dataclass(frozen=True)
class WorkerSnapshot:
    """Matching inputs of one worker, detached from the session."""

    worker_id: UUID
    rating_average: float = 0.0
    years_experience: int = 0
    hourly_rate: float | None = None
    response_time: float | None = None
    acceptance_rate: float = 0.0
    completed_jobs: int = 0
    location: GeoPoint | None = None

    @classmethod
    def from_profile(cls, profile: Any) -> "WorkerSnapshot":
        return cls(
            worker_id=profile.user_id,
            rating_average=float(profile.rating_average or 0.0),
            years_experience=int(profile.years_experience or 0),
            hourly_rate=float(profile.hourly_rate) if profile.hourly_rate is not None else None,
            response_time=profile.response_time,
            acceptance_rate=float(profile.acceptance_rate or 0.0),
            completed_jobs=int(profile.completed_jobs or 0),
            location=GeoPoint.from_optional(profile.latitude, profile.longitude),
        )


@dataclass
class ScoredWorker:
    """`distance_km` is unrounded; display rounding happens in the response schema."""

    worker: WorkerSnapshot
    score: int
    distance_km: float | None = None
    reasons: list[str] = field(default_factory=list)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def proximity_bonus(distance_km: float | None) -> int:
    if distance_km is None:
        return 0
    if distance_km < 5:
        return 10
    if distance_km < 10:
        return 5
    if distance_km < 20:
        return 2
    return 0


class WorkerMatchScorer:
    """Scores and ranks worker snapshots for one request."""

    def __init__(
        self,
        result_limit: int = 10,
        urgent_radius_km: float = 3.0,
        urgent_multiplier: float = 1.2,
    ) -> None:
        self.result_limit = result_limit
        self.urgent_radius_km = urgent_radius_km
        self.urgent_multiplier = urgent_multiplier

    # ---------------------------------------------------
    # Scoring
    # ---------------------------------------------------
    def raw_score(
        self, worker: WorkerSnapshot, budget: float | None, distance_km: float | None
    ) -> float:
        score = (worker.rating_average / 5) * 40
        score += min(worker.years_experience / 10, 1) * 20

        if budget:
            # An unpriced worker cannot be shown to fit the budget.
            if worker.hourly_rate is not None:
                score += max(0.0, 1 - worker.hourly_rate / budget) * 15
        else:
            score += 10

        if worker.response_time is not None:
            score += max(0.0, 1 - worker.response_time / 60) * 10
        else:
            score += 5

        score += (worker.acceptance_rate / 100) * 10
        score += min(worker.completed_jobs / 100, 1) * 5
        score += proximity_bonus(distance_km)
        return score

    def reasons(
        self, worker: WorkerSnapshot, budget: float | None, distance_km: float | None
    ) -> list[str]:
        reasons: list[str] = []
        if worker.rating_average >= 4.5:
            reasons.append("Highly rated professional")
        if worker.years_experience >= 5:
            reasons.append(f"{worker.years_experience}+ years of experience")
        if worker.completed_jobs >= 50:
            reasons.append(f"Completed {worker.completed_jobs}+ jobs")
        if worker.response_time is not None and worker.response_time < 30:
            reasons.append("Quick response time")
        if budget and worker.hourly_rate is not None and worker.hourly_rate <= budget:
            reasons.append("Within your budget")
        if distance_km is not None and distance_km < 5:
            reasons.append(f"Only {distance_km:.1f} km away")
        return reasons[:MAX_REASONS]

    # ---------------------------------------------------
    # Ranking
    # ---------------------------------------------------
    def rank(
        self,
        workers: Iterable[WorkerSnapshot],
        *,
        location: GeoPoint | None = None,
        budget: float | None = None,
        urgency: Urgency | None = None,
        max_radius_km: float | None = None,
        limit: int | None = None,
    ) -> list[ScoredWorker]:
        """
        Rank `workers` (given in discovery order).

        With a location, workers outside `max_radius_km` and workers without
        coordinates are dropped before scoring. Nobody is dropped for score.
        """
        scored: list[ScoredWorker] = []
        for worker in workers:
            distance_km: float | None = None
            if location is not None:
                if worker.location is None:
                    continue
                distance_km = haversine_km(location, worker.location)
                if max_radius_km is not None and distance_km > max_radius_km:
                    continue
            scored.append(
                ScoredWorker(
                    worker=worker,
                    score=round_half_up(self.raw_score(worker, budget, distance_km)),
                    distance_km=distance_km,
                    reasons=self.reasons(worker, budget, distance_km),
                )
            )

        scored.sort(key=lambda s: s.score, reverse=True)

        if urgency in URGENT_LEVELS and location is not None:
            boosted = self._apply_urgency_boost(scored)
            if boosted:
                scored.sort(key=lambda s: s.score, reverse=True)

        return scored[: limit or self.result_limit]

    def _apply_urgency_boost(self, scored: Sequence[ScoredWorker]) -> int:
        boosted = 0
        for candidate in scored:
            if candidate.distance_km is not None and candidate.distance_km <= self.urgent_radius_km:
                candidate.score = round_half_up(candidate.score * self.urgent_multiplier)
                boosted += 1
        logger.debug(f"[MATCH] Urgency boost applied to {boosted} nearby candidates")
        return boosted
