"""
backend/fixlink/worker/schemas.py

Worker Matching Schemas
Pydantic schemas for the worker matching operation:
- Match criteria submitted by customers (or built from a quote request)
- Ranked candidates with score and reasons
"""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from fixlink.database.enums import ServiceCategory, Urgency


# ---------------------------------------------------
# Match Criteria Schema
# ---------------------------------------------------
class MatchCriteria(BaseModel):
    """Input of a worker matching request."""

    service_category: ServiceCategory = Field(..., description="Requested service category")
    latitude: float | None = Field(None, ge=-90, le=90, description="Job latitude")
    longitude: float | None = Field(None, ge=-180, le=180, description="Job longitude")
    budget: float | None = Field(None, gt=0, description="Customer budget used for price scoring")
    urgency: Urgency | None = Field(None, description="How urgently the work is needed")
    max_radius_km: float | None = Field(
        None, ge=1, le=200, description="Search radius when a location is supplied"
    )
    limit: int | None = Field(None, ge=1, le=50, description="Maximum number of candidates")

    @model_validator(mode="after")
    def check_coordinates(self) -> "MatchCriteria":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be supplied together")
        return self

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


# ---------------------------------------------------
# Match Result Schemas
# ---------------------------------------------------
class MatchCandidate(BaseModel):
    """One ranked worker."""

    worker_id: UUID = Field(..., description="Worker subject id")
    score: int = Field(..., description="Match score, higher is better")
    reasons: list[str] = Field(default_factory=list, description="Up to three match reasons")
    distance_km: float | None = Field(None, description="Distance to the job, when known")
    rating_average: float = Field(..., description="Worker's current average rating")
    hourly_rate: float | None = Field(None, description="Worker's hourly rate")

    model_config = ConfigDict(from_attributes=True)

    @field_validator("distance_km")
    @classmethod
    def round_distance(cls, value: float | None) -> float | None:
        return round(value, 2) if value is not None else None


class MatchResult(BaseModel):
    """Ranked candidates; an empty list is flagged instead of raising."""

    candidates: list[MatchCandidate] = Field(default_factory=list)
    total: int = Field(0, description="Number of candidates returned")
    no_workers_available: bool = Field(
        False, description="True when no worker matched the criteria"
    )
