"""
backend/fixlink/engagement/schemas.py

Engagement Schemas
Pydantic schemas for quote requests and engagement lifecycle operations:
- Quote request creation and fan-out (Authenticated Customer)
- Direct booking of a specific worker (Authenticated Customer)
- Worker responses, transitions and progress notes
- Reading engagement details
"""

import re
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from fixlink.database.enums import ServiceCategory, TimeSlot, Urgency
from fixlink.engagement.models import (
    EngagementStatus,
    PartyRole,
    QuoteStatus,
    ResponseAction,
)
from fixlink.engagement.state_machine import EngagementEvent
from fixlink.worker.schemas import MatchResult

BUDGET_RANGE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(?:-\s*(\d+(?:\.\d+)?)|(\+))\s*$")


def to_decimal(value: float | None) -> Decimal | None:
    return Decimal(str(value)) if value is not None else None


def parse_budget_range(value: str) -> tuple[float, float | None]:
    """
    Parse "1000-3000" into (1000, 3000) and "50000+" into (50000, None).
    """
    match = BUDGET_RANGE_PATTERN.match(value)
    if not match:
        raise ValueError(f"Invalid budget range: {value!r}")
    low = float(match.group(1))
    high = float(match.group(2)) if match.group(2) else None
    if high is not None and high < low:
        raise ValueError("Budget range maximum is below its minimum")
    return low, high


# ---------------------------------------------------
# Shared Payload Schemas
# ---------------------------------------------------
class LocationIn(BaseModel):
    """Where the work takes place. Coordinates come in pairs."""

    address: str | None = Field(None, max_length=255)
    city: str | None = Field(None, max_length=100)
    district: str | None = Field(None, max_length=100)
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)

    @model_validator(mode="after")
    def check_coordinates(self) -> "LocationIn":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be supplied together")
        return self


class EngagementPayload(BaseModel):
    """Descriptive payload shared by quote requests and direct bookings."""

    service_category: ServiceCategory = Field(..., description="Requested service category")
    problem_description: str = Field(..., min_length=1, max_length=1000)
    problem_images: list[str] = Field(default_factory=list, max_length=10)
    location: LocationIn | None = Field(None, description="Job location")
    scheduled_date: date | None = Field(None, description="Requested visit date")
    preferred_time_slot: TimeSlot = Field(TimeSlot.ANYTIME)
    budget_min: float | None = Field(None, ge=0)
    budget_max: float | None = Field(None, gt=0, description="Omit for an unbounded budget")
    budget_range: str | None = Field(
        None, description='Budget as text, e.g. "1000-3000" or "50000+"', exclude=True
    )
    urgency: Urgency = Field(Urgency.MEDIUM)
    special_instructions: str | None = Field(None, max_length=500)
    contact_phone: str | None = Field(None, max_length=32)

    @model_validator(mode="after")
    def check_budget(self) -> "EngagementPayload":
        if self.budget_range is not None:
            self.budget_min, self.budget_max = parse_budget_range(self.budget_range)
        if (
            self.budget_min is not None
            and self.budget_max is not None
            and self.budget_max < self.budget_min
        ):
            raise ValueError("budget_max must not be lower than budget_min")
        return self

    def to_columns(self) -> dict:
        """Flatten into Engagement column values."""
        location = self.location or LocationIn()
        return {
            "service_category": self.service_category,
            "problem_description": self.problem_description,
            "problem_images": list(self.problem_images),
            "address": location.address,
            "city": location.city,
            "district": location.district,
            "latitude": location.latitude,
            "longitude": location.longitude,
            "scheduled_date": self.scheduled_date,
            "preferred_time_slot": self.preferred_time_slot,
            "budget_min": to_decimal(self.budget_min),
            "budget_max": to_decimal(self.budget_max),
            "urgency": self.urgency,
            "special_instructions": self.special_instructions,
            "contact_phone": self.contact_phone,
        }


# ---------------------------------------------------
# Quote Request Schemas (Authenticated Customer)
# ---------------------------------------------------
class QuoteRequestCreate(EngagementPayload):
    """Schema used when a customer raises a quote request."""

    suggest_workers: bool = Field(False, description="Return ranked worker suggestions")
    suggestion_limit: int | None = Field(None, ge=1, le=50)


class SendToWorkersRequest(BaseModel):
    """Workers the quote request is fanned out to."""

    worker_ids: list[UUID] = Field(..., description="Worker subject ids")


# ---------------------------------------------------
# Direct Booking Schema (Authenticated Customer)
# ---------------------------------------------------
class BookingCreate(EngagementPayload):
    """Schema used when a customer books a specific worker."""

    worker_id: UUID = Field(..., description="Worker being booked")


# ---------------------------------------------------
# Worker Response / Transition Schemas
# ---------------------------------------------------
class RespondRequest(BaseModel):
    """Worker's answer to a pending engagement."""

    action: ResponseAction = Field(..., description="accepted or declined")
    quote_amount: float | None = Field(None, gt=0, description="Quoted price when accepting")
    quote_notes: str | None = Field(None, max_length=1000)
    quote_valid_days: int | None = Field(None, ge=1, le=30)
    reason: str | None = Field(None, max_length=500, description="Decline reason")


class TransitionRequest(BaseModel):
    """Status-changing event on an engagement."""

    event: EngagementEvent = Field(..., description="Event to apply")
    reason: str | None = Field(None, max_length=500, description="Cancel or dispute reason")
    note: str | None = Field(None, max_length=1000, description="Progress note when starting")
    images: list[str] = Field(default_factory=list, max_length=10)
    final_price: float | None = Field(None, ge=0, description="Final price when completing")
    completion_notes: str | None = Field(None, max_length=1000)
    # accept/decline routed through the same endpoint
    quote_amount: float | None = Field(None, gt=0)
    quote_notes: str | None = Field(None, max_length=1000)
    quote_valid_days: int | None = Field(None, ge=1, le=30)


class ProgressNoteCreate(BaseModel):
    note: str = Field(..., min_length=1, max_length=1000)
    images: list[str] = Field(default_factory=list, max_length=10)


# ---------------------------------------------------
# Read Schemas
# ---------------------------------------------------
class ProgressEntryRead(BaseModel):
    id: UUID
    status_label: str
    note: str | None = None
    images: list[str] = Field(default_factory=list)
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EngagementRead(BaseModel):
    """Schema returned when reading engagement details."""

    id: UUID = Field(..., description="Engagement unique identifier")
    ancestry_id: UUID | None = Field(None, description="Ancestry record, if fanned out")
    customer_id: UUID
    worker_id: UUID | None = None
    status: EngagementStatus = Field(..., description="Current status of the engagement")

    service_category: ServiceCategory
    problem_description: str
    problem_images: list[str] = Field(default_factory=list)
    address: str | None = None
    city: str | None = None
    district: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    scheduled_date: date | None = None
    preferred_time_slot: TimeSlot
    budget_min: float | None = None
    budget_max: float | None = None
    urgency: Urgency
    special_instructions: str | None = None

    sent_to_workers: list[UUID] = Field(default_factory=list)

    response_action: ResponseAction | None = None
    responded_at: datetime | None = None
    response_time_minutes: int | None = None
    decline_reason: str | None = None

    quote_amount: float | None = None
    quote_notes: str | None = None
    quote_valid_until: datetime | None = None
    quote_status: QuoteStatus | None = None
    quoted_price: float | None = None

    progress: list[ProgressEntryRead] = Field(default_factory=list)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    final_price: float | None = None
    cancelled_by: PartyRole | None = None
    cancel_reason: str | None = None
    cancelled_at: datetime | None = None
    disputed_by: PartyRole | None = None
    dispute_reason: str | None = None
    disputed_at: datetime | None = None

    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class QuoteRequestRead(BaseModel):
    """Ancestry record plus optional worker suggestions."""

    engagement: EngagementRead
    suggestions: MatchResult | None = None
