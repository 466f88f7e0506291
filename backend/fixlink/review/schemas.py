"""
backend/fixlink/review/schemas.py

Review Schemas
Defines Pydantic schemas for engagement reviews:
- ReviewCreate: rating and optional comment for a completed engagement
- ReviewUpdate: author's edit of rating and/or comment
- ReviewHideRequest: reason for hiding a review
- ReviewRead: full review including moderation fields
- ReviewOutcome: review plus the rated party's resulting average
"""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from fixlink.review.models import ReviewDirection


# ---------------------------------------------------
# Schema for Creating a Review
# ---------------------------------------------------
class ReviewCreate(BaseModel):
    """Payload schema used when reviewing a completed engagement."""

    rating: Annotated[int, Field(ge=1, le=5, description="Rating from 1 (lowest) to 5 (highest)")]
    comment: str | None = Field(default=None, max_length=500, description="Optional feedback")


# ---------------------------------------------------
# Schema for Editing a Review (Author)
# ---------------------------------------------------
class ReviewUpdate(BaseModel):
    rating: int | None = Field(default=None, ge=1, le=5)
    comment: str | None = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def check_not_empty(self) -> "ReviewUpdate":
        if self.rating is None and self.comment is None:
            raise ValueError("Provide a rating or a comment to update")
        return self


class ReviewHideRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500, description="Why the review is hidden")


# ---------------------------------------------------
# Schema for Reading a Review
# ---------------------------------------------------
class ReviewRead(BaseModel):
    """Full review response schema, including moderation fields."""

    id: UUID = Field(..., description="Review ID")
    engagement_id: UUID = Field(..., description="Reviewed engagement")
    direction: ReviewDirection
    author_id: UUID
    worker_id: UUID
    customer_id: UUID

    rating: int = Field(..., description="Star rating (1-5)")
    comment: str | None = None
    is_visible: bool = Field(..., description="Whether the review counts towards the average")
    hidden_reason: str | None = None
    hidden_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReviewOutcome(BaseModel):
    """Review as stored plus the rated party's average after the change."""

    review: ReviewRead
    new_average: float | None = Field(
        None, description="Rated party's average, if the change affected it"
    )
