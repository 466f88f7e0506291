"""
backend/fixlink/review/routes.py

Review Routes
Defines API endpoints related to engagement reviews:
- Review the worker of a completed engagement (Authenticated Customer)
- Rate the customer of a completed engagement (Authenticated Worker)
- Edit or delete an own review (Author)
- Hide and restore reviews (Admin)
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from fixlink.core.dependencies import get_notifier, require_roles
from fixlink.core.limiter import limiter
from fixlink.core.schemas import IdentityContext
from fixlink.database.enums import UserRole
from fixlink.database.session import get_db
from fixlink.notifications.gateway import NotificationDispatcher
from fixlink.review import schemas
from fixlink.review.services import ReviewService

router = APIRouter(prefix="/reviews", tags=["Reviews"])

DBDep = Annotated[AsyncSession, Depends(get_db)]
NotifierDep = Annotated[NotificationDispatcher, Depends(get_notifier)]

CustomerDep = Annotated[IdentityContext, Depends(require_roles(UserRole.CUSTOMER))]
WorkerDep = Annotated[IdentityContext, Depends(require_roles(UserRole.WORKER))]
AuthorDep = Annotated[
    IdentityContext, Depends(require_roles(UserRole.CUSTOMER, UserRole.WORKER))
]
AdminDep = Annotated[IdentityContext, Depends(require_roles(UserRole.ADMIN))]


# ----------------------------------------------------
# Review Submission
# ----------------------------------------------------
@router.post(
    "/{engagement_id}",
    response_model=schemas.ReviewOutcome,
    status_code=status.HTTP_201_CREATED,
    summary="Review Worker",
    description="Submit a review of the worker for a completed engagement (authenticated customer only).",
)
@limiter.limit("5/minute")
async def record_review(
    request: Request,
    engagement_id: UUID,
    payload: schemas.ReviewCreate,
    db: DBDep,
    notifier: NotifierDep,
    identity: CustomerDep,
) -> schemas.ReviewOutcome:
    """Authenticated customer reviews the worker of a completed engagement."""
    return await ReviewService(db, notifier).record_review(
        engagement_id=engagement_id, identity=identity, data=payload
    )


@router.post(
    "/{engagement_id}/customer-rating",
    response_model=schemas.ReviewOutcome,
    status_code=status.HTTP_201_CREATED,
    summary="Rate Customer",
    description="Worker rates the customer of a completed engagement.",
)
@limiter.limit("5/minute")
async def rate_customer(
    request: Request,
    engagement_id: UUID,
    payload: schemas.ReviewCreate,
    db: DBDep,
    notifier: NotifierDep,
    identity: WorkerDep,
) -> schemas.ReviewOutcome:
    return await ReviewService(db, notifier).rate_customer(
        engagement_id=engagement_id, identity=identity, data=payload
    )


# ----------------------------------------------------
# Author Endpoints
# ----------------------------------------------------
@router.patch(
    "/{review_id}",
    response_model=schemas.ReviewOutcome,
    status_code=status.HTTP_200_OK,
    summary="Edit Review",
)
@limiter.limit("10/minute")
async def edit_review(
    request: Request,
    review_id: UUID,
    payload: schemas.ReviewUpdate,
    db: DBDep,
    notifier: NotifierDep,
    identity: AuthorDep,
) -> schemas.ReviewOutcome:
    """Author edits rating and/or comment; the rated party's average is recomputed."""
    return await ReviewService(db, notifier).edit_review(
        review_id=review_id, identity=identity, data=payload
    )


@router.delete(
    "/{review_id}",
    response_model=schemas.ReviewOutcome,
    status_code=status.HTTP_200_OK,
    summary="Delete Review",
    description="Author soft-deletes their review. The review is hidden, not removed.",
)
@limiter.limit("10/minute")
async def delete_review(
    request: Request,
    review_id: UUID,
    db: DBDep,
    notifier: NotifierDep,
    identity: AuthorDep,
    reason: str | None = Query(None, max_length=500),
) -> schemas.ReviewOutcome:
    return await ReviewService(db, notifier).hide_review(
        review_id=review_id, identity=identity, reason=reason or "Deleted by author"
    )


# ----------------------------------------------------
# Moderation Endpoints (Admin)
# ----------------------------------------------------
@router.put(
    "/{review_id}/hide",
    response_model=schemas.ReviewOutcome,
    status_code=status.HTTP_200_OK,
    summary="Hide Review",
)
@limiter.limit("20/minute")
async def hide_review(
    request: Request,
    review_id: UUID,
    payload: schemas.ReviewHideRequest,
    db: DBDep,
    notifier: NotifierDep,
    identity: AdminDep,
) -> schemas.ReviewOutcome:
    """Admin hides a review; it stops counting towards the average."""
    return await ReviewService(db, notifier).hide_review(
        review_id=review_id, identity=identity, reason=payload.reason
    )


@router.put(
    "/{review_id}/restore",
    response_model=schemas.ReviewOutcome,
    status_code=status.HTTP_200_OK,
    summary="Restore Review",
)
@limiter.limit("20/minute")
async def restore_review(
    request: Request,
    review_id: UUID,
    db: DBDep,
    notifier: NotifierDep,
    identity: AdminDep,
) -> schemas.ReviewOutcome:
    return await ReviewService(db, notifier).restore_review(review_id=review_id, identity=identity)
