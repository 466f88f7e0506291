"""
backend/fixlink/engagement/routes.py

Engagement Routes
Defines quote request and engagement lifecycle endpoints:
- Create a quote request, optionally with worker suggestions (Authenticated Customer)
- Send a quote request to selected workers (Authenticated Customer)
- Book a specific worker directly (Authenticated Customer)
- Accept / decline an engagement (Authenticated Worker)
- Apply a lifecycle transition (Customer, Worker or Admin per transition table)
- Post a progress note (Authenticated Worker)
- Accept / decline a quote (Authenticated Customer)

All endpoints require authentication.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from fixlink.core.dependencies import get_notifier, require_roles
from fixlink.core.limiter import limiter
from fixlink.core.schemas import IdentityContext
from fixlink.database.enums import UserRole
from fixlink.database.session import get_db
from fixlink.engagement import schemas
from fixlink.engagement.coordinator import QuoteRequestCoordinator
from fixlink.engagement.services import BookingService
from fixlink.notifications.gateway import NotificationDispatcher

quote_router = APIRouter(prefix="/quote-requests", tags=["Quote Requests"])
booking_router = APIRouter(prefix="/bookings", tags=["Bookings"])
router = APIRouter(prefix="/engagements", tags=["Engagements"])

DBDep = Annotated[AsyncSession, Depends(get_db)]
NotifierDep = Annotated[NotificationDispatcher, Depends(get_notifier)]

CustomerDep = Annotated[IdentityContext, Depends(require_roles(UserRole.CUSTOMER))]
WorkerDep = Annotated[IdentityContext, Depends(require_roles(UserRole.WORKER))]
AnyPartyDep = Annotated[
    IdentityContext,
    Depends(require_roles(UserRole.CUSTOMER, UserRole.WORKER, UserRole.ADMIN)),
]


# ---------------------------------------------------
# Quote Request Endpoints (Customer)
# ---------------------------------------------------
@quote_router.post(
    "",
    response_model=schemas.QuoteRequestRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create Quote Request",
    description="Customer describes a problem; optionally returns ranked worker suggestions.",
)
@limiter.limit("10/minute")
async def create_quote_request(
    request: Request,
    payload: schemas.QuoteRequestCreate,
    db: DBDep,
    notifier: NotifierDep,
    identity: CustomerDep,
) -> schemas.QuoteRequestRead:
    """Authenticated customer raises a new quote request."""
    ancestry, suggestions = await QuoteRequestCoordinator(db, notifier).create_quote_request(
        identity=identity, payload=payload
    )
    return schemas.QuoteRequestRead(
        engagement=schemas.EngagementRead.model_validate(ancestry), suggestions=suggestions
    )


@quote_router.post(
    "/{ancestry_id}/send",
    response_model=list[schemas.EngagementRead],
    status_code=status.HTTP_201_CREATED,
    summary="Send Quote Request To Workers",
    description="Fan the request out to workers. Workers already offered the request are skipped.",
)
@limiter.limit("10/minute")
async def send_to_workers(
    request: Request,
    ancestry_id: UUID,
    payload: schemas.SendToWorkersRequest,
    db: DBDep,
    notifier: NotifierDep,
    identity: CustomerDep,
) -> list[schemas.EngagementRead]:
    """Authenticated customer sends their quote request to selected workers."""
    engagements = await QuoteRequestCoordinator(db, notifier).send_to_workers(
        ancestry_id=ancestry_id, identity=identity, worker_ids=payload.worker_ids
    )
    return [schemas.EngagementRead.model_validate(e) for e in engagements]


# ---------------------------------------------------
# Direct Booking Endpoint (Customer)
# ---------------------------------------------------
@booking_router.post(
    "",
    response_model=schemas.EngagementRead,
    status_code=status.HTTP_201_CREATED,
    summary="Book Worker",
    description="Customer books a specific worker directly.",
)
@limiter.limit("10/minute")
async def create_booking(
    request: Request,
    payload: schemas.BookingCreate,
    db: DBDep,
    notifier: NotifierDep,
    identity: CustomerDep,
) -> schemas.EngagementRead:
    engagement = await BookingService(db, notifier).create_booking(identity=identity, payload=payload)
    return schemas.EngagementRead.model_validate(engagement)


# ---------------------------------------------------
# Worker Endpoints (Respond, Progress)
# ---------------------------------------------------
@router.post(
    "/{engagement_id}/respond",
    response_model=schemas.EngagementRead,
    status_code=status.HTTP_200_OK,
    summary="Respond To Engagement",
    description="Worker accepts (with a quote for quote requests) or declines a pending engagement.",
)
@limiter.limit("10/minute")
async def respond_to_engagement(
    request: Request,
    engagement_id: UUID,
    payload: schemas.RespondRequest,
    db: DBDep,
    notifier: NotifierDep,
    identity: WorkerDep,
) -> schemas.EngagementRead:
    """Authenticated worker answers an engagement offered to them."""
    engagement = await BookingService(db, notifier).respond_to_engagement(
        engagement_id=engagement_id, identity=identity, action=payload.action, details=payload
    )
    return schemas.EngagementRead.model_validate(engagement)


@router.post(
    "/{engagement_id}/progress",
    response_model=schemas.EngagementRead,
    status_code=status.HTTP_201_CREATED,
    summary="Add Progress Note",
)
@limiter.limit("20/minute")
async def add_progress_note(
    request: Request,
    engagement_id: UUID,
    payload: schemas.ProgressNoteCreate,
    db: DBDep,
    notifier: NotifierDep,
    identity: WorkerDep,
) -> schemas.EngagementRead:
    engagement = await BookingService(db, notifier).add_progress_note(
        engagement_id=engagement_id, identity=identity, payload=payload
    )
    return schemas.EngagementRead.model_validate(engagement)


# ---------------------------------------------------
# Shared Endpoint (Transitions)
# ---------------------------------------------------
@router.post(
    "/{engagement_id}/transition",
    response_model=schemas.EngagementRead,
    status_code=status.HTTP_200_OK,
    summary="Transition Engagement",
    description="Apply start, complete, cancel or dispute. The transition table decides who may.",
)
@limiter.limit("10/minute")
async def transition_engagement(
    request: Request,
    engagement_id: UUID,
    payload: schemas.TransitionRequest,
    db: DBDep,
    notifier: NotifierDep,
    identity: AnyPartyDep,
) -> schemas.EngagementRead:
    engagement = await BookingService(db, notifier).transition_engagement(
        engagement_id=engagement_id, identity=identity, event=payload.event, details=payload
    )
    return schemas.EngagementRead.model_validate(engagement)


# ---------------------------------------------------
# Customer Endpoints (Quote Decisions)
# ---------------------------------------------------
@router.post(
    "/{engagement_id}/quote/accept",
    response_model=schemas.EngagementRead,
    status_code=status.HTTP_200_OK,
    summary="Accept Quote",
)
@limiter.limit("10/minute")
async def accept_quote(
    request: Request,
    engagement_id: UUID,
    db: DBDep,
    notifier: NotifierDep,
    identity: CustomerDep,
) -> schemas.EngagementRead:
    """Authenticated customer accepts the worker's quote."""
    engagement = await BookingService(db, notifier).accept_quote(
        engagement_id=engagement_id, identity=identity
    )
    return schemas.EngagementRead.model_validate(engagement)


@router.post(
    "/{engagement_id}/quote/decline",
    response_model=schemas.EngagementRead,
    status_code=status.HTTP_200_OK,
    summary="Decline Quote",
)
@limiter.limit("10/minute")
async def decline_quote(
    request: Request,
    engagement_id: UUID,
    db: DBDep,
    notifier: NotifierDep,
    identity: CustomerDep,
) -> schemas.EngagementRead:
    """Authenticated customer declines the worker's quote."""
    engagement = await BookingService(db, notifier).decline_quote(
        engagement_id=engagement_id, identity=identity
    )
    return schemas.EngagementRead.model_validate(engagement)
