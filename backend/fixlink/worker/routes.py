"""
backend/fixlink/worker/routes.py

Worker Routes
- Match workers for a service request (Authenticated Customer or Admin)
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from fixlink.core.dependencies import require_roles
from fixlink.core.limiter import limiter
from fixlink.core.schemas import IdentityContext
from fixlink.database.enums import UserRole
from fixlink.database.session import get_db
from fixlink.worker import schemas
from fixlink.worker.services import WorkerMatchService

router = APIRouter(prefix="/workers", tags=["Workers"])

DBDep = Annotated[AsyncSession, Depends(get_db)]
CustomerOrAdminDep = Annotated[
    IdentityContext, Depends(require_roles(UserRole.CUSTOMER, UserRole.ADMIN))
]


@router.post(
    "/match",
    response_model=schemas.MatchResult,
    status_code=status.HTTP_200_OK,
    summary="Match Workers",
    description="Rank active, available workers for a service category, location and budget.",
)
@limiter.limit("30/minute")
async def match_workers(
    request: Request,
    payload: schemas.MatchCriteria,
    db: DBDep,
    identity: CustomerOrAdminDep,
) -> schemas.MatchResult:
    """Authenticated customer requests ranked worker suggestions."""
    return await WorkerMatchService(db).match_workers(payload)
