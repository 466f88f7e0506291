"""
backend/fixlink/core/dependencies.py

Identity and Authorization Dependencies

Provides the verified identity context and role-based access control (RBAC)
for FastAPI routes:
- Decodes the identity provider's Bearer JWT into an IdentityContext
- Restricts access based on roles
- Exposes the notification dispatcher built at startup
"""

import logging
from collections.abc import Callable, Coroutine
from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from fixlink.core.config import settings
from fixlink.core.exceptions import AuthorizationError
from fixlink.core.schemas import IdentityContext, TokenPayload
from fixlink.database.enums import UserRole
from fixlink.notifications.gateway import NotificationDispatcher

# ---------------------------------------------------
# Logger Configuration
# ---------------------------------------------------
logger = logging.getLogger(__name__)

# ---------------------------------------------------
# OAuth2 Configuration
# ---------------------------------------------------
oauth2_scheme: OAuth2PasswordBearer = OAuth2PasswordBearer(
    tokenUrl=settings.TOKEN_URL, auto_error=False
)


# ---------------------------------------------------
# Identity
# ---------------------------------------------------
async def get_identity(
    token: Annotated[str | None, Depends(oauth2_scheme)] = None,
) -> IdentityContext:
    """
    Build the identity context from the Bearer access token.

    Raises:
        HTTPException: 401 Unauthorized if the token is missing or invalid.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if token is None:
        logger.debug("[AUTH] No token found in Authorization header.")
        raise credentials_exception

    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        token_data = TokenPayload(**payload)
    except (JWTError, ValueError) as e:
        logger.warning(f"[AUTH] JWT decoding/validation failed: {e}")
        raise credentials_exception

    return IdentityContext(subject_id=token_data.sub, role=token_data.role)


# ---------------------------------------------------
# Authorization (Role-Based)
# ---------------------------------------------------
def require_roles(*roles: UserRole) -> Callable[..., Coroutine[Any, Any, IdentityContext]]:
    """
    Dependency to restrict access to identities having any of the specified roles.
    """

    async def checker(identity: IdentityContext = Depends(get_identity)) -> IdentityContext:
        if identity.role not in roles:
            logger.warning(
                f"[RBAC] Access denied: subject {identity.subject_id} with role {identity.role} (allowed roles: {roles})"
            )
            raise AuthorizationError(f"Access denied for role: {identity.role.value}")
        return identity

    return checker


# ---------------------------------------------------
# Collaborators
# ---------------------------------------------------
def get_notifier(request: Request) -> NotificationDispatcher:
    return request.app.state.notifier
