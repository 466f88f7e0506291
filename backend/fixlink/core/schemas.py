"""
backend/fixlink/core/schemas.py

Core Schemas

Defines core Pydantic models used across the application, including:
- The verified identity context handed to every mutating operation.
- Generic message response schema.
"""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from fixlink.database.enums import UserRole


class IdentityContext(BaseModel):
    """
    Verified caller identity as produced by the external identity provider.
    Services trust it and never look at credentials themselves.
    """

    subject_id: UUID = Field(..., description="Verified subject (user) identifier")
    role: UserRole = Field(..., description="Role of the subject")

    model_config = ConfigDict(frozen=True)


class TokenPayload(BaseModel):
    """Claims read from an identity-provider access token."""

    sub: UUID = Field(..., description="Subject identifier")
    role: UserRole = Field(..., description="Role claim")


class MessageResponse(BaseModel):
    """
    Generic response schema for simple success or informational messages.
    """

    detail: str = Field(..., description="Response message detail")
