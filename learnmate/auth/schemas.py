"""Pydantic schemas for authentication."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from learnmate.auth.permissions import UserRole


class AuthenticatedUser(BaseModel):
    """User identity carried by a validated access token."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str | None = None
    role: str = UserRole.USER.value
    issued_at: datetime | None = None
