"""
Authentication Pydantic schemas.

Tokens are issued by the external identity provider; these schemas cover
what this service exposes about the caller's session.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional
from courier_backend.app.models.enums import ActorRole


class ActorResponse(BaseModel):
    """
    Schema for the current actor.

    Used by GET /auth/me endpoint.
    """
    id: int
    email: str
    full_name: str
    phone: Optional[str] = None
    role: Optional[ActorRole] = None
    courier_company_id: Optional[int] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class LogoutResponse(BaseModel):
    message: str
