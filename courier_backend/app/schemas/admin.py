"""
Admin API Schema Definitions.

Pydantic schemas for courier-admin and super-admin endpoints.
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Any, Dict, Optional, List
from courier_backend.app.models.enums import ActorRole


class ActorListItem(BaseModel):
    """Schema for an actor in list responses."""
    id: int
    email: str
    full_name: str
    phone: Optional[str] = None
    role: Optional[ActorRole] = None
    is_active: bool
    courier_company_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ActorListResponse(BaseModel):
    actors: List[ActorListItem]
    total: int


class StatusToggleRequest(BaseModel):
    """Activate or deactivate an actor or a company."""
    is_active: bool
    reason: Optional[str] = Field(None, description="Reason for the change (for audit log)")


class RoleChangeRequest(BaseModel):
    """
    Change an actor's role.

    Drivers and courier admins must belong to a company: pass
    `courier_company_id`, or omit it to keep the current affiliation.
    Customers and super admins lose any affiliation.
    """
    role: ActorRole
    courier_company_id: Optional[int] = None
    reason: Optional[str] = Field(None, description="Reason for the change (for audit log)")


class CompanyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=500)


class CompanyResponse(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class CompanyListResponse(BaseModel):
    companies: List[CompanyResponse]
    total: int


class AdminActionResponse(BaseModel):
    """Schema for admin action response."""
    success: bool
    message: str
    target_id: int
    action: str


class AuditLogResponse(BaseModel):
    id: int
    actor_id: Optional[int] = None
    actor_email: Optional[str] = None
    action: str
    target_type: Optional[str] = None
    target_id: Optional[int] = None
    meta_data: Optional[Dict[str, Any]] = None
    timestamp: datetime

    class Config:
        from_attributes = True


class AuditLogListResponse(BaseModel):
    entries: List[AuditLogResponse]
