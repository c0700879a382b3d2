"""
Package Pydantic schemas.

Request fields are deliberately loose: required-ness and ranges are checked by
the package state machine so the first offending field is reported by name.
"""

from pydantic import BaseModel, Field, field_serializer
from datetime import datetime
from typing import Optional, List
from courier_backend.app.models.package_enums import PackageStatus, PackageType, PaymentStatus
from courier_backend.app.services.fee_calculator import present_fee


class PackageCreate(BaseModel):
    """Schema for submitting a new shipment."""
    recipient_name: Optional[str] = Field(None, max_length=200)
    recipient_phone: Optional[str] = Field(None, max_length=50)
    recipient_address: Optional[str] = Field(None, max_length=500)
    pickup_address: Optional[str] = Field(None, max_length=500)
    package_type: Optional[str] = Field(None, description="standard, express, fragile or documents")
    weight_kg: Optional[float] = Field(None, description="Weight in kilograms, must be > 0")
    declared_value: Optional[float] = Field(None, description="Declared value, must be >= 0")
    description: Optional[str] = Field(None, max_length=500)
    payment_method: str = Field(default="card", max_length=50)

    def details(self) -> dict:
        return self.model_dump(exclude={"payment_method"})


class PackageResponse(BaseModel):
    """Schema for package response."""
    id: int
    tracking_code: str
    sender_id: int
    driver_id: Optional[int]
    courier_company_id: Optional[int]
    recipient_name: str
    recipient_phone: str
    recipient_address: str
    pickup_address: str
    package_type: PackageType
    weight_kg: float
    declared_value: float
    description: Optional[str]
    delivery_fee: float
    status: PackageStatus
    payment_status: PaymentStatus
    payment_reference: Optional[str]
    created_at: datetime
    updated_at: datetime
    picked_up_at: Optional[datetime]
    delivered_at: Optional[datetime]

    @field_serializer("delivery_fee")
    def serialize_fee(self, fee: float) -> float:
        return present_fee(fee)

    class Config:
        from_attributes = True


class PackageListResponse(BaseModel):
    """Schema for paginated package list."""
    packages: List[PackageResponse]
    total: int
    skip: int
    limit: int


class TransitionRequest(BaseModel):
    """Schema for a status change request."""
    status: str = Field(..., description="Requested status")
    location: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = Field(None, max_length=1000)


class AssignDriverRequest(BaseModel):
    """Schema for assigning a driver to a pending package."""
    driver_id: int = Field(..., description="ID of the driver to assign")


class TrackingEventResponse(BaseModel):
    """One tracking ledger entry."""
    id: int
    package_id: int
    status: PackageStatus
    location: Optional[str]
    notes: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class PackageHistoryResponse(BaseModel):
    """Package together with its ordered tracking history."""
    package: PackageResponse
    history: List[TrackingEventResponse]
