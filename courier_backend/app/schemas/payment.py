"""
Payment Schemas.
"""

from pydantic import BaseModel, field_serializer
from datetime import datetime
from typing import List
from courier_backend.app.models.package_enums import PaymentRecordStatus
from courier_backend.app.schemas.package import PackageResponse
from courier_backend.app.services.fee_calculator import present_fee


class PaymentResponse(BaseModel):
    id: int
    payment_reference: str
    package_id: int
    amount: float
    method: str
    status: PaymentRecordStatus
    created_at: datetime

    @field_serializer("amount")
    def serialize_amount(self, amount: float) -> float:
        return present_fee(amount)

    class Config:
        from_attributes = True


class PaymentListResponse(BaseModel):
    payments: List[PaymentResponse]


class PaymentCaptureResponse(BaseModel):
    """Result of settling a package's payment."""
    captured: bool
    package: PackageResponse
