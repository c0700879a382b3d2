"""
Payment API Endpoints.

Payment history of the caller. Capturing a package's payment lives with the
package endpoints.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from courier_backend.app.db.session import get_db
from courier_backend.app.core.dependencies import get_current_actor
from courier_backend.app.models.actor import Actor
from courier_backend.app.schemas.payment import PaymentResponse, PaymentListResponse
from courier_backend.app.services.payment_service import PaymentService

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.get("", response_model=PaymentListResponse)
async def list_payments(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    current_actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """The caller's payment records, newest first."""
    payments = await PaymentService.list_payments(db, current_actor.id, skip=skip, limit=limit)
    return PaymentListResponse(payments=[PaymentResponse.model_validate(p) for p in payments])
