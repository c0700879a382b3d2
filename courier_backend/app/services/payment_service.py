"""
Payment Service.

Settles the payment authorized when a package was created. The package's
payment status moves pending -> paid on capture, or pending -> failed when the
payment service declines. A gateway outage leaves it pending so the sender can
retry.
"""

import logging
from typing import List, Tuple

from sqlalchemy import desc, select, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from courier_backend.app.core.exceptions import (
    InsufficientPermissionsError,
    InvalidTransitionError,
    ResourceNotFoundError,
    StoreUnavailableError,
)
from courier_backend.app.core.guards import can_settle_payment
from courier_backend.app.core.timeutils import utcnow
from courier_backend.app.models.actor import Actor
from courier_backend.app.models.package import Package
from courier_backend.app.models.package_enums import PackageStatus, PaymentRecordStatus, PaymentStatus
from courier_backend.app.models.payment import Payment
from courier_backend.app.services.package_state_machine import load_package
from courier_backend.app.services.payment_gateway import PaymentGateway

logger = logging.getLogger(__name__)


class PaymentService:

    @staticmethod
    async def capture(
        db: AsyncSession,
        package_id: int,
        actor: Actor,
        gateway: PaymentGateway,
    ) -> Tuple[Package, bool]:
        """
        Capture the package's authorized payment.

        Returns:
            (package, captured) where captured is False on a decline

        Raises:
            ResourceNotFoundError: unknown package or no payment record
            InsufficientPermissionsError: caller is not the sender
            InvalidTransitionError: payment already settled, or package cancelled
            PaymentFailedError: payment service unreachable (nothing changes)
        """
        package = await load_package(db, package_id)

        if not can_settle_payment(actor, package):
            raise InsufficientPermissionsError("Only the sender can pay for a package")

        if package.payment_status != PaymentStatus.PENDING:
            raise InvalidTransitionError(
                package.payment_status, PaymentStatus.PAID,
                message=f"Payment already settled: {package.payment_status.value}"
            )

        if package.status == PackageStatus.CANCELLED:
            raise InvalidTransitionError(
                package.status, PaymentStatus.PAID,
                message="Cannot pay for a cancelled package"
            )

        result = await db.execute(
            select(Payment).where(Payment.payment_reference == package.payment_reference)
        )
        payment = result.scalar_one_or_none()
        if not payment:
            raise ResourceNotFoundError("Payment", package.payment_reference)

        pid = package.id
        # No transaction stays open across the payment service call.
        await db.commit()
        captured = await gateway.capture(payment.payment_reference)

        new_status = PaymentStatus.PAID if captured else PaymentStatus.FAILED
        record_status = PaymentRecordStatus.CAPTURED if captured else PaymentRecordStatus.FAILED

        try:
            result = await db.execute(
                update(Package)
                .where(Package.id == pid, Package.payment_status == PaymentStatus.PENDING)
                .values(payment_status=new_status, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await db.rollback()
                raise InvalidTransitionError(
                    PaymentStatus.PENDING, new_status,
                    message="Payment was settled concurrently; re-fetch the package"
                )
            payment.status = record_status
            await db.commit()
        except DBAPIError as exc:
            await db.rollback()
            logger.error("Store failure while settling payment of package %s: %s", pid, exc)
            raise StoreUnavailableError() from exc

        await db.refresh(package)
        logger.info("Payment for package %s %s", pid, "captured" if captured else "declined")
        return package, captured

    @staticmethod
    async def list_payments(db: AsyncSession, actor_id: int, skip: int = 0, limit: int = 50) -> List[Payment]:
        """The actor's payment records, newest first."""
        query = (
            select(Payment)
            .where(Payment.actor_id == actor_id)
            .order_by(desc(Payment.created_at), desc(Payment.id))
            .offset(skip)
            .limit(limit)
        )
        result = await db.execute(query)
        return list(result.scalars().all())
