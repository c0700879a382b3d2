"""
Payment record database model.

Mirrors what the external payment service told us about a package's payment.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Enum
from sqlalchemy.sql import func
from courier_backend.app.db.session import Base
from courier_backend.app.models.package_enums import PaymentRecordStatus


class Payment(Base):
    """Payment record, one per package authorization."""
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Reference returned by the payment service
    payment_reference = Column(String(100), unique=True, nullable=False, index=True)

    actor_id = Column(Integer, ForeignKey("actors.id"), nullable=False, index=True)
    package_id = Column(Integer, ForeignKey("packages.id"), nullable=False, index=True)

    amount = Column(Float, nullable=False)
    method = Column(String(50), nullable=False)
    status = Column(Enum(PaymentRecordStatus), default=PaymentRecordStatus.AUTHORIZED, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Payment(id={self.id}, ref='{self.payment_reference}', status='{self.status.value}')>"
