"""
Package database model.

A package is a shipment request submitted by a customer.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Enum
from courier_backend.app.db.session import Base
from courier_backend.app.core.timeutils import utcnow
from courier_backend.app.models.package_enums import PackageStatus, PackageType, PaymentStatus


class Package(Base):
    """
    Package model for the courier platform.

    `status` always equals the status of the newest tracking event. It is only
    written by the package state machine, in the same transaction that appends
    that event. Packages are never deleted.
    """
    __tablename__ = "packages"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    tracking_code = Column(String(40), unique=True, nullable=False, index=True)

    # Ownership and assignment
    sender_id = Column(Integer, ForeignKey("actors.id"), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey("actors.id"), nullable=True, index=True)
    courier_company_id = Column(Integer, ForeignKey("courier_companies.id"), nullable=True, index=True)

    # Recipient and route
    recipient_name = Column(String(200), nullable=False)
    recipient_phone = Column(String(50), nullable=False)
    recipient_address = Column(String(500), nullable=False)
    pickup_address = Column(String(500), nullable=False)

    # Shipment
    package_type = Column(Enum(PackageType), default=PackageType.STANDARD, nullable=False)
    weight_kg = Column(Float, nullable=False)
    declared_value = Column(Float, nullable=False, default=0.0)
    description = Column(String(500), nullable=True)
    delivery_fee = Column(Float, nullable=False)

    # State
    status = Column(Enum(PackageStatus), default=PackageStatus.PENDING, nullable=False, index=True)
    payment_status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    payment_reference = Column(String(100), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    picked_up_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Package(id={self.id}, code='{self.tracking_code}', status='{self.status.value}')>"
