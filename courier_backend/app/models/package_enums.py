"""
Package-related enumerations.
"""

import enum


class PackageStatus(str, enum.Enum):
    """
    Package status enumeration.

    Status flow:
        PENDING → PICKED_UP → IN_TRANSIT → DELIVERED
        PENDING → CANCELLED
    DELIVERED and CANCELLED are terminal.
    """
    PENDING = "pending"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PackageType(str, enum.Enum):
    """Kind of shipment. Only EXPRESS changes price and route priority."""
    STANDARD = "standard"
    EXPRESS = "express"
    FRAGILE = "fragile"
    DOCUMENTS = "documents"


class PaymentStatus(str, enum.Enum):
    """Payment state of a package."""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class PaymentRecordStatus(str, enum.Enum):
    """State of a single payment record with the external payment service."""
    AUTHORIZED = "authorized"
    CAPTURED = "captured"
    FAILED = "failed"
