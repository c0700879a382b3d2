"""
Delivery fee calculation.

fee = (base_rate + weight_rate * weight_kg) * type_multiplier

Only EXPRESS packages carry a surcharge multiplier. The stored fee keeps full
precision; rounding happens when the fee is presented.
"""

from typing import Optional, Union

from courier_backend.app.core.config import settings
from courier_backend.app.models.package_enums import PackageType


def type_multiplier(package_type: Union[PackageType, str], express_multiplier: Optional[float] = None) -> float:
    if express_multiplier is None:
        express_multiplier = settings.fee_express_multiplier
    return express_multiplier if PackageType(package_type) == PackageType.EXPRESS else 1.0


def compute_fee(
    weight_kg: float,
    package_type: Union[PackageType, str],
    base_rate: Optional[float] = None,
    weight_rate: Optional[float] = None,
    express_multiplier: Optional[float] = None,
) -> float:
    """
    Compute the delivery fee for a package. Pure and deterministic.

    Rates default to the configured values.
    """
    if base_rate is None:
        base_rate = settings.fee_base_rate
    if weight_rate is None:
        weight_rate = settings.fee_weight_rate

    return (base_rate + weight_rate * weight_kg) * type_multiplier(package_type, express_multiplier)


def present_fee(fee: float) -> float:
    """Round a fee to currency precision for display."""
    return round(fee, settings.currency_precision)
