"""
Fee Calculator Tests.
"""

import pytest

from courier_backend.app.models.package_enums import PackageType
from courier_backend.app.services.fee_calculator import compute_fee, present_fee, type_multiplier


def test_standard_fee_is_base_plus_weight():
    assert compute_fee(5, PackageType.STANDARD) == pytest.approx(10.0 + 5 * 2.0)


def test_express_fee_applies_surcharge():
    assert compute_fee(5, PackageType.EXPRESS) == pytest.approx((10.0 + 5 * 2.0) * 1.5)


@pytest.mark.parametrize("package_type", [PackageType.STANDARD, PackageType.FRAGILE, PackageType.DOCUMENTS])
def test_only_express_has_multiplier(package_type):
    assert type_multiplier(package_type) == 1.0


def test_accepts_string_type():
    assert compute_fee(2, "express") == pytest.approx(21.0)


def test_custom_rates():
    assert compute_fee(3, PackageType.EXPRESS, base_rate=4, weight_rate=1, express_multiplier=2) == pytest.approx(14.0)


def test_fee_keeps_precision_until_presented():
    fee = compute_fee(0.333, PackageType.EXPRESS)
    assert fee == pytest.approx((10.0 + 0.666) * 1.5)
    assert present_fee(fee) == 16.0


def test_deterministic():
    assert compute_fee(7.25, PackageType.FRAGILE) == compute_fee(7.25, PackageType.FRAGILE)
