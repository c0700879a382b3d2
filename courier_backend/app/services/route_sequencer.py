"""
Driver route sequencing.

Orders a driver's open packages into a visit sequence: express packages
first, then oldest first.
"""

from typing import Iterable, List

from courier_backend.app.models.package_enums import PackageStatus, PackageType

OPEN_STATUSES = (PackageStatus.PENDING, PackageStatus.PICKED_UP, PackageStatus.IN_TRANSIT)


def _priority(package) -> int:
    return 0 if package.package_type == PackageType.EXPRESS else 1


def sequence(open_packages: Iterable) -> List:
    """
    Stable-sort packages by (express first, created_at ascending).

    Works on anything exposing `package_type` and `created_at`. Packages with
    equal keys keep their input order.
    """
    return sorted(open_packages, key=lambda p: (_priority(p), p.created_at))
