"""
Route Sequencer Tests.
"""

from datetime import datetime, timedelta
from types import SimpleNamespace

from courier_backend.app.models.package_enums import PackageType
from courier_backend.app.services.route_sequencer import sequence

T0 = datetime(2024, 5, 1, 9, 0, 0)


def stop(name, package_type, minutes):
    return SimpleNamespace(name=name, package_type=package_type, created_at=T0 + timedelta(minutes=minutes))


def test_express_first_then_oldest():
    packages = [
        stop("std-new", PackageType.STANDARD, 30),
        stop("exp-new", PackageType.EXPRESS, 20),
        stop("std-old", PackageType.STANDARD, 0),
        stop("exp-old", PackageType.EXPRESS, 10),
    ]
    assert [p.name for p in sequence(packages)] == ["exp-old", "exp-new", "std-old", "std-new"]


def test_stable_for_equal_keys():
    packages = [
        stop("a", PackageType.FRAGILE, 5),
        stop("b", PackageType.DOCUMENTS, 5),
        stop("c", PackageType.STANDARD, 5),
    ]
    assert [p.name for p in sequence(packages)] == ["a", "b", "c"]


def test_does_not_mutate_input():
    packages = [stop("std", PackageType.STANDARD, 0), stop("exp", PackageType.EXPRESS, 1)]
    result = sequence(packages)
    assert [p.name for p in packages] == ["std", "exp"]
    assert [p.name for p in result] == ["exp", "std"]


def test_empty():
    assert sequence([]) == []
