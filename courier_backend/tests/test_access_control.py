"""
Access Control Matrix Tests.

Pure checks of `can_access` on in-memory actors and packages.
"""

import pytest

from courier_backend.app.core.exceptions import InsufficientPermissionsError
from courier_backend.app.core.guards import (
    AccessMode, PackageAction, access_guard, can_access, can_create_package, can_settle_payment
)
from courier_backend.app.models.actor import Actor
from courier_backend.app.models.enums import ActorRole
from courier_backend.app.models.package import Package
from courier_backend.app.models.package_enums import PackageStatus

READ = AccessMode.READ
MUTATE = AccessMode.MUTATE


def actor(actor_id, role, company_id=None, is_active=True):
    return Actor(id=actor_id, email=f"a{actor_id}@example.com", full_name="A", role=role,
                 courier_company_id=company_id, is_active=is_active)


def package(sender_id=1, driver_id=None, company_id=None, status=PackageStatus.PENDING):
    return Package(id=100, tracking_code="LT1", sender_id=sender_id, driver_id=driver_id,
                   courier_company_id=company_id, status=status)


SENDER = actor(1, ActorRole.CUSTOMER)
OTHER_CUSTOMER = actor(2, ActorRole.CUSTOMER)
DRIVER = actor(3, ActorRole.DRIVER, company_id=10)
INACTIVE_DRIVER = actor(3, ActorRole.DRIVER, company_id=10, is_active=False)
OTHER_DRIVER = actor(4, ActorRole.DRIVER, company_id=10)
ADMIN = actor(5, ActorRole.COURIER_ADMIN, company_id=10)
OTHER_ADMIN = actor(6, ActorRole.COURIER_ADMIN, company_id=20)
UNAFFILIATED_ADMIN = actor(7, ActorRole.COURIER_ADMIN)
SUPER = actor(8, ActorRole.SUPER_ADMIN)
NO_ROLE = actor(9, None)


def test_super_admin_always_allowed():
    p = package(driver_id=3, company_id=10, status=PackageStatus.IN_TRANSIT)
    assert can_access(SUPER, p, READ)
    assert can_access(SUPER, p, MUTATE)


def test_courier_admin_own_company():
    p = package(driver_id=3, company_id=10)
    assert can_access(ADMIN, p, READ)
    assert can_access(ADMIN, p, MUTATE)
    assert not can_access(OTHER_ADMIN, p, READ)
    assert not can_access(OTHER_ADMIN, p, MUTATE)


def test_courier_admin_claims_unassigned_package_for_own_company():
    p = package()
    assert can_access(ADMIN, p, MUTATE, PackageAction.ASSIGN, target_company_id=10)
    assert not can_access(ADMIN, p, MUTATE, PackageAction.ASSIGN, target_company_id=20)
    assert not can_access(ADMIN, p, MUTATE, PackageAction.UPDATE_STATUS, target_company_id=10)
    assert not can_access(ADMIN, p, READ)


def test_unaffiliated_admin_denied():
    assert not can_access(UNAFFILIATED_ADMIN, package(), MUTATE, PackageAction.ASSIGN, target_company_id=None)
    assert not can_access(UNAFFILIATED_ADMIN, package(), READ)


def test_driver_only_assigned_packages():
    p = package(driver_id=3, company_id=10)
    assert can_access(DRIVER, p, READ)
    assert can_access(DRIVER, p, MUTATE)
    assert not can_access(OTHER_DRIVER, p, READ)


def test_inactive_driver_reads_but_cannot_mutate():
    p = package(driver_id=3, company_id=10)
    assert can_access(INACTIVE_DRIVER, p, READ)
    assert not can_access(INACTIVE_DRIVER, p, MUTATE)


def test_customer_reads_own_package_only():
    p = package(sender_id=1)
    assert can_access(SENDER, p, READ)
    assert not can_access(OTHER_CUSTOMER, p, READ)


def test_customer_may_only_cancel_pending():
    assert can_access(SENDER, package(), MUTATE, PackageAction.CANCEL)
    assert not can_access(SENDER, package(), MUTATE, PackageAction.UPDATE_STATUS)
    assert not can_access(SENDER, package(status=PackageStatus.PICKED_UP), MUTATE, PackageAction.CANCEL)
    assert not can_access(OTHER_CUSTOMER, package(), MUTATE, PackageAction.CANCEL)


def test_missing_role_denied_everything():
    p = package(sender_id=9)
    assert not can_access(NO_ROLE, p, READ)
    assert not can_access(NO_ROLE, p, MUTATE)
    assert not can_access(None, p, READ)


def test_only_active_customers_create():
    assert can_create_package(SENDER)
    assert not can_create_package(actor(11, ActorRole.CUSTOMER, is_active=False))
    assert not can_create_package(DRIVER)
    assert not can_create_package(NO_ROLE)


def test_guard_raises_forbidden():
    with pytest.raises(InsufficientPermissionsError) as exc_info:
        access_guard.enforce(OTHER_CUSTOMER, package(), READ)
    assert exc_info.value.status_code == 403


def test_filter_readable_drops_foreign_packages():
    mine, theirs = package(sender_id=1), package(sender_id=2)
    assert access_guard.filter_readable(SENDER, [mine, theirs]) == [mine]


@pytest.mark.parametrize("inactive", [
    actor(5, ActorRole.COURIER_ADMIN, company_id=10, is_active=False),
    actor(8, ActorRole.SUPER_ADMIN, is_active=False),
    actor(3, ActorRole.DRIVER, company_id=10, is_active=False),
])
def test_inactive_staff_read_but_never_mutate(inactive):
    p = package(driver_id=3, company_id=10)
    assert can_access(inactive, p, READ)
    assert not can_access(inactive, p, MUTATE)
    assert not can_access(inactive, p, MUTATE, PackageAction.CANCEL)


def test_inactive_admin_cannot_claim_package():
    inactive_admin = actor(5, ActorRole.COURIER_ADMIN, company_id=10, is_active=False)
    assert not can_access(inactive_admin, package(), MUTATE, PackageAction.ASSIGN, target_company_id=10)


def test_inactive_sender_reads_but_cannot_cancel_or_pay():
    inactive_sender = actor(1, ActorRole.CUSTOMER, is_active=False)
    p = package(sender_id=1)
    assert can_access(inactive_sender, p, READ)
    assert not can_access(inactive_sender, p, MUTATE, PackageAction.CANCEL)
    assert not can_settle_payment(inactive_sender, p)
    assert can_settle_payment(SENDER, p)
