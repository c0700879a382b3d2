"""
Security guards for role-based and ownership-based access control.

`can_access` is the single policy deciding, for an (actor, package) pair,
whether the actor may read or mutate that package. Every state machine
operation and every read path goes through it; the SQL scope used by list
queries lives next to it and mirrors the read rules.
"""

import enum
from typing import List, Optional

from fastapi import Depends, HTTPException, status
from sqlalchemy import false, true

from courier_backend.app.core.dependencies import get_current_actor
from courier_backend.app.core.exceptions import InsufficientPermissionsError
from courier_backend.app.models.actor import Actor
from courier_backend.app.models.enums import ActorRole
from courier_backend.app.models.package import Package
from courier_backend.app.models.package_enums import PackageStatus


class AccessMode(str, enum.Enum):
    READ = "read"
    MUTATE = "mutate"


class PackageAction(str, enum.Enum):
    """What a mutate request intends to do. Customers may only cancel."""
    UPDATE_STATUS = "update_status"
    CANCEL = "cancel"
    ASSIGN = "assign"


def require_role(allowed_roles: List[ActorRole], active_only: bool = False):
    """
    Dependency factory for role-based access control.

    Management endpoints pass `active_only=True`: a deactivated admin keeps
    their token but can no longer manage anything.

    Usage:
        @router.get("/driver/route")
        async def route(actor: Actor = Depends(require_role([ActorRole.DRIVER]))):
            ...

    Raises:
        HTTPException 403 if the actor's role is missing or not allowed, or if
        `active_only` and the actor is deactivated
    """
    async def role_checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Actor has no resolvable role"
            )

        if actor.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )

        if active_only and not actor.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Actor is deactivated"
            )

        return actor

    return role_checker


def can_access(
    actor: Optional[Actor],
    package: Package,
    mode: AccessMode,
    action: PackageAction = PackageAction.UPDATE_STATUS,
    target_company_id: Optional[int] = None,
) -> bool:
    """
    Decide whether `actor` may read or mutate `package`.

    Inactive actors keep read access but may never mutate.

    - super_admin: always.
    - courier_admin: packages of their company, read and mutate. May also
      claim an unassigned, company-less package when their company is the
      target of the assignment (mutate only).
    - driver: packages assigned to them.
    - customer: packages they sent, read only, except cancelling while the
      package is still pending.
    - anything else (including a missing role): denied.

    Args:
        actor: The requesting actor
        package: The package being accessed
        mode: READ or MUTATE
        action: What a MUTATE request intends to do
        target_company_id: Company receiving the package on an assignment request
    """
    if actor is None or actor.role is None:
        return False

    if mode == AccessMode.MUTATE and not actor.is_active:
        return False

    role = actor.role

    if role == ActorRole.SUPER_ADMIN:
        return True

    if role == ActorRole.COURIER_ADMIN:
        company_id = actor.courier_company_id
        if company_id is None:
            return False
        if package.courier_company_id == company_id:
            return True
        return (
            mode == AccessMode.MUTATE
            and action == PackageAction.ASSIGN
            and package.driver_id is None
            and package.courier_company_id is None
            and target_company_id == company_id
        )

    if role == ActorRole.DRIVER:
        return package.driver_id == actor.id

    if role == ActorRole.CUSTOMER:
        if package.sender_id != actor.id:
            return False
        if mode == AccessMode.READ:
            return True
        return action == PackageAction.CANCEL and package.status == PackageStatus.PENDING

    return False


def can_create_package(actor: Optional[Actor]) -> bool:
    """Only active customers submit shipments."""
    return actor is not None and actor.role == ActorRole.CUSTOMER and bool(actor.is_active)


def can_settle_payment(actor: Optional[Actor], package: Package) -> bool:
    """Only the sender pays for a package, and only while active."""
    return (
        actor is not None
        and actor.role == ActorRole.CUSTOMER
        and bool(actor.is_active)
        and package.sender_id == actor.id
    )


def package_scope(actor: Optional[Actor]):
    """
    SQL filter selecting the packages `actor` may read.

    Mirrors the READ branch of `can_access`; list queries use it so the store
    does the filtering, then re-check each row with `can_access`.
    """
    if actor is None or actor.role is None:
        return false()

    role = actor.role

    if role == ActorRole.SUPER_ADMIN:
        return true()

    if role == ActorRole.COURIER_ADMIN:
        if actor.courier_company_id is None:
            return false()
        return Package.courier_company_id == actor.courier_company_id

    if role == ActorRole.DRIVER:
        return Package.driver_id == actor.id

    if role == ActorRole.CUSTOMER:
        return Package.sender_id == actor.id

    return false()


class PackageAccessGuard:
    """
    Class-based guard raising on denied package access.

    Usage:
        access_guard = PackageAccessGuard()
        access_guard.enforce(actor, package, AccessMode.READ)
    """

    def enforce(
        self,
        actor: Optional[Actor],
        package: Package,
        mode: AccessMode,
        action: PackageAction = PackageAction.UPDATE_STATUS,
        target_company_id: Optional[int] = None,
    ) -> None:
        """
        Raises:
            InsufficientPermissionsError if `can_access` denies the request
        """
        if not can_access(actor, package, mode, action, target_company_id):
            raise InsufficientPermissionsError(
                message=f"Access denied. You do not have permission to {mode.value} this package.",
                details={"package_id": package.id, "mode": mode.value, "action": action.value}
            )

    def filter_readable(self, actor: Optional[Actor], packages: List[Package]) -> List[Package]:
        """Drop any package the actor may not read."""
        return [p for p in packages if can_access(actor, p, AccessMode.READ)]


access_guard = PackageAccessGuard()
