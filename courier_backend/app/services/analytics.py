"""
Analytics Service.

Read-side projections for dashboards. Every number is computed from the
package rows on each read; nothing here is stored or incremented.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_, true
from typing import Optional

from courier_backend.app.core.guards import package_scope
from courier_backend.app.models.actor import Actor
from courier_backend.app.models.enums import ActorRole
from courier_backend.app.models.package import Package
from courier_backend.app.models.package_enums import PackageStatus
from courier_backend.app.schemas.analytics import DashboardSummary, DashboardView
from courier_backend.app.services.fee_calculator import present_fee

ACTIVE_STATUSES = (PackageStatus.PICKED_UP, PackageStatus.IN_TRANSIT)

ROLE_VIEWS = {
    ActorRole.CUSTOMER: "/customer",
    ActorRole.DRIVER: "/driver",
    ActorRole.COURIER_ADMIN: "/courier-admin",
    ActorRole.SUPER_ADMIN: "/super-admin",
}
DEFAULT_VIEW = "/customer"


def dashboard_view(role: Optional[ActorRole]) -> DashboardView:
    """Role -> landing view lookup. Unknown roles land on the customer view."""
    return DashboardView(
        role=role.value if role else None,
        view=ROLE_VIEWS.get(role, DEFAULT_VIEW),
    )


class AnalyticsService:

    @staticmethod
    async def get_summary(db: AsyncSession, actor: Actor) -> DashboardSummary:
        """Counts over the packages `actor` may read."""
        scope = package_scope(actor)

        # Per-status counts in one grouped query
        status_query = (
            select(Package.status, func.count(Package.id))
            .where(scope)
            .group_by(Package.status)
        )
        rows = (await db.execute(status_query)).all()
        status_counts = {s.value: 0 for s in PackageStatus}
        for package_status, count in rows:
            status_counts[package_status.value] = count

        revenue_query = select(func.coalesce(func.sum(Package.delivery_fee), 0.0)).where(
            and_(scope, Package.status == PackageStatus.DELIVERED)
        )
        revenue = (await db.execute(revenue_query)).scalar() or 0.0

        summary = DashboardSummary(
            role=actor.role.value if actor.role else None,
            total_packages=sum(status_counts.values()),
            status_counts=status_counts,
            active_packages=sum(status_counts[s.value] for s in ACTIVE_STATUSES),
            delivered_revenue=present_fee(revenue),
        )

        if actor.role in (ActorRole.COURIER_ADMIN, ActorRole.SUPER_ADMIN):
            summary.driver_count, summary.active_driver_count = await AnalyticsService._driver_counts(db, actor)

        return summary

    @staticmethod
    async def _driver_counts(db: AsyncSession, actor: Actor):
        if actor.role == ActorRole.SUPER_ADMIN:
            company_filter = true()
        elif actor.courier_company_id is None:
            return 0, 0
        else:
            company_filter = Actor.courier_company_id == actor.courier_company_id

        base = select(func.count(Actor.id)).where(Actor.role == ActorRole.DRIVER, company_filter)
        total = (await db.execute(base)).scalar() or 0
        active = (await db.execute(base.where(Actor.is_active.is_(True)))).scalar() or 0
        return total, active
