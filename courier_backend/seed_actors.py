"""
Database seeding script for a demo courier platform.

Creates one courier company with a courier admin and a driver, a customer,
and a super admin, then prints a bearer token for each so the API can be
exercised right away. Identities are issued upstream in production; this is
for local development only.
"""

import asyncio
import sys
from datetime import timedelta
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from courier_backend.app.core.jwt import create_actor_token
from courier_backend.app.db.session import AsyncSessionLocal, engine, Base
from courier_backend.app.models.actor import Actor
from courier_backend.app.models.courier_company import CourierCompany
from courier_backend.app.models.enums import ActorRole
from courier_backend.app.models.package import Package  # noqa: F401
from courier_backend.app.models.tracking_event import TrackingEvent  # noqa: F401
from courier_backend.app.models.payment import Payment  # noqa: F401
from courier_backend.app.models.notification import Notification  # noqa: F401
from courier_backend.app.models.audit_log import AuditLog  # noqa: F401

DEMO_COMPANY = "Demo Couriers"

DEMO_ACTORS = [
    ("superadmin@courier.test", "Platform Admin", ActorRole.SUPER_ADMIN, False),
    ("dispatch@courier.test", "Dispatch Lead", ActorRole.COURIER_ADMIN, True),
    ("driver@courier.test", "Dana Driver", ActorRole.DRIVER, True),
    ("customer@courier.test", "Casey Customer", ActorRole.CUSTOMER, False),
]


async def seed_actors():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("Seeding demo actors...")

        result = await db.execute(select(CourierCompany).where(CourierCompany.name == DEMO_COMPANY))
        if result.scalar_one_or_none():
            print(f"'{DEMO_COMPANY}' already exists, skipping seeding")
            return

        company = CourierCompany(name=DEMO_COMPANY, email="ops@courier.test", is_active=True)
        db.add(company)
        await db.flush()

        seeded = []
        for email, full_name, role, affiliated in DEMO_ACTORS:
            demo_actor = Actor(
                email=email,
                full_name=full_name,
                role=role,
                is_active=True,
                courier_company_id=company.id if affiliated else None,
            )
            db.add(demo_actor)
            seeded.append(demo_actor)

        await db.commit()

        print(f"\nCreated company '{company.name}' (id={company.id})")
        print("\nSeeded actors (tokens valid for 7 days):")
        for demo_actor in seeded:
            token = create_actor_token(demo_actor.id, expires_delta=timedelta(days=7))
            print(f"  - {demo_actor.role.value:<14} {demo_actor.email}\n    {token}")


if __name__ == "__main__":
    asyncio.run(seed_actors())
