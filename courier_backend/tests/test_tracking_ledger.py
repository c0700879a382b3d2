"""
Tracking Ledger Tests.
"""

from datetime import datetime, timedelta

from courier_backend.app.models.enums import ActorRole
from courier_backend.app.models.package import Package
from courier_backend.app.models.package_enums import PackageStatus, PackageType
from courier_backend.app.services.tracking_ledger import TrackingLedger

T0 = datetime(2024, 5, 1, 9, 0, 0)


async def bare_package(db_session, sender):
    package = Package(
        tracking_code="LT1714554000000ABCD",
        sender_id=sender.id,
        recipient_name="R",
        recipient_phone="1",
        recipient_address="A",
        pickup_address="B",
        package_type=PackageType.STANDARD,
        weight_kg=1.0,
        declared_value=0.0,
        delivery_fee=12.0,
    )
    db_session.add(package)
    await db_session.commit()
    return package


async def test_empty_ledger_derives_pending(db_session, make_actor):
    sender = await make_actor(ActorRole.CUSTOMER)
    package = await bare_package(db_session, sender)

    assert await TrackingLedger.latest(db_session, package.id) is None
    assert await TrackingLedger.derived_status(db_session, package.id) == PackageStatus.PENDING
    assert [e async for e in TrackingLedger.history(db_session, package.id)] == []


async def test_history_ordered_by_time_then_insertion(db_session, make_actor):
    sender = await make_actor(ActorRole.CUSTOMER)
    package = await bare_package(db_session, sender)

    # Appended out of time order; two share a timestamp
    await TrackingLedger.append(db_session, package.id, PackageStatus.IN_TRANSIT, created_at=T0 + timedelta(minutes=5))
    await TrackingLedger.append(db_session, package.id, PackageStatus.PENDING, created_at=T0)
    await TrackingLedger.append(db_session, package.id, PackageStatus.PICKED_UP, created_at=T0 + timedelta(minutes=1))
    await TrackingLedger.append(db_session, package.id, PackageStatus.DELIVERED, created_at=T0 + timedelta(minutes=5))
    await db_session.commit()

    statuses = [e.status async for e in TrackingLedger.history(db_session, package.id)]
    assert statuses == [
        PackageStatus.PENDING,
        PackageStatus.PICKED_UP,
        PackageStatus.IN_TRANSIT,
        PackageStatus.DELIVERED,
    ]
    assert await TrackingLedger.derived_status(db_session, package.id) == PackageStatus.DELIVERED


async def test_history_is_scoped_to_package(db_session, make_actor):
    sender = await make_actor(ActorRole.CUSTOMER)
    package = await bare_package(db_session, sender)
    other = Package(
        tracking_code="LT1714554000000WXYZ", sender_id=sender.id, recipient_name="R", recipient_phone="1",
        recipient_address="A", pickup_address="B", weight_kg=1.0, delivery_fee=12.0,
    )
    db_session.add(other)
    await db_session.commit()

    await TrackingLedger.append(db_session, package.id, PackageStatus.PENDING, created_at=T0)
    await TrackingLedger.append(db_session, other.id, PackageStatus.PENDING, created_at=T0)
    await TrackingLedger.append(db_session, other.id, PackageStatus.CANCELLED, created_at=T0 + timedelta(minutes=1))
    await db_session.commit()

    assert len([e async for e in TrackingLedger.history(db_session, package.id)]) == 1
    assert await TrackingLedger.derived_status(db_session, other.id) == PackageStatus.CANCELLED
