"""
Driver API Endpoints.

A driver's working view: the route of open packages and past deliveries.
Status changes go through the package endpoints.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from courier_backend.app.db.session import get_db
from courier_backend.app.core.guards import require_role
from courier_backend.app.models.actor import Actor
from courier_backend.app.models.enums import ActorRole
from courier_backend.app.schemas.package import PackageResponse
from courier_backend.app.services import package_queries

router = APIRouter(prefix="/driver", tags=["Driver"])


@router.get("/route", response_model=List[PackageResponse])
async def get_route(
    driver: Actor = Depends(require_role([ActorRole.DRIVER])),
    db: AsyncSession = Depends(get_db)
):
    """
    Open packages assigned to the driver, in visit order.

    Express packages come first, then the oldest.
    """
    packages = await package_queries.driver_route(db, driver)
    return [PackageResponse.model_validate(p) for p in packages]


@router.get("/deliveries/history", response_model=List[PackageResponse])
async def get_delivery_history(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    driver: Actor = Depends(require_role([ActorRole.DRIVER])),
    db: AsyncSession = Depends(get_db)
):
    """Packages the driver has delivered, most recent first."""
    packages = await package_queries.driver_delivery_history(db, driver, skip=skip, limit=limit)
    return [PackageResponse.model_validate(p) for p in packages]
