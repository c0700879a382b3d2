"""
Dashboard API Endpoints.

Counts are computed from the caller's visible packages on every request.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from courier_backend.app.db.session import get_db
from courier_backend.app.core.dependencies import get_current_actor
from courier_backend.app.models.actor import Actor
from courier_backend.app.schemas.analytics import DashboardSummary, DashboardView
from courier_backend.app.services.analytics import AnalyticsService, dashboard_view

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/summary", response_model=DashboardSummary)
async def get_summary(
    current_actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Package counts, active packages and delivered revenue for the caller's scope."""
    return await AnalyticsService.get_summary(db, current_actor)


@router.get("/view", response_model=DashboardView)
async def get_view(current_actor: Actor = Depends(get_current_actor)):
    """Which dashboard a client should open for the caller's role."""
    return dashboard_view(current_actor.role)
