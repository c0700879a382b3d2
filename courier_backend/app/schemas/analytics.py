"""
Dashboard Schemas.
"""

from pydantic import BaseModel
from typing import Dict, Optional


class DashboardSummary(BaseModel):
    """Package counts and revenue over the caller's visible scope."""
    role: Optional[str]
    total_packages: int
    status_counts: Dict[str, int]
    active_packages: int
    delivered_revenue: float
    driver_count: Optional[int] = None
    active_driver_count: Optional[int] = None


class DashboardView(BaseModel):
    """Where a client should land for the caller's role."""
    role: Optional[str]
    view: str
