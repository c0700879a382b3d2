"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from courier_backend.app.api.v1.endpoints import (
    auth, packages, driver, courier_admin, admin,
    notifications, dashboard, payments
)

router = APIRouter()

# Session
router.include_router(auth.router)

# Package lifecycle
router.include_router(packages.router)
router.include_router(payments.router)

# Role workspaces
router.include_router(driver.router)
router.include_router(courier_admin.router)
router.include_router(admin.router)

# Read-side projections and notifications
router.include_router(dashboard.router)
router.include_router(notifications.router)
