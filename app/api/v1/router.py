from fastapi import APIRouter

from app.api.v1.health import router as health_router
from app.api.v1.auth import router as auth_router
from app.api.v1.projects import router as projects_router
from app.api.v1.bids import router as bids_router
from app.api.v1.moderation import router as moderation_router
from app.api.v1.notifications import router as notifications_router


v1_router = APIRouter()

# ------------------------------------------------------------------
# SYSTEM / CORE
# ------------------------------------------------------------------
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(auth_router, tags=["auth"])

# ------------------------------------------------------------------
# MARKETPLACE
# ------------------------------------------------------------------
v1_router.include_router(projects_router, tags=["projects"])
v1_router.include_router(bids_router, tags=["bids"])

# ------------------------------------------------------------------
# MODERATION / NOTIFICATIONS
# ------------------------------------------------------------------
v1_router.include_router(moderation_router, tags=["moderation"])
v1_router.include_router(notifications_router, tags=["notifications"])
