"""API v1 router: all JSON endpoints under /api/v1 prefix."""

from fastapi import APIRouter

from .auth.routes import router as auth_router
from .consultations.routes import router as consultations_router
from .documents.routes import router as documents_router
from .messaging.routes import router as messaging_router
from .notifications.routes import router as notifications_router
from .scheduling.routes import router as jobs_router
from .spotlight.routes import router as spotlight_router

api_v1_router = APIRouter(prefix="/api/v1", tags=["api-v1"])

api_v1_router.include_router(auth_router)
api_v1_router.include_router(notifications_router)
api_v1_router.include_router(documents_router)
api_v1_router.include_router(consultations_router)
api_v1_router.include_router(messaging_router)
api_v1_router.include_router(spotlight_router)
api_v1_router.include_router(jobs_router)
