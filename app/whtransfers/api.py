from fastapi import APIRouter

from app.whtransfers.core.config import settings
from app.whtransfers.routers.adjustments import router as adjustments_router
from app.whtransfers.routers.boxes import router as boxes_router
from app.whtransfers.routers.drafts import router as drafts_router
from app.whtransfers.routers.health import router as health_router
from app.whtransfers.routers.locations import router as locations_router
from app.whtransfers.routers.metrics import router as metrics_router
from app.whtransfers.routers.transfers import router as transfers_router
from app.whtransfers.routers.webhooks import router as webhooks_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(transfers_router, tags=["transfers"])
api_router.include_router(drafts_router, tags=["drafts"])
api_router.include_router(boxes_router, tags=["boxes"])
api_router.include_router(locations_router, tags=["locations"])
api_router.include_router(adjustments_router, tags=["adjustments"])
api_router.include_router(webhooks_router, tags=["webhooks"])
if settings.METRICS_ENABLED:
    api_router.include_router(metrics_router, tags=["ops"])
