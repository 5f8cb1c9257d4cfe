from fastapi import APIRouter

from .endpoints import admin, health, observability, redeem, stats

router = APIRouter()
router.include_router(health.router, tags=["Health"])
router.include_router(redeem.router)
router.include_router(admin.router)
router.include_router(stats.router)
router.include_router(observability.router)
