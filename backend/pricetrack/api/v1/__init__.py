"""API v1 router aggregation."""

from fastapi import APIRouter

from pricetrack.api.v1.jobs import router as jobs_router
from pricetrack.api.v1.pricing import router as pricing_router
from pricetrack.api.v1.items import router as items_router
from pricetrack.api.v1.offers import router as offers_router

router = APIRouter(prefix="/api/v1")

router.include_router(jobs_router)
router.include_router(pricing_router)
router.include_router(items_router)
router.include_router(offers_router)
