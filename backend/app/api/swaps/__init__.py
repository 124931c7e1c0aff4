"""Swaps API: listings, targeting and auctions."""
from fastapi import APIRouter

from app.api.swaps import routes_auctions, routes_swaps, routes_targeting

router = APIRouter()

router.include_router(routes_targeting.router, prefix="/swaps", tags=["targeting"])
router.include_router(routes_swaps.router, prefix="/swaps", tags=["swaps"])
router.include_router(routes_auctions.router, prefix="/swaps", tags=["auctions"])
