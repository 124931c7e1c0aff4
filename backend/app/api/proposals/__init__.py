"""Proposals API."""
from fastapi import APIRouter

from app.api.proposals import routes_proposals

router = APIRouter()

router.include_router(routes_proposals.router, prefix="/proposals", tags=["proposals"])
