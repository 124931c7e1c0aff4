"""Bookings API."""
from fastapi import APIRouter

from app.api.bookings import routes_bookings

router = APIRouter()

router.include_router(routes_bookings.router, prefix="/bookings", tags=["bookings"])
