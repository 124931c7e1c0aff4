"""Booking store services (CRUD only; swaps consume availability)."""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.bookings.models import Booking, BookingStatus, BookingType
from app.domain.common.errors import NotFoundError, ValidationError
from app.domain.common.types import generate_id, utcnow
from app.infra.db.repositories.booking_repo import BookingRepository
from app.infra.db.session import atomic

logger = logging.getLogger(__name__)


class BookingService:
    """Booking service for business logic."""

    def __init__(self, repo: BookingRepository, db: AsyncSession):
        self.repo = repo
        self.db = db

    async def create_booking(
        self,
        owner_id: str,
        type: BookingType,
        title: str,
        city: str,
        country: str,
        check_in_date: datetime,
        check_out_date: datetime,
        original_price: float,
        swap_value: float,
        description: Optional[str] = None,
    ) -> Booking:
        """Create a booking listing in the available state."""
        if check_out_date <= check_in_date:
            raise ValidationError("check_out_date must be after check_in_date")
        if original_price < 0 or swap_value < 0:
            raise ValidationError("Prices must not be negative")

        now = utcnow()
        booking = Booking(
            id=generate_id(),
            owner_id=owner_id,
            type=type,
            title=title,
            description=description,
            city=city,
            country=country,
            check_in_date=check_in_date,
            check_out_date=check_out_date,
            original_price=original_price,
            swap_value=swap_value,
            status=BookingStatus.AVAILABLE,
            created_at=now,
            updated_at=now,
        )
        async with atomic(self.db):
            booking = await self.repo.create(booking)
        logger.info("Booking %s created by %s", booking.id, owner_id)
        return booking

    async def get_booking(self, booking_id: str) -> Booking:
        booking = await self.repo.get_booking_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        return booking

    async def list_user_bookings(self, owner_id: str) -> List[Booking]:
        return await self.repo.list_by_owner(owner_id)

