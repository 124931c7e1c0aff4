"""Booking repository implementation."""
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from app.domain.bookings.models import Booking, BookingStatus
from app.domain.common.types import utcnow
from app.infra.db.models.booking import BookingModel


class BookingRepository:
    """Booking repository interface."""

    async def create(self, booking: Booking) -> Booking:
        raise NotImplementedError

    async def get_booking_by_id(self, booking_id: str, for_update: bool = False) -> Optional[Booking]:
        raise NotImplementedError

    async def list_by_owner(self, owner_id: str) -> List[Booking]:
        raise NotImplementedError

    async def update_status(self, booking_id: str, status: BookingStatus) -> Booking:
        raise NotImplementedError


class BookingRepositoryImpl(BookingRepository):
    """Booking repository implementation."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, booking: Booking) -> Booking:
        model = BookingModel.from_entity(booking)
        self.session.add(model)
        await self.session.flush()
        return model.to_entity()

    async def get_booking_by_id(self, booking_id: str, for_update: bool = False) -> Optional[Booking]:
        stmt = select(BookingModel).where(BookingModel.id == booking_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def list_by_owner(self, owner_id: str) -> List[Booking]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.owner_id == owner_id)
            .order_by(BookingModel.check_in_date.asc())
        )
        return [m.to_entity() for m in result.scalars().all()]

    async def update_status(self, booking_id: str, status: BookingStatus) -> Booking:
        await self.session.execute(
            update(BookingModel)
            .where(BookingModel.id == booking_id)
            .values(status=status.value, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        await self.session.flush()
        booking = await self.get_booking_by_id(booking_id)
        if booking is None:
            raise ValueError(f"Booking {booking_id} not found")
        return booking
