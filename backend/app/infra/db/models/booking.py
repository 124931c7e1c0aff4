"""Booking database model."""
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Numeric, Index

from app.infra.db.base import Base


class BookingModel(Base):
    """Booking listing owned by one user."""

    __tablename__ = "bookings"

    id = Column(String, primary_key=True)
    owner_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String, nullable=False)  # hotel | flight | rental | event
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    city = Column(String, nullable=False)
    country = Column(String, nullable=False)
    check_in_date = Column(DateTime, nullable=False)
    check_out_date = Column(DateTime, nullable=False)
    original_price = Column(Numeric(12, 2, asdecimal=False), nullable=False)
    swap_value = Column(Numeric(12, 2, asdecimal=False), nullable=False)
    status = Column(String, nullable=False, default="available")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_bookings_owner_id", "owner_id"),
        Index("ix_bookings_check_in_date", "check_in_date"),
    )

    def to_entity(self):
        """Convert to domain entity."""
        from app.domain.bookings.models import Booking, BookingStatus, BookingType
        return Booking(
            id=self.id,
            owner_id=self.owner_id,
            type=BookingType(self.type),
            title=self.title,
            description=self.description,
            city=self.city,
            country=self.country,
            check_in_date=self.check_in_date,
            check_out_date=self.check_out_date,
            original_price=self.original_price,
            swap_value=self.swap_value,
            status=BookingStatus(self.status),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_entity(cls, entity):
        """Create from domain entity."""
        return cls(
            id=entity.id,
            owner_id=entity.owner_id,
            type=entity.type.value,
            title=entity.title,
            description=entity.description,
            city=entity.city,
            country=entity.country,
            check_in_date=entity.check_in_date,
            check_out_date=entity.check_out_date,
            original_price=entity.original_price,
            swap_value=entity.swap_value,
            status=entity.status.value,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )
