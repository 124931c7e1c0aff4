"""Swap and auction database models."""
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Integer, Numeric, Text, Index, text

from app.infra.db.base import Base, JSONType

# Non-terminal swaps hold the (owner, booking) slot
_OPEN_SWAP = text("status NOT IN ('completed', 'cancelled', 'expired')")


class SwapModel(Base):
    """Swap listing wrapping one booking."""

    __tablename__ = "swaps"

    id = Column(String, primary_key=True)
    source_booking_id = Column(String, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    owner_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = Column(String, nullable=False, default="active")
    acceptance_strategy = Column(JSONType, nullable=False)  # {"type": "first_match"} | {"type": "auction", ...}
    accepts_booking_exchange = Column(Boolean, default=True, nullable=False)
    accepts_cash_payment = Column(Boolean, default=False, nullable=False)
    minimum_cash_amount = Column(Numeric(12, 2, asdecimal=False), nullable=True)
    preferred_cash_amount = Column(Numeric(12, 2, asdecimal=False), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index(
            "uq_swaps_owner_booking_open",
            "owner_id",
            "source_booking_id",
            unique=True,
            postgresql_where=_OPEN_SWAP,
            sqlite_where=_OPEN_SWAP,
        ),
        Index("ix_swaps_owner_id", "owner_id"),
        Index("ix_swaps_status", "status"),
    )

    def to_entity(self):
        """Convert to domain entity."""
        from app.domain.swaps.models import PaymentTypes, Swap, SwapStatus, strategy_from_dict
        return Swap(
            id=self.id,
            source_booking_id=self.source_booking_id,
            owner_id=self.owner_id,
            status=SwapStatus(self.status),
            acceptance_strategy=strategy_from_dict(self.acceptance_strategy),
            payment_types=PaymentTypes(
                booking_exchange=self.accepts_booking_exchange,
                cash_payment=self.accepts_cash_payment,
                minimum_cash_amount=self.minimum_cash_amount,
                preferred_cash_amount=self.preferred_cash_amount,
            ),
            description=self.description,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_entity(cls, entity):
        """Create from domain entity."""
        return cls(
            id=entity.id,
            source_booking_id=entity.source_booking_id,
            owner_id=entity.owner_id,
            status=entity.status.value,
            acceptance_strategy=entity.acceptance_strategy.to_dict(),
            accepts_booking_exchange=entity.payment_types.booking_exchange,
            accepts_cash_payment=entity.payment_types.cash_payment,
            minimum_cash_amount=entity.payment_types.minimum_cash_amount,
            preferred_cash_amount=entity.payment_types.preferred_cash_amount,
            description=entity.description,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )


class AuctionModel(Base):
    """Auction window for an auction-mode swap (one per swap)."""

    __tablename__ = "swap_auctions"

    id = Column(String, primary_key=True)
    swap_id = Column(String, ForeignKey("swaps.id", ondelete="CASCADE"), nullable=False, unique=True)
    owner_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = Column(String, nullable=False, default="active")
    end_date = Column(DateTime, nullable=False)
    auto_select_after_hours = Column(Integer, nullable=True)
    winning_proposal_id = Column(String, nullable=True)
    auto_selected = Column(Boolean, default=False, nullable=False)
    ended_at = Column(DateTime, nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_swap_auctions_status_end_date", "status", "end_date"),
    )

    def to_entity(self):
        """Convert to domain entity."""
        from app.domain.swaps.models import Auction, AuctionStatus
        return Auction(
            id=self.id,
            swap_id=self.swap_id,
            owner_id=self.owner_id,
            status=AuctionStatus(self.status),
            end_date=self.end_date,
            auto_select_after_hours=self.auto_select_after_hours,
            winning_proposal_id=self.winning_proposal_id,
            auto_selected=self.auto_selected,
            ended_at=self.ended_at,
            resolved_at=self.resolved_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_entity(cls, entity):
        """Create from domain entity."""
        return cls(
            id=entity.id,
            swap_id=entity.swap_id,
            owner_id=entity.owner_id,
            status=entity.status.value,
            end_date=entity.end_date,
            auto_select_after_hours=entity.auto_select_after_hours,
            winning_proposal_id=entity.winning_proposal_id,
            auto_selected=entity.auto_selected,
            ended_at=entity.ended_at,
            resolved_at=entity.resolved_at,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )
