"""Swap domain models."""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union


class SwapStatus(str, Enum):
    """Swap lifecycle status."""
    ACTIVE = "active"
    TARGETING = "targeting"
    PROPOSAL_PENDING = "proposal_pending"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


# Terminal statuses free the (owner, booking) slot for a new swap.
TERMINAL_SWAP_STATUSES = frozenset({SwapStatus.COMPLETED, SwapStatus.CANCELLED, SwapStatus.EXPIRED})
# Swaps in these statuses can neither target nor be targeted.
CLOSED_SWAP_STATUSES = TERMINAL_SWAP_STATUSES | {SwapStatus.ACCEPTED}
OPEN_SWAP_STATUSES = frozenset({SwapStatus.ACTIVE, SwapStatus.TARGETING, SwapStatus.PROPOSAL_PENDING})


class AcceptanceStrategyType(str, Enum):
    FIRST_MATCH = "first_match"
    AUCTION = "auction"


@dataclass(frozen=True)
class FirstMatchStrategy:
    """First pending proposal blocks others until it is accepted or rejected."""

    @property
    def type(self) -> AcceptanceStrategyType:
        return AcceptanceStrategyType.FIRST_MATCH

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value}


@dataclass(frozen=True)
class AuctionStrategy:
    """Collect proposals until auction_end_date, then pick a winner."""
    auction_end_date: datetime
    auto_select_after_hours: Optional[int] = None

    @property
    def type(self) -> AcceptanceStrategyType:
        return AcceptanceStrategyType.AUCTION

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "auction_end_date": self.auction_end_date.isoformat(),
            "auto_select_after_hours": self.auto_select_after_hours,
        }


AcceptanceStrategy = Union[FirstMatchStrategy, AuctionStrategy]


def strategy_from_dict(data: Optional[dict[str, Any]]) -> AcceptanceStrategy:
    """Parse the persisted tagged-union form; anything unrecognised is first_match."""
    if data and data.get("type") == AcceptanceStrategyType.AUCTION.value:
        end = data["auction_end_date"]
        return AuctionStrategy(
            auction_end_date=datetime.fromisoformat(end) if isinstance(end, str) else end,
            auto_select_after_hours=data.get("auto_select_after_hours"),
        )
    return FirstMatchStrategy()


@dataclass(frozen=True)
class PaymentTypes:
    """Which proposal kinds a swap accepts."""
    booking_exchange: bool = True
    cash_payment: bool = False
    minimum_cash_amount: Optional[float] = None
    preferred_cash_amount: Optional[float] = None


@dataclass
class Swap:
    """Swap listing wrapping exactly one booking."""
    id: str
    source_booking_id: str
    owner_id: str
    status: SwapStatus
    acceptance_strategy: AcceptanceStrategy
    payment_types: PaymentTypes
    created_at: datetime
    updated_at: datetime
    description: Optional[str] = None

    @property
    def is_auction(self) -> bool:
        return isinstance(self.acceptance_strategy, AuctionStrategy)

    @property
    def is_closed(self) -> bool:
        return self.status in CLOSED_SWAP_STATUSES


class AuctionStatus(str, Enum):
    ACTIVE = "active"
    ENDED = "ended"
    RESOLVED = "resolved"
    CONVERTED = "converted"
    CANCELLED = "cancelled"


@dataclass
class Auction:
    """Auction window attached to an auction-mode swap."""
    id: str
    swap_id: str
    owner_id: str
    status: AuctionStatus
    end_date: datetime
    auto_select_after_hours: Optional[int]
    created_at: datetime
    updated_at: datetime
    winning_proposal_id: Optional[str] = None
    auto_selected: bool = False
    ended_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    def accepts_proposals(self, now: datetime) -> bool:
        return self.status == AuctionStatus.ACTIVE and self.end_date > now


@dataclass
class AuctionAvailability:
    """Whether a booking can be listed in auction mode, and until when."""
    booking_id: str
    allowed: bool
    check_in_date: datetime
    latest_end_date: Optional[datetime]
    reason: Optional[str] = None
