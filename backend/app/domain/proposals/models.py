"""Proposal domain models."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union


class ProposalStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class ProposalType(str, Enum):
    BOOKING = "booking"
    CASH = "cash"


@dataclass(frozen=True)
class CashOffer:
    amount: float
    currency: str
    payment_method_id: str


@dataclass(frozen=True)
class BookingPayload:
    """Offer the proposer's own booking in exchange."""
    booking_id: str

    @property
    def type(self) -> ProposalType:
        return ProposalType.BOOKING

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "booking_id": self.booking_id}


@dataclass(frozen=True)
class CashPayload:
    """Offer cash, held in escrow until the swap settles."""
    cash_offer: CashOffer

    @property
    def type(self) -> ProposalType:
        return ProposalType.CASH

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "cash_offer": {
                "amount": self.cash_offer.amount,
                "currency": self.cash_offer.currency,
                "payment_method_id": self.cash_offer.payment_method_id,
            },
        }


ProposalPayload = Union[BookingPayload, CashPayload]


def payload_from_dict(data: dict[str, Any]) -> ProposalPayload:
    if data.get("type") == ProposalType.CASH.value:
        offer = data["cash_offer"]
        return CashPayload(
            CashOffer(
                amount=float(offer["amount"]),
                currency=offer["currency"],
                payment_method_id=offer["payment_method_id"],
            )
        )
    return BookingPayload(booking_id=data["booking_id"])


@dataclass
class Proposal:
    """A booking-for-booking or cash offer attached to a target swap."""
    id: str
    target_swap_id: str
    source_swap_id: str
    proposer_id: str
    payload: ProposalPayload
    status: ProposalStatus
    submitted_at: datetime
    updated_at: datetime
    message: Optional[str] = None
    conditions: list[str] = field(default_factory=list)
    escrow_id: Optional[str] = None
    responded_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    @property
    def type(self) -> ProposalType:
        return self.payload.type

    @property
    def cash_amount(self) -> Optional[float]:
        if isinstance(self.payload, CashPayload):
            return self.payload.cash_offer.amount
        return None


@dataclass
class AcceptanceResult:
    """Outcome of accepting a proposal."""
    proposal: Proposal
    target_swap_id: str
    source_swap_id: str
    rejected_proposal_ids: list[str] = field(default_factory=list)
    cancelled_proposal_ids: list[str] = field(default_factory=list)
    auction_id: Optional[str] = None
