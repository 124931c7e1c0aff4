"""Auction read models."""
from dataclasses import dataclass, field
from typing import Optional

from app.domain.proposals.models import Proposal
from app.domain.swaps.models import Auction


@dataclass
class ProposalComparison:
    """Pending proposals of an auction, ranked for the owner."""
    auction: Auction
    cash_proposals: list[Proposal] = field(default_factory=list)
    booking_proposals: list[Proposal] = field(default_factory=list)
    recommended_proposal_id: Optional[str] = None

    @property
    def highest_cash_offer(self) -> Optional[float]:
        return self.cash_proposals[0].cash_amount if self.cash_proposals else None


@dataclass
class SweepReport:
    """What one sweep pass changed."""
    ended_auction_ids: list[str] = field(default_factory=list)
    resolved_auction_ids: list[str] = field(default_factory=list)
    converted_auction_ids: list[str] = field(default_factory=list)
    expired_swap_ids: list[str] = field(default_factory=list)
    failures: int = 0

    @property
    def changed(self) -> bool:
        return bool(
            self.ended_auction_ids
            or self.resolved_auction_ids
            or self.converted_auction_ids
            or self.expired_swap_ids
        )
