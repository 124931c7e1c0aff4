"""Targeting eligibility rules.

Pure functions over already-loaded state. ``TargetingService`` uses the same
``evaluate_targeting`` for the read-side checks (validate / can-target) and
for the mutating path, which raises on the first blocking restriction.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from app.domain.common.errors import TargetingErrorCode as Code, default_targeting_message
from app.domain.proposals.models import ProposalType
from app.domain.swaps.models import Auction, Swap
from app.domain.targeting.models import (
    AuctionInfo,
    RestrictionSeverity,
    TargetingRestriction,
    TargetingValidation,
)

CIRCULAR_TARGETING_WARNING = "The target swap already targets your swap, directly or through a chain"


@dataclass
class TargetingContext:
    """Everything the rules need, loaded by the caller."""
    user_id: str
    source: Optional[Swap]
    target: Optional[Swap]
    now: datetime
    target_auction: Optional[Auction] = None
    pending_on_target: int = 0
    current_target_id: Optional[str] = None
    circular: bool = False
    proposal_type: ProposalType = ProposalType.BOOKING
    cash_amount: Optional[float] = None
    busy_threshold: int = 5


def _restriction(code: str, message: Optional[str] = None) -> TargetingRestriction:
    return TargetingRestriction(code=code, message=message or default_targeting_message(code))


def auction_info_for(ctx: TargetingContext) -> AuctionInfo:
    target = ctx.target
    if target is None or not target.is_auction:
        return AuctionInfo(
            is_auction=False,
            proposal_count=ctx.pending_on_target,
            can_receive_more_proposals=ctx.pending_on_target == 0,
        )
    auction = ctx.target_auction
    return AuctionInfo(
        is_auction=True,
        end_date=auction.end_date if auction else None,
        proposal_count=ctx.pending_on_target,
        can_receive_more_proposals=bool(auction and auction.accepts_proposals(ctx.now)),
    )


def _payment_restrictions(ctx: TargetingContext) -> list[TargetingRestriction]:
    payment = ctx.target.payment_types
    if ctx.proposal_type == ProposalType.BOOKING:
        if not payment.booking_exchange:
            return [_restriction(Code.PAYMENT_TYPE_NOT_ACCEPTED, "The target swap does not accept booking exchanges")]
        return []
    if not payment.cash_payment:
        return [_restriction(Code.PAYMENT_TYPE_NOT_ACCEPTED, "The target swap does not accept cash offers")]
    minimum = payment.minimum_cash_amount
    if minimum is not None and (ctx.cash_amount or 0) < minimum:
        return [_restriction(Code.CASH_OFFER_BELOW_MINIMUM, f"Cash offer must be at least {minimum:g}")]
    return []


def evaluate_targeting(ctx: TargetingContext) -> TargetingValidation:
    """Collect every restriction that applies; ``can_target`` is True when none block."""
    if ctx.source is None:
        return TargetingValidation(False, [_restriction(Code.SWAP_NOT_FOUND, "Source swap not found")])
    if ctx.target is None:
        return TargetingValidation(False, [_restriction(Code.SWAP_NOT_FOUND, "Target swap not found")])

    source, target = ctx.source, ctx.target
    restrictions: list[TargetingRestriction] = []
    warnings: list[str] = []

    if source.id == target.id or target.owner_id == ctx.user_id:
        restrictions.append(_restriction(Code.CANNOT_TARGET_OWN_SWAP))
    if source.is_closed:
        restrictions.append(
            _restriction(Code.SOURCE_SWAP_UNAVAILABLE, f"Your swap is {source.status.value} and cannot target")
        )
    if target.is_closed:
        restrictions.append(
            _restriction(Code.TARGET_SWAP_UNAVAILABLE, f"Target swap is {target.status.value}")
        )
    if ctx.current_target_id == target.id:
        restrictions.append(_restriction(Code.ALREADY_TARGETED))

    info = auction_info_for(ctx)
    if target.is_auction:
        if not info.can_receive_more_proposals:
            restrictions.append(_restriction(Code.AUCTION_ENDED))
        elif ctx.pending_on_target > ctx.busy_threshold:
            warnings.append(
                f"This auction already has {ctx.pending_on_target} proposals; competition is high"
            )
    elif ctx.pending_on_target > 0:
        restrictions.append(_restriction(Code.PROPOSAL_PENDING))

    restrictions.extend(_payment_restrictions(ctx))

    if ctx.circular:
        warnings.append(CIRCULAR_TARGETING_WARNING)
        restrictions.append(
            TargetingRestriction(Code.CIRCULAR_TARGETING, CIRCULAR_TARGETING_WARNING, RestrictionSeverity.WARNING)
        )

    blocking = any(r.severity == RestrictionSeverity.ERROR for r in restrictions)
    return TargetingValidation(
        can_target=not blocking,
        restrictions=restrictions,
        warnings=warnings,
        auction_info=info,
    )
