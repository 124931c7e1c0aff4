"""
Auction timing, winner selection and the periodic sweep.

State machine per auction: active -> ended (end date reached) -> resolved
(winner accepted, manually or automatically) or converted (no proposals, the
swap falls back to first_match). Every transition is a conditional update, so
overlapping sweeps are harmless.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.auctions.models import ProposalComparison, SweepReport
from app.domain.common.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from app.domain.common.types import utcnow
from app.domain.proposals.models import AcceptanceResult, Proposal, ProposalStatus
from app.domain.proposals.services import ProposalService
from app.domain.swaps.models import (
    Auction,
    AuctionAvailability,
    AuctionStatus,
    FirstMatchStrategy,
    OPEN_SWAP_STATUSES,
    Swap,
    SwapStatus,
)
from app.infra.db.repositories.booking_repo import BookingRepository
from app.infra.db.repositories.proposal_repo import ProposalRepository
from app.infra.db.repositories.swap_repo import SwapRepository
from app.infra.db.repositories.targeting_repo import TargetingRepository
from app.infra.db.session import atomic
from app.services.after_commit import AfterCommit
from app.services.ledger_service import LedgerRecorder
from app.services.notification_service import SwapNotifier

logger = logging.getLogger(__name__)

EXPIRE_REASON = "The swap expired before the booking date"


def latest_auction_end(check_in_date: datetime, min_lead_days: int) -> datetime:
    return check_in_date - timedelta(days=min_lead_days)


def validate_auction_timing(
    check_in_date: datetime,
    end_date: datetime,
    auto_select_after_hours: Optional[int],
    now: datetime,
    min_lead_days: int = 7,
) -> None:
    """
    Check an auction window against the booking it sells.

    Raises:
        ValidationError: AUCTION_END_IN_PAST, LAST_MINUTE_RESTRICTION (event
            closer than min_lead_days), AUCTION_END_TOO_LATE (end inside the
            lead window) or INVALID_AUTO_SELECT
    """
    if end_date <= now:
        raise ValidationError("Auction end date must be in the future", code="AUCTION_END_IN_PAST")
    if check_in_date - now < timedelta(days=min_lead_days):
        raise ValidationError(
            f"Auctions are not allowed for events less than {min_lead_days} days away",
            code="LAST_MINUTE_RESTRICTION",
        )
    latest = latest_auction_end(check_in_date, min_lead_days)
    if end_date > latest:
        raise ValidationError(
            f"Auction must end at least {min_lead_days} days before check-in (by {latest.isoformat()})",
            code="AUCTION_END_TOO_LATE",
        )
    if auto_select_after_hours is not None and auto_select_after_hours < 1:
        raise ValidationError("auto_select_after_hours must be at least 1", code="INVALID_AUTO_SELECT")


def rank_proposals(proposals: Iterable[Proposal]) -> tuple[list[Proposal], list[Proposal]]:
    """Cash offers highest first, booking offers oldest first; ties go to the earliest submission."""
    cash, booking = [], []
    for p in proposals:
        (cash if p.cash_amount is not None else booking).append(p)
    cash.sort(key=lambda p: (-p.cash_amount, p.submitted_at, p.id))
    booking.sort(key=lambda p: (p.submitted_at, p.id))
    return cash, booking


def pick_auto_winner(proposals: Iterable[Proposal]) -> Optional[Proposal]:
    cash, booking = rank_proposals(proposals)
    if cash:
        return cash[0]
    return booking[0] if booking else None


class AuctionService:
    """Auction service for business logic."""

    def __init__(
        self,
        swaps: SwapRepository,
        proposals: ProposalRepository,
        bookings: BookingRepository,
        targeting: TargetingRepository,
        db: AsyncSession,
        *,
        proposal_service: ProposalService,
        notifier: SwapNotifier,
        ledger: LedgerRecorder,
        clock: Callable[[], datetime] = utcnow,
        min_lead_days: int = 7,
    ):
        self.swaps = swaps
        self.proposals = proposals
        self.bookings = bookings
        self.targeting = targeting
        self.db = db
        self.proposal_service = proposal_service
        self.notifier = notifier
        self.ledger = ledger
        self.clock = clock
        self.min_lead_days = min_lead_days

    async def check_auction_availability(self, booking_id: str) -> AuctionAvailability:
        booking = await self.bookings.get_booking_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        now = self.clock()
        latest = latest_auction_end(booking.check_in_date, self.min_lead_days)
        if not booking.is_available:
            return AuctionAvailability(
                booking.id, False, booking.check_in_date, None, f"Booking is {booking.status.value}"
            )
        if latest <= now:
            return AuctionAvailability(
                booking.id,
                False,
                booking.check_in_date,
                None,
                f"Auctions are not allowed for events less than {self.min_lead_days} days away",
            )
        return AuctionAvailability(booking.id, True, booking.check_in_date, latest)

    async def get_auction(self, swap_id: str) -> Auction:
        auction = await self.swaps.get_auction_by_swap(swap_id)
        if auction is None:
            raise NotFoundError("Auction", swap_id)
        return auction

    async def _owned_swap(self, swap_id: str, owner_id: str) -> Swap:
        swap = await self.swaps.get(swap_id)
        if swap is None:
            raise NotFoundError("Swap", swap_id)
        if swap.owner_id != owner_id:
            raise AuthorizationError("Only the swap owner can manage its auction")
        return swap

    async def compare_proposals(self, swap_id: str, owner_id: str) -> ProposalComparison:
        await self._owned_swap(swap_id, owner_id)
        auction = await self.get_auction(swap_id)
        cash, booking = rank_proposals(await self.proposals.list_for_target(swap_id, ProposalStatus.PENDING))
        recommended = cash[0] if cash else (booking[0] if booking else None)
        return ProposalComparison(
            auction=auction,
            cash_proposals=cash,
            booking_proposals=booking,
            recommended_proposal_id=recommended.id if recommended else None,
        )

    async def select_winner(self, swap_id: str, proposal_id: str, owner_id: str) -> AcceptanceResult:
        """Owner picks the winning proposal; the auction resolves even before its end date."""
        await self._owned_swap(swap_id, owner_id)
        await self.get_auction(swap_id)
        proposal = await self.proposals.get(proposal_id)
        if proposal is None:
            raise NotFoundError("Proposal", proposal_id)
        if proposal.target_swap_id != swap_id:
            raise ValidationError("Proposal does not belong to this auction", code="PROPOSAL_NOT_IN_AUCTION")
        return await self.proposal_service.accept_proposal(proposal_id, owner_id)

    # Sweep

    async def run_sweep(self, now: Optional[datetime] = None) -> SweepReport:
        """
        One idempotent pass: end due auctions, auto-resolve stale ended ones,
        expire swaps whose booking date has passed. Each item commits on its own.
        """
        now = now or self.clock()
        report = SweepReport()

        for auction in await self.swaps.list_due_auctions(now):
            await self._guard(self._end_auction(auction, now, report), "end auction", auction.id, report)

        for auction in await self.swaps.list_unresolved_ended_auctions():
            if auction.auto_select_after_hours is None or auction.ended_at is None:
                continue
            if auction.ended_at + timedelta(hours=auction.auto_select_after_hours) > now:
                continue
            await self._guard(self._auto_resolve(auction, now, report), "auto-resolve auction", auction.id, report)

        for swap in await self.swaps.list_expirable(now, OPEN_SWAP_STATUSES):
            await self._guard(self._expire_swap(swap, report), "expire swap", swap.id, report)

        if report.changed or report.failures:
            logger.info(
                "Sweep: ended=%d resolved=%d converted=%d expired=%d failures=%d",
                len(report.ended_auction_ids),
                len(report.resolved_auction_ids),
                len(report.converted_auction_ids),
                len(report.expired_swap_ids),
                report.failures,
            )
        return report

    async def _guard(self, step, what: str, item_id: str, report: SweepReport) -> None:
        try:
            await step
        except ConflictError as e:
            # Someone else (owner or an overlapping sweep) moved it first
            logger.info("Sweep skipped %s %s: %s", what, item_id, e.message)
        except Exception as e:
            report.failures += 1
            logger.error("Sweep failed to %s %s: %s", what, item_id, e, exc_info=True)
            # The winner lookup in _auto_resolve reads outside atomic()
            await self.db.rollback()

    async def _convert(self, auction: Auction, now: datetime, effects: AfterCommit) -> bool:
        converted = await self.swaps.transition_auction(
            auction.id, AuctionStatus.CONVERTED, only_from=(AuctionStatus.ENDED,), resolved_at=now
        )
        if converted:
            await self.swaps.set_strategy(auction.swap_id, FirstMatchStrategy())
            effects.add(self.notifier.auction_converted, auction.owner_id, auction.swap_id)
            effects.add(self.ledger.record, "auction_converted", {"auction_id": auction.id, "swap_id": auction.swap_id})
        return converted

    async def _end_auction(self, auction: Auction, now: datetime, report: SweepReport) -> None:
        effects = AfterCommit()
        async with atomic(self.db):
            await self.swaps.lock_many([auction.swap_id])
            ended = await self.swaps.transition_auction(
                auction.id, AuctionStatus.ENDED, only_from=(AuctionStatus.ACTIVE,), ended_at=now
            )
            if ended:
                report.ended_auction_ids.append(auction.id)
                pending = await self.proposals.count_pending_for_target(auction.swap_id)
                # Empty auctions wait for the auto-select window before converting
                if pending:
                    effects.add(self.notifier.auction_ended, auction.owner_id, auction.swap_id, pending)
        await effects.run()

    async def _auto_resolve(self, auction: Auction, now: datetime, report: SweepReport) -> None:
        winner = pick_auto_winner(await self.proposals.list_for_target(auction.swap_id, ProposalStatus.PENDING))
        if winner is None:
            effects = AfterCommit()
            async with atomic(self.db):
                await self.swaps.lock_many([auction.swap_id])
                if await self._convert(auction, now, effects):
                    report.converted_auction_ids.append(auction.id)
            await effects.run()
            return
        await self.proposal_service.accept_proposal(winner.id, auction.owner_id, auto_selected=True)
        report.resolved_auction_ids.append(auction.id)
        logger.info("Auction %s auto-selected proposal %s", auction.id, winner.id)

    async def _expire_swap(self, swap: Swap, report: SweepReport) -> None:
        effects = AfterCommit()
        async with atomic(self.db):
            outgoing = await self.targeting.get_active_for_source(swap.id)
            locked = await self.swaps.lock_many([swap.id, outgoing.target_swap_id if outgoing else None])
            current = locked.get(swap.id)
            if current is not None and current.status in OPEN_SWAP_STATUSES:
                touched: set[str] = set()
                await self.proposal_service.release_swap(
                    swap.id, reason=EXPIRE_REASON, actor_id=None, effects=effects, touched=touched
                )
                await self.swaps.set_status(swap.id, SwapStatus.EXPIRED, only_from=OPEN_SWAP_STATUSES)
                touched.discard(swap.id)
                for other_id in touched:
                    await self.proposal_service.refresh_swap_status(other_id)
                report.expired_swap_ids.append(swap.id)
                effects.add(self.notifier.swap_expired, swap.owner_id, swap.id)
        await effects.run()
