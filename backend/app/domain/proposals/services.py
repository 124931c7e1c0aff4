"""Proposal lifecycle: accept, reject, and the shared close/refresh steps.

Targeting, swap and auction services reuse ``close_proposal``,
``cancel_outgoing``, ``cancel_incoming`` and ``refresh_swap_status`` so every
path that ends a proposal also ends its relation, refunds its escrow and
writes history the same way.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.bookings.models import BookingStatus
from app.domain.common.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    TargetingError,
    TargetingErrorCode,
)
from app.domain.common.types import utcnow
from app.domain.proposals.models import AcceptanceResult, Proposal, ProposalStatus, ProposalType
from app.domain.swaps.models import AuctionStatus, OPEN_SWAP_STATUSES, SwapStatus
from app.domain.targeting.models import TargetingAction, TargetingHistoryEntry, TargetingStatus
from app.infra.db.repositories.booking_repo import BookingRepository
from app.infra.db.repositories.proposal_repo import ProposalRepository
from app.infra.db.repositories.swap_repo import SwapRepository
from app.infra.db.repositories.targeting_repo import TargetingRepository
from app.infra.db.session import atomic
from app.infra.vendors.payment_client import PaymentGateway
from app.services.after_commit import AfterCommit
from app.services.ledger_service import LedgerRecorder
from app.services.notification_service import SwapNotifier

logger = logging.getLogger(__name__)

_RELATION_STATUS_FOR = {
    ProposalStatus.REJECTED: TargetingStatus.REJECTED,
    ProposalStatus.CANCELLED: TargetingStatus.CANCELLED,
}

SIBLING_REJECTION_REASON = "Another proposal was accepted"
SWAP_UNAVAILABLE_REASON = "The swap is no longer available"


class ProposalService:
    """Proposal service for business logic."""

    def __init__(
        self,
        swaps: SwapRepository,
        proposals: ProposalRepository,
        targeting: TargetingRepository,
        bookings: BookingRepository,
        db: AsyncSession,
        *,
        payment: PaymentGateway,
        notifier: SwapNotifier,
        ledger: LedgerRecorder,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.swaps = swaps
        self.proposals = proposals
        self.targeting = targeting
        self.bookings = bookings
        self.db = db
        self.payment = payment
        self.notifier = notifier
        self.ledger = ledger
        self.clock = clock

    # Shared steps (run inside the caller's transaction)

    async def refresh_swap_status(self, swap_id: str) -> Optional[SwapStatus]:
        """Recompute an open swap's status: targeting > proposal_pending > active.

        Accepted and terminal swaps are left as they are.
        """
        swap = await self.swaps.get(swap_id)
        if swap is None:
            return None
        if swap.status not in OPEN_SWAP_STATUSES:
            return swap.status
        if await self.targeting.get_active_for_source(swap_id) is not None:
            status = SwapStatus.TARGETING
        elif await self.proposals.count_pending_for_target(swap_id) > 0:
            status = SwapStatus.PROPOSAL_PENDING
        else:
            status = SwapStatus.ACTIVE
        if status != swap.status:
            await self.swaps.set_status(swap_id, status, only_from=OPEN_SWAP_STATUSES)
        return status

    async def close_proposal(
        self,
        proposal: Proposal,
        status: ProposalStatus,
        *,
        reason: str,
        actor_id: Optional[str],
        action: TargetingAction,
        effects: AfterCommit,
    ) -> bool:
        """End a pending proposal with its relation and history entry.

        The escrow refund is queued on ``effects`` so the gateway only hears
        about it once the transaction has committed. Returns False when the
        proposal had already left pending.
        """
        values = {"rejection_reason": reason} if status == ProposalStatus.REJECTED else {}
        if not await self.proposals.transition(proposal.id, status, **values):
            return False
        relation = await self.targeting.get_by_proposal(proposal.id)
        if relation is not None and relation.status == TargetingStatus.ACTIVE:
            await self.targeting.set_status(relation.id, _RELATION_STATUS_FOR[status])
            await self.targeting.add_history(
                TargetingHistoryEntry.for_relation(relation, action, self.clock(), actor_id, reason=reason)
            )
        if proposal.escrow_id:
            effects.add(self.payment.refund_escrow, proposal.escrow_id, reason)
        return True

    async def cancel_outgoing(
        self,
        swap_id: str,
        *,
        reason: str,
        actor_id: Optional[str],
        effects: AfterCommit,
        touched: Set[str],
    ) -> Optional[str]:
        """Withdraw the swap's own active target. Returns the proposal id withdrawn."""
        relation = await self.targeting.get_active_for_source(swap_id)
        if relation is None:
            return None
        proposal = await self.proposals.get(relation.proposal_id, for_update=True)
        if proposal is not None and proposal.status == ProposalStatus.PENDING:
            await self.close_proposal(
                proposal,
                ProposalStatus.CANCELLED,
                reason=reason,
                actor_id=actor_id,
                action=TargetingAction.CANCELLED,
                effects=effects,
            )
            target = await self.swaps.get(relation.target_swap_id)
            if target is not None:
                effects.add(self.notifier.proposal_cancelled, target.owner_id, proposal, reason)
        else:
            await self.targeting.set_status(relation.id, TargetingStatus.CANCELLED)
            await self.targeting.add_history(
                TargetingHistoryEntry.for_relation(
                    relation, TargetingAction.CANCELLED, self.clock(), actor_id, reason=reason
                )
            )
        touched.add(relation.target_swap_id)
        return relation.proposal_id

    async def cancel_incoming(
        self,
        swap_id: str,
        *,
        status: ProposalStatus,
        reason: str,
        actor_id: Optional[str],
        effects: AfterCommit,
        touched: Set[str],
    ) -> List[str]:
        """Close every pending proposal against the swap and tell each proposer."""
        action = TargetingAction.REJECTED if status == ProposalStatus.REJECTED else TargetingAction.CANCELLED
        closed: List[str] = []
        for other in await self.proposals.list_for_target(swap_id, ProposalStatus.PENDING):
            if await self.close_proposal(
                other, status, reason=reason, actor_id=actor_id, action=action, effects=effects
            ):
                closed.append(other.id)
                touched.add(other.source_swap_id)
                effects.add(self.notifier.proposal_rejected, other.proposer_id, other, reason)
        return closed

    async def close_auction(self, swap_id: str) -> bool:
        auction = await self.swaps.get_auction_by_swap(swap_id, for_update=True)
        if auction is None:
            return False
        return await self.swaps.transition_auction(
            auction.id,
            AuctionStatus.CANCELLED,
            only_from=(AuctionStatus.ACTIVE, AuctionStatus.ENDED),
        )

    async def release_swap(
        self,
        swap_id: str,
        *,
        reason: str,
        actor_id: Optional[str],
        effects: AfterCommit,
        touched: Set[str],
    ) -> None:
        """Withdraw everything a closing swap is part of: its target, incoming proposals, auction."""
        await self.cancel_outgoing(swap_id, reason=reason, actor_id=actor_id, effects=effects, touched=touched)
        await self.cancel_incoming(
            swap_id,
            status=ProposalStatus.CANCELLED,
            reason=reason,
            actor_id=actor_id,
            effects=effects,
            touched=touched,
        )
        await self.close_auction(swap_id)

    # Operations

    async def get_proposal(self, proposal_id: str) -> Proposal:
        proposal = await self.proposals.get(proposal_id)
        if proposal is None:
            raise NotFoundError("Proposal", proposal_id)
        return proposal

    async def list_proposals_for_swap(
        self, swap_id: str, owner_id: str, status: Optional[ProposalStatus] = None
    ) -> List[Proposal]:
        """Proposals received by a swap; visible to its owner only."""
        swap = await self.swaps.get(swap_id)
        if swap is None:
            raise TargetingError(TargetingErrorCode.SWAP_NOT_FOUND)
        if swap.owner_id != owner_id:
            raise AuthorizationError("Only the swap owner can list its proposals")
        return await self.proposals.list_for_target(swap_id, status)

    async def _load_locked(self, proposal_id: str, owner_id: str):
        """Lock both swaps (id order), then the proposal, and check the caller owns the target."""
        snapshot = await self.proposals.get(proposal_id)
        if snapshot is None:
            raise NotFoundError("Proposal", proposal_id)
        locked = await self.swaps.lock_many([snapshot.target_swap_id, snapshot.source_swap_id])
        proposal = await self.proposals.get(proposal_id, for_update=True)
        target = locked.get(snapshot.target_swap_id)
        if target is None:
            raise TargetingError(TargetingErrorCode.SWAP_NOT_FOUND)
        if target.owner_id != owner_id:
            raise AuthorizationError("Only the owner of the target swap can respond to this proposal")
        if proposal.status != ProposalStatus.PENDING:
            raise ConflictError(f"Proposal is already {proposal.status.value}", code="PROPOSAL_NOT_PENDING")
        return proposal, target, locked.get(snapshot.source_swap_id)

    async def accept_proposal(
        self, proposal_id: str, owner_id: str, *, auto_selected: bool = False
    ) -> AcceptanceResult:
        """
        Accept a pending proposal.

        Rejects sibling pending proposals, moves both bookings in progress,
        resolves an auction if the target runs one, and marks the relation
        accepted. A proposal that is no longer pending raises ConflictError
        (PROPOSAL_NOT_PENDING); it is never transitioned twice.
        """
        effects = AfterCommit()
        async with atomic(self.db):
            proposal, target, source = await self._load_locked(proposal_id, owner_id)
            if target.is_closed:
                raise TargetingError(TargetingErrorCode.TARGET_SWAP_UNAVAILABLE)

            auction = await self.swaps.get_auction_by_swap(target.id, for_update=True) if target.is_auction else None
            if auction is not None and auction.status not in (AuctionStatus.ACTIVE, AuctionStatus.ENDED):
                raise ConflictError(f"Auction is already {auction.status.value}", code="AUCTION_CLOSED")

            now = self.clock()
            if not await self.proposals.transition(proposal.id, ProposalStatus.ACCEPTED):
                raise ConflictError("Proposal is no longer pending", code="PROPOSAL_NOT_PENDING")
            proposal.status = ProposalStatus.ACCEPTED

            relation = await self.targeting.get_by_proposal(proposal.id)
            if relation is not None and relation.status == TargetingStatus.ACTIVE:
                await self.targeting.set_status(relation.id, TargetingStatus.ACCEPTED)
                await self.targeting.add_history(
                    TargetingHistoryEntry.for_relation(
                        relation, TargetingAction.ACCEPTED, now, owner_id, auto_selected=auto_selected
                    )
                )

            result = AcceptanceResult(
                proposal=proposal,
                target_swap_id=target.id,
                source_swap_id=proposal.source_swap_id,
                auction_id=auction.id if auction else None,
            )
            touched: Set[str] = set()
            result.rejected_proposal_ids = await self.cancel_incoming(
                target.id,
                status=ProposalStatus.REJECTED,
                reason=SIBLING_REJECTION_REASON,
                actor_id=owner_id,
                effects=effects,
                touched=touched,
            )
            await self.cancel_outgoing(
                target.id, reason=SWAP_UNAVAILABLE_REASON, actor_id=owner_id, effects=effects, touched=touched
            )
            await self.swaps.set_status(target.id, SwapStatus.ACCEPTED)

            if proposal.type == ProposalType.CASH:
                await self.bookings.update_status(target.source_booking_id, BookingStatus.SALE_IN_PROGRESS)
                if proposal.escrow_id:
                    effects.add(self.payment.release_escrow, proposal.escrow_id)
                # The proposer offered money, not their booking: their swap goes back to the pool
                touched.add(proposal.source_swap_id)
            else:
                await self.bookings.update_status(target.source_booking_id, BookingStatus.SWAP_IN_PROGRESS)
                if source is not None:
                    result.cancelled_proposal_ids = await self.cancel_incoming(
                        source.id,
                        status=ProposalStatus.CANCELLED,
                        reason=SWAP_UNAVAILABLE_REASON,
                        actor_id=owner_id,
                        effects=effects,
                        touched=touched,
                    )
                    await self.close_auction(source.id)
                    await self.swaps.set_status(source.id, SwapStatus.ACCEPTED)
                    await self.bookings.update_status(source.source_booking_id, BookingStatus.SWAP_IN_PROGRESS)

            if auction is not None:
                await self.swaps.transition_auction(
                    auction.id,
                    AuctionStatus.RESOLVED,
                    only_from=(AuctionStatus.ACTIVE, AuctionStatus.ENDED),
                    winning_proposal_id=proposal.id,
                    auto_selected=auto_selected,
                    ended_at=auction.ended_at or now,
                    resolved_at=now,
                )

            for swap_id in touched:
                await self.refresh_swap_status(swap_id)

            effects.add(self.notifier.proposal_accepted, proposal.proposer_id, proposal)
            effects.add(
                self.ledger.record,
                "proposal_accepted",
                {
                    "proposal_id": proposal.id,
                    "target_swap_id": target.id,
                    "source_swap_id": proposal.source_swap_id,
                    "proposal_type": proposal.type.value,
                    "auto_selected": auto_selected,
                },
            )

        logger.info(
            "Proposal %s accepted on swap %s (rejected %d siblings, auto=%s)",
            proposal.id, target.id, len(result.rejected_proposal_ids), auto_selected,
        )
        await effects.run()
        return result

    async def reject_proposal(self, proposal_id: str, owner_id: str, reason: Optional[str] = None) -> Proposal:
        """Reject a pending proposal; the proposer's swap becomes untargeted. Auctions keep running."""
        effects = AfterCommit()
        reason = (reason or "").strip() or "Declined by owner"
        async with atomic(self.db):
            proposal, target, _source = await self._load_locked(proposal_id, owner_id)
            closed = await self.close_proposal(
                proposal,
                ProposalStatus.REJECTED,
                reason=reason,
                actor_id=owner_id,
                action=TargetingAction.REJECTED,
                effects=effects,
            )
            if not closed:
                raise ConflictError("Proposal is no longer pending", code="PROPOSAL_NOT_PENDING")
            await self.refresh_swap_status(proposal.source_swap_id)
            await self.refresh_swap_status(target.id)
            proposal.status = ProposalStatus.REJECTED
            proposal.rejection_reason = reason

            effects.add(self.notifier.proposal_rejected, proposal.proposer_id, proposal, reason)
            effects.add(
                self.ledger.record,
                "proposal_rejected",
                {"proposal_id": proposal.id, "target_swap_id": target.id, "reason": reason},
            )

        logger.info("Proposal %s rejected on swap %s", proposal.id, target.id)
        await effects.run()
        return proposal
