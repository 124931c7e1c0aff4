"""Targeting service: target, retarget and remove, plus the read-side checks."""
import logging
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.common.errors import (
    AuthorizationError,
    TargetingError,
    TargetingErrorCode as Code,
    ValidationError,
)
from app.domain.common.types import generate_id, utcnow
from app.domain.proposals.models import (
    BookingPayload,
    CashOffer,
    CashPayload,
    Proposal,
    ProposalStatus,
    ProposalType,
)
from app.domain.proposals.services import ProposalService
from app.domain.swaps.models import Swap
from app.domain.targeting.models import (
    TargetingAction,
    TargetingHistoryEntry,
    TargetingRelation,
    TargetingRestriction,
    TargetingResult,
    TargetingStatus,
    TargetingStatusView,
    TargetingValidation,
)
from app.domain.targeting.rules import TargetingContext, evaluate_targeting
from app.infra.db.repositories.proposal_repo import ProposalRepository
from app.infra.db.repositories.swap_repo import SwapRepository
from app.infra.db.repositories.targeting_repo import TargetingRepository
from app.infra.db.session import atomic
from app.infra.vendors.payment_client import PaymentGateway
from app.services.after_commit import AfterCommit
from app.services.ledger_service import LedgerRecorder
from app.services.notification_service import SwapNotifier

logger = logging.getLogger(__name__)

RETARGET_REASON = "Proposer retargeted to another swap"
REMOVE_REASON = "Proposer removed the target"


def _relation_id(relation: Optional[TargetingRelation]) -> Optional[str]:
    return relation.id if relation else None


class TargetingService:
    """Targeting service for business logic."""

    def __init__(
        self,
        swaps: SwapRepository,
        proposals: ProposalRepository,
        targeting: TargetingRepository,
        db: AsyncSession,
        *,
        proposal_service: ProposalService,
        payment: PaymentGateway,
        notifier: SwapNotifier,
        ledger: LedgerRecorder,
        clock: Callable[[], datetime] = utcnow,
        busy_threshold: int = 5,
    ):
        self.swaps = swaps
        self.proposals = proposals
        self.targeting = targeting
        self.db = db
        self.proposal_service = proposal_service
        self.payment = payment
        self.notifier = notifier
        self.ledger = ledger
        self.clock = clock
        self.busy_threshold = busy_threshold

    async def _context(
        self,
        user_id: str,
        source: Optional[Swap],
        target: Optional[Swap],
        *,
        proposal_type: ProposalType = ProposalType.BOOKING,
        cash_amount: Optional[float] = None,
    ) -> TargetingContext:
        ctx = TargetingContext(
            user_id=user_id,
            source=source,
            target=target,
            now=self.clock(),
            proposal_type=proposal_type,
            cash_amount=cash_amount,
            busy_threshold=self.busy_threshold,
        )
        if target is not None:
            ctx.pending_on_target = await self.proposals.count_pending_for_target(target.id)
            if target.is_auction:
                ctx.target_auction = await self.swaps.get_auction_by_swap(target.id)
        if source is not None:
            current = await self.targeting.get_active_for_source(source.id)
            ctx.current_target_id = current.target_swap_id if current else None
        if source is not None and target is not None and source.id != target.id:
            ctx.circular = await self.targeting.find_circular_targeting(source.id, target.id)
        return ctx

    # Read side

    async def validate_targeting(
        self,
        source_swap_id: str,
        target_swap_id: str,
        user_id: str,
        *,
        proposal_type: ProposalType = ProposalType.BOOKING,
        cash_amount: Optional[float] = None,
    ) -> TargetingValidation:
        """Evaluate every targeting rule without changing anything."""
        source = await self.swaps.get(source_swap_id)
        if source is not None and source.owner_id != user_id:
            raise AuthorizationError("You can only check targeting for your own swaps")
        target = await self.swaps.get(target_swap_id)
        ctx = await self._context(
            user_id, source, target, proposal_type=proposal_type, cash_amount=cash_amount
        )
        return evaluate_targeting(ctx)

    async def check_can_target(
        self, target_swap_id: str, user_id: str, source_swap_id: Optional[str] = None
    ) -> TargetingValidation:
        """
        Eligibility of the user against a target swap.

        With a source swap, that swap is checked. Without one, the user's open
        swaps are tried in turn and the first eligible verdict wins; if none is
        eligible the verdict for the most recent swap is returned.
        """
        if source_swap_id:
            return await self.validate_targeting(source_swap_id, target_swap_id, user_id)

        candidates = await self.swaps.list_by_owner(user_id, include_closed=False)
        if not candidates:
            return TargetingValidation(
                can_target=False,
                restrictions=[
                    TargetingRestriction(Code.SOURCE_SWAP_UNAVAILABLE, "You have no open swap to propose with")
                ],
            )
        target = await self.swaps.get(target_swap_id)
        first: Optional[TargetingValidation] = None
        for source in candidates:
            verdict = evaluate_targeting(await self._context(user_id, source, target))
            if verdict.can_target:
                return verdict
            first = first or verdict
        return first

    async def can_target_swap(
        self, target_swap_id: str, user_id: str, source_swap_id: Optional[str] = None
    ) -> bool:
        verdict = await self.check_can_target(target_swap_id, user_id, source_swap_id)
        return verdict.can_target

    async def get_targeting_status(self, swap_id: str) -> TargetingStatusView:
        swap = await self.swaps.get(swap_id)
        if swap is None:
            raise TargetingError(Code.SWAP_NOT_FOUND)
        return TargetingStatusView(
            swap_id=swap_id,
            outgoing=await self.targeting.get_active_for_source(swap_id),
            incoming=await self.targeting.list_active_for_target(swap_id),
        )

    async def get_targeting_history(
        self, swap_id: str, user_id: str, limit: int = 100
    ) -> List[TargetingHistoryEntry]:
        swap = await self.swaps.get(swap_id)
        if swap is None:
            raise TargetingError(Code.SWAP_NOT_FOUND)
        if swap.owner_id != user_id:
            raise AuthorizationError("Only the swap owner can read its targeting history")
        return await self.targeting.list_history(swap_id, limit)

    async def get_swaps_targeting_me(self, user_id: str) -> List[TargetingRelation]:
        return await self.targeting.list_active_against_owner(user_id)

    async def get_user_targeting_activity(self, user_id: str) -> List[TargetingStatusView]:
        """Outgoing and incoming targeting for each of the user's open swaps."""
        views = []
        for swap in await self.swaps.list_by_owner(user_id, include_closed=False):
            views.append(
                TargetingStatusView(
                    swap_id=swap.id,
                    outgoing=await self.targeting.get_active_for_source(swap.id),
                    incoming=await self.targeting.list_active_for_target(swap.id),
                )
            )
        return views

    # Mutations

    async def target_swap(
        self,
        source_swap_id: str,
        target_swap_id: str,
        user_id: str,
        *,
        message: Optional[str] = None,
        conditions: Optional[Sequence[str]] = None,
        cash_offer: Optional[CashOffer] = None,
    ) -> TargetingResult:
        """Point the source swap at the target, replacing any current target."""
        return await self._apply_target(
            source_swap_id,
            target_swap_id,
            user_id,
            message=message,
            conditions=conditions,
            cash_offer=cash_offer,
            require_existing=False,
        )

    async def retarget_swap(
        self,
        source_swap_id: str,
        new_target_swap_id: str,
        user_id: str,
        *,
        message: Optional[str] = None,
        conditions: Optional[Sequence[str]] = None,
        cash_offer: Optional[CashOffer] = None,
    ) -> TargetingResult:
        """Cancel the current target and target new_target_swap_id in the same transaction."""
        return await self._apply_target(
            source_swap_id,
            new_target_swap_id,
            user_id,
            message=message,
            conditions=conditions,
            cash_offer=cash_offer,
            require_existing=True,
        )

    async def _lock(
        self, source_swap_id: str, *others: Optional[str]
    ) -> tuple[dict[str, Swap], Swap, Optional[TargetingRelation]]:
        """Lock the source and the swaps its targeting touches, in id order.

        Returns the locked swaps and the source's active relation re-read under
        the lock; a relation that changed since the unlocked read means another
        request got there first.
        """
        snapshot = await self.targeting.get_active_for_source(source_swap_id)
        ids = [source_swap_id, *others]
        if snapshot is not None:
            ids.append(snapshot.target_swap_id)
        locked = await self.swaps.lock_many(ids)
        source = locked.get(source_swap_id)
        if source is None:
            raise TargetingError(Code.SWAP_NOT_FOUND, "Source swap not found")
        existing = await self.targeting.get_active_for_source(source_swap_id)
        if _relation_id(existing) != _relation_id(snapshot):
            raise TargetingError(Code.CONCURRENT_TARGETING)
        return locked, source, existing

    async def _apply_target(
        self,
        source_swap_id: str,
        target_swap_id: str,
        user_id: str,
        *,
        message: Optional[str],
        conditions: Optional[Sequence[str]],
        cash_offer: Optional[CashOffer],
        require_existing: bool,
    ) -> TargetingResult:
        effects = AfterCommit()
        escrow_id = None
        try:
            async with atomic(self.db):
                locked, source, existing = await self._lock(source_swap_id, target_swap_id)
                if source.owner_id != user_id:
                    raise AuthorizationError("Only the swap owner can change its targeting")
                if require_existing and existing is None:
                    raise TargetingError(Code.NO_ACTIVE_TARGET)

                target = locked.get(target_swap_id)
                proposal_type = ProposalType.CASH if cash_offer is not None else ProposalType.BOOKING
                ctx = await self._context(
                    user_id,
                    source,
                    target,
                    proposal_type=proposal_type,
                    cash_amount=cash_offer.amount if cash_offer is not None else None,
                )
                verdict = evaluate_targeting(ctx)
                blocking = verdict.blocking
                if blocking is not None:
                    raise TargetingError(blocking.code, blocking.message)

                if cash_offer is not None:
                    check = await self.payment.validate_cash_offer(
                        user_id, cash_offer.amount, cash_offer.currency, cash_offer.payment_method_id
                    )
                    if not check.is_valid:
                        raise ValidationError(
                            "; ".join(check.errors) or "Cash offer was declined by the payment service",
                            code="INVALID_CASH_OFFER",
                        )

                touched = {source.id, target.id}
                previous_target_id = None
                if existing is not None:
                    previous_target_id = existing.target_swap_id
                    await self.proposal_service.cancel_outgoing(
                        source.id, reason=RETARGET_REASON, actor_id=user_id, effects=effects, touched=touched
                    )

                now = self.clock()
                proposal_id = generate_id()
                if cash_offer is not None:
                    escrow_id = await self.payment.create_escrow(
                        payer_id=user_id,
                        payee_id=target.owner_id,
                        amount=cash_offer.amount,
                        currency=cash_offer.currency,
                        payment_method_id=cash_offer.payment_method_id,
                        reference=proposal_id,
                    )
                    payload = CashPayload(cash_offer)
                else:
                    payload = BookingPayload(booking_id=source.source_booking_id)

                proposal = await self.proposals.create(
                    Proposal(
                        id=proposal_id,
                        target_swap_id=target.id,
                        source_swap_id=source.id,
                        proposer_id=user_id,
                        payload=payload,
                        status=ProposalStatus.PENDING,
                        submitted_at=now,
                        updated_at=now,
                        message=message,
                        conditions=list(conditions or []),
                        escrow_id=escrow_id,
                    )
                )
                relation = await self.targeting.create(
                    TargetingRelation(
                        id=generate_id(),
                        source_swap_id=source.id,
                        target_swap_id=target.id,
                        proposal_id=proposal.id,
                        status=TargetingStatus.ACTIVE,
                        created_at=now,
                        updated_at=now,
                    )
                )
                if previous_target_id is not None:
                    entry = TargetingHistoryEntry.for_relation(
                        relation, TargetingAction.RETARGETED, now, user_id, previous_target_swap_id=previous_target_id
                    )
                else:
                    entry = TargetingHistoryEntry.for_relation(relation, TargetingAction.TARGETED, now, user_id)
                await self.targeting.add_history(entry)

                for swap_id in touched:
                    await self.proposal_service.refresh_swap_status(swap_id)

                effects.add(self.notifier.proposal_received, target.owner_id, proposal)
                effects.add(
                    self.ledger.record,
                    "swap_targeted",
                    {
                        "source_swap_id": source.id,
                        "target_swap_id": target.id,
                        "proposal_id": proposal.id,
                        "proposal_type": proposal.type.value,
                        "previous_target_swap_id": previous_target_id,
                    },
                )
        except IntegrityError as e:
            logger.warning("Concurrent targeting change on swap %s: %s", source_swap_id, e)
            await self._refund_uncommitted_escrow(escrow_id)
            raise TargetingError(Code.CONCURRENT_TARGETING) from e
        except Exception:
            await self._refund_uncommitted_escrow(escrow_id)
            raise

        logger.info(
            "Swap %s %s swap %s (proposal %s)",
            source_swap_id,
            "retargeted to" if previous_target_id else "targeted",
            target_swap_id,
            proposal.id,
        )
        await effects.run()
        return TargetingResult(
            relation=relation,
            proposal=proposal,
            previous_target_swap_id=previous_target_id,
            warnings=verdict.warnings,
        )

    async def _refund_uncommitted_escrow(self, escrow_id: Optional[str]) -> None:
        """Give back an escrow whose proposal was rolled back with the transaction."""
        if escrow_id is None:
            return
        try:
            await self.payment.refund_escrow(escrow_id, "Targeting did not complete")
        except Exception as e:
            logger.error("Failed to refund escrow %s after rollback: %s", escrow_id, e, exc_info=True)

    async def remove_target(
        self, source_swap_id: str, user_id: str, target_swap_id: Optional[str] = None
    ) -> TargetingRelation:
        """Withdraw the source swap's active target; the source becomes untargeted."""
        effects = AfterCommit()
        async with atomic(self.db):
            _locked, source, relation = await self._lock(source_swap_id)
            if source.owner_id != user_id:
                raise AuthorizationError("Only the swap owner can change its targeting")
            if relation is None or (target_swap_id and relation.target_swap_id != target_swap_id):
                raise TargetingError(Code.NO_ACTIVE_TARGET)

            proposal = await self.proposals.get(relation.proposal_id, for_update=True)
            if proposal is not None and proposal.status == ProposalStatus.PENDING:
                await self.proposal_service.close_proposal(
                    proposal,
                    ProposalStatus.CANCELLED,
                    reason=REMOVE_REASON,
                    actor_id=user_id,
                    action=TargetingAction.REMOVED,
                    effects=effects,
                )
                target = await self.swaps.get(relation.target_swap_id)
                if target is not None:
                    effects.add(self.notifier.proposal_cancelled, target.owner_id, proposal, REMOVE_REASON)
            else:
                await self.targeting.set_status(relation.id, TargetingStatus.CANCELLED)
                await self.targeting.add_history(
                    TargetingHistoryEntry.for_relation(relation, TargetingAction.REMOVED, self.clock(), user_id)
                )

            await self.proposal_service.refresh_swap_status(source.id)
            await self.proposal_service.refresh_swap_status(relation.target_swap_id)
            effects.add(
                self.ledger.record,
                "swap_target_removed",
                {
                    "source_swap_id": source.id,
                    "target_swap_id": relation.target_swap_id,
                    "proposal_id": relation.proposal_id,
                },
            )

        logger.info("Swap %s stopped targeting swap %s", source_swap_id, relation.target_swap_id)
        await effects.run()
        relation.status = TargetingStatus.CANCELLED
        return relation
