"""Swap lifecycle services."""
import logging
from datetime import datetime
from typing import Callable, List, Optional, Set

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.auctions.services import validate_auction_timing
from app.domain.common.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.domain.common.types import generate_id, utcnow
from app.domain.proposals.services import ProposalService
from app.domain.swaps.models import (
    AcceptanceStrategy,
    Auction,
    AuctionStatus,
    AuctionStrategy,
    PaymentTypes,
    Swap,
    SwapStatus,
)
from app.infra.db.repositories.booking_repo import BookingRepository
from app.infra.db.repositories.swap_repo import SwapRepository
from app.infra.db.repositories.targeting_repo import TargetingRepository
from app.infra.db.session import atomic
from app.services.after_commit import AfterCommit
from app.services.ledger_service import LedgerRecorder

logger = logging.getLogger(__name__)

CANCEL_REASON = "The swap was cancelled by its owner"


def validate_payment_types(payment_types: PaymentTypes) -> None:
    if not payment_types.booking_exchange and not payment_types.cash_payment:
        raise ValidationError(
            "At least one payment type (booking exchange or cash) must be enabled", code="INVALID_PAYMENT_TYPES"
        )
    minimum = payment_types.minimum_cash_amount
    preferred = payment_types.preferred_cash_amount
    if minimum is not None and minimum <= 0:
        raise ValidationError("minimum_cash_amount must be positive", code="INVALID_PAYMENT_TYPES")
    if minimum is not None and preferred is not None and minimum > preferred:
        raise ValidationError(
            "minimum_cash_amount cannot exceed preferred_cash_amount", code="INVALID_PAYMENT_TYPES"
        )


class SwapService:
    """Swap service for business logic."""

    def __init__(
        self,
        swaps: SwapRepository,
        bookings: BookingRepository,
        targeting: TargetingRepository,
        db: AsyncSession,
        *,
        proposal_service: ProposalService,
        ledger: LedgerRecorder,
        clock: Callable[[], datetime] = utcnow,
        min_lead_days: int = 7,
    ):
        self.swaps = swaps
        self.bookings = bookings
        self.targeting = targeting
        self.db = db
        self.proposal_service = proposal_service
        self.ledger = ledger
        self.clock = clock
        self.min_lead_days = min_lead_days

    async def create_swap(
        self,
        user_id: str,
        booking_id: str,
        acceptance_strategy: AcceptanceStrategy,
        payment_types: PaymentTypes,
        description: Optional[str] = None,
    ) -> Swap:
        """
        List a booking as a swap.

        Raises:
            NotFoundError: booking does not exist
            AuthorizationError: caller does not own the booking
            ConflictError: booking not available (BOOKING_NOT_AVAILABLE) or
                already listed in a non-terminal swap (SWAP_ALREADY_EXISTS)
            ValidationError: payment types or auction timing invalid
        """
        validate_payment_types(payment_types)
        now = self.clock()
        try:
            async with atomic(self.db):
                booking = await self.bookings.get_booking_by_id(booking_id, for_update=True)
                if booking is None:
                    raise NotFoundError("Booking", booking_id)
                if booking.owner_id != user_id:
                    raise AuthorizationError("You can only create swaps for your own bookings")
                if not booking.is_available:
                    raise ConflictError(
                        f"Booking is {booking.status.value} and cannot be listed", code="BOOKING_NOT_AVAILABLE"
                    )
                if await self.swaps.find_open_for_booking(user_id, booking_id) is not None:
                    raise ConflictError("This booking already has an open swap", code="SWAP_ALREADY_EXISTS")

                if isinstance(acceptance_strategy, AuctionStrategy):
                    validate_auction_timing(
                        booking.check_in_date,
                        acceptance_strategy.auction_end_date,
                        acceptance_strategy.auto_select_after_hours,
                        now,
                        self.min_lead_days,
                    )

                swap = await self.swaps.create(
                    Swap(
                        id=generate_id(),
                        source_booking_id=booking_id,
                        owner_id=user_id,
                        status=SwapStatus.ACTIVE,
                        acceptance_strategy=acceptance_strategy,
                        payment_types=payment_types,
                        created_at=now,
                        updated_at=now,
                        description=description,
                    )
                )
                if isinstance(acceptance_strategy, AuctionStrategy):
                    await self.swaps.create_auction(
                        Auction(
                            id=generate_id(),
                            swap_id=swap.id,
                            owner_id=user_id,
                            status=AuctionStatus.ACTIVE,
                            end_date=acceptance_strategy.auction_end_date,
                            auto_select_after_hours=acceptance_strategy.auto_select_after_hours,
                            created_at=now,
                            updated_at=now,
                        )
                    )
        except IntegrityError as e:
            # Partial unique index on (owner_id, source_booking_id) for non-terminal swaps
            logger.warning("Duplicate swap for booking %s: %s", booking_id, e)
            raise ConflictError("This booking already has an open swap", code="SWAP_ALREADY_EXISTS") from e

        logger.info("Swap %s created for booking %s (%s)", swap.id, booking_id, acceptance_strategy.type.value)
        await self.ledger.record(
            "swap_created",
            {"swap_id": swap.id, "booking_id": booking_id, "strategy": acceptance_strategy.type.value},
        )
        return swap

    async def get_swap(self, swap_id: str) -> Swap:
        swap = await self.swaps.get(swap_id)
        if swap is None:
            raise NotFoundError("Swap", swap_id)
        return swap

    async def list_user_swaps(self, user_id: str, include_closed: bool = True) -> List[Swap]:
        return await self.swaps.list_by_owner(user_id, include_closed=include_closed)

    async def cancel_swap(self, swap_id: str, user_id: str) -> Swap:
        """Cancel an open swap with its target, incoming proposals and auction."""
        effects = AfterCommit()
        async with atomic(self.db):
            outgoing = await self.targeting.get_active_for_source(swap_id)
            locked = await self.swaps.lock_many([swap_id, outgoing.target_swap_id if outgoing else None])
            swap = locked.get(swap_id)
            if swap is None:
                raise NotFoundError("Swap", swap_id)
            if swap.owner_id != user_id:
                raise AuthorizationError("Only the swap owner can cancel it")
            if swap.is_closed:
                raise ConflictError(f"Swap is already {swap.status.value}", code="SWAP_NOT_CANCELLABLE")

            touched: Set[str] = set()
            await self.proposal_service.release_swap(
                swap.id, reason=CANCEL_REASON, actor_id=user_id, effects=effects, touched=touched
            )
            await self.swaps.set_status(swap.id, SwapStatus.CANCELLED)
            touched.discard(swap.id)
            for other_id in touched:
                await self.proposal_service.refresh_swap_status(other_id)
            swap.status = SwapStatus.CANCELLED
            effects.add(self.ledger.record, "swap_cancelled", {"swap_id": swap.id})

        logger.info("Swap %s cancelled by %s", swap_id, user_id)
        await effects.run()
        return swap
