"""Wiring of the swap services around one session."""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.auctions.services import AuctionService
from app.domain.bookings.services import BookingService
from app.domain.common.types import utcnow
from app.domain.proposals.services import ProposalService
from app.domain.swaps.services import SwapService
from app.domain.targeting.services import TargetingService
from app.infra.db.repositories.booking_repo import BookingRepositoryImpl
from app.infra.db.repositories.proposal_repo import ProposalRepositoryImpl
from app.infra.db.repositories.swap_repo import SwapRepositoryImpl
from app.infra.db.repositories.targeting_repo import TargetingRepositoryImpl
from app.infra.vendors.payment_client import PaymentGateway
from app.services.ledger_service import LedgerRecorder
from app.services.notification_service import SwapNotifier


@dataclass
class SwapServices:
    bookings: BookingService
    swaps: SwapService
    targeting: TargetingService
    proposals: ProposalService
    auctions: AuctionService


def build_swap_services(
    db: AsyncSession,
    *,
    payment: PaymentGateway,
    notifier: SwapNotifier,
    ledger: LedgerRecorder,
    settings,
    clock: Callable[[], datetime] = utcnow,
) -> SwapServices:
    """Build the services sharing one session and one set of repositories."""
    swap_repo = SwapRepositoryImpl(db)
    proposal_repo = ProposalRepositoryImpl(db)
    targeting_repo = TargetingRepositoryImpl(db)
    booking_repo = BookingRepositoryImpl(db)

    proposals = ProposalService(
        swap_repo, proposal_repo, targeting_repo, booking_repo, db,
        payment=payment, notifier=notifier, ledger=ledger, clock=clock,
    )
    return SwapServices(
        bookings=BookingService(booking_repo, db),
        swaps=SwapService(
            swap_repo, booking_repo, targeting_repo, db,
            proposal_service=proposals,
            ledger=ledger,
            clock=clock,
            min_lead_days=settings.auction_min_lead_days,
        ),
        targeting=TargetingService(
            swap_repo, proposal_repo, targeting_repo, db,
            proposal_service=proposals,
            payment=payment,
            notifier=notifier,
            ledger=ledger,
            clock=clock,
            busy_threshold=settings.targeting_busy_auction_threshold,
        ),
        proposals=proposals,
        auctions=AuctionService(
            swap_repo, proposal_repo, booking_repo, targeting_repo, db,
            proposal_service=proposals,
            notifier=notifier,
            ledger=ledger,
            clock=clock,
            min_lead_days=settings.auction_min_lead_days,
        ),
    )
