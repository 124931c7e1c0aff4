"""Swap and auction repository implementation."""
from datetime import datetime
from typing import Iterable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from app.domain.common.types import utcnow
from app.domain.swaps.models import (
    AcceptanceStrategy,
    Auction,
    AuctionStatus,
    Swap,
    SwapStatus,
    TERMINAL_SWAP_STATUSES,
)
from app.infra.db.models.booking import BookingModel
from app.infra.db.models.swap import AuctionModel, SwapModel

_TERMINAL = [s.value for s in TERMINAL_SWAP_STATUSES]


class SwapRepository:
    """Swap repository interface."""

    async def create(self, swap: Swap) -> Swap:
        raise NotImplementedError

    async def get(self, swap_id: str, for_update: bool = False) -> Optional[Swap]:
        raise NotImplementedError

    async def lock_many(self, swap_ids: Iterable[str]) -> dict[str, Swap]:
        """Row-lock swaps in id order (stable order avoids lock-order deadlocks)."""
        raise NotImplementedError

    async def list_by_owner(self, owner_id: str, include_closed: bool = True) -> List[Swap]:
        raise NotImplementedError

    async def find_open_for_booking(self, owner_id: str, booking_id: str) -> Optional[Swap]:
        raise NotImplementedError

    async def set_status(
        self, swap_id: str, status: SwapStatus, only_from: Optional[Iterable[SwapStatus]] = None
    ) -> bool:
        """Conditional status write; False when the swap was not in one of only_from."""
        raise NotImplementedError

    async def set_strategy(self, swap_id: str, strategy: AcceptanceStrategy) -> None:
        raise NotImplementedError

    async def list_expirable(self, now: datetime, statuses: Iterable[SwapStatus]) -> List[Swap]:
        """Swaps in one of statuses whose booking check-in is at or before now."""
        raise NotImplementedError

    # Auctions
    async def create_auction(self, auction: Auction) -> Auction:
        raise NotImplementedError

    async def get_auction_by_swap(self, swap_id: str, for_update: bool = False) -> Optional[Auction]:
        raise NotImplementedError

    async def list_due_auctions(self, now: datetime) -> List[Auction]:
        raise NotImplementedError

    async def list_unresolved_ended_auctions(self) -> List[Auction]:
        raise NotImplementedError

    async def transition_auction(
        self, auction_id: str, to_status: AuctionStatus, only_from: Iterable[AuctionStatus], **values
    ) -> bool:
        raise NotImplementedError


class SwapRepositoryImpl(SwapRepository):
    """Swap repository implementation."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, swap: Swap) -> Swap:
        model = SwapModel.from_entity(swap)
        self.session.add(model)
        await self.session.flush()
        return model.to_entity()

    async def get(self, swap_id: str, for_update: bool = False) -> Optional[Swap]:
        stmt = select(SwapModel).where(SwapModel.id == swap_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def lock_many(self, swap_ids: Iterable[str]) -> dict[str, Swap]:
        ids = sorted({i for i in swap_ids if i})
        if not ids:
            return {}
        result = await self.session.execute(
            select(SwapModel).where(SwapModel.id.in_(ids)).order_by(SwapModel.id).with_for_update()
        )
        return {m.id: m.to_entity() for m in result.scalars().all()}

    async def list_by_owner(self, owner_id: str, include_closed: bool = True) -> List[Swap]:
        stmt = select(SwapModel).where(SwapModel.owner_id == owner_id)
        if not include_closed:
            stmt = stmt.where(SwapModel.status.notin_(_TERMINAL + [SwapStatus.ACCEPTED.value]))
        result = await self.session.execute(stmt.order_by(SwapModel.created_at.desc()))
        return [m.to_entity() for m in result.scalars().all()]

    async def find_open_for_booking(self, owner_id: str, booking_id: str) -> Optional[Swap]:
        result = await self.session.execute(
            select(SwapModel).where(
                SwapModel.owner_id == owner_id,
                SwapModel.source_booking_id == booking_id,
                SwapModel.status.notin_(_TERMINAL),
            )
        )
        model = result.scalars().first()
        return model.to_entity() if model else None

    async def set_status(
        self, swap_id: str, status: SwapStatus, only_from: Optional[Iterable[SwapStatus]] = None
    ) -> bool:
        stmt = update(SwapModel).where(SwapModel.id == swap_id)
        if only_from is not None:
            stmt = stmt.where(SwapModel.status.in_([s.value for s in only_from]))
        result = await self.session.execute(
            stmt.values(status=status.value, updated_at=utcnow()).execution_options(synchronize_session="fetch")
        )
        return result.rowcount > 0

    async def set_strategy(self, swap_id: str, strategy: AcceptanceStrategy) -> None:
        await self.session.execute(
            update(SwapModel)
            .where(SwapModel.id == swap_id)
            .values(acceptance_strategy=strategy.to_dict(), updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )

    async def list_expirable(self, now: datetime, statuses: Iterable[SwapStatus]) -> List[Swap]:
        result = await self.session.execute(
            select(SwapModel)
            .join(BookingModel, BookingModel.id == SwapModel.source_booking_id)
            .where(
                SwapModel.status.in_([s.value for s in statuses]),
                BookingModel.check_in_date <= now,
            )
            .order_by(SwapModel.id)
        )
        return [m.to_entity() for m in result.scalars().all()]

    # Auctions
    async def create_auction(self, auction: Auction) -> Auction:
        model = AuctionModel.from_entity(auction)
        self.session.add(model)
        await self.session.flush()
        return model.to_entity()

    async def get_auction_by_swap(self, swap_id: str, for_update: bool = False) -> Optional[Auction]:
        stmt = select(AuctionModel).where(AuctionModel.swap_id == swap_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def list_due_auctions(self, now: datetime) -> List[Auction]:
        result = await self.session.execute(
            select(AuctionModel)
            .where(AuctionModel.status == AuctionStatus.ACTIVE.value, AuctionModel.end_date <= now)
            .order_by(AuctionModel.end_date.asc())
        )
        return [m.to_entity() for m in result.scalars().all()]

    async def list_unresolved_ended_auctions(self) -> List[Auction]:
        result = await self.session.execute(
            select(AuctionModel)
            .where(
                AuctionModel.status == AuctionStatus.ENDED.value,
                AuctionModel.winning_proposal_id.is_(None),
            )
            .order_by(AuctionModel.ended_at.asc())
        )
        return [m.to_entity() for m in result.scalars().all()]

    async def transition_auction(
        self, auction_id: str, to_status: AuctionStatus, only_from: Iterable[AuctionStatus], **values
    ) -> bool:
        result = await self.session.execute(
            update(AuctionModel)
            .where(
                AuctionModel.id == auction_id,
                AuctionModel.status.in_([s.value for s in only_from]),
            )
            .values(status=to_status.value, updated_at=utcnow(), **values)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount > 0
