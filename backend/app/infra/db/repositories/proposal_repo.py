"""Proposal repository implementation."""
from typing import Iterable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func

from app.domain.common.types import utcnow
from app.domain.proposals.models import Proposal, ProposalStatus
from app.infra.db.models.proposal import ProposalModel


class ProposalRepository:
    """Proposal repository interface."""

    async def create(self, proposal: Proposal) -> Proposal:
        raise NotImplementedError

    async def get(self, proposal_id: str, for_update: bool = False) -> Optional[Proposal]:
        raise NotImplementedError

    async def list_for_target(self, swap_id: str, status: Optional[ProposalStatus] = None) -> List[Proposal]:
        raise NotImplementedError

    async def count_pending_for_target(self, swap_id: str) -> int:
        raise NotImplementedError

    async def list_pending_from_source(self, swap_id: str) -> List[Proposal]:
        raise NotImplementedError

    async def transition(
        self,
        proposal_id: str,
        to_status: ProposalStatus,
        only_from: Iterable[ProposalStatus] = (ProposalStatus.PENDING,),
        **values,
    ) -> bool:
        """Conditional status write; False when the proposal already left only_from."""
        raise NotImplementedError


class ProposalRepositoryImpl(ProposalRepository):
    """Proposal repository implementation."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, proposal: Proposal) -> Proposal:
        model = ProposalModel.from_entity(proposal)
        self.session.add(model)
        await self.session.flush()
        return model.to_entity()

    async def get(self, proposal_id: str, for_update: bool = False) -> Optional[Proposal]:
        stmt = select(ProposalModel).where(ProposalModel.id == proposal_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def list_for_target(self, swap_id: str, status: Optional[ProposalStatus] = None) -> List[Proposal]:
        stmt = select(ProposalModel).where(ProposalModel.target_swap_id == swap_id)
        if status is not None:
            stmt = stmt.where(ProposalModel.status == status.value)
        result = await self.session.execute(
            stmt.order_by(ProposalModel.submitted_at.asc(), ProposalModel.id.asc())
        )
        return [m.to_entity() for m in result.scalars().all()]

    async def count_pending_for_target(self, swap_id: str) -> int:
        result = await self.session.execute(
            select(func.count()).select_from(ProposalModel).where(
                ProposalModel.target_swap_id == swap_id,
                ProposalModel.status == ProposalStatus.PENDING.value,
            )
        )
        return result.scalar() or 0

    async def list_pending_from_source(self, swap_id: str) -> List[Proposal]:
        result = await self.session.execute(
            select(ProposalModel).where(
                ProposalModel.source_swap_id == swap_id,
                ProposalModel.status == ProposalStatus.PENDING.value,
            )
        )
        return [m.to_entity() for m in result.scalars().all()]

    async def transition(
        self,
        proposal_id: str,
        to_status: ProposalStatus,
        only_from: Iterable[ProposalStatus] = (ProposalStatus.PENDING,),
        **values,
    ) -> bool:
        now = utcnow()
        result = await self.session.execute(
            update(ProposalModel)
            .where(
                ProposalModel.id == proposal_id,
                ProposalModel.status.in_([s.value for s in only_from]),
            )
            .values(status=to_status.value, updated_at=now, responded_at=now, **values)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount > 0
