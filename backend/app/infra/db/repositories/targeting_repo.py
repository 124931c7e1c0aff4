"""Targeting relation and history repository implementation."""
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, or_

from app.domain.common.types import utcnow
from app.domain.targeting.models import TargetingHistoryEntry, TargetingRelation, TargetingStatus
from app.infra.db.models.swap import SwapModel
from app.infra.db.models.targeting import SwapTargetModel, TargetingHistoryModel

# Longest active chain followed when looking for a cycle back to the source
MAX_CYCLE_DEPTH = 10


class TargetingRepository:
    """Targeting repository interface."""

    async def create(self, relation: TargetingRelation) -> TargetingRelation:
        raise NotImplementedError

    async def get_active_for_source(self, source_swap_id: str) -> Optional[TargetingRelation]:
        raise NotImplementedError

    async def get_by_proposal(self, proposal_id: str) -> Optional[TargetingRelation]:
        raise NotImplementedError

    async def list_active_for_target(self, target_swap_id: str) -> List[TargetingRelation]:
        raise NotImplementedError

    async def list_active_against_owner(self, owner_id: str) -> List[TargetingRelation]:
        """Active relations whose target swap belongs to owner_id."""
        raise NotImplementedError

    async def set_status(self, relation_id: str, status: TargetingStatus) -> bool:
        """Move an active relation to status; False when it was no longer active."""
        raise NotImplementedError

    async def find_circular_targeting(self, source_swap_id: str, target_swap_id: str) -> bool:
        raise NotImplementedError

    async def add_history(self, entry: TargetingHistoryEntry) -> TargetingHistoryEntry:
        raise NotImplementedError

    async def list_history(self, swap_id: str, limit: int = 100) -> List[TargetingHistoryEntry]:
        raise NotImplementedError


class TargetingRepositoryImpl(TargetingRepository):
    """Targeting repository implementation."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, relation: TargetingRelation) -> TargetingRelation:
        model = SwapTargetModel.from_entity(relation)
        self.session.add(model)
        # IntegrityError here means another request holds the active slot for this source
        await self.session.flush()
        return model.to_entity()

    async def get_active_for_source(self, source_swap_id: str) -> Optional[TargetingRelation]:
        result = await self.session.execute(
            select(SwapTargetModel).where(
                SwapTargetModel.source_swap_id == source_swap_id,
                SwapTargetModel.status == TargetingStatus.ACTIVE.value,
            )
        )
        model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def get_by_proposal(self, proposal_id: str) -> Optional[TargetingRelation]:
        result = await self.session.execute(
            select(SwapTargetModel)
            .where(SwapTargetModel.proposal_id == proposal_id)
            .order_by(SwapTargetModel.created_at.desc())
        )
        model = result.scalars().first()
        return model.to_entity() if model else None

    async def list_active_for_target(self, target_swap_id: str) -> List[TargetingRelation]:
        result = await self.session.execute(
            select(SwapTargetModel)
            .where(
                SwapTargetModel.target_swap_id == target_swap_id,
                SwapTargetModel.status == TargetingStatus.ACTIVE.value,
            )
            .order_by(SwapTargetModel.created_at.asc())
        )
        return [m.to_entity() for m in result.scalars().all()]

    async def list_active_against_owner(self, owner_id: str) -> List[TargetingRelation]:
        result = await self.session.execute(
            select(SwapTargetModel)
            .join(SwapModel, SwapModel.id == SwapTargetModel.target_swap_id)
            .where(
                SwapModel.owner_id == owner_id,
                SwapTargetModel.status == TargetingStatus.ACTIVE.value,
            )
            .order_by(SwapTargetModel.created_at.desc())
        )
        return [m.to_entity() for m in result.scalars().all()]

    async def set_status(self, relation_id: str, status: TargetingStatus) -> bool:
        result = await self.session.execute(
            update(SwapTargetModel)
            .where(
                SwapTargetModel.id == relation_id,
                SwapTargetModel.status == TargetingStatus.ACTIVE.value,
            )
            .values(status=status.value, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount > 0

    async def find_circular_targeting(self, source_swap_id: str, target_swap_id: str) -> bool:
        """True when target already reaches source through active relations (A->B, B->A or longer)."""
        current = target_swap_id
        seen = set()
        for _ in range(MAX_CYCLE_DEPTH):
            if current in seen:
                return False
            seen.add(current)
            relation = await self.get_active_for_source(current)
            if relation is None:
                return False
            if relation.target_swap_id == source_swap_id:
                return True
            current = relation.target_swap_id
        return False

    async def add_history(self, entry: TargetingHistoryEntry) -> TargetingHistoryEntry:
        model = TargetingHistoryModel.from_entity(entry)
        self.session.add(model)
        await self.session.flush()
        return model.to_entity()

    async def list_history(self, swap_id: str, limit: int = 100) -> List[TargetingHistoryEntry]:
        result = await self.session.execute(
            select(TargetingHistoryModel)
            .where(
                or_(
                    TargetingHistoryModel.source_swap_id == swap_id,
                    TargetingHistoryModel.target_swap_id == swap_id,
                )
            )
            .order_by(TargetingHistoryModel.created_at.desc(), TargetingHistoryModel.id.desc())
            .limit(limit)
        )
        return [m.to_entity() for m in result.scalars().all()]
