"""Targeting relation and history database models."""
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Index, CheckConstraint, text

from app.infra.db.base import Base, JSONType

_ACTIVE = text("status = 'active'")


class SwapTargetModel(Base):
    """Source swap -> target swap. The partial unique index keeps one active row per source."""

    __tablename__ = "swap_targets"

    id = Column(String, primary_key=True)
    source_swap_id = Column(String, ForeignKey("swaps.id", ondelete="CASCADE"), nullable=False)
    target_swap_id = Column(String, ForeignKey("swaps.id", ondelete="CASCADE"), nullable=False)
    proposal_id = Column(String, ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False)
    status = Column(String, nullable=False, default="active")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("source_swap_id <> target_swap_id", name="ck_swap_targets_not_self"),
        Index(
            "uq_swap_targets_active_source",
            "source_swap_id",
            unique=True,
            postgresql_where=_ACTIVE,
            sqlite_where=_ACTIVE,
        ),
        Index("ix_swap_targets_target_status", "target_swap_id", "status"),
        Index("ix_swap_targets_proposal_id", "proposal_id"),
    )

    def to_entity(self):
        """Convert to domain entity."""
        from app.domain.targeting.models import TargetingRelation, TargetingStatus
        return TargetingRelation(
            id=self.id,
            source_swap_id=self.source_swap_id,
            target_swap_id=self.target_swap_id,
            proposal_id=self.proposal_id,
            status=TargetingStatus(self.status),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_entity(cls, entity):
        """Create from domain entity."""
        return cls(
            id=entity.id,
            source_swap_id=entity.source_swap_id,
            target_swap_id=entity.target_swap_id,
            proposal_id=entity.proposal_id,
            status=entity.status.value,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )


class TargetingHistoryModel(Base):
    """Append-only log of targeting mutations."""

    __tablename__ = "targeting_history"

    id = Column(String, primary_key=True)
    source_swap_id = Column(String, ForeignKey("swaps.id", ondelete="CASCADE"), nullable=False)
    target_swap_id = Column(String, ForeignKey("swaps.id", ondelete="CASCADE"), nullable=False)
    action = Column(String, nullable=False)  # targeted | retargeted | removed | cancelled | accepted | rejected
    actor_id = Column(String, nullable=True)
    event_metadata = Column("metadata", JSONType, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_targeting_history_source", "source_swap_id", "created_at"),
        Index("ix_targeting_history_target", "target_swap_id", "created_at"),
    )

    def to_entity(self):
        """Convert to domain entity."""
        from app.domain.targeting.models import TargetingAction, TargetingHistoryEntry
        return TargetingHistoryEntry(
            id=self.id,
            source_swap_id=self.source_swap_id,
            target_swap_id=self.target_swap_id,
            action=TargetingAction(self.action),
            actor_id=self.actor_id,
            metadata=dict(self.event_metadata or {}),
            timestamp=self.created_at,
        )

    @classmethod
    def from_entity(cls, entity):
        """Create from domain entity."""
        return cls(
            id=entity.id,
            source_swap_id=entity.source_swap_id,
            target_swap_id=entity.target_swap_id,
            action=entity.action.value,
            actor_id=entity.actor_id,
            event_metadata=dict(entity.metadata),
            created_at=entity.timestamp,
        )
