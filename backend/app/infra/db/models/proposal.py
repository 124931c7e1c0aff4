"""Proposal database model."""
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Index

from app.infra.db.base import Base, JSONType


class ProposalModel(Base):
    """Booking or cash offer against a target swap."""

    __tablename__ = "proposals"

    id = Column(String, primary_key=True)
    target_swap_id = Column(String, ForeignKey("swaps.id", ondelete="CASCADE"), nullable=False)
    source_swap_id = Column(String, ForeignKey("swaps.id", ondelete="CASCADE"), nullable=False)
    proposer_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String, nullable=False)  # booking | cash (mirrors payload["type"] for querying)
    payload = Column(JSONType, nullable=False)
    status = Column(String, nullable=False, default="pending")
    message = Column(Text, nullable=True)
    conditions = Column(JSONType, nullable=True)
    escrow_id = Column(String, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    submitted_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    responded_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_proposals_target_swap_status", "target_swap_id", "status"),
        Index("ix_proposals_source_swap_id", "source_swap_id"),
        Index("ix_proposals_proposer_id", "proposer_id"),
    )

    def to_entity(self):
        """Convert to domain entity."""
        from app.domain.proposals.models import Proposal, ProposalStatus, payload_from_dict
        return Proposal(
            id=self.id,
            target_swap_id=self.target_swap_id,
            source_swap_id=self.source_swap_id,
            proposer_id=self.proposer_id,
            payload=payload_from_dict(self.payload),
            status=ProposalStatus(self.status),
            message=self.message,
            conditions=list(self.conditions or []),
            escrow_id=self.escrow_id,
            rejection_reason=self.rejection_reason,
            submitted_at=self.submitted_at,
            responded_at=self.responded_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_entity(cls, entity):
        """Create from domain entity."""
        return cls(
            id=entity.id,
            target_swap_id=entity.target_swap_id,
            source_swap_id=entity.source_swap_id,
            proposer_id=entity.proposer_id,
            type=entity.type.value,
            payload=entity.payload.to_dict(),
            status=entity.status.value,
            message=entity.message,
            conditions=list(entity.conditions),
            escrow_id=entity.escrow_id,
            rejection_reason=entity.rejection_reason,
            submitted_at=entity.submitted_at,
            responded_at=entity.responded_at,
            updated_at=entity.updated_at,
        )
