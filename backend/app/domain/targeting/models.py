"""Targeting domain models."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from app.domain.common.types import generate_id
from app.domain.proposals.models import Proposal


class TargetingStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class TargetingAction(str, Enum):
    """Actions recorded in the append-only targeting history."""
    TARGETED = "targeted"
    RETARGETED = "retargeted"
    REMOVED = "removed"
    CANCELLED = "cancelled"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass
class TargetingRelation:
    """Source swap -> target swap link; at most one active per source."""
    id: str
    source_swap_id: str
    target_swap_id: str
    proposal_id: str
    status: TargetingStatus
    created_at: datetime
    updated_at: datetime


@dataclass
class TargetingHistoryEntry:
    id: str
    source_swap_id: str
    target_swap_id: str
    action: TargetingAction
    timestamp: datetime
    actor_id: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_relation(
        cls,
        relation: TargetingRelation,
        action: TargetingAction,
        timestamp: datetime,
        actor_id: Optional[str] = None,
        **metadata: Any,
    ) -> "TargetingHistoryEntry":
        return cls(
            id=generate_id(),
            source_swap_id=relation.source_swap_id,
            target_swap_id=relation.target_swap_id,
            action=action,
            timestamp=timestamp,
            actor_id=actor_id,
            metadata={"proposal_id": relation.proposal_id, **metadata},
        )


class RestrictionSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass
class TargetingRestriction:
    code: str
    message: str
    severity: RestrictionSeverity = RestrictionSeverity.ERROR


@dataclass
class AuctionInfo:
    is_auction: bool
    end_date: Optional[datetime] = None
    proposal_count: int = 0
    can_receive_more_proposals: bool = True


@dataclass
class TargetingValidation:
    """Read-side eligibility verdict shared with the mutating path."""
    can_target: bool
    restrictions: list[TargetingRestriction] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    auction_info: Optional[AuctionInfo] = None

    @property
    def blocking(self) -> Optional[TargetingRestriction]:
        for r in self.restrictions:
            if r.severity == RestrictionSeverity.ERROR:
                return r
        return None


@dataclass
class TargetingResult:
    relation: TargetingRelation
    proposal: Proposal
    previous_target_swap_id: Optional[str] = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class TargetingStatusView:
    """Outgoing and incoming active targeting for one swap."""
    swap_id: str
    outgoing: Optional[TargetingRelation]
    incoming: list[TargetingRelation] = field(default_factory=list)

    @property
    def is_targeting(self) -> bool:
        return self.outgoing is not None
