"""Request/response models shared by the swap, targeting, auction and proposal routes."""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from app.domain.auctions.models import ProposalComparison
from app.domain.common.types import is_valid_uuid, to_naive_utc
from app.domain.proposals.models import AcceptanceResult, CashOffer, Proposal, ProposalStatus, ProposalType
from app.domain.swaps.models import (
    AcceptanceStrategy,
    AcceptanceStrategyType,
    Auction,
    AuctionAvailability,
    AuctionStatus,
    AuctionStrategy,
    FirstMatchStrategy,
    PaymentTypes,
    Swap,
    SwapStatus,
)
from app.domain.targeting.models import (
    AuctionInfo,
    RestrictionSeverity,
    TargetingAction,
    TargetingHistoryEntry,
    TargetingRelation,
    TargetingResult,
    TargetingStatus,
    TargetingStatusView,
    TargetingValidation,
)


# Requests

class PaymentTypesModel(BaseModel):
    booking_exchange: bool = True
    cash_payment: bool = False
    minimum_cash_amount: Optional[float] = None
    preferred_cash_amount: Optional[float] = None

    def to_domain(self) -> PaymentTypes:
        return PaymentTypes(
            booking_exchange=self.booking_exchange,
            cash_payment=self.cash_payment,
            minimum_cash_amount=self.minimum_cash_amount,
            preferred_cash_amount=self.preferred_cash_amount,
        )

    @classmethod
    def from_domain(cls, payment: PaymentTypes) -> "PaymentTypesModel":
        return cls(
            booking_exchange=payment.booking_exchange,
            cash_payment=payment.cash_payment,
            minimum_cash_amount=payment.minimum_cash_amount,
            preferred_cash_amount=payment.preferred_cash_amount,
        )


class AcceptanceStrategyModel(BaseModel):
    """Tagged form: {"type": "first_match"} or {"type": "auction", "auction_end_date", ...}."""
    type: Literal["first_match", "auction"] = "first_match"
    auction_end_date: Optional[datetime] = None
    auto_select_after_hours: Optional[int] = None

    @model_validator(mode="after")
    def _auction_needs_end_date(self):
        if self.type == "auction" and self.auction_end_date is None:
            raise ValueError("auction_end_date is required for auction mode")
        return self

    def to_domain(self) -> AcceptanceStrategy:
        if self.type == AcceptanceStrategyType.AUCTION.value:
            return AuctionStrategy(
                auction_end_date=to_naive_utc(self.auction_end_date),
                auto_select_after_hours=self.auto_select_after_hours,
            )
        return FirstMatchStrategy()

    @classmethod
    def from_domain(cls, strategy: AcceptanceStrategy) -> "AcceptanceStrategyModel":
        if isinstance(strategy, AuctionStrategy):
            return cls(
                type="auction",
                auction_end_date=strategy.auction_end_date,
                auto_select_after_hours=strategy.auto_select_after_hours,
            )
        return cls(type="first_match")


class CreateSwapRequest(BaseModel):
    booking_id: str
    acceptance_strategy: AcceptanceStrategyModel = Field(default_factory=AcceptanceStrategyModel)
    payment_types: PaymentTypesModel = Field(default_factory=PaymentTypesModel)
    description: Optional[str] = None


class CashOfferModel(BaseModel):
    amount: float = Field(gt=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    payment_method_id: str

    def to_domain(self) -> CashOffer:
        return CashOffer(amount=self.amount, currency=self.currency.upper(), payment_method_id=self.payment_method_id)


class TargetRequest(BaseModel):
    """Body of target/retarget; the path id is the target swap."""
    source_swap_id: str
    message: Optional[str] = Field(default=None, max_length=2000)
    conditions: List[str] = Field(default_factory=list)
    cash_offer: Optional[CashOfferModel] = None

    @field_validator("source_swap_id")
    @classmethod
    def _source_uuid(cls, v: str) -> str:
        if not is_valid_uuid(v):
            raise ValueError("source_swap_id must be a valid UUID")
        return v


class RemoveTargetRequest(BaseModel):
    source_swap_id: str

    @field_validator("source_swap_id")
    @classmethod
    def _source_uuid(cls, v: str) -> str:
        if not is_valid_uuid(v):
            raise ValueError("source_swap_id must be a valid UUID")
        return v


class RejectRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


class SelectWinnerRequest(BaseModel):
    proposal_id: str


# Responses

class SwapResponse(BaseModel):
    id: str
    source_booking_id: str
    owner_id: str
    status: SwapStatus
    acceptance_strategy: AcceptanceStrategyModel
    payment_types: PaymentTypesModel
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, swap: Swap) -> "SwapResponse":
        return cls(
            id=swap.id,
            source_booking_id=swap.source_booking_id,
            owner_id=swap.owner_id,
            status=swap.status,
            acceptance_strategy=AcceptanceStrategyModel.from_domain(swap.acceptance_strategy),
            payment_types=PaymentTypesModel.from_domain(swap.payment_types),
            description=swap.description,
            created_at=swap.created_at,
            updated_at=swap.updated_at,
        )


class ProposalResponse(BaseModel):
    id: str
    target_swap_id: str
    source_swap_id: str
    proposer_id: str
    type: ProposalType
    payload: dict
    status: ProposalStatus
    message: Optional[str] = None
    conditions: List[str] = Field(default_factory=list)
    submitted_at: datetime
    responded_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    @classmethod
    def from_entity(cls, proposal: Proposal) -> "ProposalResponse":
        return cls(
            id=proposal.id,
            target_swap_id=proposal.target_swap_id,
            source_swap_id=proposal.source_swap_id,
            proposer_id=proposal.proposer_id,
            type=proposal.type,
            payload=proposal.payload.to_dict(),
            status=proposal.status,
            message=proposal.message,
            conditions=proposal.conditions,
            submitted_at=proposal.submitted_at,
            responded_at=proposal.responded_at,
            rejection_reason=proposal.rejection_reason,
        )


class TargetingRelationResponse(BaseModel):
    id: str
    source_swap_id: str
    target_swap_id: str
    proposal_id: str
    status: TargetingStatus
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, relation: TargetingRelation) -> "TargetingRelationResponse":
        return cls(
            id=relation.id,
            source_swap_id=relation.source_swap_id,
            target_swap_id=relation.target_swap_id,
            proposal_id=relation.proposal_id,
            status=relation.status,
            created_at=relation.created_at,
            updated_at=relation.updated_at,
        )


class TargetingResultResponse(BaseModel):
    relation: TargetingRelationResponse
    proposal: ProposalResponse
    previous_target_swap_id: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, result: TargetingResult) -> "TargetingResultResponse":
        return cls(
            relation=TargetingRelationResponse.from_entity(result.relation),
            proposal=ProposalResponse.from_entity(result.proposal),
            previous_target_swap_id=result.previous_target_swap_id,
            warnings=result.warnings,
        )


class RestrictionResponse(BaseModel):
    code: str
    message: str
    severity: RestrictionSeverity


class AuctionInfoResponse(BaseModel):
    is_auction: bool
    end_date: Optional[datetime] = None
    proposal_count: int = 0
    can_receive_more_proposals: bool = True

    @classmethod
    def from_entity(cls, info: AuctionInfo) -> "AuctionInfoResponse":
        return cls(
            is_auction=info.is_auction,
            end_date=info.end_date,
            proposal_count=info.proposal_count,
            can_receive_more_proposals=info.can_receive_more_proposals,
        )


class TargetingValidationResponse(BaseModel):
    can_target: bool
    restrictions: List[RestrictionResponse] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    auction_info: Optional[AuctionInfoResponse] = None

    @classmethod
    def from_entity(cls, verdict: TargetingValidation) -> "TargetingValidationResponse":
        return cls(
            can_target=verdict.can_target,
            restrictions=[
                RestrictionResponse(code=r.code, message=r.message, severity=r.severity)
                for r in verdict.restrictions
            ],
            warnings=verdict.warnings,
            auction_info=AuctionInfoResponse.from_entity(verdict.auction_info) if verdict.auction_info else None,
        )


class TargetingStatusResponse(BaseModel):
    swap_id: str
    is_targeting: bool
    outgoing: Optional[TargetingRelationResponse] = None
    incoming: List[TargetingRelationResponse] = Field(default_factory=list)
    incoming_count: int = 0

    @classmethod
    def from_entity(cls, view: TargetingStatusView) -> "TargetingStatusResponse":
        return cls(
            swap_id=view.swap_id,
            is_targeting=view.is_targeting,
            outgoing=TargetingRelationResponse.from_entity(view.outgoing) if view.outgoing else None,
            incoming=[TargetingRelationResponse.from_entity(r) for r in view.incoming],
            incoming_count=len(view.incoming),
        )


class TargetingHistoryResponse(BaseModel):
    id: str
    source_swap_id: str
    target_swap_id: str
    action: TargetingAction
    timestamp: datetime
    actor_id: Optional[str] = None
    metadata: dict = Field(default_factory=dict)

    @classmethod
    def from_entity(cls, entry: TargetingHistoryEntry) -> "TargetingHistoryResponse":
        return cls(
            id=entry.id,
            source_swap_id=entry.source_swap_id,
            target_swap_id=entry.target_swap_id,
            action=entry.action,
            timestamp=entry.timestamp,
            actor_id=entry.actor_id,
            metadata=entry.metadata,
        )


class AuctionResponse(BaseModel):
    id: str
    swap_id: str
    status: AuctionStatus
    end_date: datetime
    auto_select_after_hours: Optional[int] = None
    winning_proposal_id: Optional[str] = None
    auto_selected: bool = False
    ended_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, auction: Auction) -> "AuctionResponse":
        return cls(
            id=auction.id,
            swap_id=auction.swap_id,
            status=auction.status,
            end_date=auction.end_date,
            auto_select_after_hours=auction.auto_select_after_hours,
            winning_proposal_id=auction.winning_proposal_id,
            auto_selected=auction.auto_selected,
            ended_at=auction.ended_at,
            resolved_at=auction.resolved_at,
        )


class ProposalComparisonResponse(BaseModel):
    auction: AuctionResponse
    cash_proposals: List[ProposalResponse]
    booking_proposals: List[ProposalResponse]
    highest_cash_offer: Optional[float] = None
    recommended_proposal_id: Optional[str] = None

    @classmethod
    def from_entity(cls, comparison: ProposalComparison) -> "ProposalComparisonResponse":
        return cls(
            auction=AuctionResponse.from_entity(comparison.auction),
            cash_proposals=[ProposalResponse.from_entity(p) for p in comparison.cash_proposals],
            booking_proposals=[ProposalResponse.from_entity(p) for p in comparison.booking_proposals],
            highest_cash_offer=comparison.highest_cash_offer,
            recommended_proposal_id=comparison.recommended_proposal_id,
        )


class AcceptanceResponse(BaseModel):
    proposal: ProposalResponse
    target_swap_id: str
    source_swap_id: str
    rejected_proposal_ids: List[str]
    cancelled_proposal_ids: List[str]
    auction_id: Optional[str] = None

    @classmethod
    def from_entity(cls, result: AcceptanceResult) -> "AcceptanceResponse":
        return cls(
            proposal=ProposalResponse.from_entity(result.proposal),
            target_swap_id=result.target_swap_id,
            source_swap_id=result.source_swap_id,
            rejected_proposal_ids=result.rejected_proposal_ids,
            cancelled_proposal_ids=result.cancelled_proposal_ids,
            auction_id=result.auction_id,
        )


class AuctionAvailabilityResponse(BaseModel):
    booking_id: str
    allowed: bool
    check_in_date: datetime
    latest_end_date: Optional[datetime] = None
    reason: Optional[str] = None

    @classmethod
    def from_entity(cls, availability: AuctionAvailability) -> "AuctionAvailabilityResponse":
        return cls(
            booking_id=availability.booking_id,
            allowed=availability.allowed,
            check_in_date=availability.check_in_date,
            latest_end_date=availability.latest_end_date,
            reason=availability.reason,
        )
