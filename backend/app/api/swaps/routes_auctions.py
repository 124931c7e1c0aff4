"""Auction routes for auction-mode swaps."""
from fastapi import APIRouter, Depends

from app.api.deps import get_current_user, get_services
from app.api.swaps.swap_models import (
    AcceptanceResponse,
    AuctionResponse,
    ProposalComparisonResponse,
    SelectWinnerRequest,
)
from app.domain.common.types import require_uuid
from app.domain.users.models import User
from app.services.container import SwapServices

router = APIRouter()


@router.get("/{swap_id}/auction", response_model=AuctionResponse)
async def get_auction(
    swap_id: str,
    current_user: User = Depends(get_current_user),
    services: SwapServices = Depends(get_services),
):
    auction = await services.auctions.get_auction(require_uuid(swap_id, "swap_id"))
    return AuctionResponse.from_entity(auction)


@router.get("/{swap_id}/auction/proposals", response_model=ProposalComparisonResponse)
async def compare_auction_proposals(
    swap_id: str,
    current_user: User = Depends(get_current_user),
    services: SwapServices = Depends(get_services),
):
    """Pending proposals ranked for the owner, with the recommended winner."""
    comparison = await services.auctions.compare_proposals(require_uuid(swap_id, "swap_id"), current_user.id)
    return ProposalComparisonResponse.from_entity(comparison)


@router.post("/{swap_id}/auction/select-winner", response_model=AcceptanceResponse)
async def select_winner(
    swap_id: str,
    request: SelectWinnerRequest,
    current_user: User = Depends(get_current_user),
    services: SwapServices = Depends(get_services),
):
    result = await services.auctions.select_winner(
        require_uuid(swap_id, "swap_id"),
        require_uuid(request.proposal_id, "proposal_id"),
        current_user.id,
    )
    return AcceptanceResponse.from_entity(result)
