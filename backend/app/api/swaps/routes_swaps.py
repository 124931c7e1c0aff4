"""Swap listing routes."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_current_user, get_services
from app.api.swaps.swap_models import CreateSwapRequest, ProposalResponse, SwapResponse
from app.domain.common.types import require_uuid
from app.domain.proposals.models import ProposalStatus
from app.domain.users.models import User
from app.services.container import SwapServices

router = APIRouter()


@router.post("", response_model=SwapResponse, status_code=status.HTTP_201_CREATED)
async def create_swap(
    request: CreateSwapRequest,
    current_user: User = Depends(get_current_user),
    services: SwapServices = Depends(get_services),
):
    """List one of the caller's bookings as a swap (first_match or auction)."""
    swap = await services.swaps.create_swap(
        current_user.id,
        require_uuid(request.booking_id, "booking_id"),
        request.acceptance_strategy.to_domain(),
        request.payment_types.to_domain(),
        description=request.description,
    )
    return SwapResponse.from_entity(swap)


@router.get("", response_model=List[SwapResponse])
async def list_my_swaps(
    include_closed: bool = True,
    current_user: User = Depends(get_current_user),
    services: SwapServices = Depends(get_services),
):
    swaps = await services.swaps.list_user_swaps(current_user.id, include_closed=include_closed)
    return [SwapResponse.from_entity(s) for s in swaps]


@router.get("/{swap_id}", response_model=SwapResponse)
async def get_swap(
    swap_id: str,
    current_user: User = Depends(get_current_user),
    services: SwapServices = Depends(get_services),
):
    swap = await services.swaps.get_swap(require_uuid(swap_id, "swap_id"))
    return SwapResponse.from_entity(swap)


@router.post("/{swap_id}/cancel", response_model=SwapResponse)
async def cancel_swap(
    swap_id: str,
    current_user: User = Depends(get_current_user),
    services: SwapServices = Depends(get_services),
):
    """Cancel the swap; its target, incoming proposals and auction are withdrawn."""
    swap = await services.swaps.cancel_swap(require_uuid(swap_id, "swap_id"), current_user.id)
    return SwapResponse.from_entity(swap)


@router.get("/{swap_id}/proposals", response_model=List[ProposalResponse])
async def list_swap_proposals(
    swap_id: str,
    proposal_status: Optional[ProposalStatus] = Query(default=None, alias="status"),
    current_user: User = Depends(get_current_user),
    services: SwapServices = Depends(get_services),
):
    """Proposals received by the swap (owner only), oldest first."""
    proposals = await services.proposals.list_proposals_for_swap(
        require_uuid(swap_id, "swap_id"), current_user.id, proposal_status
    )
    return [ProposalResponse.from_entity(p) for p in proposals]
