"""Swap targeting routes. In every /{swap_id}/... route the path id is the target swap."""
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, status

from app.api.deps import get_current_user, get_services
from app.api.swaps.swap_models import (
    RemoveTargetRequest,
    TargetingHistoryResponse,
    TargetingRelationResponse,
    TargetingResultResponse,
    TargetingStatusResponse,
    TargetingValidationResponse,
    TargetRequest,
)
from app.domain.common.types import require_uuid
from app.domain.users.models import User
from app.services.container import SwapServices

router = APIRouter()


@router.get("/targeting/incoming", response_model=List[TargetingRelationResponse])
async def swaps_targeting_me(
    current_user: User = Depends(get_current_user),
    services: SwapServices = Depends(get_services),
):
    """Active targeting relations pointing at the caller's swaps."""
    relations = await services.targeting.get_swaps_targeting_me(current_user.id)
    return [TargetingRelationResponse.from_entity(r) for r in relations]


@router.get("/targeting/activity", response_model=List[TargetingStatusResponse])
async def my_targeting_activity(
    current_user: User = Depends(get_current_user),
    services: SwapServices = Depends(get_services),
):
    views = await services.targeting.get_user_targeting_activity(current_user.id)
    return [TargetingStatusResponse.from_entity(v) for v in views]


@router.post("/{swap_id}/target", response_model=TargetingResultResponse, status_code=status.HTTP_201_CREATED)
async def target_swap(
    swap_id: str,
    request: TargetRequest,
    current_user: User = Depends(get_current_user),
    services: SwapServices = Depends(get_services),
):
    """Point one of the caller's swaps at this swap; creates a pending proposal."""
    result = await services.targeting.target_swap(
        request.source_swap_id,
        require_uuid(swap_id, "swap_id"),
        current_user.id,
        message=request.message,
        conditions=request.conditions,
        cash_offer=request.cash_offer.to_domain() if request.cash_offer else None,
    )
    return TargetingResultResponse.from_entity(result)


@router.put("/{swap_id}/retarget", response_model=TargetingResultResponse)
async def retarget_swap(
    swap_id: str,
    request: TargetRequest,
    current_user: User = Depends(get_current_user),
    services: SwapServices = Depends(get_services),
):
    """Move the source swap's current target to this swap in one transaction."""
    result = await services.targeting.retarget_swap(
        request.source_swap_id,
        require_uuid(swap_id, "swap_id"),
        current_user.id,
        message=request.message,
        conditions=request.conditions,
        cash_offer=request.cash_offer.to_domain() if request.cash_offer else None,
    )
    return TargetingResultResponse.from_entity(result)


@router.delete("/{swap_id}/target", response_model=TargetingRelationResponse)
async def remove_target(
    swap_id: str,
    request: RemoveTargetRequest = Body(...),
    current_user: User = Depends(get_current_user),
    services: SwapServices = Depends(get_services),
):
    relation = await services.targeting.remove_target(
        request.source_swap_id, current_user.id, target_swap_id=require_uuid(swap_id, "swap_id")
    )
    return TargetingRelationResponse.from_entity(relation)


@router.get("/{swap_id}/targeting-status", response_model=TargetingStatusResponse)
async def targeting_status(
    swap_id: str,
    current_user: User = Depends(get_current_user),
    services: SwapServices = Depends(get_services),
):
    view = await services.targeting.get_targeting_status(require_uuid(swap_id, "swap_id"))
    return TargetingStatusResponse.from_entity(view)


@router.get("/{swap_id}/can-target", response_model=TargetingValidationResponse)
async def can_target(
    swap_id: str,
    source_swap_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    services: SwapServices = Depends(get_services),
):
    """Eligibility check for the UI; same rules as POST /target, nothing is written."""
    verdict = await services.targeting.check_can_target(
        require_uuid(swap_id, "swap_id"),
        current_user.id,
        require_uuid(source_swap_id, "source_swap_id") if source_swap_id else None,
    )
    return TargetingValidationResponse.from_entity(verdict)


@router.get("/{swap_id}/targeting-history", response_model=List[TargetingHistoryResponse])
async def targeting_history(
    swap_id: str,
    limit: int = 100,
    current_user: User = Depends(get_current_user),
    services: SwapServices = Depends(get_services),
):
    if limit < 1 or limit > 500:
        limit = 100
    entries = await services.targeting.get_targeting_history(
        require_uuid(swap_id, "swap_id"), current_user.id, limit
    )
    return [TargetingHistoryResponse.from_entity(e) for e in entries]
