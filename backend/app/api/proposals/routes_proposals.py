"""Proposal response routes (the target swap's owner accepts or rejects)."""
from typing import Optional

from fastapi import APIRouter, Depends

from app.api.deps import get_current_user, get_services
from app.api.swaps.swap_models import AcceptanceResponse, ProposalResponse, RejectRequest
from app.domain.common.errors import AuthorizationError
from app.domain.common.types import require_uuid
from app.domain.users.models import User
from app.services.container import SwapServices

router = APIRouter()


@router.get("/{proposal_id}", response_model=ProposalResponse)
async def get_proposal(
    proposal_id: str,
    current_user: User = Depends(get_current_user),
    services: SwapServices = Depends(get_services),
):
    """Visible to the proposer and to the owner of the target swap."""
    proposal = await services.proposals.get_proposal(require_uuid(proposal_id, "proposal_id"))
    if proposal.proposer_id != current_user.id:
        target = await services.swaps.get_swap(proposal.target_swap_id)
        if target.owner_id != current_user.id:
            raise AuthorizationError("You are not part of this proposal")
    return ProposalResponse.from_entity(proposal)


@router.post("/{proposal_id}/accept", response_model=AcceptanceResponse)
async def accept_proposal(
    proposal_id: str,
    current_user: User = Depends(get_current_user),
    services: SwapServices = Depends(get_services),
):
    result = await services.proposals.accept_proposal(require_uuid(proposal_id, "proposal_id"), current_user.id)
    return AcceptanceResponse.from_entity(result)


@router.post("/{proposal_id}/reject", response_model=ProposalResponse)
async def reject_proposal(
    proposal_id: str,
    request: Optional[RejectRequest] = None,
    current_user: User = Depends(get_current_user),
    services: SwapServices = Depends(get_services),
):
    proposal = await services.proposals.reject_proposal(
        require_uuid(proposal_id, "proposal_id"), current_user.id, request.reason if request else None
    )
    return ProposalResponse.from_entity(proposal)
