"""API routes for managing household members."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from app.api.dependencies import get_current_user_id, get_household_service
from app.models.schemas import MemberAdd, MemberRoleUpdate, MembershipRecord
from app.services.household_service import HouseholdService

router = APIRouter(prefix="/households", tags=["households"])


@router.post("/{household_id}/members", response_model=MembershipRecord, status_code=status.HTTP_201_CREATED)
async def add_member(
    household_id: int,
    body: MemberAdd,
    user_id: int = Depends(get_current_user_id),
    service: HouseholdService = Depends(get_household_service),
) -> MembershipRecord:
    """Add an existing user to the household (owner/admin only)."""
    return await service.add_member(household_id, user_id, body.user_id, body.role)


@router.delete("/{household_id}/members/{member_user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    household_id: int,
    member_user_id: int,
    user_id: int = Depends(get_current_user_id),
    service: HouseholdService = Depends(get_household_service),
) -> Response:
    """Remove a member (owner/admin only). Owners cannot be removed."""
    await service.remove_member(household_id, user_id, member_user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{household_id}/members/{member_user_id}/role", status_code=status.HTTP_204_NO_CONTENT)
async def update_member_role(
    household_id: int,
    member_user_id: int,
    body: MemberRoleUpdate,
    user_id: int = Depends(get_current_user_id),
    service: HouseholdService = Depends(get_household_service),
) -> Response:
    """Change a member's role; granting or revoking OWNER needs an owner."""
    await service.change_member_role(household_id, user_id, member_user_id, body.role)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
