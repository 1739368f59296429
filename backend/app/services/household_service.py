"""Household membership changes guarded by the access gate."""

from __future__ import annotations

import logging
from typing import Optional

from app.core.errors import Conflict, NotFound
from app.models.enums import HouseholdRole, MutationEvent
from app.models.schemas import MembershipRecord
from app.services.access_control import AccessControlGate
from app.services.cache import ReportCache
from app.services.repositories import MembershipRepository

logger = logging.getLogger(__name__)


class HouseholdService:
    def __init__(
        self,
        gate: AccessControlGate,
        memberships: MembershipRepository,
        cache: Optional[ReportCache] = None,
    ) -> None:
        self.gate = gate
        self.memberships = memberships
        self.cache = cache or ReportCache()

    async def add_member(
        self,
        household_id: int,
        actor_id: int,
        user_id: int,
        role: HouseholdRole = HouseholdRole.MEMBER,
    ) -> MembershipRecord:
        """Add ``user_id`` to the household, reactivating a former membership."""
        await self.gate.check_can_add_member(household_id, actor_id, role)
        if not await self.memberships.user_exists(user_id):
            raise NotFound(f"User with ID {user_id} not found")
        existing = await self.memberships.get_membership(household_id, user_id)
        if existing is not None and existing.is_active:
            raise Conflict("User is already a member of this household")
        membership = await self.memberships.add_membership(household_id, user_id, role)
        logger.info(
            "[households] added user=%s to household=%s role=%s by=%s",
            user_id,
            household_id,
            role.value,
            actor_id,
        )
        await self.cache.handle_event(MutationEvent.MEMBERSHIP_CHANGED, household_id, user_ids=[user_id])
        return membership

    async def remove_member(self, household_id: int, actor_id: int, target_user_id: int) -> None:
        """Deactivate a membership; the row is kept for history."""
        await self.gate.check_can_remove_member(household_id, actor_id, target_user_id)
        await self.memberships.deactivate_membership(household_id, target_user_id)
        logger.info("[households] removed user=%s from household=%s by=%s", target_user_id, household_id, actor_id)
        await self.cache.handle_event(MutationEvent.MEMBERSHIP_CHANGED, household_id, user_ids=[target_user_id])

    async def change_member_role(
        self,
        household_id: int,
        actor_id: int,
        target_user_id: int,
        new_role: HouseholdRole,
    ) -> None:
        await self.gate.check_can_change_role(household_id, actor_id, target_user_id, new_role)
        await self.memberships.set_role(household_id, target_user_id, new_role)
        logger.info(
            "[households] role user=%s household=%s role=%s by=%s",
            target_user_id,
            household_id,
            new_role.value,
            actor_id,
        )
        await self.cache.handle_event(MutationEvent.MEMBERSHIP_CHANGED, household_id, user_ids=[target_user_id])


__all__ = ["HouseholdService"]
