"""Household access control.

Every permission decision goes through this module.  Which roles may
perform which action is declared once in ``CAPABILITIES``; callers ask
for an action (``check_action``) instead of repeating role lists.

Role hierarchy, most privileged first: OWNER, ADMIN, MEMBER, VIEWER.

Two kinds of outcome exist and they must not be confused:

* **Scoping** (``resolve_accessible_households``) silently drops household
  ids the caller cannot see.  An empty result means "no data".
* **Authorization** (``check_*``) raises :class:`PermissionDenied` when the
  caller has no active membership or an insufficient role.
"""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Iterable, List, Optional, Set

from app.core.errors import NotFound, PermissionDenied
from app.core.observability import sentry_breadcrumb
from app.models.enums import HouseholdAction, HouseholdRole
from app.models.schemas import MembershipRecord
from app.services.cache import ReportCache
from app.services.repositories import MembershipRepository

logger = logging.getLogger(__name__)

_ALL_ROLES = frozenset(HouseholdRole)
_CONTRIBUTORS = frozenset({HouseholdRole.OWNER, HouseholdRole.ADMIN, HouseholdRole.MEMBER})
_MANAGERS = frozenset({HouseholdRole.OWNER, HouseholdRole.ADMIN})
_OWNERS = frozenset({HouseholdRole.OWNER})

CAPABILITIES: Dict[HouseholdAction, FrozenSet[HouseholdRole]] = {
    HouseholdAction.VIEW: _ALL_ROLES,
    HouseholdAction.MANAGE_RECEIPTS: _CONTRIBUTORS,
    HouseholdAction.MANAGE_CATEGORIES: _CONTRIBUTORS,
    HouseholdAction.MANAGE_BUDGETS: _CONTRIBUTORS,
    HouseholdAction.INVITE_MEMBER: _MANAGERS,
    HouseholdAction.REMOVE_MEMBER: _MANAGERS,
    HouseholdAction.CHANGE_MEMBER_ROLE: _MANAGERS,
    HouseholdAction.DELETE_HOUSEHOLD: _OWNERS,
    HouseholdAction.TRANSFER_OWNERSHIP: _OWNERS,
    HouseholdAction.REMOVE_OWNER: _OWNERS,
}


def allowed_roles(action: HouseholdAction) -> FrozenSet[HouseholdRole]:
    return CAPABILITIES[action]


def can_act(action: HouseholdAction, role: Optional[HouseholdRole]) -> bool:
    """Pure capability lookup; ``None`` (no membership) is never allowed."""
    return role is not None and role in CAPABILITIES[action]


def filter_accessible(requested_ids: Iterable[int], memberships: Iterable[MembershipRecord]) -> Set[int]:
    """Intersect ``requested_ids`` with the active memberships.

    An empty ``requested_ids`` means "all of the user's households".
    """
    active = {m.household_id for m in memberships if m.is_active}
    requested = set(requested_ids or ())
    if not requested:
        return active
    return requested & active


class AccessControlGate:
    """Resolves visible households and enforces role requirements."""

    def __init__(self, memberships: MembershipRepository, cache: Optional[ReportCache] = None) -> None:
        self.memberships = memberships
        self.cache = cache

    async def active_memberships(self, user_id: int) -> List[MembershipRecord]:
        """Active memberships of ``user_id``, read through the cache when one is configured."""
        if self.cache is None:
            return await self.memberships.list_active_memberships(user_id)
        return await self.cache.get_or_compute(
            self.cache.memberships_key(user_id),
            lambda: self.memberships.list_active_memberships(user_id),
            dump=lambda rows: [r.model_dump(mode="json") for r in rows],
            load=lambda raw: [MembershipRecord.model_validate(r) for r in raw],
            ttl=self.cache.membership_ttl_seconds,
        )

    async def resolve_accessible_households(self, requested_ids: Iterable[int], user_id: int) -> Set[int]:
        memberships = await self.active_memberships(user_id)
        accessible = filter_accessible(requested_ids, memberships)
        requested = set(requested_ids or ())
        dropped = requested - accessible if requested else set()
        if dropped:
            logger.info("[access] user=%s dropped inaccessible households=%s", user_id, sorted(dropped))
        return accessible

    async def check_can_act(
        self,
        household_id: int,
        user_id: int,
        roles: Iterable[HouseholdRole],
    ) -> MembershipRecord:
        """Return the caller's membership or raise :class:`PermissionDenied`.

        Always reads the membership fresh; cached memberships are only used
        for scoping reads.
        """
        membership = await self.memberships.get_membership(household_id, user_id)
        if membership is None or not membership.is_active or membership.role not in set(roles):
            logger.warning(
                "[access] denied user=%s household=%s role=%s",
                user_id,
                household_id,
                getattr(membership, "role", None),
            )
            sentry_breadcrumb(
                category="access",
                message="permission_denied",
                level="warning",
                data={"household_id": household_id, "user_id": user_id},
            )
            raise PermissionDenied()
        return membership

    async def check_action(self, household_id: int, user_id: int, action: HouseholdAction) -> MembershipRecord:
        return await self.check_can_act(household_id, user_id, allowed_roles(action))

    async def _active_target(self, household_id: int, target_user_id: int) -> MembershipRecord:
        target = await self.memberships.get_membership(household_id, target_user_id)
        if target is None or not target.is_active:
            raise NotFound("User is not a member of this household")
        return target

    async def check_can_add_member(self, household_id: int, actor_id: int, role: HouseholdRole) -> MembershipRecord:
        """Authorize adding a member with ``role``; adding an OWNER needs OWNER."""
        actor = await self.check_action(household_id, actor_id, HouseholdAction.INVITE_MEMBER)
        if role == HouseholdRole.OWNER:
            await self.check_action(household_id, actor_id, HouseholdAction.TRANSFER_OWNERSHIP)
        return actor

    async def check_can_remove_member(
        self,
        household_id: int,
        actor_id: int,
        target_user_id: int,
    ) -> MembershipRecord:
        """Authorize removing ``target_user_id``; returns the target membership.

        An OWNER membership is never removable, not even by another owner;
        only deleting the household removes it.
        """
        await self.check_action(household_id, actor_id, HouseholdAction.REMOVE_MEMBER)
        target = await self._active_target(household_id, target_user_id)
        if target.role == HouseholdRole.OWNER:
            raise PermissionDenied("Cannot remove the household owner")
        return target

    async def check_can_change_role(
        self,
        household_id: int,
        actor_id: int,
        target_user_id: int,
        new_role: HouseholdRole,
    ) -> MembershipRecord:
        """Authorize a role change; returns the target membership.

        Granting OWNER or changing an owner's role is an ownership transfer
        and needs OWNER; any other change needs OWNER or ADMIN.
        """
        await self.check_action(household_id, actor_id, HouseholdAction.CHANGE_MEMBER_ROLE)
        target = await self._active_target(household_id, target_user_id)
        if new_role == HouseholdRole.OWNER or target.role == HouseholdRole.OWNER:
            await self.check_action(household_id, actor_id, HouseholdAction.TRANSFER_OWNERSHIP)
        return target


__all__ = [
    "CAPABILITIES",
    "AccessControlGate",
    "allowed_roles",
    "can_act",
    "filter_accessible",
]
