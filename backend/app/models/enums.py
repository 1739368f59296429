"""Enumeration types used throughout the household budget API.

Enumerations make it easier to constrain the values that can be
stored in the database or passed through the API. They also
improve readability when dealing with domain concepts like member
roles, budget periods or progress statuses.

When modifying these enums you should update any corresponding
database columns or Pydantic validators so that new values are
accepted where appropriate.
"""

from enum import Enum


class HouseholdRole(str, Enum):
    """Access level of a member within a household, most privileged first."""

    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


class HouseholdAction(str, Enum):
    """Operations gated by the capability table in ``access_control``."""

    VIEW = "view"
    MANAGE_RECEIPTS = "manage_receipts"
    MANAGE_CATEGORIES = "manage_categories"
    MANAGE_BUDGETS = "manage_budgets"
    INVITE_MEMBER = "invite_member"
    REMOVE_MEMBER = "remove_member"
    CHANGE_MEMBER_ROLE = "change_member_role"
    DELETE_HOUSEHOLD = "delete_household"
    TRANSFER_OWNERSHIP = "transfer_ownership"
    REMOVE_OWNER = "remove_owner"


class BudgetPeriod(str, Enum):
    """Length of a budget period."""

    MONTHLY = "monthly"
    YEARLY = "yearly"
    CUSTOM = "custom"


class BudgetStatus(str, Enum):
    """Progress status of a budget, in precedence order."""

    OVER_BUDGET = "Over Budget"
    OFF_TRACK = "Off Track"
    ON_TRACK = "On Track"


class MutationEvent(str, Enum):
    """Data changes that invalidate cached reports."""

    RECEIPT_CREATED = "receipt.created"
    RECEIPT_UPDATED = "receipt.updated"
    RECEIPT_DELETED = "receipt.deleted"
    CATEGORY_CREATED = "category.created"
    CATEGORY_UPDATED = "category.updated"
    CATEGORY_DELETED = "category.deleted"
    BUDGET_CREATED = "budget.created"
    BUDGET_UPDATED = "budget.updated"
    BUDGET_DELETED = "budget.deleted"
    MEMBERSHIP_CHANGED = "membership.changed"
