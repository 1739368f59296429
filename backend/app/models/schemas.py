"""Pydantic schemas for records, reports and API payloads.

Pydantic models are used for validating and serialising data that
crosses the boundary of the API and of the persistence layer. The
aggregation services operate purely on these models: repositories
convert ORM rows into the ``*Read``/``*Record`` shapes below and the
services return the derived report shapes (``Summary``,
``BudgetOverviewItem``, ``Suggestion``).

Whenever you modify the underlying SQLAlchemy models be sure to
update these Pydantic models accordingly. Schemas are intentionally
separate from the ORM models so the report layer never touches a
database session.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List, Optional, Set

from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict

from .enums import HouseholdRole, BudgetPeriod, BudgetStatus


ZERO = Decimal("0")


# ---------------------------------------------------------------------------
# Records fetched from the persistence collaborator


class MembershipRecord(BaseModel):
    """(household, user, role, active) relation granting access."""

    household_id: int
    user_id: int
    role: HouseholdRole
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)


class CategoryRead(BaseModel):
    id: int
    household_id: int
    name: str
    description: Optional[str] = None
    monthly_budget: Optional[Decimal] = None
    is_active: bool = True
    is_system: bool = False

    model_config = ConfigDict(from_attributes=True)


class ReceiptRecord(BaseModel):
    id: int
    household_id: int
    category_id: int
    title: str
    amount: Decimal = Field(ge=0)
    receipt_date: date
    notes: Optional[str] = None
    photo_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class BudgetRead(BaseModel):
    id: int
    household_id: int
    category_id: Optional[int] = None
    name: str
    # Stored rows are trusted as-is; creation enforces amount > 0.
    amount: Decimal = Field(ge=0)
    period: BudgetPeriod = BudgetPeriod.MONTHLY
    start_date: date
    end_date: date
    is_recurring: bool = False
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class BudgetCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    amount: Decimal = Field(gt=0)
    period: BudgetPeriod = BudgetPeriod.MONTHLY
    start_date: date
    end_date: date
    category_id: Optional[int] = None
    is_recurring: bool = False

    @field_validator("name", mode="before")
    def sanitize_name(cls, v):
        from app.utils.sanitization import sanitize_string
        return sanitize_string(v) if v is not None else v

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class BudgetUpdate(BaseModel):
    """Partial budget update; unset fields keep their stored value."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    amount: Optional[Decimal] = Field(default=None, gt=0)
    period: Optional[BudgetPeriod] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    category_id: Optional[int] = None
    is_recurring: Optional[bool] = None
    is_active: Optional[bool] = None

    @field_validator("name", mode="before")
    def sanitize_name(cls, v):
        from app.utils.sanitization import sanitize_string
        return sanitize_string(v) if v is not None else v


class ReceiptFilters(BaseModel):
    """Optional, AND-combined receipt filters. Date and amount bounds are inclusive."""

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    category_ids: Optional[Set[int]] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    search: Optional[str] = None

    @field_validator("search", mode="before")
    def blank_search_is_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


# ---------------------------------------------------------------------------
# Derived reports (never persisted)


class CategoryBreakdown(BaseModel):
    category: CategoryRead
    count: int
    total: Decimal


class Summary(BaseModel):
    total_receipts: int = 0
    total_amount: Decimal = ZERO
    average_amount: Decimal = ZERO
    by_category: List[CategoryBreakdown] = Field(default_factory=list)

    @classmethod
    def zero(cls) -> "Summary":
        return cls()


class BudgetOverviewItem(BaseModel):
    budget: BudgetRead
    current_spending: Decimal
    remaining: Decimal
    percentage_used: Decimal
    is_over_budget: bool
    on_track: bool
    days_remaining: int
    days_elapsed: int
    average_daily_spending: Decimal
    projected_spending: Decimal
    status: BudgetStatus


class BudgetOverview(BaseModel):
    total_budgets: int = 0
    total_budget_amount: Decimal = ZERO
    total_spent: Decimal = ZERO
    total_remaining: Decimal = ZERO
    overall_percentage: Decimal = ZERO
    over_budget_count: int = 0
    budgets: List[BudgetOverviewItem] = Field(default_factory=list)


class HistoricalSpending(BaseModel):
    last_n_months: Decimal
    average_monthly: Decimal


class SuggestedAmounts(BaseModel):
    monthly: Decimal
    yearly: Decimal


class Suggestion(BaseModel):
    category: CategoryRead
    historical_spending: HistoricalSpending
    suggestions: SuggestedAmounts


# ---------------------------------------------------------------------------
# API request schemas


class MemberRoleUpdate(BaseModel):
    role: HouseholdRole


class MemberAdd(BaseModel):
    user_id: int
    role: HouseholdRole = HouseholdRole.MEMBER
