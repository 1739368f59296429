"""Report orchestration.

Composes the access gate with the aggregation services so that route
handlers stay thin:

1. resolve the households the caller may see (or check a single one),
2. summarise each household concurrently,
3. merge, evaluate budgets or derive suggestions.

Collaborator failures are never caught here; a failed fetch fails the
whole report.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Iterable, List, Optional

from app.core.errors import NotFound, ValidationFailed
from app.models.enums import HouseholdAction, MutationEvent
from app.models.schemas import (
    BudgetCreate,
    BudgetOverview,
    BudgetRead,
    BudgetUpdate,
    ReceiptFilters,
    Suggestion,
    Summary,
)
from app.services.access_control import AccessControlGate
from app.services.budget_service import BudgetProgressCalculator, DateWindow, find_overlapping
from app.services.cache import ReportCache
from app.services.merge_service import summarize_households
from app.services.repositories import BudgetRepository, CategoryRepository
from app.services.suggestion_service import SuggestionEngine
from app.services.summary_service import SummaryAggregator

logger = logging.getLogger(__name__)


class ReportService:
    """Entry point for summary, budget and suggestion reports."""

    def __init__(
        self,
        gate: AccessControlGate,
        aggregator: SummaryAggregator,
        budgets: BudgetRepository,
        categories: CategoryRepository,
        cache: Optional[ReportCache] = None,
        trailing_months: int = 3,
    ) -> None:
        self.gate = gate
        self.aggregator = aggregator
        self.budgets = budgets
        self.categories = categories
        self.cache = cache or ReportCache()
        self.calculator = BudgetProgressCalculator(aggregator)
        self.suggestions = SuggestionEngine(aggregator)
        self.trailing_months = trailing_months

    # --- Summaries -----------------------------------------------------
    async def summary_for_user(
        self,
        user_id: int,
        requested_ids: Iterable[int] = (),
        filters: Optional[ReceiptFilters] = None,
    ) -> Summary:
        """Merged summary over every requested household the user can see.

        Households the user cannot access are dropped; if none remain the
        zero summary is returned.
        """
        household_ids = await self.gate.resolve_accessible_households(requested_ids, user_id)
        return await summarize_households(self.aggregator, household_ids, filters)

    async def household_summary(
        self,
        user_id: int,
        household_id: int,
        filters: Optional[ReceiptFilters] = None,
    ) -> Summary:
        await self.gate.check_action(household_id, user_id, HouseholdAction.VIEW)
        return await self.aggregator.compute_summary(household_id, filters)

    # --- Budgets -------------------------------------------------------
    async def budget_overview(
        self,
        user_id: int,
        household_id: int,
        as_of: Optional[dt.date] = None,
        window: Optional[DateWindow] = None,
    ) -> BudgetOverview:
        await self.gate.check_action(household_id, user_id, HouseholdAction.VIEW)
        budgets = await self.budgets.list_budgets(household_id, active_only=True)
        return await self.calculator.overview(budgets, as_of or dt.date.today(), window)

    async def budget_suggestions(
        self,
        user_id: int,
        household_id: int,
        trailing_months: Optional[int] = None,
        as_of: Optional[dt.date] = None,
        exclude_budgeted: bool = False,
    ) -> List[Suggestion]:
        await self.gate.check_action(household_id, user_id, HouseholdAction.VIEW)
        as_of = as_of or dt.date.today()
        excluded: set[int] = set()
        if exclude_budgeted:
            excluded = {
                b.category_id
                for b in await self.budgets.list_budgets(household_id, active_only=True)
                if b.category_id is not None and b.start_date <= as_of <= b.end_date
            }
        return await self.suggestions.suggest(
            household_id,
            trailing_months=trailing_months or self.trailing_months,
            as_of=as_of,
            exclude_category_ids=excluded,
        )

    async def create_budget(self, user_id: int, household_id: int, data: BudgetCreate) -> BudgetRead:
        await self.gate.check_action(household_id, user_id, HouseholdAction.MANAGE_BUDGETS)
        if data.category_id is not None:
            category = await self.categories.get_category(household_id, data.category_id)
            if category is None:
                raise NotFound("Category not found")
        existing = await self.budgets.list_budgets(household_id, active_only=True)
        if find_overlapping(existing, data):
            raise ValidationFailed("A budget already exists for this category in the specified date range")
        budget = await self.budgets.create_budget(household_id, data)
        logger.info("[budgets] created budget=%s household=%s by user=%s", budget.id, household_id, user_id)
        await self.cache.handle_event(MutationEvent.BUDGET_CREATED, household_id)
        return budget

    async def _require_budget(self, household_id: int, budget_id: int) -> BudgetRead:
        budget = await self.budgets.get_budget(household_id, budget_id)
        if budget is None:
            raise NotFound("Budget not found")
        return budget

    async def update_budget(
        self,
        user_id: int,
        household_id: int,
        budget_id: int,
        data: BudgetUpdate,
    ) -> BudgetRead:
        """Apply a partial update; the merged budget must still be valid and not overlap."""
        await self.gate.check_action(household_id, user_id, HouseholdAction.MANAGE_BUDGETS)
        current = await self._require_budget(household_id, budget_id)
        changes = data.model_dump(exclude_unset=True)
        merged = current.model_copy(update=changes)
        if merged.end_date < merged.start_date:
            raise ValidationFailed("end_date must not be before start_date")
        if changes.get("category_id") is not None:
            if await self.categories.get_category(household_id, changes["category_id"]) is None:
                raise NotFound("Category not found")
        if merged.is_active:
            existing = await self.budgets.list_budgets(household_id, active_only=True)
            if find_overlapping(existing, merged, exclude_id=budget_id):
                raise ValidationFailed("A budget already exists for this category in the specified date range")
        budget = await self.budgets.update_budget(household_id, budget_id, changes)
        logger.info("[budgets] updated budget=%s household=%s by user=%s", budget_id, household_id, user_id)
        await self.cache.handle_event(MutationEvent.BUDGET_UPDATED, household_id)
        return budget

    async def delete_budget(self, user_id: int, household_id: int, budget_id: int) -> None:
        await self.gate.check_action(household_id, user_id, HouseholdAction.MANAGE_BUDGETS)
        await self._require_budget(household_id, budget_id)
        await self.budgets.delete_budget(household_id, budget_id)
        logger.info("[budgets] deleted budget=%s household=%s by user=%s", budget_id, household_id, user_id)
        await self.cache.handle_event(MutationEvent.BUDGET_DELETED, household_id)


__all__ = ["ReportService"]
