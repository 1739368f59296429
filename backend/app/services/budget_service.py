"""Budget progress tracking.

``evaluate`` turns a budget and the amount spent against it into a
``BudgetOverviewItem``: remaining amount, percentage used, a linear
projection of end-of-period spending and a status.  Every ratio is
guarded so a zero amount or a not-yet-started period never raises.

Status precedence (first match wins)::

    spending > amount        -> Over Budget
    projected > amount       -> Off Track
    otherwise                -> On Track

Spending is produced by the ``SummaryAggregator`` scoped to the budget's
household and category, over the budget period intersected with any
requested window.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple, Union

from app.models.enums import BudgetStatus
from app.models.schemas import (
    BudgetCreate,
    BudgetOverview,
    BudgetOverviewItem,
    BudgetRead,
    ReceiptFilters,
)
from app.services.summary_service import SummaryAggregator
from app.utils.helpers import ZERO, intersect_ranges, safe_divide, to_decimal

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")

DateWindow = Tuple[Optional[dt.date], Optional[dt.date]]


def budget_status(is_over_budget: bool, on_track: bool) -> BudgetStatus:
    if is_over_budget:
        return BudgetStatus.OVER_BUDGET
    if not on_track:
        return BudgetStatus.OFF_TRACK
    return BudgetStatus.ON_TRACK


def evaluate(budget: BudgetRead, current_spending: Union[Decimal, int, float, str], as_of: dt.date) -> BudgetOverviewItem:
    """Compute progress metrics for ``budget`` as of ``as_of``."""
    spending = to_decimal(current_spending)
    amount = to_decimal(budget.amount)

    period_length_days = (budget.end_date - budget.start_date).days + 1
    elapsed_days = min(max((as_of - budget.start_date).days + 1, 1), period_length_days)
    average_daily = safe_divide(spending, elapsed_days)
    projected = average_daily * period_length_days

    is_over_budget = spending > amount
    on_track = projected <= amount
    return BudgetOverviewItem(
        budget=budget,
        current_spending=spending,
        remaining=amount - spending,
        percentage_used=safe_divide(spending, amount) * HUNDRED,
        is_over_budget=is_over_budget,
        on_track=on_track,
        days_remaining=max(0, (budget.end_date - as_of).days),
        days_elapsed=elapsed_days,
        average_daily_spending=average_daily,
        projected_spending=projected,
        status=budget_status(is_over_budget, on_track),
    )


def spending_filters(budget: BudgetRead, window: Optional[DateWindow] = None) -> Optional[ReceiptFilters]:
    """Receipt filters for the spending counted against ``budget``.

    Returns None when ``window`` does not overlap the budget period.
    """
    bounds = intersect_ranges((budget.start_date, budget.end_date), window or (None, None))
    if bounds is None:
        return None
    return ReceiptFilters(
        start_date=bounds[0],
        end_date=bounds[1],
        category_ids={budget.category_id} if budget.category_id is not None else None,
    )


def summarize_overview(items: List[BudgetOverviewItem]) -> BudgetOverview:
    total_budget_amount = sum((i.budget.amount for i in items), ZERO)
    total_spent = sum((i.current_spending for i in items), ZERO)
    return BudgetOverview(
        total_budgets=len(items),
        total_budget_amount=total_budget_amount,
        total_spent=total_spent,
        total_remaining=total_budget_amount - total_spent,
        overall_percentage=safe_divide(total_spent, total_budget_amount) * HUNDRED,
        over_budget_count=sum(1 for i in items if i.is_over_budget),
        budgets=items,
    )


def _periods_overlap(a_start: dt.date, a_end: dt.date, b_start: dt.date, b_end: dt.date) -> bool:
    return a_start <= b_end and b_start <= a_end


def find_overlapping(
    budgets: Iterable[BudgetRead],
    candidate: Union[BudgetCreate, BudgetRead],
    exclude_id: Optional[int] = None,
) -> List[BudgetRead]:
    """Active budgets with the same scope as ``candidate`` whose periods overlap it.

    Same scope means the same category, or both whole-household budgets.
    """
    return [
        b
        for b in budgets
        if b.is_active
        and b.id != exclude_id
        and b.category_id == candidate.category_id
        and _periods_overlap(b.start_date, b.end_date, candidate.start_date, candidate.end_date)
    ]


class BudgetProgressCalculator:
    """Enriches budgets with the spending recorded against them."""

    def __init__(self, aggregator: SummaryAggregator) -> None:
        self.aggregator = aggregator

    async def current_spending(self, budget: BudgetRead, window: Optional[DateWindow] = None) -> Decimal:
        filters = spending_filters(budget, window)
        if filters is None:
            return ZERO
        return await self.aggregator.total_spending(budget.household_id, filters)

    async def evaluate_budget(
        self,
        budget: BudgetRead,
        as_of: dt.date,
        window: Optional[DateWindow] = None,
    ) -> BudgetOverviewItem:
        return evaluate(budget, await self.current_spending(budget, window), as_of)

    async def overview(
        self,
        budgets: Iterable[BudgetRead],
        as_of: dt.date,
        window: Optional[DateWindow] = None,
    ) -> BudgetOverview:
        budgets = list(budgets)
        items = await asyncio.gather(*(self.evaluate_budget(b, as_of, window) for b in budgets))
        overview = summarize_overview(list(items))
        logger.info(
            "[budgets] overview budgets=%d spent=%s over=%d",
            overview.total_budgets,
            overview.total_spent,
            overview.over_budget_count,
        )
        return overview


__all__ = [
    "BudgetProgressCalculator",
    "evaluate",
    "budget_status",
    "spending_filters",
    "summarize_overview",
    "find_overlapping",
]
