"""Budget suggestions from trailing spending history.

For each category the engine sums spending over the ``trailing_months``
full calendar months ending the month before ``as_of`` and divides by
``trailing_months`` (a fixed divisor, so months without receipts count as
zero).  The suggestion is that monthly average plus a flat buffer
(``SUGGESTION_BUFFER``, 10% by default), rounded to cents.

Categories with no history still get a zero suggestion so callers can
show "no history" explicitly.
"""

from __future__ import annotations

import datetime as dt
import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from app.core.config import settings
from app.models.schemas import (
    CategoryRead,
    HistoricalSpending,
    ReceiptFilters,
    SuggestedAmounts,
    Suggestion,
)
from app.services.summary_service import SummaryAggregator
from app.utils.helpers import ZERO, money, trailing_months_window

logger = logging.getLogger(__name__)

MONTHS_PER_YEAR = 12


def build_suggestions(
    categories: Iterable[CategoryRead],
    spending_by_category: Dict[int, Decimal],
    trailing_months: int,
    buffer: Decimal = Decimal("1.10"),
) -> List[Suggestion]:
    """Pure suggestion builder; ``spending_by_category`` holds trailing-window totals."""
    if trailing_months < 1:
        raise ValueError("trailing_months must be at least 1")
    suggestions: List[Suggestion] = []
    for category in categories:
        spent = spending_by_category.get(category.id, ZERO)
        average_monthly = money(spent / trailing_months)
        monthly = money(average_monthly * buffer)
        suggestions.append(
            Suggestion(
                category=category,
                historical_spending=HistoricalSpending(last_n_months=spent, average_monthly=average_monthly),
                suggestions=SuggestedAmounts(monthly=monthly, yearly=monthly * MONTHS_PER_YEAR),
            )
        )
    suggestions.sort(key=lambda s: (-s.suggestions.monthly, s.category.name, s.category.id))
    return suggestions


class SuggestionEngine:
    """Derives per-category monthly budget suggestions for one household."""

    def __init__(self, aggregator: SummaryAggregator, buffer: Optional[Decimal] = None) -> None:
        self.aggregator = aggregator
        self.buffer = buffer if buffer is not None else settings.SUGGESTION_BUFFER

    async def suggest(
        self,
        household_id: int,
        categories: Optional[Iterable[CategoryRead]] = None,
        trailing_months: int = 3,
        as_of: Optional[dt.date] = None,
        exclude_category_ids: Iterable[int] = (),
    ) -> List[Suggestion]:
        """Suggest a monthly budget for each category of ``household_id``.

        :param categories: categories to consider; defaults to the
            household's active categories.
        :param exclude_category_ids: categories to skip, e.g. those that
            already have an active budget for the current period.
        """
        start, end = trailing_months_window(as_of or dt.date.today(), trailing_months)
        if categories is None:
            categories = [
                c for c in await self.aggregator.categories.list_categories(household_id) if c.is_active
            ]
        excluded = set(exclude_category_ids)
        selected = [c for c in categories if c.id not in excluded]

        summary = await self.aggregator.compute_summary(
            household_id,
            ReceiptFilters(start_date=start, end_date=end),
        )
        spending = {entry.category.id: entry.total for entry in summary.by_category}
        suggestions = build_suggestions(selected, spending, trailing_months, self.buffer)
        logger.info(
            "[suggestions] household=%s window=%s..%s categories=%d",
            household_id,
            start,
            end,
            len(suggestions),
        )
        return suggestions


__all__ = ["SuggestionEngine", "build_suggestions"]
