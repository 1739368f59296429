"""Spending summary for a single household.

``summarize`` is the pure core: given receipts, the household's
categories and a filter, it returns totals, the average and a
per-category breakdown.  It re-applies the filter in memory, so the
result does not depend on how precisely the persistence layer filtered.

Breakdown ordering is total descending, then category name ascending,
then category id, which makes equal totals deterministic.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from app.core.errors import ValidationFailed
from app.models.schemas import (
    CategoryBreakdown,
    CategoryRead,
    ReceiptFilters,
    ReceiptRecord,
    Summary,
)
from app.services.cache import ReportCache
from app.services.repositories import CategoryRepository, ReceiptRepository
from app.utils.helpers import ZERO, money, safe_divide

logger = logging.getLogger(__name__)


def receipt_matches(receipt: ReceiptRecord, filters: ReceiptFilters) -> bool:
    """Return True when ``receipt`` satisfies every filter that is set."""
    if filters.start_date is not None and receipt.receipt_date < filters.start_date:
        return False
    if filters.end_date is not None and receipt.receipt_date > filters.end_date:
        return False
    if filters.category_ids and receipt.category_id not in filters.category_ids:
        return False
    if filters.min_amount is not None and receipt.amount < filters.min_amount:
        return False
    if filters.max_amount is not None and receipt.amount > filters.max_amount:
        return False
    if filters.search:
        needle = filters.search.lower()
        haystacks = (receipt.title or "", receipt.notes or "")
        if not any(needle in h.lower() for h in haystacks):
            return False
    return True


def validate_receipt_category(receipt: ReceiptRecord, category: Optional[CategoryRead]) -> None:
    """Raise :class:`ValidationFailed` unless ``category`` belongs to the receipt's household."""
    if category is None or category.household_id != receipt.household_id:
        raise ValidationFailed("Category does not belong to this household")


def breakdown_sort_key(entry: CategoryBreakdown) -> Tuple[Decimal, str, int]:
    return (-entry.total, entry.category.name, entry.category.id)


def sort_breakdown(entries: Iterable[CategoryBreakdown]) -> List[CategoryBreakdown]:
    return sorted(entries, key=breakdown_sort_key)


def build_summary(total_receipts: int, total_amount: Decimal, entries: Iterable[CategoryBreakdown]) -> Summary:
    """Assemble a Summary, deriving the average from the totals."""
    return Summary(
        total_receipts=total_receipts,
        total_amount=total_amount,
        average_amount=money(safe_divide(total_amount, total_receipts)) if total_receipts else ZERO,
        by_category=sort_breakdown(entries),
    )


def summarize(
    receipts: Iterable[ReceiptRecord],
    categories: Mapping[int, CategoryRead],
    filters: Optional[ReceiptFilters] = None,
) -> Summary:
    """Compute totals and the category breakdown for the matching receipts.

    ``categories`` must hold the household's categories; a matching receipt
    whose category is not among them raises :class:`ValidationFailed`.
    """
    filters = filters or ReceiptFilters()
    counts: Dict[int, int] = {}
    totals: Dict[int, Decimal] = {}
    total_receipts = 0
    total_amount = ZERO
    for receipt in receipts:
        if not receipt_matches(receipt, filters):
            continue
        validate_receipt_category(receipt, categories.get(receipt.category_id))
        total_receipts += 1
        total_amount += receipt.amount
        counts[receipt.category_id] = counts.get(receipt.category_id, 0) + 1
        totals[receipt.category_id] = totals.get(receipt.category_id, ZERO) + receipt.amount

    entries = [
        CategoryBreakdown(category=categories[cid], count=counts[cid], total=totals[cid])
        for cid in counts
    ]
    return build_summary(total_receipts, total_amount, entries)


class SummaryAggregator:
    """Fetches a household's receipts and categories and summarises them."""

    def __init__(
        self,
        receipts: ReceiptRepository,
        categories: CategoryRepository,
        cache: Optional[ReportCache] = None,
    ) -> None:
        self.receipts = receipts
        self.categories = categories
        self.cache = cache

    async def _compute(self, household_id: int, filters: ReceiptFilters) -> Summary:
        rows = await self.receipts.list_receipts(household_id, filters)
        categories = {c.id: c for c in await self.categories.list_categories(household_id)}
        summary = summarize(rows, categories, filters)
        logger.debug(
            "[summary] household=%s receipts=%d total=%s",
            household_id,
            summary.total_receipts,
            summary.total_amount,
        )
        return summary

    async def compute_summary(self, household_id: int, filters: Optional[ReceiptFilters] = None) -> Summary:
        filters = filters or ReceiptFilters()
        if self.cache is None:
            return await self._compute(household_id, filters)
        return await self.cache.get_or_compute(
            self.cache.summary_key(household_id, filters),
            lambda: self._compute(household_id, filters),
            dump=lambda s: s.model_dump(mode="json"),
            load=Summary.model_validate,
        )

    async def total_spending(self, household_id: int, filters: ReceiptFilters) -> Decimal:
        return (await self.compute_summary(household_id, filters)).total_amount


__all__ = [
    "SummaryAggregator",
    "summarize",
    "receipt_matches",
    "sort_breakdown",
    "build_summary",
    "validate_receipt_category",
]
