"""Merge per-household summaries into one aggregate.

``merge_summaries`` is a fold with ``Summary.zero()`` as identity.
Category entries are accumulated by category id and the list is sorted
only after accumulation, so the result does not depend on the order in
which summaries arrive.  The average is recomputed from merged totals.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Dict, Iterable, Optional

from app.models.schemas import CategoryBreakdown, CategoryRead, ReceiptFilters, Summary
from app.services.summary_service import SummaryAggregator, build_summary
from app.utils.helpers import ZERO

logger = logging.getLogger(__name__)


def _representative(current: Optional[CategoryRead], candidate: CategoryRead) -> CategoryRead:
    # Same id from two summaries: keep the lowest (household_id, name) so the
    # result does not depend on arrival order.
    if current is None:
        return candidate
    return min(current, candidate, key=lambda c: (c.household_id, c.name))


def merge_summaries(summaries: Iterable[Summary]) -> Summary:
    total_receipts = 0
    total_amount = ZERO
    categories: Dict[int, CategoryRead] = {}
    counts: Dict[int, int] = {}
    totals: Dict[int, Decimal] = {}
    for summary in summaries:
        total_receipts += summary.total_receipts
        total_amount += summary.total_amount
        for entry in summary.by_category:
            cid = entry.category.id
            categories[cid] = _representative(categories.get(cid), entry.category)
            counts[cid] = counts.get(cid, 0) + entry.count
            totals[cid] = totals.get(cid, ZERO) + entry.total

    entries = [
        CategoryBreakdown(category=categories[cid], count=counts[cid], total=totals[cid])
        for cid in categories
    ]
    return build_summary(total_receipts, total_amount, entries)


async def summarize_households(
    aggregator: SummaryAggregator,
    household_ids: Iterable[int],
    filters: Optional[ReceiptFilters] = None,
) -> Summary:
    """Summarise each household concurrently and merge the results.

    If any household's fetch fails the exception propagates unchanged and
    no partial aggregate is returned.
    """
    ids = sorted(set(household_ids))
    if not ids:
        return Summary.zero()
    summaries = await asyncio.gather(*(aggregator.compute_summary(hid, filters) for hid in ids))
    merged = merge_summaries(summaries)
    logger.info(
        "[summary] merged households=%s receipts=%d total=%s",
        ids,
        merged.total_receipts,
        merged.total_amount,
    )
    return merged


__all__ = ["merge_summaries", "summarize_households"]
