from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest

from app.core.errors import NotFound
from app.models.enums import BudgetStatus, HouseholdRole
from app.models.schemas import BudgetCreate, BudgetUpdate
from app.services.access_control import AccessControlGate
from app.services.budget_service import (
    BudgetProgressCalculator,
    evaluate,
    find_overlapping,
    spending_filters,
    summarize_overview,
)
from app.services.cache import ReportCache
from app.services.report_service import ReportService
from app.services.summary_service import SummaryAggregator

from fakes import (
    FakeBudgets,
    FakeCategories,
    FakeMemberships,
    FakeReceipts,
    FakeRedis,
    budget,
    category,
    receipt,
)

JAN_1 = dt.date(2024, 1, 1)
JAN_31 = dt.date(2024, 1, 31)


def test_over_budget_status():
    item = evaluate(budget(1, "200", JAN_1, JAN_31), Decimal("250"), JAN_31)
    assert item.remaining == Decimal("-50")
    assert item.percentage_used == Decimal("125")
    assert item.is_over_budget is True
    assert item.status == BudgetStatus.OVER_BUDGET


def test_off_track_projection_mid_period():
    item = evaluate(budget(1, "200", JAN_1, JAN_31), Decimal("150"), dt.date(2024, 1, 16))
    assert item.days_elapsed == 16
    assert item.average_daily_spending == Decimal("9.375")
    assert item.projected_spending == Decimal("290.625")
    assert item.on_track is False
    assert item.is_over_budget is False
    assert item.status == BudgetStatus.OFF_TRACK
    assert item.days_remaining == 15


def test_on_track_when_projection_within_amount():
    item = evaluate(budget(1, "310", JAN_1, JAN_31), Decimal("100"), dt.date(2024, 1, 10))
    assert item.projected_spending == Decimal("310")
    assert item.on_track is True
    assert item.status == BudgetStatus.ON_TRACK


def test_zero_amount_budget_never_divides_by_zero():
    item = evaluate(budget(1, "0", JAN_1, JAN_31), Decimal("0"), dt.date(2024, 1, 5))
    assert item.percentage_used == 0
    assert item.status == BudgetStatus.ON_TRACK


def test_before_start_counts_one_elapsed_day():
    item = evaluate(budget(1, "310", JAN_1, JAN_31), Decimal("0"), dt.date(2023, 12, 20))
    assert item.days_elapsed == 1
    assert item.average_daily_spending == 0
    assert item.days_remaining == 42


def test_after_end_is_clamped_to_period():
    item = evaluate(budget(1, "310", JAN_1, JAN_31), Decimal("155"), dt.date(2024, 3, 1))
    assert item.days_elapsed == 31
    assert item.days_remaining == 0
    assert item.average_daily_spending == Decimal("5")
    assert item.projected_spending == Decimal("155")


def test_status_is_consistent_with_flags():
    for spent in ("0", "50", "199.99", "200", "200.01", "500"):
        for day in (1, 10, 31):
            item = evaluate(budget(1, "200", JAN_1, JAN_31), Decimal(spent), dt.date(2024, 1, day))
            assert item.is_over_budget == (item.current_spending > item.budget.amount)
            assert item.on_track == (item.projected_spending <= item.budget.amount)
            if item.is_over_budget:
                assert item.status == BudgetStatus.OVER_BUDGET
            elif not item.on_track:
                assert item.status == BudgetStatus.OFF_TRACK
            else:
                assert item.status == BudgetStatus.ON_TRACK


def test_spending_filters_intersects_window():
    b = budget(1, "100", JAN_1, JAN_31, category_id=4)
    filters = spending_filters(b, (dt.date(2024, 1, 15), dt.date(2024, 2, 15)))
    assert (filters.start_date, filters.end_date) == (dt.date(2024, 1, 15), JAN_31)
    assert filters.category_ids == {4}
    assert spending_filters(b, (dt.date(2024, 2, 1), None)) is None


def test_spending_filters_household_budget_has_no_category_filter():
    filters = spending_filters(budget(1, "100", JAN_1, JAN_31))
    assert filters.category_ids is None


def test_summarize_overview_totals():
    items = [
        evaluate(budget(1, "200", JAN_1, JAN_31), Decimal("250"), JAN_31),
        evaluate(budget(2, "300", JAN_1, JAN_31), Decimal("50"), JAN_31),
    ]
    overview = summarize_overview(items)
    assert overview.total_budgets == 2
    assert overview.total_budget_amount == Decimal("500")
    assert overview.total_spent == Decimal("300")
    assert overview.total_remaining == Decimal("200")
    assert overview.overall_percentage == Decimal("60")
    assert overview.over_budget_count == 1


def test_summarize_overview_empty():
    overview = summarize_overview([])
    assert overview.total_budgets == 0
    assert overview.overall_percentage == 0


def test_find_overlapping_same_scope_only():
    existing = [
        budget(1, "100", JAN_1, JAN_31, category_id=1),
        budget(2, "100", JAN_1, JAN_31),
        budget(3, "100", dt.date(2024, 2, 1), dt.date(2024, 2, 29), category_id=2),
        budget(4, "100", JAN_1, JAN_31, category_id=2, is_active=False),
    ]
    candidate = BudgetCreate(
        name="Groceries", amount=Decimal("50"), start_date=dt.date(2024, 1, 20), end_date=dt.date(2024, 2, 10), category_id=2
    )
    assert [b.id for b in find_overlapping(existing, candidate)] == [3]

    household_wide = candidate.model_copy(update={"category_id": None})
    assert [b.id for b in find_overlapping(existing, household_wide)] == [2]
    assert find_overlapping(existing, household_wide, exclude_id=2) == []


@pytest.mark.asyncio
async def test_calculator_overview_uses_category_spending():
    receipts = FakeReceipts(
        [
            receipt(1, 1, "120", dt.date(2024, 1, 5)),
            receipt(1, 1, "130", dt.date(2024, 1, 9)),
            receipt(1, 2, "40", dt.date(2024, 1, 9)),
            receipt(1, 1, "999", dt.date(2024, 2, 1)),
        ]
    )
    aggregator = SummaryAggregator(receipts, FakeCategories([category(1, "Food"), category(2, "Fuel")]))
    calculator = BudgetProgressCalculator(aggregator)
    overview = await calculator.overview(
        [budget(1, "200", JAN_1, JAN_31, category_id=1), budget(2, "1000", JAN_1, JAN_31)],
        as_of=JAN_31,
    )
    food, household = overview.budgets
    assert food.current_spending == Decimal("250")
    assert food.status == BudgetStatus.OVER_BUDGET
    assert household.current_spending == Decimal("290")
    assert overview.total_spent == Decimal("540")
    assert overview.over_budget_count == 1


@pytest.mark.asyncio
async def test_calculator_disjoint_window_is_zero_spending():
    receipts = FakeReceipts([receipt(1, 1, "50", dt.date(2024, 1, 5))])
    calculator = BudgetProgressCalculator(SummaryAggregator(receipts, FakeCategories([category(1, "Food")])))
    item = await calculator.evaluate_budget(
        budget(1, "100", JAN_1, JAN_31, category_id=1), JAN_31, window=(dt.date(2024, 3, 1), None)
    )
    assert item.current_spending == 0
    assert receipts.calls == []


@pytest.mark.asyncio
async def test_budget_changes_invalidate_cached_reports():
    memberships = FakeMemberships()
    memberships.add(1, 7, HouseholdRole.MEMBER)
    receipts = FakeReceipts([receipt(1, 1, "30.00", dt.date(2024, 1, 10))])
    categories = FakeCategories([category(1, "Food")])
    cache = ReportCache(client=FakeRedis())
    service = ReportService(
        AccessControlGate(memberships),
        SummaryAggregator(receipts, categories, cache=cache),
        FakeBudgets([budget(1, "100", JAN_1, JAN_31, category_id=1)]),
        categories,
        cache=cache,
    )

    await service.household_summary(7, 1)
    await service.household_summary(7, 1)
    assert len(receipts.calls) == 1

    updated = await service.update_budget(7, 1, 1, BudgetUpdate(amount=Decimal("120")))
    assert updated.amount == Decimal("120")
    await service.household_summary(7, 1)
    assert len(receipts.calls) == 2

    await service.delete_budget(7, 1, 1)
    await service.household_summary(7, 1)
    assert len(receipts.calls) == 3
    with pytest.raises(NotFound):
        await service.delete_budget(7, 1, 1)
