"""API routes for budget progress and suggestions."""

from __future__ import annotations

import datetime as dt
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from app.api.dependencies import get_current_user_id, get_report_service
from app.models.schemas import BudgetCreate, BudgetOverview, BudgetRead, BudgetUpdate, Suggestion
from app.services.report_service import ReportService

router = APIRouter(prefix="/budgets", tags=["budgets"])


@router.get("/overview", response_model=BudgetOverview)
async def get_budget_overview(
    household_id: int,
    as_of: Optional[dt.date] = Query(default=None),
    start_date: Optional[dt.date] = Query(default=None),
    end_date: Optional[dt.date] = Query(default=None),
    user_id: int = Depends(get_current_user_id),
    service: ReportService = Depends(get_report_service),
) -> BudgetOverview:
    """Progress of every active budget in the household.

    ``start_date``/``end_date`` narrow the spending window; it is always
    intersected with each budget's own period.
    """
    window = (start_date, end_date) if (start_date or end_date) else None
    return await service.budget_overview(user_id, household_id, as_of=as_of, window=window)


@router.get("/suggestions", response_model=List[Suggestion])
async def get_budget_suggestions(
    household_id: int,
    months: Optional[int] = Query(default=None, ge=1, le=24),
    exclude_budgeted: bool = Query(default=False),
    as_of: Optional[dt.date] = Query(default=None),
    user_id: int = Depends(get_current_user_id),
    service: ReportService = Depends(get_report_service),
) -> List[Suggestion]:
    return await service.budget_suggestions(
        user_id,
        household_id,
        trailing_months=months,
        as_of=as_of,
        exclude_budgeted=exclude_budgeted,
    )


@router.post("", response_model=BudgetRead, status_code=status.HTTP_201_CREATED)
async def create_budget(
    household_id: int,
    budget_in: BudgetCreate,
    user_id: int = Depends(get_current_user_id),
    service: ReportService = Depends(get_report_service),
) -> BudgetRead:
    """Create a budget; overlapping budgets of the same scope are rejected."""
    return await service.create_budget(user_id, household_id, budget_in)


@router.put("/{budget_id}", response_model=BudgetRead)
async def update_budget(
    budget_id: int,
    household_id: int,
    budget_in: BudgetUpdate,
    user_id: int = Depends(get_current_user_id),
    service: ReportService = Depends(get_report_service),
) -> BudgetRead:
    """Partially update a budget; unset fields are left unchanged."""
    return await service.update_budget(user_id, household_id, budget_id, budget_in)


@router.delete("/{budget_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_budget(
    budget_id: int,
    household_id: int,
    user_id: int = Depends(get_current_user_id),
    service: ReportService = Depends(get_report_service),
) -> Response:
    await service.delete_budget(user_id, household_id, budget_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
