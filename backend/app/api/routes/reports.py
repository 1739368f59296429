"""API routes for spending summaries."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from app.api.dependencies import (
    get_current_user_id,
    get_receipt_filters,
    get_report_service,
    get_requested_household_ids,
)
from app.models.schemas import ReceiptFilters, Summary
from app.services.report_service import ReportService

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/summary", response_model=Summary)
async def get_summary(
    household_ids: List[int] = Depends(get_requested_household_ids),
    filters: ReceiptFilters = Depends(get_receipt_filters),
    user_id: int = Depends(get_current_user_id),
    service: ReportService = Depends(get_report_service),
) -> Summary:
    """Merged summary across the caller's households.

    With no ``household_ids`` every household the caller belongs to is
    included; ids the caller cannot access are ignored.
    """
    return await service.summary_for_user(user_id, household_ids, filters)


@router.get("/households/{household_id}/summary", response_model=Summary)
async def get_household_summary(
    household_id: int,
    filters: ReceiptFilters = Depends(get_receipt_filters),
    user_id: int = Depends(get_current_user_id),
    service: ReportService = Depends(get_report_service),
) -> Summary:
    """Summary for one household (any active member may view)."""
    return await service.household_summary(user_id, household_id, filters)
