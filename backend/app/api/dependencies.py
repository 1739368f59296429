"""Common dependencies for FastAPI routes.

This module wires the service layer together for request handlers:
repositories are built from the shared session factory, the report
cache comes from ``app.state`` (set up in the application lifespan) and
request parameters are parsed into ``ReceiptFilters`` and household id
lists.  Tests override ``get_report_service`` / ``get_household_service``
to inject in-memory fakes.
"""

from __future__ import annotations

import datetime as dt
import logging
from decimal import Decimal
from typing import List, Optional

from fastapi import Depends, Header, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.database import get_session_factory
from app.core.security import get_current_user_id  # noqa: F401  (re-exported for routers)
from app.models.schemas import ReceiptFilters
from app.services.access_control import AccessControlGate
from app.services.cache import ReportCache
from app.services.household_service import HouseholdService
from app.services.report_service import ReportService
from app.services.repositories import (
    SqlBudgetRepository,
    SqlCategoryRepository,
    SqlMembershipRepository,
    SqlReceiptRepository,
)
from app.services.summary_service import SummaryAggregator

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Shared resources

def get_report_cache(request: Request) -> ReportCache:
    """Return the application's cache, or a pass-through one when none is configured."""
    cache = getattr(request.app.state, "report_cache", None)
    return cache if cache is not None else ReportCache()


def get_access_gate(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    cache: ReportCache = Depends(get_report_cache),
) -> AccessControlGate:
    return AccessControlGate(SqlMembershipRepository(session_factory), cache=cache)


def get_report_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    gate: AccessControlGate = Depends(get_access_gate),
    cache: ReportCache = Depends(get_report_cache),
) -> ReportService:
    categories = SqlCategoryRepository(session_factory)
    aggregator = SummaryAggregator(SqlReceiptRepository(session_factory), categories, cache=cache)
    return ReportService(
        gate=gate,
        aggregator=aggregator,
        budgets=SqlBudgetRepository(session_factory),
        categories=categories,
        cache=cache,
        trailing_months=settings.SUGGESTION_TRAILING_MONTHS,
    )


def get_household_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    gate: AccessControlGate = Depends(get_access_gate),
    cache: ReportCache = Depends(get_report_cache),
) -> HouseholdService:
    return HouseholdService(gate, SqlMembershipRepository(session_factory), cache=cache)


# -----------------------------------------------------------------------------
# Request parameter parsing

def parse_household_ids_header(raw: Optional[str]) -> List[int]:
    """Parse ``X-Household-Ids: 1, 2`` into ints.

    Blank entries are skipped; any other non-integer entry raises
    ``ValueError`` so a malformed header never widens to "all households".
    """
    if not raw:
        return []
    ids: List[int] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            ids.append(int(part))
        except ValueError:
            raise ValueError(f"Invalid household id: {part!r}")
    return ids


def get_requested_household_ids(
    household_ids: List[int] = Query(default=[]),
    x_household_ids: Optional[str] = Header(default=None),
) -> List[int]:
    """Household ids from the ``household_ids`` query list and the ``X-Household-Ids`` header."""
    try:
        header_ids = parse_household_ids_header(x_household_ids)
    except ValueError as exc:
        logger.info("[request] rejected X-Household-Ids header: %s", exc)
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    return sorted(set(household_ids) | set(header_ids))


def get_receipt_filters(
    start_date: Optional[dt.date] = Query(default=None),
    end_date: Optional[dt.date] = Query(default=None),
    category_ids: List[int] = Query(default=[]),
    min_amount: Optional[Decimal] = Query(default=None, ge=0),
    max_amount: Optional[Decimal] = Query(default=None, ge=0),
    search: Optional[str] = Query(default=None, max_length=200),
) -> ReceiptFilters:
    return ReceiptFilters(
        start_date=start_date,
        end_date=end_date,
        category_ids=set(category_ids) or None,
        min_amount=min_amount,
        max_amount=max_amount,
        search=search,
    )
