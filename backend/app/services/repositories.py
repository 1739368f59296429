"""Persistence collaborator interfaces and their SQLAlchemy implementations.

The report services depend only on the ``Protocol`` classes below, so
tests can pass in-memory fakes and the services never see a session.
The ``Sql*`` implementations open one ``AsyncSession`` per call from the
injected session factory; this keeps concurrent per-household fetches
safe, since a single ``AsyncSession`` cannot run queries in parallel.

Query failures are not caught here.  They propagate to the caller
unchanged so multi-household aggregation fails as a whole.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.schemas import (
    BudgetCreate,
    BudgetRead,
    CategoryRead,
    MembershipRecord,
    ReceiptFilters,
    ReceiptRecord,
)
from app.core.errors import NotFound
from app.models.enums import HouseholdRole
from app.models.tables import Budget, Category, HouseholdMember, Receipt, User
from app.utils.sanitization import escape_like


class MembershipRepository(Protocol):
    async def list_active_memberships(self, user_id: int) -> List[MembershipRecord]: ...

    async def get_membership(self, household_id: int, user_id: int) -> Optional[MembershipRecord]: ...

    async def deactivate_membership(self, household_id: int, user_id: int) -> None: ...

    async def set_role(self, household_id: int, user_id: int, role: HouseholdRole) -> None: ...

    async def user_exists(self, user_id: int) -> bool: ...

    async def add_membership(self, household_id: int, user_id: int, role: HouseholdRole) -> MembershipRecord: ...


class ReceiptRepository(Protocol):
    async def list_receipts(self, household_id: int, filters: ReceiptFilters) -> List[ReceiptRecord]: ...


class CategoryRepository(Protocol):
    async def list_categories(self, household_id: int) -> List[CategoryRead]: ...

    async def get_category(self, household_id: int, category_id: int) -> Optional[CategoryRead]: ...


class BudgetRepository(Protocol):
    async def list_budgets(self, household_id: int, active_only: bool = True) -> List[BudgetRead]: ...

    async def get_budget(self, household_id: int, budget_id: int) -> Optional[BudgetRead]: ...

    async def create_budget(self, household_id: int, data: BudgetCreate) -> BudgetRead: ...

    async def update_budget(self, household_id: int, budget_id: int, changes: Dict[str, Any]) -> BudgetRead: ...

    async def delete_budget(self, household_id: int, budget_id: int) -> None: ...


# ---------------------------------------------------------------------------
# SQLAlchemy implementations


class SqlMembershipRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def list_active_memberships(self, user_id: int) -> List[MembershipRecord]:
        q = select(HouseholdMember).where(
            HouseholdMember.user_id == user_id,
            HouseholdMember.is_active.is_(True),
        )
        async with self.session_factory() as session:
            rows = (await session.execute(q)).scalars().all()
        return [MembershipRecord.model_validate(r) for r in rows]

    async def _get_row(self, session: AsyncSession, household_id: int, user_id: int) -> Optional[HouseholdMember]:
        q = select(HouseholdMember).where(
            HouseholdMember.household_id == household_id,
            HouseholdMember.user_id == user_id,
        )
        return (await session.execute(q)).scalar_one_or_none()

    async def get_membership(self, household_id: int, user_id: int) -> Optional[MembershipRecord]:
        async with self.session_factory() as session:
            row = await self._get_row(session, household_id, user_id)
        return MembershipRecord.model_validate(row) if row is not None else None

    async def deactivate_membership(self, household_id: int, user_id: int) -> None:
        async with self.session_factory() as session:
            row = await self._get_row(session, household_id, user_id)
            if row is not None:
                row.is_active = False
                await session.commit()

    async def set_role(self, household_id: int, user_id: int, role: HouseholdRole) -> None:
        async with self.session_factory() as session:
            row = await self._get_row(session, household_id, user_id)
            if row is not None:
                row.role = role
                await session.commit()

    async def user_exists(self, user_id: int) -> bool:
        async with self.session_factory() as session:
            found = (await session.execute(select(User.id).where(User.id == user_id))).scalar_one_or_none()
        return found is not None

    async def add_membership(self, household_id: int, user_id: int, role: HouseholdRole) -> MembershipRecord:
        """Create the membership, or reactivate an inactive one with the new role."""
        async with self.session_factory() as session:
            row = await self._get_row(session, household_id, user_id)
            if row is None:
                row = HouseholdMember(household_id=household_id, user_id=user_id)
                session.add(row)
            row.role = role
            row.is_active = True
            row.joined_at = dt.datetime.utcnow()
            await session.commit()
            await session.refresh(row)
        return MembershipRecord.model_validate(row)


class SqlReceiptRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def list_receipts(self, household_id: int, filters: ReceiptFilters) -> List[ReceiptRecord]:
        q = select(Receipt).where(Receipt.household_id == household_id)
        if filters.start_date is not None:
            q = q.where(Receipt.receipt_date >= filters.start_date)
        if filters.end_date is not None:
            q = q.where(Receipt.receipt_date <= filters.end_date)
        if filters.category_ids:
            q = q.where(Receipt.category_id.in_(sorted(filters.category_ids)))
        if filters.min_amount is not None:
            q = q.where(Receipt.amount >= filters.min_amount)
        if filters.max_amount is not None:
            q = q.where(Receipt.amount <= filters.max_amount)
        q = q.order_by(Receipt.receipt_date.desc(), Receipt.id.desc())
        async with self.session_factory() as session:
            # SQLite's LIKE folds ASCII case only; there the search is left to
            # the in-memory filter so non-ASCII case variants still match.
            if filters.search and session.get_bind().dialect.name != "sqlite":
                pattern = f"%{escape_like(filters.search)}%"
                q = q.where(
                    or_(
                        Receipt.title.ilike(pattern, escape="\\"),
                        Receipt.notes.ilike(pattern, escape="\\"),
                    )
                )
            rows = (await session.execute(q)).scalars().all()
        return [ReceiptRecord.model_validate(r) for r in rows]


class SqlCategoryRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def list_categories(self, household_id: int) -> List[CategoryRead]:
        q = select(Category).where(Category.household_id == household_id).order_by(Category.name)
        async with self.session_factory() as session:
            rows = (await session.execute(q)).scalars().all()
        return [CategoryRead.model_validate(r) for r in rows]

    async def get_category(self, household_id: int, category_id: int) -> Optional[CategoryRead]:
        q = select(Category).where(Category.household_id == household_id, Category.id == category_id)
        async with self.session_factory() as session:
            row = (await session.execute(q)).scalar_one_or_none()
        return CategoryRead.model_validate(row) if row is not None else None


class SqlBudgetRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def list_budgets(self, household_id: int, active_only: bool = True) -> List[BudgetRead]:
        q = select(Budget).where(Budget.household_id == household_id)
        if active_only:
            q = q.where(Budget.is_active.is_(True))
        q = q.order_by(Budget.start_date.desc(), Budget.id)
        async with self.session_factory() as session:
            rows = (await session.execute(q)).scalars().all()
        return [BudgetRead.model_validate(r) for r in rows]

    async def get_budget(self, household_id: int, budget_id: int) -> Optional[BudgetRead]:
        q = select(Budget).where(Budget.household_id == household_id, Budget.id == budget_id)
        async with self.session_factory() as session:
            row = (await session.execute(q)).scalar_one_or_none()
        return BudgetRead.model_validate(row) if row is not None else None

    async def create_budget(self, household_id: int, data: BudgetCreate) -> BudgetRead:
        budget = Budget(household_id=household_id, **data.model_dump())
        async with self.session_factory() as session:
            session.add(budget)
            await session.commit()
            await session.refresh(budget)
        return BudgetRead.model_validate(budget)

    async def _get_row(self, session: AsyncSession, household_id: int, budget_id: int) -> Optional[Budget]:
        q = select(Budget).where(Budget.household_id == household_id, Budget.id == budget_id)
        return (await session.execute(q)).scalar_one_or_none()

    async def update_budget(self, household_id: int, budget_id: int, changes: Dict[str, Any]) -> BudgetRead:
        async with self.session_factory() as session:
            row = await self._get_row(session, household_id, budget_id)
            if row is None:
                raise NotFound("Budget not found")
            for field, value in changes.items():
                setattr(row, field, value)
            await session.commit()
            await session.refresh(row)
        return BudgetRead.model_validate(row)

    async def delete_budget(self, household_id: int, budget_id: int) -> None:
        async with self.session_factory() as session:
            row = await self._get_row(session, household_id, budget_id)
            if row is not None:
                await session.delete(row)
                await session.commit()


__all__ = [
    "MembershipRepository",
    "ReceiptRepository",
    "CategoryRepository",
    "BudgetRepository",
    "SqlMembershipRepository",
    "SqlReceiptRepository",
    "SqlCategoryRepository",
    "SqlBudgetRepository",
]
