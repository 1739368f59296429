"""SQLAlchemy ORM models for the household budget API.

These models define the relational database schema used by the
application. Enumerated fields are stored as strings using
SQLAlchemy's native Enum type and currency columns use ``Numeric``
so amounts round-trip as ``Decimal``.

The aggregation services never read these classes directly; the
repositories in ``app.services.repositories`` convert rows into the
Pydantic records declared in ``app.models.schemas``.
"""

from __future__ import annotations

import datetime as dt

from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    DateTime,
    Boolean,
    Enum,
    ForeignKey,
    Numeric,
    Text,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import relationship

from app.core.database import Base
from .enums import HouseholdRole, BudgetPeriod


class User(Base):
    """User account; identity itself is issued upstream."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=dt.datetime.utcnow, nullable=False)

    memberships = relationship("HouseholdMember", back_populates="user")


class Household(Base):
    """Shared budgeting unit containing members, categories, receipts and budgets."""

    __tablename__ = "households"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=dt.datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=dt.datetime.utcnow, onupdate=dt.datetime.utcnow, nullable=False)

    members = relationship("HouseholdMember", back_populates="household", cascade="all, delete-orphan")
    categories = relationship("Category", back_populates="household", cascade="all, delete-orphan")
    receipts = relationship("Receipt", back_populates="household", cascade="all, delete-orphan")
    budgets = relationship("Budget", back_populates="household", cascade="all, delete-orphan")


class HouseholdMember(Base):
    """Membership of a user in a household.

    Removal deactivates the row rather than deleting it so history is kept.
    """

    __tablename__ = "household_members"
    __table_args__ = (UniqueConstraint("user_id", "household_id", name="uq_household_members_user_household"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    household_id = Column(Integer, ForeignKey("households.id"), nullable=False, index=True)
    role = Column(Enum(HouseholdRole), nullable=False, default=HouseholdRole.MEMBER)
    is_active = Column(Boolean, default=True, nullable=False)
    joined_at = Column(DateTime, default=dt.datetime.utcnow, nullable=True)

    user = relationship("User", back_populates="memberships")
    household = relationship("Household", back_populates="members")


class Category(Base):
    """Spending category scoped to one household."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    household_id = Column(Integer, ForeignKey("households.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    # Legacy per-category budget, superseded by Budget rows
    monthly_budget = Column(Numeric(10, 2), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    # Default categories that can't be deleted or renamed
    is_system = Column(Boolean, default=False, nullable=False)

    household = relationship("Household", back_populates="categories")
    receipts = relationship("Receipt", back_populates="category")


class Receipt(Base):
    """A single recorded expense."""

    __tablename__ = "receipts"
    __table_args__ = (Index("ix_receipts_household_date", "household_id", "receipt_date"),)

    id = Column(Integer, primary_key=True, index=True)
    household_id = Column(Integer, ForeignKey("households.id"), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    title = Column(String(255), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    receipt_date = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)
    photo_url = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=dt.datetime.utcnow, nullable=False)

    household = relationship("Household", back_populates="receipts")
    category = relationship("Category", back_populates="receipts")


class Budget(Base):
    """Planned spending ceiling for a household or one of its categories."""

    __tablename__ = "budgets"
    __table_args__ = (Index("ix_budgets_household_category_period", "household_id", "category_id", "period"),)

    id = Column(Integer, primary_key=True, index=True)
    household_id = Column(Integer, ForeignKey("households.id"), nullable=False)
    # NULL means a whole-household budget
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    name = Column(String(255), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    period = Column(Enum(BudgetPeriod), nullable=False, default=BudgetPeriod.MONTHLY)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_recurring = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=dt.datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=dt.datetime.utcnow, onupdate=dt.datetime.utcnow, nullable=False)

    household = relationship("Household", back_populates="budgets")
    category = relationship("Category")
