from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.core.database import Base, JSONVariant


class Staff(Base):
    """Staff profile. Percentages and hourly rate are maintained elsewhere."""

    __tablename__ = "staff"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("businesses.id"), nullable=False
    )
    branch_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("branches.id"), nullable=True
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id"), nullable=True, unique=True
    )
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    percent_master: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=9, scale=4), nullable=True
    )
    percent_salon: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=9, scale=4), nullable=True
    )
    hourly_rate: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=20, scale=4), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_staff_business", "business_id"),
        Index("ix_staff_branch", "branch_id"),
    )


class WorkingHours(Base):
    """Weekly working-hours rule. ``day_of_week`` follows ``date.weekday()``."""

    __tablename__ = "working_hours"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    staff_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("staff.id"), nullable=False)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    intervals: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONVariant, nullable=False, default=list
    )

    __table_args__ = (
        UniqueConstraint("staff_id", "day_of_week", name="uq_working_hours_staff_day"),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_working_hours_day"),
    )


class StaffScheduleRule(Base):
    """Date-specific schedule override."""

    __tablename__ = "staff_schedule_rules"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    staff_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("staff.id"), nullable=False)
    date_on: Mapped[date] = mapped_column(Date, nullable=False)
    intervals: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONVariant, nullable=False, default=list
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    __table_args__ = (
        Index("ix_schedule_rules_staff_date", "staff_id", "date_on"),
    )


class StaffTimeOff(Base):
    __tablename__ = "staff_time_off"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    staff_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("staff.id"), nullable=False)
    date_from: Mapped[date] = mapped_column(Date, nullable=False)
    date_to: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str | None] = mapped_column(String(255), nullable=True)

    __table_args__ = (
        CheckConstraint("date_to >= date_from", name="ck_time_off_range"),
        Index("ix_time_off_staff", "staff_id"),
    )
