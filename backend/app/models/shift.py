from __future__ import annotations

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.core.database import Base


class ShiftStatus(str, enum.Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class CloseMode(str, enum.Enum):
    INTERACTIVE = "INTERACTIVE"
    SCHEDULED = "SCHEDULED"


class StaffShift(Base):
    """One staff member's settlement record for one business-local date."""

    __tablename__ = "staff_shifts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    staff_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("staff.id"), nullable=False)
    business_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("businesses.id"), nullable=False
    )
    branch_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("branches.id"), nullable=True
    )
    shift_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[ShiftStatus] = mapped_column(
        Enum(ShiftStatus), nullable=False, default=ShiftStatus.OPEN
    )
    opened_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    close_mode: Mapped[CloseMode | None] = mapped_column(Enum(CloseMode), nullable=True)
    expected_start: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    late_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal("0")
    )
    consumables_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal("0")
    )
    # Normalized percentages as applied to this shift
    percent_master: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=9, scale=4), nullable=True
    )
    percent_salon: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=9, scale=4), nullable=True
    )
    master_share: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal("0")
    )
    salon_share: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal("0")
    )
    hourly_rate: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=20, scale=4), nullable=True
    )
    hours_worked: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=9, scale=2), nullable=True
    )
    guaranteed_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal("0")
    )
    topup_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal("0")
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=func.now()
    )

    items: Mapped[list[StaffShiftItem]] = relationship(
        back_populates="shift", order_by="StaffShiftItem.created_at"
    )

    __table_args__ = (
        UniqueConstraint("staff_id", "shift_date", name="uq_staff_shifts_staff_date"),
        Index("ix_staff_shifts_status_date", "status", "shift_date"),
        Index("ix_staff_shifts_business_date", "business_id", "shift_date"),
    )


class StaffShiftItem(Base):
    """One client-service line of a shift's ledger."""

    __tablename__ = "staff_shift_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    shift_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("staff_shifts.id"), nullable=False
    )
    client_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    service_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    service_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal("0")
    )
    consumables_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=20, scale=4), nullable=False, default=Decimal("0")
    )
    booking_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("bookings.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    shift: Mapped[StaffShift] = relationship(back_populates="items")

    __table_args__ = (
        CheckConstraint("service_amount >= 0", name="ck_shift_item_service_non_negative"),
        CheckConstraint(
            "consumables_amount >= 0", name="ck_shift_item_consumables_non_negative"
        ),
        Index("ix_staff_shift_items_shift", "shift_id"),
        Index("ix_staff_shift_items_booking", "booking_id"),
    )
