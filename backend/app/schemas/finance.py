"""Pydantic response schemas for the finance aggregate."""
from __future__ import annotations

from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class PeriodEnum(str, Enum):
    DAY = "day"
    MONTH = "month"
    YEAR = "year"


class FinanceFigures(BaseModel):
    shifts_count: int
    open_shifts_count: int
    closed_shifts_count: int
    total_amount: str
    total_consumables: str
    total_master: str
    total_salon: str
    total_topup: str
    total_late_minutes: int


class StaffFinanceRow(FinanceFigures):
    staff_id: UUID
    staff_name: str
    is_active: bool


class FinanceSummaryResponse(BaseModel):
    period: PeriodEnum
    date_from: str
    date_to: str
    branch_id: UUID | None
    staff: list[StaffFinanceRow]
    totals: FinanceFigures
