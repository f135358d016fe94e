"""Finance aggregate over staff shifts for a day, month or year.

Closed shifts are summed from their stored figures in SQL. Open shifts have
no stored settlement yet, so each is recomputed from its ledger as if it
closed now (or at the sweep cutoff for an earlier day), through the same
calculator the close paths use.
"""

from __future__ import annotations

import calendar
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from backend.app.core.exceptions import InvalidPeriodError
from backend.app.models.shift import ShiftStatus, StaffShift
from backend.app.models.staff import Staff
from backend.app.schemas.finance import (
    FinanceFigures,
    FinanceSummaryResponse,
    PeriodEnum,
    StaffFinanceRow,
)
from backend.app.services.business_time import (
    as_utc,
    business_date,
    next_business_midnight,
    utc_now,
)
from backend.app.services.guarantee import effective_rate, settle
from backend.app.services.revenue_split import ZERO, to_decimal
from backend.app.services.shifts import fmt_amount, ledger_totals

logger = logging.getLogger(__name__)

MIN_YEAR = 2000
MAX_YEAR = 2100

_PERIOD_PATTERNS = {
    PeriodEnum.DAY: re.compile(r"^(\d{4})-(\d{2})-(\d{2})$"),
    PeriodEnum.MONTH: re.compile(r"^(\d{4})-(\d{2})$"),
    PeriodEnum.YEAR: re.compile(r"^(\d{4})$"),
}
_PERIOD_FORMATS = {
    PeriodEnum.DAY: "YYYY-MM-DD",
    PeriodEnum.MONTH: "YYYY-MM",
    PeriodEnum.YEAR: "YYYY",
}


@dataclass
class _Figures:
    shifts_count: int = 0
    open_shifts_count: int = 0
    closed_shifts_count: int = 0
    total_amount: Decimal = ZERO
    total_consumables: Decimal = ZERO
    total_master: Decimal = ZERO
    total_salon: Decimal = ZERO
    total_topup: Decimal = ZERO
    total_late_minutes: int = 0

    def add(self, other: _Figures) -> None:
        self.shifts_count += other.shifts_count
        self.open_shifts_count += other.open_shifts_count
        self.closed_shifts_count += other.closed_shifts_count
        self.total_amount += other.total_amount
        self.total_consumables += other.total_consumables
        self.total_master += other.total_master
        self.total_salon += other.total_salon
        self.total_topup += other.total_topup
        self.total_late_minutes += other.total_late_minutes

    def as_dict(self) -> dict:
        return {
            "shifts_count": self.shifts_count,
            "open_shifts_count": self.open_shifts_count,
            "closed_shifts_count": self.closed_shifts_count,
            "total_amount": fmt_amount(self.total_amount),
            "total_consumables": fmt_amount(self.total_consumables),
            "total_master": fmt_amount(self.total_master),
            "total_salon": fmt_amount(self.total_salon),
            "total_topup": fmt_amount(self.total_topup),
            "total_late_minutes": self.total_late_minutes,
        }


def resolve_period(
    period: PeriodEnum | str, value: str | None, today: date
) -> tuple[date, date]:
    """Inclusive (date_from, date_to) for *period* identified by *value*.

    *value* defaults to the period containing *today*.
    """
    try:
        period = PeriodEnum(period)
    except ValueError:
        raise InvalidPeriodError(f"Unknown period '{period}', use day, month or year")

    if value is None or value == "":
        if period == PeriodEnum.DAY:
            return today, today
        if period == PeriodEnum.MONTH:
            last = calendar.monthrange(today.year, today.month)[1]
            return today.replace(day=1), today.replace(day=last)
        return date(today.year, 1, 1), date(today.year, 12, 31)

    match = _PERIOD_PATTERNS[period].match(value)
    if not match:
        raise InvalidPeriodError(
            f"Invalid date '{value}' for period {period.value}, expected {_PERIOD_FORMATS[period]}"
        )
    parts = [int(p) for p in match.groups()]
    year = parts[0]
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise InvalidPeriodError(f"Year must be between {MIN_YEAR} and {MAX_YEAR}")
    if period == PeriodEnum.YEAR:
        return date(year, 1, 1), date(year, 12, 31)

    month = parts[1]
    if not 1 <= month <= 12:
        raise InvalidPeriodError("Month must be between 1 and 12")
    last = calendar.monthrange(year, month)[1]
    if period == PeriodEnum.MONTH:
        return date(year, month, 1), date(year, month, last)

    day = parts[2]
    if not 1 <= day <= last:
        raise InvalidPeriodError(f"Invalid calendar date '{value}'")
    single = date(year, month, day)
    return single, single


def _closed_figures(
    db: Session, business_id: UUID, date_from: date, date_to: date, branch_id: UUID | None
) -> dict[UUID, _Figures]:
    query = db.query(
        StaffShift.staff_id,
        func.count(StaffShift.id),
        func.coalesce(func.sum(StaffShift.total_amount), 0),
        func.coalesce(func.sum(StaffShift.consumables_amount), 0),
        func.coalesce(func.sum(StaffShift.master_share), 0),
        func.coalesce(func.sum(StaffShift.salon_share), 0),
        func.coalesce(func.sum(StaffShift.topup_amount), 0),
        func.coalesce(func.sum(StaffShift.late_minutes), 0),
    ).filter(
        StaffShift.business_id == business_id,
        StaffShift.status == ShiftStatus.CLOSED,
        StaffShift.shift_date >= date_from,
        StaffShift.shift_date <= date_to,
    )
    if branch_id is not None:
        query = query.filter(StaffShift.branch_id == branch_id)

    figures: dict[UUID, _Figures] = {}
    for staff_id, count, total, consumables, master, salon, topup, late in query.group_by(
        StaffShift.staff_id
    ):
        figures[staff_id] = _Figures(
            shifts_count=int(count),
            closed_shifts_count=int(count),
            total_amount=to_decimal(total),
            total_consumables=to_decimal(consumables),
            total_master=to_decimal(master),
            total_salon=to_decimal(salon),
            total_topup=to_decimal(topup),
            total_late_minutes=int(late),
        )
    return figures


def _open_figures(
    db: Session,
    business_id: UUID,
    date_from: date,
    date_to: date,
    branch_id: UUID | None,
    now: datetime,
) -> dict[UUID, _Figures]:
    query = db.query(StaffShift).filter(
        StaffShift.business_id == business_id,
        StaffShift.status == ShiftStatus.OPEN,
        StaffShift.shift_date >= date_from,
        StaffShift.shift_date <= date_to,
    )
    if branch_id is not None:
        query = query.filter(StaffShift.branch_id == branch_id)

    figures: dict[UUID, _Figures] = {}
    for shift in query.all():
        staff = db.get(Staff, shift.staff_id)
        total, consumables, _ = ledger_totals(db, shift.id)
        settlement = settle(
            total_amount=total,
            consumables_amount=consumables,
            percent_master=shift.percent_master
            if shift.percent_master is not None
            else (staff.percent_master if staff else None),
            percent_salon=shift.percent_salon
            if shift.percent_salon is not None
            else (staff.percent_salon if staff else None),
            hourly_rate=effective_rate(shift.hourly_rate, staff.hourly_rate if staff else None),
            opened_at=shift.opened_at,
            # Past days settle at their sweep cutoff, not at query time
            closed_at=min(now, next_business_midnight(shift.shift_date)),
        )
        figures.setdefault(shift.staff_id, _Figures()).add(
            _Figures(
                shifts_count=1,
                open_shifts_count=1,
                total_amount=settlement.split.total_amount,
                total_consumables=settlement.split.consumables_amount,
                total_master=settlement.master_share,
                total_salon=settlement.salon_share,
                total_topup=settlement.topup_amount,
                total_late_minutes=shift.late_minutes or 0,
            )
        )
    return figures


def get_finance_summary(
    db: Session,
    business_id: UUID,
    period: PeriodEnum | str = PeriodEnum.DAY,
    value: str | None = None,
    branch_id: UUID | None = None,
    now: datetime | None = None,
) -> FinanceSummaryResponse:
    now = as_utc(now) if now is not None else utc_now()
    date_from, date_to = resolve_period(period, value, business_date(now))

    closed = _closed_figures(db, business_id, date_from, date_to, branch_id)
    live = _open_figures(db, business_id, date_from, date_to, branch_id, now)

    staff_query = db.query(Staff).filter(Staff.business_id == business_id)
    if branch_id is not None:
        staff_query = staff_query.filter(Staff.branch_id == branch_id)
    staff_by_id = {s.id: s for s in staff_query.order_by(Staff.full_name).all()}
    # staff who worked in the branch but have since moved keep their rows
    for staff_id in set(closed) | set(live):
        if staff_id not in staff_by_id:
            member = db.get(Staff, staff_id)
            if member is not None:
                staff_by_id[staff_id] = member

    rows: list[StaffFinanceRow] = []
    totals = _Figures()
    for staff_id, member in staff_by_id.items():
        figures = _Figures()
        if staff_id in closed:
            figures.add(closed[staff_id])
        if staff_id in live:
            figures.add(live[staff_id])
        if figures.shifts_count == 0 and not member.is_active:
            continue
        totals.add(figures)
        rows.append(
            StaffFinanceRow(
                staff_id=staff_id,
                staff_name=member.full_name,
                is_active=member.is_active,
                **figures.as_dict(),
            )
        )

    logger.debug(
        "Finance summary %s %s..%s: %d staff rows", period, date_from, date_to, len(rows)
    )
    return FinanceSummaryResponse(
        period=PeriodEnum(period),
        date_from=date_from.isoformat(),
        date_to=date_to.isoformat(),
        branch_id=branch_id,
        staff=rows,
        totals=FinanceFigures(**totals.as_dict()),
    )
