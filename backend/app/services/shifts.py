"""Shift lifecycle: open, interactive close, hours adjustment, today view.

Services commit their own work, like the rest of the service layer. Shares
are always produced by ``revenue_split.split_revenue`` and
``guarantee.apply_guarantee``; nothing here re-implements the formulas.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID, uuid4

from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.core.exceptions import (
    NoOpenShiftError,
    ShiftClosedError,
    ShiftConflictError,
    ShiftValidationError,
)
from backend.app.models.shift import CloseMode, ShiftStatus, StaffShift, StaffShiftItem
from backend.app.models.staff import Staff
from backend.app.schemas.shift import ShiftItemOut, ShiftOut, ShiftTodayOut
from backend.app.services.audit import log_action
from backend.app.services.booking_sync import (
    DEFAULT_TRANSITION_CHAIN,
    BatchReport,
    TransitionStrategy,
    sync_closed_shift,
)
from backend.app.services.business_time import as_utc, business_date, utc_now
from backend.app.services.guarantee import (
    CENT,
    ShiftSettlement,
    apply_guarantee,
    effective_rate,
    settle,
    worked_hours,
)
from backend.app.services.revenue_split import UNIT, ZERO, normalize_percents, split_revenue
from backend.app.services.schedule import expected_start, is_day_off

logger = logging.getLogger(__name__)

PERCENT_Q = Decimal("0.0001")
MAX_ADJUSTABLE_HOURS = Decimal("48")


@dataclass(frozen=True)
class OpenShiftResult:
    shift: StaffShift
    created: bool
    late_minutes: int


# ─── Formatting ──────────────────────────────────────────────────────────────


def fmt_amount(value: Decimal | None) -> str | None:
    if value is None:
        return None
    return str(Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP))


def _fmt_dt(value: datetime | None) -> str | None:
    return as_utc(value).isoformat() if value is not None else None


def shift_to_out(shift: StaffShift) -> ShiftOut:
    return ShiftOut(
        id=shift.id,
        staff_id=shift.staff_id,
        business_id=shift.business_id,
        branch_id=shift.branch_id,
        shift_date=shift.shift_date.isoformat(),
        status=shift.status.value,
        opened_at=_fmt_dt(shift.opened_at),
        closed_at=_fmt_dt(shift.closed_at),
        close_mode=shift.close_mode.value if shift.close_mode else None,
        expected_start=_fmt_dt(shift.expected_start),
        late_minutes=shift.late_minutes or 0,
        total_amount=fmt_amount(shift.total_amount) or "0.00",
        consumables_amount=fmt_amount(shift.consumables_amount) or "0.00",
        percent_master=fmt_amount(shift.percent_master),
        percent_salon=fmt_amount(shift.percent_salon),
        master_share=fmt_amount(shift.master_share) or "0.00",
        salon_share=fmt_amount(shift.salon_share) or "0.00",
        hourly_rate=fmt_amount(shift.hourly_rate),
        hours_worked=fmt_amount(shift.hours_worked),
        guaranteed_amount=fmt_amount(shift.guaranteed_amount) or "0.00",
        topup_amount=fmt_amount(shift.topup_amount) or "0.00",
    )


def item_to_out(item: StaffShiftItem) -> ShiftItemOut:
    return ShiftItemOut(
        id=item.id,
        client_name=item.client_name,
        service_name=item.service_name,
        service_amount=fmt_amount(item.service_amount) or "0.00",
        consumables_amount=fmt_amount(item.consumables_amount) or "0.00",
        booking_id=item.booking_id,
        created_at=_fmt_dt(item.created_at),
    )


# ─── Lookups ─────────────────────────────────────────────────────────────────


def find_shift(db: Session, staff_id: UUID, shift_date: date) -> StaffShift | None:
    return (
        db.query(StaffShift)
        .filter(StaffShift.staff_id == staff_id, StaffShift.shift_date == shift_date)
        .first()
    )


def get_open_shift(db: Session, staff_id: UUID, shift_date: date) -> StaffShift:
    """The staff member's OPEN shift for *shift_date*, or NoOpenShiftError."""
    shift = find_shift(db, staff_id, shift_date)
    if shift is None:
        raise NoOpenShiftError()
    if shift.status != ShiftStatus.OPEN:
        raise ShiftClosedError()
    return shift


def list_items(db: Session, shift_id: UUID) -> list[StaffShiftItem]:
    return (
        db.query(StaffShiftItem)
        .filter(StaffShiftItem.shift_id == shift_id)
        .order_by(StaffShiftItem.created_at, StaffShiftItem.id)
        .all()
    )


def ledger_totals(db: Session, shift_id: UUID) -> tuple[Decimal, Decimal, int]:
    """(service total, consumables total, item count) of a shift's ledger."""
    total, consumables, count = (
        db.query(
            func.coalesce(func.sum(StaffShiftItem.service_amount), 0),
            func.coalesce(func.sum(StaffShiftItem.consumables_amount), 0),
            func.count(StaffShiftItem.id),
        )
        .filter(StaffShiftItem.shift_id == shift_id)
        .one()
    )
    return Decimal(str(total)), Decimal(str(consumables)), int(count)


# ─── Settlement helpers ─────────────────────────────────────────────────────


def capture_terms(shift: StaffShift, staff: Staff | None) -> None:
    """Fix the shift's percentages and hourly rate on first settlement.

    Later edits to the staff profile do not change an already settled shift.
    """
    if shift.percent_master is None or shift.percent_salon is None:
        pm, ps = normalize_percents(
            staff.percent_master if staff else None,
            staff.percent_salon if staff else None,
        )
        shift.percent_master = pm.quantize(PERCENT_Q, rounding=ROUND_HALF_UP)
        shift.percent_salon = ps.quantize(PERCENT_Q, rounding=ROUND_HALF_UP)
    if shift.hourly_rate is None and staff is not None:
        shift.hourly_rate = effective_rate(staff.hourly_rate)


def apply_settlement(shift: StaffShift, settlement: ShiftSettlement) -> None:
    shift.total_amount = settlement.split.total_amount
    shift.consumables_amount = settlement.split.consumables_amount
    shift.master_share = settlement.master_share
    shift.salon_share = settlement.salon_share
    shift.hours_worked = settlement.hours_worked
    shift.guaranteed_amount = settlement.guaranteed_amount
    shift.topup_amount = settlement.topup_amount


def settlement_changes(settlement: ShiftSettlement) -> dict[str, str | None]:
    """Audit payload for a settlement."""
    return {
        "total_amount": fmt_amount(settlement.split.total_amount),
        "consumables_amount": fmt_amount(settlement.split.consumables_amount),
        "base_master_share": fmt_amount(settlement.split.master_share),
        "base_salon_share": fmt_amount(settlement.split.salon_share),
        "hourly_rate": fmt_amount(settlement.hourly_rate),
        "hours_worked": fmt_amount(settlement.hours_worked),
        "guaranteed_amount": fmt_amount(settlement.guaranteed_amount),
        "topup_amount": fmt_amount(settlement.topup_amount),
        "master_share": fmt_amount(settlement.master_share),
        "salon_share": fmt_amount(settlement.salon_share),
    }


def finalize_shift(
    shift: StaffShift,
    staff: Staff | None,
    *,
    total_amount: Decimal,
    consumables_amount: Decimal,
    closed_at: datetime,
    mode: CloseMode,
) -> ShiftSettlement:
    """Settle and mark *shift* CLOSED at *closed_at*. Does not commit."""
    capture_terms(shift, staff)
    settlement = settle(
        total_amount=total_amount,
        consumables_amount=consumables_amount,
        percent_master=shift.percent_master,
        percent_salon=shift.percent_salon,
        hourly_rate=effective_rate(shift.hourly_rate, staff.hourly_rate if staff else None),
        opened_at=shift.opened_at,
        closed_at=closed_at,
    )
    apply_settlement(shift, settlement)
    shift.status = ShiftStatus.CLOSED
    shift.closed_at = as_utc(closed_at)
    shift.close_mode = mode
    return settlement


# ─── Open ────────────────────────────────────────────────────────────────────


def _upsert_statement(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert(StaffShift.__table__)
    if dialect == "sqlite":
        return sqlite_insert(StaffShift.__table__)
    raise RuntimeError(f"Unsupported database dialect for shift upsert: {dialect}")


def _late_minutes(opened_at: datetime, start: datetime) -> int:
    seconds = Decimal(str((as_utc(opened_at) - as_utc(start)).total_seconds()))
    minutes = (seconds / Decimal("60")).quantize(UNIT, rounding=ROUND_HALF_UP)
    return max(0, int(minutes))


def open_shift(
    db: Session,
    staff: Staff,
    *,
    shift_date: date | None = None,
    now: datetime | None = None,
    actor_id: UUID | None = None,
    ip_address: str | None = None,
) -> OpenShiftResult:
    """Open (or return the already open) shift of *staff* for *shift_date*.

    The insert is a single ``ON CONFLICT DO NOTHING`` statement on the
    (staff, date) unique key, so concurrent opens yield one row and the
    caller learns whether this call created it.
    """
    now = as_utc(now) if now is not None else utc_now()
    shift_date = shift_date or business_date(now)

    start = expected_start(db, staff.id, shift_date)
    late = _late_minutes(now, start)

    stmt = (
        _upsert_statement(db)
        .values(
            id=uuid4(),
            staff_id=staff.id,
            business_id=staff.business_id,
            branch_id=staff.branch_id,
            shift_date=shift_date,
            status=ShiftStatus.OPEN,
            opened_at=now,
            expected_start=start,
            late_minutes=late,
        )
        .on_conflict_do_nothing(index_elements=["staff_id", "shift_date"])
        .returning(StaffShift.__table__.c.id)
    )
    inserted_id = db.execute(stmt).scalar_one_or_none()

    shift = find_shift(db, staff.id, shift_date)
    if shift is None:
        db.rollback()
        raise ShiftConflictError(
            f"Could not open shift for staff {staff.id} on {shift_date.isoformat()}"
        )
    if shift.status == ShiftStatus.CLOSED:
        db.rollback()
        raise ShiftClosedError(f"Shift for {shift_date.isoformat()} is already closed")

    created = inserted_id is not None
    if created:
        log_action(
            db,
            user_id=actor_id,
            action="SHIFT_OPENED",
            resource_type="staff_shifts",
            resource_id=str(shift.id),
            ip_address=ip_address,
            changes={
                "staff_id": str(staff.id),
                "shift_date": shift_date.isoformat(),
                "expected_start": start.isoformat(),
                "late_minutes": late,
            },
        )
        logger.info(
            "Opened shift %s for staff %s on %s (late %d min)",
            shift.id,
            staff.id,
            shift_date,
            late,
        )

    db.commit()
    db.refresh(shift)
    return OpenShiftResult(shift=shift, created=created, late_minutes=shift.late_minutes)


# ─── Interactive close ──────────────────────────────────────────────────────


def close_shift(
    db: Session,
    shift: StaffShift,
    *,
    now: datetime | None = None,
    actor_id: UUID | None = None,
    ip_address: str | None = None,
    chain: Sequence[TransitionStrategy] = DEFAULT_TRANSITION_CHAIN,
) -> tuple[StaffShift, BatchReport]:
    """Close *shift* now, settling from its current ledger.

    Booking statuses for the day are finalized after the settlement is
    committed; their failures are reported, never raised.
    """
    if shift.status != ShiftStatus.OPEN:
        raise ShiftClosedError()

    now = as_utc(now) if now is not None else utc_now()
    staff = db.get(Staff, shift.staff_id)
    total, consumables, _ = ledger_totals(db, shift.id)

    settlement = finalize_shift(
        shift,
        staff,
        total_amount=total,
        consumables_amount=consumables,
        closed_at=now,
        mode=CloseMode.INTERACTIVE,
    )
    log_action(
        db,
        user_id=actor_id,
        action="SHIFT_CLOSED",
        resource_type="staff_shifts",
        resource_id=str(shift.id),
        ip_address=ip_address,
        changes={"mode": CloseMode.INTERACTIVE.value, **settlement_changes(settlement)},
    )
    db.commit()
    logger.info(
        "Closed shift %s: master %s, salon %s, topup %s",
        shift.id,
        settlement.master_share,
        settlement.salon_share,
        settlement.topup_amount,
    )

    report = sync_closed_shift(db, shift, now=now, chain=chain)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to commit booking sync for shift %s", shift.id)

    db.refresh(shift)
    return shift, report


# ─── Hours adjustment ───────────────────────────────────────────────────────


def adjust_hours(
    db: Session,
    shift: StaffShift,
    hours_worked: Decimal,
    *,
    actor_id: UUID | None = None,
    ip_address: str | None = None,
) -> StaffShift:
    """Correct the worked hours of a closed shift and re-apply the guarantee."""
    if shift.status != ShiftStatus.CLOSED:
        raise ShiftValidationError("Only closed shifts can be adjusted")
    if hours_worked < 0 or hours_worked > MAX_ADJUSTABLE_HOURS:
        raise ShiftValidationError(
            f"hours_worked must be between 0 and {MAX_ADJUSTABLE_HOURS}"
        )

    hours = hours_worked.quantize(CENT, rounding=ROUND_HALF_UP)
    split = split_revenue(
        shift.total_amount,
        shift.consumables_amount,
        shift.percent_master,
        shift.percent_salon,
    )
    settlement = apply_guarantee(split, effective_rate(shift.hourly_rate), hours)
    previous = fmt_amount(shift.hours_worked)
    apply_settlement(shift, settlement)
    shift.hours_worked = hours

    log_action(
        db,
        user_id=actor_id,
        action="SHIFT_HOURS_ADJUSTED",
        resource_type="staff_shifts",
        resource_id=str(shift.id),
        ip_address=ip_address,
        changes={"previous_hours_worked": previous, **settlement_changes(settlement)},
    )
    db.commit()
    db.refresh(shift)
    return shift


# ─── Today view ─────────────────────────────────────────────────────────────


def today_view(db: Session, staff: Staff, *, now: datetime | None = None) -> ShiftTodayOut:
    now = as_utc(now) if now is not None else utc_now()
    day = business_date(now)
    shift = find_shift(db, staff.id, day)
    items = list_items(db, shift.id) if shift is not None else []

    rate = effective_rate(
        shift.hourly_rate if shift else None, staff.hourly_rate
    )
    current_hours: Decimal | None = None
    current_guarantee: Decimal | None = None
    if shift is not None and shift.status == ShiftStatus.OPEN and shift.opened_at and rate:
        current_hours = worked_hours(shift.opened_at, now)
        split = split_revenue(
            shift.total_amount, shift.consumables_amount,
            shift.percent_master, shift.percent_salon,
        )
        current_guarantee = apply_guarantee(split, rate, current_hours).guaranteed_amount

    return ShiftTodayOut(
        shift_date=day.isoformat(),
        is_day_off=is_day_off(db, staff.id, day),
        shift=shift_to_out(shift) if shift is not None else None,
        items=[item_to_out(i) for i in items],
        percent_master=fmt_amount(staff.percent_master),
        percent_salon=fmt_amount(staff.percent_salon),
        hourly_rate=fmt_amount(rate),
        current_hours_worked=fmt_amount(current_hours),
        current_guaranteed_amount=fmt_amount(current_guarantee),
    )
