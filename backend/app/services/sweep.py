"""Scheduled close of shifts left open past their business day.

Each shift is settled and committed on its own; a failure rolls back that
shift only and is reported in the sweep result. Shifts closed by the sweep
are settled at the midnight that ends their business day, not at the time
the sweep runs.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.models.booking import Booking, BookingStatus, Service
from backend.app.models.shift import CloseMode, ShiftStatus, StaffShift
from backend.app.models.staff import Staff
from backend.app.services.audit import log_action
from backend.app.services.booking_sync import (
    DEFAULT_TRANSITION_CHAIN,
    BatchReport,
    TransitionStrategy,
    sync_closed_shift,
)
from backend.app.services.business_time import (
    as_utc,
    business_date,
    business_day_bounds,
    next_business_midnight,
    utc_now,
)
from backend.app.services.revenue_split import ZERO, to_decimal
from backend.app.services.shifts import finalize_shift, ledger_totals, settlement_changes

logger = logging.getLogger(__name__)

TWO = Decimal("2")


@dataclass
class SweepReport(BatchReport):
    target_date: date | None = None
    total: int = 0

    @property
    def closed(self) -> int:
        return len(self.succeeded)


def estimate_from_bookings(db: Session, staff_id: UUID, day: date) -> Decimal:
    """Revenue estimate for a shift with no ledger items.

    Each non-cancelled booking of the day counts at its service's price
    midpoint when a range is set, else at its lower price.
    """
    day_start, day_end = business_day_bounds(day)
    rows = (
        db.query(Service.price_from, Service.price_to)
        .join(Booking, Booking.service_id == Service.id)
        .filter(
            Booking.staff_id == staff_id,
            Booking.start_at >= day_start,
            Booking.start_at < day_end,
            Booking.status != BookingStatus.CANCELLED,
        )
        .all()
    )
    total = ZERO
    for price_from, price_to in rows:
        low = to_decimal(price_from)
        high = to_decimal(price_to)
        if high > low:
            total += (low + high) / TWO
        elif low > 0:
            total += low
    return total


def close_stale_shifts(
    db: Session,
    *,
    target_date: date | None = None,
    now: datetime | None = None,
    chain: Sequence[TransitionStrategy] = DEFAULT_TRANSITION_CHAIN,
) -> SweepReport:
    """Close every OPEN shift dated *target_date* (default: yesterday).

    Running it again for the same date finds nothing left to close.
    """
    now = as_utc(now) if now is not None else utc_now()
    target_date = target_date or business_date(now) - timedelta(days=1)
    closed_at = next_business_midnight(target_date)

    shifts = (
        db.query(StaffShift)
        .filter(
            StaffShift.status == ShiftStatus.OPEN,
            StaffShift.shift_date == target_date,
        )
        .order_by(StaffShift.opened_at)
        .all()
    )
    report = SweepReport(target_date=target_date, total=len(shifts))
    logger.info("Shift sweep for %s: %d open shifts", target_date, len(shifts))

    for shift in shifts:
        shift_id = shift.id
        staff_id = shift.staff_id
        try:
            staff = db.get(Staff, staff_id)
            if staff is None:
                logger.error("Shift %s: staff %s not found", shift_id, staff_id)
                report.record_failure(shift_id, f"Staff {staff_id}: not found")
                continue

            total, consumables, item_count = ledger_totals(db, shift_id)
            estimated = item_count == 0
            if estimated:
                total = estimate_from_bookings(db, staff_id, target_date)
                consumables = ZERO

            settlement = finalize_shift(
                shift,
                staff,
                total_amount=total,
                consumables_amount=consumables,
                closed_at=closed_at,
                mode=CloseMode.SCHEDULED,
            )
            log_action(
                db,
                user_id=None,
                action="SHIFT_CLOSED",
                resource_type="staff_shifts",
                resource_id=str(shift_id),
                changes={
                    "mode": CloseMode.SCHEDULED.value,
                    "estimated_from_bookings": estimated,
                    **settlement_changes(settlement),
                },
            )
            db.commit()
        except Exception as exc:
            db.rollback()
            logger.exception("Shift sweep failed for shift %s", shift_id)
            report.record_failure(shift_id, str(exc))
            continue

        report.succeeded.append(shift_id)
        sync_closed_shift(db, shift, now=now, chain=chain)
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to commit booking sync for shift %s", shift_id)

    logger.info(
        "Shift sweep for %s: closed %d of %d (%d errors)",
        target_date,
        report.closed,
        report.total,
        len(report.failed),
    )
    return report
