"""Booking status synchronization for settled shifts.

Bookings linked to ledger items become ``completed``; on close, the staff
member's remaining bookings for the day become ``no_show``. Bookings belong
to the appointment subsystem, so transitions go through its stored
procedures first:

1. ``update_booking_status_with_promotion`` (also applies promotions)
2. ``update_booking_status_no_check``
3. direct write of ``bookings.status``

A strategy that does not exist in the database raises ``ProcedureUnavailable``
and the chain moves on. Any other failure skips that booking only. Nothing
here raises to the caller: settlement of the shift matters more than booking
bookkeeping, so failures are logged and reported.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.core.exceptions import ProcedureUnavailable
from backend.app.models.booking import TERMINAL_BOOKING_STATUSES, Booking, BookingStatus
from backend.app.models.shift import StaffShift, StaffShiftItem
from backend.app.services.business_time import as_utc, business_day_bounds

logger = logging.getLogger(__name__)

PROMOTION_AWARE_PROCEDURE = "update_booking_status_with_promotion"
PLAIN_STATUS_PROCEDURE = "update_booking_status_no_check"

# PostgreSQL / SQLite / PostgREST wordings for an undefined function
_MISSING_PROCEDURE_MARKERS = (
    "does not exist",
    "no such function",
    "undefinedfunction",
    "could not find the function",
    "schema cache",
)


@dataclass
class BatchFailure:
    id: UUID
    reason: str


@dataclass
class BatchReport:
    """Per-item outcome of a best-effort batch."""

    succeeded: list[UUID] = field(default_factory=list)
    failed: list[BatchFailure] = field(default_factory=list)

    def record_failure(self, item_id: UUID, reason: str) -> None:
        self.failed.append(BatchFailure(id=item_id, reason=reason))

    def extend(self, other: BatchReport) -> None:
        self.succeeded.extend(other.succeeded)
        self.failed.extend(other.failed)

    @property
    def errors(self) -> list[str]:
        return [f"{failure.id}: {failure.reason}" for failure in self.failed]


TransitionStrategy = Callable[[Session, UUID, BookingStatus], None]


def _is_missing_procedure(exc: DBAPIError) -> bool:
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return any(marker in message for marker in _MISSING_PROCEDURE_MARKERS)


def _call_procedure(
    db: Session, name: str, booking_id: UUID, status: BookingStatus
) -> None:
    statement = text(f"SELECT {name}(:p_booking_id, :p_new_status)")
    try:
        with db.begin_nested():
            db.execute(
                statement,
                {"p_booking_id": str(booking_id), "p_new_status": status.value},
            )
    except DBAPIError as exc:
        if _is_missing_procedure(exc):
            raise ProcedureUnavailable(name) from exc
        raise


def promotion_aware_transition(
    db: Session, booking_id: UUID, status: BookingStatus
) -> None:
    _call_procedure(db, PROMOTION_AWARE_PROCEDURE, booking_id, status)


def plain_status_transition(
    db: Session, booking_id: UUID, status: BookingStatus
) -> None:
    _call_procedure(db, PLAIN_STATUS_PROCEDURE, booking_id, status)


def direct_status_write(db: Session, booking_id: UUID, status: BookingStatus) -> None:
    with db.begin_nested():
        db.query(Booking).filter(Booking.id == booking_id).update(
            {Booking.status: status}, synchronize_session="fetch"
        )


DEFAULT_TRANSITION_CHAIN: tuple[TransitionStrategy, ...] = (
    promotion_aware_transition,
    plain_status_transition,
    direct_status_write,
)


def transition_booking(
    db: Session,
    booking_id: UUID,
    status: BookingStatus,
    chain: Sequence[TransitionStrategy] = DEFAULT_TRANSITION_CHAIN,
) -> str:
    """Run *chain* until one strategy applies; return its name."""
    for strategy in chain:
        try:
            strategy(db, booking_id, status)
        except ProcedureUnavailable as exc:
            logger.info(
                "Booking transition %s unavailable (%s), falling back",
                strategy.__name__,
                exc,
            )
            continue
        return strategy.__name__
    raise ProcedureUnavailable("no booking transition strategy available")


def _transition_into_report(
    db: Session,
    booking_id: UUID,
    status: BookingStatus,
    chain: Sequence[TransitionStrategy],
    report: BatchReport,
) -> None:
    try:
        used = transition_booking(db, booking_id, status, chain)
    except Exception as exc:
        logger.error(
            "Failed to set booking %s to %s: %s", booking_id, status.value, exc
        )
        report.record_failure(booking_id, str(exc))
        return
    logger.debug("Booking %s set to %s via %s", booking_id, status.value, used)
    report.succeeded.append(booking_id)


def complete_linked_bookings(
    db: Session,
    booking_ids: Iterable[UUID],
    *,
    now: datetime,
    business_id: UUID | None = None,
    chain: Sequence[TransitionStrategy] = DEFAULT_TRANSITION_CHAIN,
) -> BatchReport:
    """Mark linked, non-terminal, already-started bookings as completed."""
    report = BatchReport()
    ids = list(dict.fromkeys(booking_ids))
    if not ids:
        return report

    try:
        query = db.query(Booking).filter(Booking.id.in_(ids))
        if business_id is not None:
            query = query.filter(Booking.business_id == business_id)
        bookings = query.all()
    except SQLAlchemyError as exc:
        logger.exception("Failed to load bookings for completion")
        for booking_id in ids:
            report.record_failure(booking_id, str(exc))
        return report

    for booking in bookings:
        if booking.status in TERMINAL_BOOKING_STATUSES:
            continue
        if as_utc(booking.start_at) > as_utc(now):
            continue
        _transition_into_report(db, booking.id, BookingStatus.COMPLETED, chain, report)
    return report


def mark_unlinked_no_show(
    db: Session,
    shift: StaffShift,
    linked_ids: set[UUID],
    *,
    chain: Sequence[TransitionStrategy] = DEFAULT_TRANSITION_CHAIN,
) -> BatchReport:
    """Mark the staff's bookings for the shift day that no item references as no-show."""
    report = BatchReport()
    day_start, day_end = business_day_bounds(shift.shift_date)
    try:
        bookings = (
            db.query(Booking)
            .filter(
                Booking.staff_id == shift.staff_id,
                Booking.start_at >= day_start,
                Booking.start_at < day_end,
                Booking.status.notin_(TERMINAL_BOOKING_STATUSES),
            )
            .all()
        )
    except SQLAlchemyError:
        logger.exception("Failed to load day bookings for shift %s", shift.id)
        return report

    for booking in bookings:
        if booking.id in linked_ids:
            continue
        _transition_into_report(db, booking.id, BookingStatus.NO_SHOW, chain, report)
    return report


def linked_booking_ids(db: Session, shift_id: UUID) -> set[UUID]:
    rows = (
        db.query(StaffShiftItem.booking_id)
        .filter(
            StaffShiftItem.shift_id == shift_id,
            StaffShiftItem.booking_id.is_not(None),
        )
        .all()
    )
    return {row[0] for row in rows}


def sync_closed_shift(
    db: Session,
    shift: StaffShift,
    *,
    now: datetime,
    chain: Sequence[TransitionStrategy] = DEFAULT_TRANSITION_CHAIN,
) -> BatchReport:
    """Finalize the day's bookings after *shift* closed."""
    try:
        linked = linked_booking_ids(db, shift.id)
    except SQLAlchemyError:
        logger.exception("Failed to load ledger bookings for shift %s", shift.id)
        return BatchReport()

    report = complete_linked_bookings(
        db, linked, now=now, business_id=shift.business_id, chain=chain
    )
    report.extend(mark_unlinked_no_show(db, shift, linked, chain=chain))
    if report.failed:
        logger.warning(
            "Booking sync for shift %s: %d updated, %d failed",
            shift.id,
            len(report.succeeded),
            len(report.failed),
        )
    return report
