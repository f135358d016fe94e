"""Tests for booking status synchronization and the transition fallback chain."""

from __future__ import annotations

from uuid import UUID

import pytest
from sqlalchemy.orm import Session

from backend.app.core.exceptions import ProcedureUnavailable
from backend.app.models.booking import Booking, BookingStatus
from backend.app.models.shift import StaffShiftItem
from backend.app.models.staff import Staff
from backend.app.services.booking_sync import (
    DEFAULT_TRANSITION_CHAIN,
    complete_linked_bookings,
    direct_status_write,
    mark_unlinked_no_show,
    sync_closed_shift,
    transition_booking,
)
from backend.app.services.shifts import open_shift
from backend.tests.conftest import SHIFT_DAY, local, make_booking


# ─── Helpers ─────────────────────────────────────────────────────────────────


def _unavailable(db: Session, booking_id: UUID, status: BookingStatus) -> None:
    raise ProcedureUnavailable("missing_procedure")


def _broken(db: Session, booking_id: UUID, status: BookingStatus) -> None:
    raise RuntimeError("procedure exploded")


def _failing_for(bad_id: UUID):
    def _strategy(db: Session, booking_id: UUID, status: BookingStatus) -> None:
        if booking_id == bad_id:
            raise RuntimeError("row locked")
        direct_status_write(db, booking_id, status)

    return _strategy


# ─── Transition chain ────────────────────────────────────────────────────────


class TestTransitionChain:
    def test_sqlite_falls_through_to_direct_write(self, db: Session, staff: Staff) -> None:
        booking = make_booking(db, staff, local(SHIFT_DAY, "10:00"))

        used = transition_booking(db, booking.id, BookingStatus.COMPLETED, DEFAULT_TRANSITION_CHAIN)
        db.commit()

        assert used == "direct_status_write"
        db.refresh(booking)
        assert booking.status == BookingStatus.COMPLETED

    def test_unavailable_strategy_advances(self, db: Session, staff: Staff) -> None:
        booking = make_booking(db, staff, local(SHIFT_DAY, "10:00"))
        used = transition_booking(
            db, booking.id, BookingStatus.NO_SHOW, (_unavailable, direct_status_write)
        )
        assert used == "direct_status_write"

    def test_other_failure_stops_chain(self, db: Session, staff: Staff) -> None:
        booking = make_booking(db, staff, local(SHIFT_DAY, "10:00"))
        with pytest.raises(RuntimeError, match="exploded"):
            transition_booking(db, booking.id, BookingStatus.COMPLETED, (_broken, direct_status_write))
        db.refresh(booking)
        assert booking.status == BookingStatus.CONFIRMED

    def test_exhausted_chain(self, db: Session, staff: Staff) -> None:
        booking = make_booking(db, staff, local(SHIFT_DAY, "10:00"))
        with pytest.raises(ProcedureUnavailable):
            transition_booking(db, booking.id, BookingStatus.COMPLETED, (_unavailable,))


# ─── Batches ─────────────────────────────────────────────────────────────────


class TestBatchReports:
    def test_failure_isolated_to_one_booking(self, db: Session, staff: Staff) -> None:
        ok_1 = make_booking(db, staff, local(SHIFT_DAY, "10:00"))
        bad = make_booking(db, staff, local(SHIFT_DAY, "11:00"))
        ok_2 = make_booking(db, staff, local(SHIFT_DAY, "12:00"))

        report = complete_linked_bookings(
            db,
            [ok_1.id, bad.id, ok_2.id],
            now=local(SHIFT_DAY, "18:00"),
            chain=(_failing_for(bad.id),),
        )
        db.commit()

        assert set(report.succeeded) == {ok_1.id, ok_2.id}
        assert [f.id for f in report.failed] == [bad.id]
        assert report.errors == [f"{bad.id}: row locked"]
        for booking, expected in ((ok_1, BookingStatus.COMPLETED), (bad, BookingStatus.CONFIRMED), (ok_2, BookingStatus.COMPLETED)):
            db.refresh(booking)
            assert booking.status == expected

    def test_foreign_business_booking_ignored(
        self, db: Session, staff: Staff, other_business: object
    ) -> None:
        booking = make_booking(db, staff, local(SHIFT_DAY, "10:00"))
        report = complete_linked_bookings(
            db, [booking.id], now=local(SHIFT_DAY, "18:00"), business_id=other_business.id
        )
        assert report.succeeded == []
        db.refresh(booking)
        assert booking.status == BookingStatus.CONFIRMED

    def test_no_show_only_for_unlinked_same_day(self, db: Session, staff: Staff) -> None:
        shift = open_shift(db, staff, now=local(SHIFT_DAY, "09:00")).shift
        linked = make_booking(db, staff, local(SHIFT_DAY, "10:00"))
        missed = make_booking(db, staff, local(SHIFT_DAY, "15:00"))
        done = make_booking(db, staff, local(SHIFT_DAY, "11:00"), status=BookingStatus.COMPLETED)
        tomorrow = make_booking(db, staff, local(SHIFT_DAY.replace(day=11), "10:00"))

        report = mark_unlinked_no_show(db, shift, {linked.id})
        db.commit()

        assert report.succeeded == [missed.id]
        statuses = {b.id: db.get(Booking, b.id).status for b in (linked, missed, done, tomorrow)}
        assert statuses[linked.id] == BookingStatus.CONFIRMED
        assert statuses[missed.id] == BookingStatus.NO_SHOW
        assert statuses[done.id] == BookingStatus.COMPLETED
        assert statuses[tomorrow.id] == BookingStatus.CONFIRMED

    def test_sync_closed_shift_combines_both(self, db: Session, staff: Staff) -> None:
        shift = open_shift(db, staff, now=local(SHIFT_DAY, "09:00")).shift
        linked = make_booking(db, staff, local(SHIFT_DAY, "10:00"))
        missed = make_booking(db, staff, local(SHIFT_DAY, "15:00"))
        db.add(StaffShiftItem(shift_id=shift.id, client_name="Client", booking_id=linked.id))
        db.commit()

        report = sync_closed_shift(db, shift, now=local(SHIFT_DAY, "18:00"))
        db.commit()

        assert len(report.succeeded) == 2
        assert db.get(Booking, linked.id).status == BookingStatus.COMPLETED
        assert db.get(Booking, missed.id).status == BookingStatus.NO_SHOW
