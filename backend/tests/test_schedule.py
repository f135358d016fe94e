"""Tests for working-day resolution and business-time helpers."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest
from sqlalchemy.orm import Session

from backend.app.core.exceptions import DayOffError
from backend.app.models.business import Branch, Business
from backend.app.models.staff import StaffScheduleRule, StaffTimeOff, WorkingHours
from backend.app.services.business_time import (
    business_date,
    business_day_bounds,
    next_business_midnight,
    parse_hhmm,
)
from backend.app.services.schedule import expected_start, is_day_off, working_intervals
from backend.tests.conftest import SHIFT_DAY, make_staff


# ─── Business time ───────────────────────────────────────────────────────────


class TestBusinessTime:
    def test_business_date_crosses_utc_midnight(self) -> None:
        # 20:30 UTC is 02:30 next day in Bishkek
        assert business_date(datetime(2026, 3, 9, 20, 30, tzinfo=timezone.utc)) == SHIFT_DAY

    def test_day_bounds_in_utc(self) -> None:
        start, end = business_day_bounds(SHIFT_DAY)
        assert start == datetime(2026, 3, 9, 18, 0, tzinfo=timezone.utc)
        assert end == datetime(2026, 3, 10, 18, 0, tzinfo=timezone.utc)

    def test_next_midnight(self) -> None:
        assert next_business_midnight(SHIFT_DAY) == datetime(2026, 3, 10, 18, 0, tzinfo=timezone.utc)

    def test_parse_ignores_seconds(self) -> None:
        assert parse_hhmm("09:30:00").hour == 9
        assert parse_hhmm("09:30:00").minute == 30


# ─── Working intervals ───────────────────────────────────────────────────────


class TestWorkingIntervals:
    def test_weekly_rule(self, db: Session, business: Business, branch: Branch) -> None:
        staff = make_staff(db, business, branch)
        assert working_intervals(db, staff.id, SHIFT_DAY) == [{"start": "09:00", "end": "18:00"}]
        assert not is_day_off(db, staff.id, SHIFT_DAY)

    def test_weekday_numbering_starts_monday(
        self, db: Session, business: Business, branch: Branch
    ) -> None:
        staff = make_staff(db, business, branch, weekly=None)
        db.add(WorkingHours(staff_id=staff.id, day_of_week=1, intervals=[{"start": "10:00", "end": "19:00"}]))
        db.commit()

        assert SHIFT_DAY.weekday() == 1
        assert not is_day_off(db, staff.id, SHIFT_DAY)
        assert is_day_off(db, staff.id, date(2026, 3, 9))

    def test_intervals_sorted_by_start(
        self, db: Session, business: Business, branch: Branch
    ) -> None:
        staff = make_staff(
            db, business, branch,
            weekly=[{"start": "14:00", "end": "18:00"}, {"start": "08:30", "end": "12:00"}],
        )
        assert working_intervals(db, staff.id, SHIFT_DAY)[0]["start"] == "08:30"

    def test_date_rule_overrides_weekly(
        self, db: Session, business: Business, branch: Branch
    ) -> None:
        staff = make_staff(db, business, branch)
        db.add(StaffScheduleRule(
            staff_id=staff.id, date_on=SHIFT_DAY,
            intervals=[{"start": "12:00", "end": "20:00"}],
        ))
        db.commit()
        assert working_intervals(db, staff.id, SHIFT_DAY)[0]["start"] == "12:00"

    def test_empty_date_rule_falls_through(
        self, db: Session, business: Business, branch: Branch
    ) -> None:
        staff = make_staff(db, business, branch)
        db.add(StaffScheduleRule(staff_id=staff.id, date_on=SHIFT_DAY, intervals=[]))
        db.commit()
        assert working_intervals(db, staff.id, SHIFT_DAY)[0]["start"] == "09:00"

    def test_inactive_date_rule_ignored(
        self, db: Session, business: Business, branch: Branch
    ) -> None:
        staff = make_staff(db, business, branch)
        db.add(StaffScheduleRule(
            staff_id=staff.id, date_on=SHIFT_DAY,
            intervals=[{"start": "12:00"}], is_active=False,
        ))
        db.commit()
        assert working_intervals(db, staff.id, SHIFT_DAY)[0]["start"] == "09:00"

    def test_no_rules_is_day_off(self, db: Session, business: Business, branch: Branch) -> None:
        staff = make_staff(db, business, branch, weekly=None)
        assert is_day_off(db, staff.id, SHIFT_DAY)

    def test_malformed_intervals_skipped(
        self, db: Session, business: Business, branch: Branch
    ) -> None:
        staff = make_staff(db, business, branch, weekly=[{"start": "nine"}, {"end": "18:00"}])
        assert is_day_off(db, staff.id, SHIFT_DAY)


# ─── Time off precedence ─────────────────────────────────────────────────────


class TestTimeOff:
    def test_time_off_beats_weekly_and_date_rules(
        self, db: Session, business: Business, branch: Branch
    ) -> None:
        staff = make_staff(db, business, branch)
        db.add(StaffScheduleRule(
            staff_id=staff.id, date_on=SHIFT_DAY, intervals=[{"start": "12:00", "end": "20:00"}],
        ))
        db.add(StaffTimeOff(
            staff_id=staff.id, date_from=date(2026, 3, 9), date_to=date(2026, 3, 11),
        ))
        db.commit()

        assert is_day_off(db, staff.id, SHIFT_DAY)
        with pytest.raises(DayOffError, match="time off"):
            expected_start(db, staff.id, SHIFT_DAY)

    def test_expected_start_is_business_local(
        self, db: Session, business: Business, branch: Branch
    ) -> None:
        staff = make_staff(db, business, branch)
        assert expected_start(db, staff.id, SHIFT_DAY) == datetime(
            2026, 3, 10, 3, 0, tzinfo=timezone.utc
        )
