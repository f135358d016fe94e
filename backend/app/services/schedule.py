"""Working-day resolution for a staff member.

Precedence: a time-off row covering the date always makes it a day off.
Otherwise an active date-specific rule with intervals wins, then the weekly
working-hours rule for the weekday. No intervals anywhere means day off.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from backend.app.core.exceptions import DayOffError
from backend.app.models.staff import StaffScheduleRule, StaffTimeOff, WorkingHours
from backend.app.services.business_time import at_business_time, parse_hhmm

logger = logging.getLogger(__name__)


def _clean_intervals(raw: Any) -> list[dict[str, str]]:
    if not isinstance(raw, list):
        return []
    intervals: list[dict[str, str]] = []
    for interval in raw:
        if not isinstance(interval, dict) or not interval.get("start"):
            continue
        try:
            parse_hhmm(str(interval["start"]))
        except ValueError:
            logger.warning("Skipping malformed schedule interval %r", interval)
            continue
        intervals.append({"start": str(interval["start"]), "end": str(interval.get("end") or "")})
    return sorted(intervals, key=lambda i: parse_hhmm(i["start"]))


def has_time_off(db: Session, staff_id: UUID, day: date) -> bool:
    return (
        db.query(StaffTimeOff.id)
        .filter(
            StaffTimeOff.staff_id == staff_id,
            StaffTimeOff.date_from <= day,
            StaffTimeOff.date_to >= day,
        )
        .first()
        is not None
    )


def working_intervals(db: Session, staff_id: UUID, day: date) -> list[dict[str, str]]:
    """Intervals for *day*, sorted by start; empty list on a day off."""
    if has_time_off(db, staff_id, day):
        return []

    date_rule = (
        db.query(StaffScheduleRule)
        .filter(
            StaffScheduleRule.staff_id == staff_id,
            StaffScheduleRule.date_on == day,
            StaffScheduleRule.is_active.is_(True),
        )
        .first()
    )
    if date_rule is not None:
        intervals = _clean_intervals(date_rule.intervals)
        if intervals:
            return intervals

    weekly = (
        db.query(WorkingHours)
        .filter(
            WorkingHours.staff_id == staff_id,
            WorkingHours.day_of_week == day.weekday(),
        )
        .first()
    )
    return _clean_intervals(weekly.intervals) if weekly is not None else []


def is_day_off(db: Session, staff_id: UUID, day: date) -> bool:
    return not working_intervals(db, staff_id, day)


def expected_start(db: Session, staff_id: UUID, day: date) -> datetime:
    """Start of the first working interval on *day* as a UTC instant.

    Raises DayOffError when the staff member does not work that day.
    """
    if has_time_off(db, staff_id, day):
        raise DayOffError(f"Staff has time off on {day.isoformat()}")
    intervals = working_intervals(db, staff_id, day)
    if not intervals:
        raise DayOffError(f"No working hours scheduled on {day.isoformat()}")
    return at_business_time(day, intervals[0]["start"])
