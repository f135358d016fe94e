"""Tests for the finance aggregate."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from backend.app.core.exceptions import InvalidPeriodError
from backend.app.models.business import Branch, Business
from backend.app.models.staff import Staff
from backend.app.schemas.finance import PeriodEnum
from backend.app.schemas.shift import ShiftItemIn
from backend.app.services.finance import get_finance_summary, resolve_period
from backend.app.services.shift_items import replace_items
from backend.app.services.shifts import close_shift, open_shift
from backend.tests.conftest import SHIFT_DAY, auth, local, make_staff

TODAY = date(2026, 3, 10)


def _worked_shift(db: Session, staff: Staff, day: date, amount: str, *, close: bool = True) -> None:
    shift = open_shift(db, staff, shift_date=day, now=local(day, "09:10")).shift
    replace_items(
        db, shift,
        [ShiftItemIn(client_name="Client", service_amount=Decimal(amount))],
        now=local(day, "12:00"),
    )
    if close:
        close_shift(db, shift, now=local(day, "18:00"))


# ─── Period parsing ──────────────────────────────────────────────────────────


class TestResolvePeriod:
    def test_day(self) -> None:
        assert resolve_period("day", "2026-02-28", TODAY) == (date(2026, 2, 28), date(2026, 2, 28))

    def test_month(self) -> None:
        assert resolve_period("month", "2024-02", TODAY) == (date(2024, 2, 1), date(2024, 2, 29))

    def test_year(self) -> None:
        assert resolve_period(PeriodEnum.YEAR, "2026", TODAY) == (date(2026, 1, 1), date(2026, 12, 31))

    def test_defaults_to_current_period(self) -> None:
        assert resolve_period("month", None, TODAY) == (date(2026, 3, 1), date(2026, 3, 31))

    @pytest.mark.parametrize(
        "period, value",
        [
            ("day", "2026-2-28"),
            ("day", "2026-02-30"),
            ("day", "2026-02-28T00:00"),
            ("month", "2026-13"),
            ("month", "2026-00"),
            ("year", "1999"),
            ("year", "2101"),
            ("year", "26"),
            ("week", "2026-10"),
        ],
    )
    def test_invalid(self, period: str, value: str) -> None:
        with pytest.raises(InvalidPeriodError):
            resolve_period(period, value, TODAY)


# ─── Aggregation ─────────────────────────────────────────────────────────────


class TestFinanceSummary:
    def test_closed_and_open_shifts(
        self, db: Session, business: Business, branch: Branch, staff: Staff
    ) -> None:
        _worked_shift(db, staff, date(2026, 3, 2), "3500")
        _worked_shift(db, staff, date(2026, 3, 3), "1000")
        _worked_shift(db, staff, SHIFT_DAY, "2000", close=False)

        summary = get_finance_summary(
            db, business.id, "month", "2026-03", now=local(SHIFT_DAY, "15:00")
        )

        row = summary.staff[0]
        assert row.staff_id == staff.id
        assert row.shifts_count == 3
        assert row.closed_shifts_count == 2
        assert row.open_shifts_count == 1
        assert row.total_amount == "6500.00"
        assert row.total_master == "3900.00"
        assert row.total_salon == "2600.00"
        assert row.total_late_minutes == 30
        assert summary.totals.total_amount == "6500.00"

    def test_open_shift_guarantee_computed_live(
        self, db: Session, business: Business, branch: Branch
    ) -> None:
        rated = make_staff(db, business, branch, full_name="Rated", hourly_rate=Decimal("500"))
        _worked_shift(db, rated, SHIFT_DAY, "1000", close=False)

        summary = get_finance_summary(
            db, business.id, "day", SHIFT_DAY.isoformat(), now=local(SHIFT_DAY, "13:10")
        )

        row = summary.staff[0]
        # 4 hours * 500 against a 600 share
        assert row.total_master == "2000.00"
        assert row.total_topup == "1400.00"
        assert row.total_salon == "0.00"

    def test_stale_open_shift_settled_at_sweep_cutoff(
        self, db: Session, business: Business, branch: Branch
    ) -> None:
        rated = make_staff(db, business, branch, full_name="Rated", hourly_rate=Decimal("500"))
        _worked_shift(db, rated, date(2026, 3, 2), "1000", close=False)

        summary = get_finance_summary(
            db, business.id, "month", "2026-03", now=local(SHIFT_DAY, "13:10")
        )

        row = summary.staff[0]
        assert row.open_shifts_count == 1
        # 09:10 until the next midnight is 14.83 hours, not eight days
        assert row.total_master == "7415.00"
        assert row.total_topup == "6815.00"
        assert row.total_salon == "0.00"

    def test_branch_filter_and_tenant_isolation(
        self, db: Session, business: Business, branch: Branch, other_business: Business
    ) -> None:
        other_branch = Branch(business_id=business.id, name="Second")
        db.add(other_branch)
        db.commit()
        here = make_staff(db, business, branch, full_name="Here")
        there = make_staff(db, business, other_branch, full_name="There")
        foreign = make_staff(db, other_business, None, full_name="Foreign")
        for member in (here, there, foreign):
            _worked_shift(db, member, SHIFT_DAY, "1000")

        summary = get_finance_summary(
            db, business.id, "day", SHIFT_DAY.isoformat(),
            branch_id=branch.id, now=local(SHIFT_DAY, "20:00"),
        )
        assert [r.staff_name for r in summary.staff] == ["Here"]
        assert summary.totals.shifts_count == 1

        everything = get_finance_summary(
            db, business.id, "day", SHIFT_DAY.isoformat(), now=local(SHIFT_DAY, "20:00")
        )
        assert sorted(r.staff_name for r in everything.staff) == ["Here", "There"]
        assert everything.totals.total_amount == "2000.00"


# ─── Endpoint ────────────────────────────────────────────────────────────────


class TestFinanceAPI:
    def test_manager_reads_summary(
        self, client: TestClient, db: Session, staff: Staff, manager_token: str
    ) -> None:
        _worked_shift(db, staff, SHIFT_DAY, "3500")
        resp = client.get(
            "/api/v1/dashboard/finance",
            params={"period": "day", "date": SHIFT_DAY.isoformat()},
            headers=auth(manager_token),
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["date_from"] == "2026-03-10"
        assert body["totals"]["total_master"] == "2100.00"
        assert body["totals"]["total_salon"] == "1400.00"

    def test_invalid_date_is_400(self, client: TestClient, manager_token: str) -> None:
        resp = client.get(
            "/api/v1/dashboard/finance",
            params={"period": "month", "date": "2026-13"},
            headers=auth(manager_token),
        )
        assert resp.status_code == 400

    def test_staff_forbidden(self, client: TestClient, staff: Staff, staff_token: str) -> None:
        resp = client.get("/api/v1/dashboard/finance", headers=auth(staff_token))
        assert resp.status_code == 403
