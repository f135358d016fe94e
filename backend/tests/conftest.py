"""Shared test fixtures.

Each test gets its own in-memory SQLite database, so service code can commit
freely and tests never pollute each other.
"""

from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["BUSINESS_TIMEZONE"] = "Asia/Bishkek"

from datetime import date, datetime
from decimal import Decimal
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from backend.app.core.database import Base, get_db
from backend.app.core.security import create_access_token
from backend.app.main import app
from backend.app.middleware.rate_limit import shift_write_limiter
from backend.app.models.audit import AuditLog  # noqa: F401
from backend.app.models.booking import Booking, BookingStatus, Service
from backend.app.models.business import Branch, Business
from backend.app.models.shift import StaffShift, StaffShiftItem  # noqa: F401
from backend.app.models.staff import Staff, WorkingHours
from backend.app.models.user import RoleEnum, User
from backend.app.services.business_time import at_business_time

# Tuesday; Asia/Bishkek is UTC+6 all year
SHIFT_DAY = date(2026, 3, 10)
WORKDAY = [{"start": "09:00", "end": "18:00"}]


# ─── Database ────────────────────────────────────────────────────────────────


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSession()

    yield session

    session.close()
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def client(db: Session) -> Generator[TestClient, None, None]:
    """FastAPI TestClient wired to the test session."""

    def _override_get_db() -> Generator[Session, None, None]:
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    shift_write_limiter.reset()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    shift_write_limiter.reset()


# ─── Tenant ──────────────────────────────────────────────────────────────────


@pytest.fixture()
def business(db: Session) -> Business:
    biz = Business(name="Salon One")
    db.add(biz)
    db.commit()
    return biz


@pytest.fixture()
def branch(db: Session, business: Business) -> Branch:
    br = Branch(business_id=business.id, name="Main")
    db.add(br)
    db.commit()
    return br


@pytest.fixture()
def other_business(db: Session) -> Business:
    biz = Business(name="Salon Two")
    db.add(biz)
    db.commit()
    return biz


# ─── Users & staff ───────────────────────────────────────────────────────────


@pytest.fixture()
def manager_user(db: Session, business: Business) -> User:
    user = User(username="manager", role=RoleEnum.MANAGER, business_id=business.id)
    db.add(user)
    db.commit()
    return user


@pytest.fixture()
def staff_user(db: Session, business: Business) -> User:
    user = User(username="master", role=RoleEnum.STAFF, business_id=business.id)
    db.add(user)
    db.commit()
    return user


def make_staff(
    db: Session,
    business: Business,
    branch: Branch | None = None,
    *,
    user: User | None = None,
    full_name: str = "Aida Master",
    percent_master: Decimal | None = Decimal("60"),
    percent_salon: Decimal | None = Decimal("40"),
    hourly_rate: Decimal | None = None,
    weekly: list[dict[str, str]] | None = WORKDAY,
) -> Staff:
    """Staff member working *weekly* intervals on every day of the week."""
    staff = Staff(
        business_id=business.id,
        branch_id=branch.id if branch else None,
        user_id=user.id if user else None,
        full_name=full_name,
        percent_master=percent_master,
        percent_salon=percent_salon,
        hourly_rate=hourly_rate,
    )
    db.add(staff)
    db.flush()
    if weekly is not None:
        for weekday in range(7):
            db.add(WorkingHours(staff_id=staff.id, day_of_week=weekday, intervals=weekly))
    db.commit()
    return staff


@pytest.fixture()
def staff(db: Session, business: Business, branch: Branch, staff_user: User) -> Staff:
    return make_staff(db, business, branch, user=staff_user)


def make_booking(
    db: Session,
    staff: Staff,
    start_at: datetime,
    *,
    status: BookingStatus = BookingStatus.CONFIRMED,
    service: Service | None = None,
    promotion_applied: dict | None = None,
    client_name: str | None = "Client",
) -> Booking:
    booking = Booking(
        business_id=staff.business_id,
        branch_id=staff.branch_id,
        staff_id=staff.id,
        service_id=service.id if service else None,
        client_name=client_name,
        start_at=start_at,
        status=status,
        promotion_applied=promotion_applied,
    )
    db.add(booking)
    db.commit()
    return booking


def local(day: date, clock: str) -> datetime:
    """UTC instant of business-local wall clock *clock* on *day*."""
    return at_business_time(day, clock)


# ─── Auth helpers ─────────────────────────────────────────────────────────────


@pytest.fixture()
def manager_token(manager_user: User) -> str:
    return create_access_token(str(manager_user.id))


@pytest.fixture()
def staff_token(staff_user: User) -> str:
    return create_access_token(str(staff_user.id))


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
