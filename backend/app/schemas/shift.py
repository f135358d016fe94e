from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ─── Requests ─────────────────────────────────────────────────────────────────


class ShiftItemIn(BaseModel):
    """One ledger line as submitted by the staff app (camelCase keys)."""

    model_config = ConfigDict(populate_by_name=True)

    client_name: str | None = Field(default=None, alias="clientName", max_length=255)
    service_name: str | None = Field(default=None, alias="serviceName", max_length=255)
    # Sign is checked by the ledger so a bad line rejects the whole save with 400
    service_amount: Decimal = Field(default=Decimal("0"), alias="serviceAmount")
    consumables_amount: Decimal = Field(default=Decimal("0"), alias="consumablesAmount")
    booking_id: UUID | None = Field(default=None, alias="bookingId")

    @field_validator("service_amount", "consumables_amount", mode="before")
    @classmethod
    def none_is_zero(cls, v: object) -> object:
        return Decimal("0") if v is None else v


class ShiftItemsSaveRequest(BaseModel):
    items: list[ShiftItemIn] = []


class HoursUpdateRequest(BaseModel):
    hours_worked: Decimal

    @field_validator("hours_worked")
    @classmethod
    def hours_finite(cls, v: Decimal) -> Decimal:
        if not v.is_finite():
            raise ValueError("hours_worked must be a finite number")
        return v


# ─── Responses ────────────────────────────────────────────────────────────────


class OkOut(BaseModel):
    ok: bool = True


class ShiftItemOut(BaseModel):
    id: UUID
    client_name: str | None
    service_name: str | None
    service_amount: str
    consumables_amount: str
    booking_id: UUID | None
    created_at: str | None


class ShiftOut(BaseModel):
    id: UUID
    staff_id: UUID
    business_id: UUID
    branch_id: UUID | None
    shift_date: str
    status: str
    opened_at: str | None
    closed_at: str | None
    close_mode: str | None
    expected_start: str | None
    late_minutes: int
    total_amount: str
    consumables_amount: str
    percent_master: str | None
    percent_salon: str | None
    master_share: str
    salon_share: str
    hourly_rate: str | None
    hours_worked: str | None
    guaranteed_amount: str
    topup_amount: str


class ShiftOpenOut(BaseModel):
    created: bool
    late_minutes: int
    shift: ShiftOut


class ShiftCloseOut(BaseModel):
    shift: ShiftOut
    bookings_updated: int
    booking_errors: list[str] = []


class ShiftTodayOut(BaseModel):
    shift_date: str
    is_day_off: bool
    shift: ShiftOut | None
    items: list[ShiftItemOut]
    percent_master: str | None
    percent_salon: str | None
    hourly_rate: str | None
    current_hours_worked: str | None
    current_guaranteed_amount: str | None


class SweepOut(BaseModel):
    ok: bool = True
    date: str
    closed: int
    total: int
    errors: list[str] | None = None
