"""Hourly guaranteed-pay floor on top of the revenue split.

When ``hours * rate`` exceeds the master's revenue share, the master is paid
the guarantee and the difference (top-up) is taken from the salon share,
which never goes below zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from backend.app.services.business_time import as_utc
from backend.app.services.revenue_split import ZERO, RevenueSplit, split_revenue, to_decimal

CENT = Decimal("0.01")
SECONDS_PER_HOUR = Decimal("3600")


@dataclass(frozen=True)
class ShiftSettlement:
    split: RevenueSplit
    hourly_rate: Decimal | None
    hours_worked: Decimal | None
    guaranteed_amount: Decimal
    topup_amount: Decimal
    master_share: Decimal
    salon_share: Decimal


def effective_rate(*rates: object) -> Decimal | None:
    """First positive rate among *rates* (shift's, then staff profile's)."""
    for rate in rates:
        value = to_decimal(rate, ZERO)
        if value > 0:
            return value
    return None


def worked_hours(opened_at: datetime, closed_at: datetime) -> Decimal:
    """Elapsed hours rounded to two decimals, never negative."""
    seconds = Decimal(str((as_utc(closed_at) - as_utc(opened_at)).total_seconds()))
    hours = (seconds / SECONDS_PER_HOUR).quantize(CENT, rounding=ROUND_HALF_UP)
    return max(hours, ZERO)


def apply_guarantee(
    split: RevenueSplit,
    hourly_rate: Decimal | None,
    hours_worked: Decimal | None,
) -> ShiftSettlement:
    if hourly_rate is None or hours_worked is None or hours_worked <= 0:
        return ShiftSettlement(
            split=split,
            hourly_rate=hourly_rate,
            hours_worked=hours_worked,
            guaranteed_amount=ZERO,
            topup_amount=ZERO,
            master_share=split.master_share,
            salon_share=split.salon_share,
        )

    guaranteed = (hours_worked * hourly_rate).quantize(CENT, rounding=ROUND_HALF_UP)
    if guaranteed <= split.master_share:
        return ShiftSettlement(
            split=split,
            hourly_rate=hourly_rate,
            hours_worked=hours_worked,
            guaranteed_amount=guaranteed,
            topup_amount=ZERO,
            master_share=split.master_share,
            salon_share=split.salon_share,
        )

    topup = (guaranteed - split.master_share).quantize(CENT, rounding=ROUND_HALF_UP)
    return ShiftSettlement(
        split=split,
        hourly_rate=hourly_rate,
        hours_worked=hours_worked,
        guaranteed_amount=guaranteed,
        topup_amount=topup,
        master_share=guaranteed,
        salon_share=max(ZERO, split.salon_share - topup),
    )


def settle(
    *,
    total_amount: object,
    consumables_amount: object,
    percent_master: object,
    percent_salon: object,
    hourly_rate: Decimal | None,
    opened_at: datetime | None,
    closed_at: datetime,
) -> ShiftSettlement:
    """Split revenue and apply the guarantee for a shift closing at *closed_at*.

    Hours are only computed when a rate applies and the shift was opened.
    """
    split = split_revenue(total_amount, consumables_amount, percent_master, percent_salon)
    hours: Decimal | None = None
    if hourly_rate is not None and opened_at is not None:
        hours = worked_hours(opened_at, closed_at)
    return apply_guarantee(split, hourly_rate, hours)
