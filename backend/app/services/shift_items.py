"""Item ledger of an open shift.

Each save replaces the whole item list of the shift and recomputes its
totals through the revenue split, so the stored figures always match the
current ledger.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.core.exceptions import InvalidAmountError, ShiftClosedError
from backend.app.models.booking import Booking
from backend.app.models.shift import ShiftStatus, StaffShift, StaffShiftItem
from backend.app.models.staff import Staff
from backend.app.schemas.shift import ShiftItemIn
from backend.app.services.audit import log_action
from backend.app.services.booking_sync import (
    DEFAULT_TRANSITION_CHAIN,
    TransitionStrategy,
    complete_linked_bookings,
)
from backend.app.services.business_time import as_utc, utc_now
from backend.app.services.revenue_split import RevenueSplit, split_revenue, to_decimal
from backend.app.services.shifts import capture_terms, fmt_amount, ledger_totals

logger = logging.getLogger(__name__)

_NO_AMOUNT = Decimal("-1")


def _clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def validate_items(items: Sequence[ShiftItemIn]) -> None:
    """Reject the whole batch if any line carries a negative amount."""
    for index, item in enumerate(items, start=1):
        if item.service_amount < 0 or item.consumables_amount < 0:
            raise InvalidAmountError(f"Item {index}: amounts cannot be negative")


def promotion_amounts(
    db: Session, booking_ids: Sequence[UUID], business_id: UUID
) -> dict[UUID, Decimal]:
    """Promotion-adjusted final prices for the given bookings.

    Best effort: a failed lookup leaves the submitted amounts untouched.
    """
    if not booking_ids:
        return {}
    try:
        with db.begin_nested():
            rows = (
                db.query(Booking.id, Booking.promotion_applied)
                .filter(Booking.id.in_(booking_ids), Booking.business_id == business_id)
                .all()
            )
    except SQLAlchemyError:
        logger.exception("Promotion lookup failed, keeping submitted amounts")
        return {}

    amounts: dict[UUID, Decimal] = {}
    for booking_id, payload in rows:
        if not isinstance(payload, dict):
            continue
        raw = payload.get("final_amount")
        if raw is None or isinstance(raw, bool):
            continue
        amount = to_decimal(raw, _NO_AMOUNT)
        if amount >= 0:
            amounts[booking_id] = amount
    return amounts


def replace_items(
    db: Session,
    shift: StaffShift,
    items: Sequence[ShiftItemIn],
    *,
    now: datetime | None = None,
    actor_id: UUID | None = None,
    ip_address: str | None = None,
    chain: Sequence[TransitionStrategy] = DEFAULT_TRANSITION_CHAIN,
) -> RevenueSplit:
    """Replace the ledger of an OPEN shift and recompute its base shares.

    Bookings referenced by the items are moved to ``completed`` first and a
    booking's promotion-adjusted price overrides the submitted service amount.
    Lines with no amounts, no booking and no client name are dropped. The
    guarantee is only applied at close, when hours are known.
    """
    validate_items(items)
    if shift.status != ShiftStatus.OPEN:
        raise ShiftClosedError("Items of a closed shift cannot be changed")

    now = as_utc(now) if now is not None else utc_now()
    booking_ids = list(dict.fromkeys(i.booking_id for i in items if i.booking_id is not None))

    sync = complete_linked_bookings(
        db, booking_ids, now=now, business_id=shift.business_id, chain=chain
    )
    if sync.failed:
        logger.warning(
            "Shift %s: %d linked bookings could not be completed",
            shift.id,
            len(sync.failed),
        )
    promotions = promotion_amounts(db, booking_ids, shift.business_id)

    db.query(StaffShiftItem).filter(StaffShiftItem.shift_id == shift.id).delete(
        synchronize_session=False
    )

    kept = 0
    for index, item in enumerate(items):
        client_name = _clean_text(item.client_name)
        service_amount = item.service_amount
        if item.booking_id is not None and item.booking_id in promotions:
            service_amount = promotions[item.booking_id]
        if (
            service_amount == 0
            and item.consumables_amount == 0
            and item.booking_id is None
            and client_name is None
        ):
            continue
        db.add(
            StaffShiftItem(
                shift_id=shift.id,
                client_name=client_name,
                service_name=_clean_text(item.service_name),
                service_amount=service_amount,
                consumables_amount=item.consumables_amount,
                booking_id=item.booking_id,
                # keeps submission order stable when sorting by created_at
                created_at=now + timedelta(milliseconds=index),
            )
        )
        kept += 1
    db.flush()

    capture_terms(shift, db.get(Staff, shift.staff_id))
    total, consumables, _ = ledger_totals(db, shift.id)
    split = split_revenue(total, consumables, shift.percent_master, shift.percent_salon)
    shift.total_amount = split.total_amount
    shift.consumables_amount = split.consumables_amount
    shift.master_share = split.master_share
    shift.salon_share = split.salon_share

    log_action(
        db,
        user_id=actor_id,
        action="SHIFT_ITEMS_SAVED",
        resource_type="staff_shifts",
        resource_id=str(shift.id),
        ip_address=ip_address,
        changes={
            "items": kept,
            "total_amount": fmt_amount(split.total_amount),
            "consumables_amount": fmt_amount(split.consumables_amount),
            "master_share": fmt_amount(split.master_share),
            "salon_share": fmt_amount(split.salon_share),
            "bookings_completed": len(sync.succeeded),
        },
    )
    db.commit()
    return split
