"""Revenue split between the staff member (master) and the business (salon).

This is the single implementation used by ledger saves, interactive close,
the scheduled sweep, hours adjustment and the finance aggregate.

    master = round(T * pm' / 100)
    salon  = round(T * ps' / 100) + C

where ``pm'``/``ps'`` are the percentages normalized to sum to 100 and
consumables ``C`` go to the business in full.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

ZERO = Decimal("0")
HUNDRED = Decimal("100")
UNIT = Decimal("1")

DEFAULT_PERCENT_MASTER = Decimal("60")
DEFAULT_PERCENT_SALON = Decimal("40")


@dataclass(frozen=True)
class RevenueSplit:
    total_amount: Decimal
    consumables_amount: Decimal
    percent_master: Decimal
    percent_salon: Decimal
    master_share: Decimal
    salon_share: Decimal


def to_decimal(value: object, default: Decimal = ZERO) -> Decimal:
    """Coerce a stored/JSON number to Decimal; None and garbage become *default*."""
    if value is None:
        return default
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError):
            return default
    if not result.is_finite():
        return default
    return result


def _safe_percent(value: object, default: Decimal) -> Decimal:
    pct = to_decimal(value, default)
    return pct if pct >= 0 else default


def normalize_percents(
    percent_master: object = None, percent_salon: object = None
) -> tuple[Decimal, Decimal]:
    """Scale the raw percentages so they sum to 100.

    Missing or negative values fall back to 60/40, as does a zero sum.
    """
    master = _safe_percent(percent_master, DEFAULT_PERCENT_MASTER)
    salon = _safe_percent(percent_salon, DEFAULT_PERCENT_SALON)
    total = master + salon
    if total == 0:
        master, salon, total = DEFAULT_PERCENT_MASTER, DEFAULT_PERCENT_SALON, HUNDRED
    return master / total * HUNDRED, salon / total * HUNDRED


def split_revenue(
    total_amount: object,
    consumables_amount: object = ZERO,
    percent_master: object = None,
    percent_salon: object = None,
) -> RevenueSplit:
    total = to_decimal(total_amount)
    consumables = to_decimal(consumables_amount)
    pm, ps = normalize_percents(percent_master, percent_salon)

    master_share = (total * pm / HUNDRED).quantize(UNIT, rounding=ROUND_HALF_UP)
    salon_from_services = (total * ps / HUNDRED).quantize(UNIT, rounding=ROUND_HALF_UP)

    return RevenueSplit(
        total_amount=total,
        consumables_amount=consumables,
        percent_master=pm,
        percent_salon=ps,
        master_share=master_share,
        salon_share=salon_from_services + consumables,
    )
