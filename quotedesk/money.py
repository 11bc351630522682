"""Monetary rounding and quote totals shared by the service and the editor."""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from .constants import IVA_RATE

CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Coerce prices coming from JSON; anything non-numeric counts as zero."""

    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, Decimal):
        return value if value.is_finite() else Decimal("0")
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal("0")
    return result if result.is_finite() else Decimal("0")


def round_money(value: Any) -> Decimal:
    # ROUND_HALF_UP on Decimal rounds half away from zero for negatives too.
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_totals(days: Iterable[Mapping[str, Any]], iva_rate: Any = IVA_RATE) -> dict[str, Any]:
    """Return day totals plus subtotal, IVA and total for a list of day documents."""

    rate = to_decimal(iva_rate)
    day_totals: list[Decimal] = []
    for day in days:
        subconcepts = day.get("subconcepts") or []
        day_totals.append(round_money(sum((to_decimal(sub.get("price")) for sub in subconcepts), Decimal("0"))))
    subtotal = round_money(sum(day_totals, Decimal("0")))
    iva = round_money(subtotal * rate)
    total = round_money(subtotal + iva)
    return {"day_totals": day_totals, "subtotal": subtotal, "iva": iva, "total": total}
