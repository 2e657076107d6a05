# printshop/services/money.py
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

ZERO = Decimal("0")
Q2 = Decimal("0.01")


def D(x) -> Decimal:
    try:
        return Decimal(str(x if x is not None else 0))
    except Exception:
        return Decimal("0")


def money2(x) -> Decimal:
    return D(x).quantize(Q2, rounding=ROUND_HALF_UP)


def percent_of(amount, rate_percent) -> Decimal:
    """amount * rate% rounded to paise/cents."""
    return money2(D(amount) * D(rate_percent) / Decimal("100"))


def totals_for(subtotal, discount, tax_rate_percent) -> dict:
    """
    The one formula for document totals:
      tax   = (subtotal - discount) * tax_rate%
      total = subtotal - discount + tax
    """
    subtotal = money2(subtotal)
    discount = money2(discount)
    tax = percent_of(subtotal - discount, tax_rate_percent)
    total = money2(subtotal - discount + tax)
    return {
        "subtotal": subtotal,
        "discount": discount,
        "tax": tax,
        "total": total,
    }
