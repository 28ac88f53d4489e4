# FILE: app/utils/money.py
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

MONEY = Decimal("0.01")
ZERO = Decimal("0")


def D(x) -> Decimal:
    if isinstance(x, Decimal):
        return x
    try:
        return Decimal(str(x or 0))
    except (InvalidOperation, ValueError):
        return ZERO


def money2(x) -> Decimal:
    return D(x).quantize(MONEY, rounding=ROUND_HALF_UP)
