# backend/assetdesk/money.py
"""
Decimal helpers for prices and invoice amounts.

Request amounts (prices, discount, paid amount) carry at most two decimal
places and VAT rates at most three. Invoice totals derived from them are
kept exact and never rounded when stored.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")

AMOUNT_PLACES = 2
RATE_PLACES = 3


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def money_to_json(value):
    if value is None:
        return None
    return float(value)
