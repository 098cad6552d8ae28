# Overview: Service-layer operations for reporting; dashboard totals over assets, invoices and movements.

from __future__ import annotations

from collections import OrderedDict
from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Asset, Invoice, Movement, INVOICE_TYPES
from ..money import money_to_json, quantize_money
from ..time_utils import utcnow, to_utc_z


def _month_key(dt) -> str:
    return f"{dt.year:04d}-{dt.month:02d}"


def monthly_invoice_totals() -> list[dict]:
    """
    Grand totals per calendar month, split by invoice type.

    Bucketed in Python so the query stays the same on every dialect.
    """
    rows = (
        db.session.query(Invoice.created_at, Invoice.type, Invoice.grand_total)
        .order_by(Invoice.created_at.asc(), Invoice.id.asc())
        .all()
    )

    buckets: OrderedDict[str, dict] = OrderedDict()
    for created_at, invoice_type, grand_total in rows:
        if created_at is None:
            continue
        key = _month_key(created_at)
        bucket = buckets.setdefault(key, {t: Decimal("0.00") for t in INVOICE_TYPES} | {"count": 0})
        bucket[invoice_type] += grand_total or Decimal("0.00")
        bucket["count"] += 1

    return [
        {
            "period": period,
            "invoice_count": bucket["count"],
            **{f"{t}_total": money_to_json(bucket[t]) for t in INVOICE_TYPES},
        }
        for period, bucket in buckets.items()
    ]


def summary() -> dict:
    total_assets = db.session.query(func.count(Asset.id)).scalar() or 0
    total_stock = db.session.query(func.coalesce(func.sum(Asset.quantity), 0)).scalar() or 0
    stock_value = db.session.query(
        func.coalesce(func.sum(Asset.unit_price * Asset.quantity), 0)
    ).scalar()

    invoice_counts = dict(
        db.session.query(Invoice.type, func.count(Invoice.id)).group_by(Invoice.type).all()
    )
    movement_count = db.session.query(func.count(Movement.id)).scalar() or 0

    return {
        "generated_at": to_utc_z(utcnow()),
        "total_assets": int(total_assets),
        "total_stock": int(total_stock),
        "stock_value": money_to_json(quantize_money(Decimal(str(stock_value or 0)))),
        "invoice_count": sum(invoice_counts.values()),
        "invoice_count_by_type": {t: int(invoice_counts.get(t, 0)) for t in INVOICE_TYPES},
        "movement_count": int(movement_count),
        "monthly": monthly_invoice_totals(),
    }
