# Overview: Service-layer operations for the movement ledger; append-only audit of asset changes.

from __future__ import annotations

from ..errors import ValidationError
from ..extensions import db
from ..models import Asset, Invoice, Movement, MOVEMENT_ACTIONS, MOVEMENT_TYPES
"""
Movement Ledger Invariants (authoritative)

- Append-only: rows are inserted here and nowhere else; never updated or deleted.
- Every quantity change or removal of an Asset produces exactly one row,
  written in the same DB transaction as the change it records.
- quantity is a magnitude (>= 0); action carries the direction.
- asset_name / invoice_number / party_name are snapshots taken at write time.
- The caller that knows the business reason (sold, purchased, manual edit)
  picks the action; asset_service.adjust_quantity never logs on its own.
"""


def append_movement(
    *,
    asset: Asset,
    action: str,
    quantity: int,
    type: str = "adjustment",
    invoice: Invoice | None = None,
    party_name: str | None = None,
    remarks: str | None = None,
) -> Movement:
    """
    Append one ledger row for asset.

    - No commit; the caller owns the transaction.
    - Must be called while asset still exists (before a delete is flushed).
    """
    if action not in MOVEMENT_ACTIONS:
        raise ValueError(f"unknown movement action {action!r}")
    if type not in MOVEMENT_TYPES:
        raise ValueError(f"unknown movement type {type!r}")
    if quantity < 0:
        raise ValueError("movement quantity is a magnitude and must be >= 0")

    mv = Movement(
        asset_id=asset.id,
        asset_name=asset.name,
        action=action,
        type=type,
        quantity=quantity,
        invoice_id=invoice.id if invoice is not None else None,
        invoice_number=invoice.invoice_number if invoice is not None else "",
        party_name=(party_name or "").strip(),
        remarks=(remarks or "").strip()[:255],
    )
    db.session.add(mv)
    db.session.flush()  # ensures mv.id is assigned without committing
    return mv


def list_movements(
    *,
    type: str | None = None,
    action: str | None = None,
    asset_id: int | None = None,
    limit: int = 500,
) -> list[Movement]:
    """Most recent movements first, optionally filtered, capped at limit."""
    if type and type not in MOVEMENT_TYPES:
        raise ValidationError(f"Invalid movement type: {type!r}")
    if action and action not in MOVEMENT_ACTIONS:
        raise ValidationError(f"Invalid movement action: {action!r}")

    q = db.session.query(Movement)
    if type:
        q = q.filter(Movement.type == type)
    if action:
        q = q.filter(Movement.action == action)
    if asset_id is not None:
        q = q.filter(Movement.asset_id == asset_id)

    return (
        q.order_by(Movement.created_at.desc(), Movement.id.desc())
        .limit(limit)
        .all()
    )
