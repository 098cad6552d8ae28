# Overview: Service-layer operations for assets; validated CRUD plus guarded stock adjustment.

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Asset
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_asset
from .concurrency import lock_for_update, run_with_retry
from .movement_service import append_movement
"""
Asset Store Invariants (authoritative)

- quantity is never negative. Negative inputs are rejected at validation and
  a decrement that would cross zero fails; nothing is silently clamped.
- Every quantity change goes through adjust_quantity(), a single guarded
  UPDATE (quantity = quantity + delta WHERE quantity + delta >= 0).
- Duplicates: a non-empty serial matching any asset, or (no serial and) the
  same (name, category) as an existing asset.
- create/update/delete write their Movement row in the same transaction.
  adjust_quantity() does not log; its caller knows the business reason.
"""

ASSET_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "name",
        "category",
        "serial",
        "purchase_date",
        "unit_price",
        "quantity",
        "supplier",
        "status",
        "location",
        "image_url",
    }),
    required_on_create=frozenset({"name", "category"}),
    # The one place optional asset fields get their defaults
    defaults={
        "serial": "",
        "purchase_date": None,
        "unit_price": Decimal("0"),
        "quantity": 0,
        "supplier": "",
        "status": "in stock",
        "location": "",
        "image_url": "",
    },
)

ASSET_SORTS = {
    "newest": (Asset.created_at.desc(), Asset.id.desc()),
    "oldest": (Asset.created_at.asc(), Asset.id.asc()),
    "name_asc": (Asset.name.asc(), Asset.id.asc()),
    "name_desc": (Asset.name.desc(), Asset.id.desc()),
    "value_desc": ((Asset.unit_price * Asset.quantity).desc(), Asset.id.desc()),
    "qty_desc": (Asset.quantity.desc(), Asset.id.desc()),
}

SEARCH_FIELDS = (Asset.name, Asset.category, Asset.serial, Asset.supplier, Asset.location, Asset.status)


class InsufficientStockError(ValidationError):
    """A decrement would take an asset's quantity below zero."""

    def __init__(self, asset: Asset, requested: int):
        super().__init__(
            f"Insufficient stock for {asset.name}: requested {requested}, available {asset.quantity}",
            details={"asset_id": asset.id, "requested_quantity": requested, "available": asset.quantity},
        )
        self.asset_id = asset.id


def validate_asset_payload(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Asset, payload=payload, policy=ASSET_POLICY, partial=partial)
    enforce_rules_asset(patch)
    return patch


def get_asset(asset_id: int) -> Asset:
    asset = db.session.get(Asset, asset_id)
    if asset is None:
        raise NotFoundError("Asset not found")
    return asset


def list_assets(
    *,
    search: str | None = None,
    category: str | None = None,
    status: str | None = None,
    sort: str | None = None,
) -> list[Asset]:
    sort = sort or "newest"
    if sort not in ASSET_SORTS:
        raise ValidationError(f"Invalid sort key: {sort!r} (allowed: {', '.join(ASSET_SORTS)})")

    q = db.session.query(Asset)
    if category and category.lower() != "all":
        q = q.filter(Asset.category == category)
    if status and status.lower() != "all":
        q = q.filter(db.func.lower(Asset.status) == status.lower())
    if search and search.strip():
        needle = f"%{search.strip()}%"
        q = q.filter(or_(*(col.ilike(needle) for col in SEARCH_FIELDS)))

    return q.order_by(*ASSET_SORTS[sort]).all()


def _ensure_not_duplicate(*, name: str, category: str, serial: str, exclude_id: int | None = None) -> None:
    q = db.session.query(Asset.id)
    if exclude_id is not None:
        q = q.filter(Asset.id != exclude_id)

    if serial:
        if q.filter(Asset.serial == serial).first():
            raise ConflictError(f"Asset with serial {serial!r} already exists")
        return

    if q.filter(Asset.name == name, Asset.category == category).first():
        raise ConflictError("Asset already exists in this category")


def create_asset(payload: dict) -> Asset:
    """Validate, insert, and log an "added" movement with the initial quantity."""
    patch = validate_asset_payload(payload, partial=False)

    def _op() -> Asset:
        _ensure_not_duplicate(name=patch["name"], category=patch["category"], serial=patch["serial"])

        asset = Asset(**patch)
        db.session.add(asset)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("Asset with this serial already exists")

        append_movement(
            asset=asset,
            action="added",
            type="adjustment",
            quantity=asset.quantity,
            remarks="New asset added to inventory",
        )
        db.session.commit()
        return asset

    return run_with_retry(_op)


def adjust_quantity(asset_id: int, delta: int) -> Asset:
    """
    Atomically apply delta to an asset's quantity.

    Does not log and does not commit. Raises NotFoundError if the asset is
    gone and InsufficientStockError if the result would be negative.
    """
    stmt = (
        update(Asset)
        .where(Asset.id == asset_id, Asset.quantity + delta >= 0)
        .values(quantity=Asset.quantity + delta)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)

    asset = db.session.get(Asset, asset_id)
    if asset is None:
        raise NotFoundError("Asset not found")
    db.session.refresh(asset, ["quantity"])

    if not result.rowcount:
        raise InsufficientStockError(asset, -delta)
    return asset


def update_asset(asset_id: int, payload: dict) -> Asset:
    """
    Apply a partial update and log exactly one movement.

    quantity change -> stock_increased / stock_decreased with |delta|;
    anything else (including a no-op) -> edited with quantity 0.
    """
    patch = validate_asset_payload(payload, partial=True)

    def _op() -> Asset:
        asset = lock_for_update(db.session.query(Asset).filter_by(id=asset_id)).first()
        if asset is None:
            raise NotFoundError("Asset not found")

        new_quantity = patch.get("quantity", asset.quantity)
        delta = new_quantity - asset.quantity

        if {"name", "category", "serial"} & patch.keys():
            _ensure_not_duplicate(
                name=patch.get("name", asset.name),
                category=patch.get("category", asset.category),
                serial=patch.get("serial", asset.serial),
                exclude_id=asset.id,
            )

        # Quantity first: adjust_quantity refreshes the row from the database.
        if delta:
            adjust_quantity(asset.id, delta)

        for k, v in patch.items():
            if k != "quantity":
                setattr(asset, k, v)

        if delta > 0:
            action, remarks = "stock_increased", f"Stock increased by {delta} pcs"
        elif delta < 0:
            action, remarks = "stock_decreased", f"Stock decreased by {-delta} pcs"
        else:
            action, remarks = "edited", "Asset details updated"

        try:
            append_movement(asset=asset, action=action, type="adjustment", quantity=abs(delta), remarks=remarks)
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("Asset with this serial already exists")

        db.session.commit()
        return asset

    return run_with_retry(_op)


def delete_asset(asset_id: int) -> None:
    """Log a "deleted" movement with the pre-deletion quantity, then remove the row."""
    def _op() -> None:
        asset = lock_for_update(db.session.query(Asset).filter_by(id=asset_id)).first()
        if asset is None:
            raise NotFoundError("Asset not found")

        append_movement(
            asset=asset,
            action="deleted",
            type="adjustment",
            quantity=asset.quantity,
            remarks="Asset deleted from inventory",
        )
        db.session.delete(asset)
        db.session.commit()

    run_with_retry(_op)
