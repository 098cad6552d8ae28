# Overview: Service-layer operations for invoices; totals, numbering, persistence and stock effects as one unit of work.

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from ..errors import AppError, DependencyError, InvoiceError, NotFoundError, PartialApplicationError, ValidationError
from ..extensions import db
from ..models import Asset, Invoice, InvoiceLine, INVOICE_TYPES, PAYMENT_METHODS
from ..money import AMOUNT_PLACES, RATE_PLACES
from ..validation import coerce_decimal, coerce_integer
from .asset_service import adjust_quantity
from .concurrency import begin_write_transaction, run_with_retry
from .movement_service import append_movement
from .sequence_service import SequenceError, format_invoice_number, invoice_scope, allocate

logger = logging.getLogger(__name__)
"""
Invoice Engine (authoritative)

Stages of create_invoice(), in order:
  validating      request shape, counterparty per type, live stock check for sales
  numbering       sequence_service.allocate() for the current year scope
  persisting      totals computed from the request's unit prices, invoice row written
  stock_applying  per item: guarded adjust_quantity(), then one sold/purchased Movement
  committed       single commit, invoice returned
Any stage can end in failed; the error names the stage.

Numbering, persisting and stock_applying share one DB transaction. A stock
failure rolls the invoice and the counter increment back and is reported as
PartialApplicationError(rolled_back=True) with the failing item index.

Totals are exact snapshots, never rounded:
  subtotal     = sum(quantity * unit_price)
  vat_amount   = subtotal * vat / 100
  grand_total  = subtotal - discount + vat_amount
  returned     = paid_amount - grand_total   (negative = still owed)
Amounts in the request may have at most two decimal places and vat at most
three; anything finer is rejected, not rounded.

When the store stays unavailable after every retry, the DependencyError
names the stage the last attempt reached.
"""

STAGE_VALIDATING = "validating"
STAGE_NUMBERING = "numbering"
STAGE_PERSISTING = "persisting"
STAGE_STOCK_APPLYING = "stock_applying"
STAGE_COMMITTING = "committing"

INVOICE_FIELDS = frozenset({
    "type", "buyer", "seller", "items", "discount", "vat", "paid_amount", "payment_method", "notes",
})
ITEM_FIELDS = frozenset({"asset_id", "quantity", "unit_price"})

MAX_VAT = Decimal("100")


@dataclass(frozen=True)
class InvoiceItemRequest:
    asset_id: int
    quantity: int
    unit_price: Decimal

    @property
    def total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class InvoiceRequest:
    type: str
    party_name: str
    items: tuple[InvoiceItemRequest, ...]
    discount: Decimal
    vat: Decimal
    paid_amount: Decimal
    payment_method: str
    notes: str


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    vat_amount: Decimal
    grand_total: Decimal
    returned_amount: Decimal


def calc_totals(items, discount=Decimal("0"), vat=Decimal("0"), paid_amount=Decimal("0")) -> InvoiceTotals:
    subtotal = sum((item.total for item in items), Decimal("0"))
    vat_amount = subtotal * vat / 100
    grand_total = subtotal - discount + vat_amount
    return InvoiceTotals(
        subtotal=subtotal,
        vat_amount=vat_amount,
        grand_total=grand_total,
        returned_amount=paid_amount - grand_total,
    )


def _non_negative_decimal(payload: dict, key: str, places: int) -> Decimal:
    raw = payload.get(key)
    if raw is None:
        return Decimal("0")
    value = coerce_decimal(key, raw, places=places)
    if value < 0:
        raise ValidationError(f"{key} must be >= 0")
    return value


def _parse_item(index: int, raw) -> InvoiceItemRequest:
    if not isinstance(raw, dict):
        raise ValidationError(f"items[{index}] must be an object")
    unknown = sorted(set(raw) - ITEM_FIELDS)
    if unknown:
        raise ValidationError(f"items[{index}]: field not allowed: {', '.join(unknown)}")
    for key in ("asset_id", "quantity", "unit_price"):
        if raw.get(key) is None:
            raise ValidationError(f"items[{index}].{key} is required")

    asset_id = coerce_integer(f"items[{index}].asset_id", raw["asset_id"])
    quantity = coerce_integer(f"items[{index}].quantity", raw["quantity"])
    if quantity < 1:
        raise ValidationError(f"items[{index}].quantity must be >= 1")
    unit_price = coerce_decimal(f"items[{index}].unit_price", raw["unit_price"], places=AMOUNT_PLACES)
    if unit_price < 0:
        raise ValidationError(f"items[{index}].unit_price must be >= 0")

    return InvoiceItemRequest(asset_id=asset_id, quantity=quantity, unit_price=unit_price)


def parse_invoice_request(payload: dict) -> InvoiceRequest:
    """Shape validation; needs no database access."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    for k in payload.keys():
        if k not in INVOICE_FIELDS:
            raise ValidationError(f"Field not allowed: {k}")

    invoice_type = str(payload.get("type") or "sale").strip().lower()
    if invoice_type not in INVOICE_TYPES:
        raise ValidationError(f"Invalid invoice type: {invoice_type!r}")

    # buyer for a sale, seller for a purchase, never the other one
    party_key, other_key = ("buyer", "seller") if invoice_type == "sale" else ("seller", "buyer")
    party_name = str(payload.get(party_key) or "").strip()
    if not party_name:
        raise ValidationError(f"{party_key} is required for a {invoice_type} invoice")
    if str(payload.get(other_key) or "").strip():
        raise ValidationError(f"{other_key} is not allowed on a {invoice_type} invoice")

    raw_items = payload.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("At least one item is required")
    items = tuple(_parse_item(i, raw) for i, raw in enumerate(raw_items))

    seen: set[int] = set()
    for i, item in enumerate(items):
        if item.asset_id in seen:
            raise ValidationError(f"items[{i}]: asset {item.asset_id} is already on this invoice")
        seen.add(item.asset_id)

    discount = _non_negative_decimal(payload, "discount", AMOUNT_PLACES)
    paid_amount = _non_negative_decimal(payload, "paid_amount", AMOUNT_PLACES)
    vat = _non_negative_decimal(payload, "vat", RATE_PLACES)
    if vat > MAX_VAT:
        raise ValidationError("vat must be between 0 and 100")

    subtotal = sum((item.total for item in items), Decimal("0"))
    if discount > subtotal:
        raise ValidationError("discount cannot exceed the subtotal")

    payment_method = str(payload.get("payment_method") or "cash").strip().lower()
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment_method: {payment_method!r} (allowed: {', '.join(PAYMENT_METHODS)})"
        )

    return InvoiceRequest(
        type=invoice_type,
        party_name=party_name,
        items=items,
        discount=discount,
        vat=vat,
        paid_amount=paid_amount,
        payment_method=payment_method,
        notes=str(payload.get("notes") or "").strip(),
    )


def _load_assets(req: InvoiceRequest) -> dict[int, Asset]:
    """Live lookup of every referenced asset; sales are checked against current stock."""
    assets: dict[int, Asset] = {}
    insufficient = []
    for item in req.items:
        asset = db.session.get(Asset, item.asset_id)
        if asset is None:
            raise NotFoundError(f"Asset {item.asset_id} not found", details={"stage": STAGE_VALIDATING, "asset_id": item.asset_id})
        assets[item.asset_id] = asset

        if req.type == "sale" and item.quantity > asset.quantity:
            insufficient.append({
                "asset_id": asset.id,
                "name": asset.name,
                "requested_quantity": item.quantity,
                "available": asset.quantity,
            })

    if insufficient:
        raise ValidationError("Insufficient stock for sale", details={"stage": STAGE_VALIDATING, "items": insufficient})
    return assets


def _persist(req: InvoiceRequest, invoice_number: str, assets: dict[int, Asset]) -> Invoice:
    totals = calc_totals(req.items, req.discount, req.vat, req.paid_amount)

    invoice = Invoice(
        invoice_number=invoice_number,
        type=req.type,
        buyer=req.party_name if req.type == "sale" else None,
        seller=req.party_name if req.type == "purchase" else None,
        subtotal=totals.subtotal,
        discount=req.discount,
        vat=req.vat,
        vat_amount=totals.vat_amount,
        grand_total=totals.grand_total,
        paid_amount=req.paid_amount,
        returned_amount=totals.returned_amount,
        payment_method=req.payment_method,
        notes=req.notes,
    )
    for position, item in enumerate(req.items, start=1):
        invoice.lines.append(InvoiceLine(
            position=position,
            asset_id=item.asset_id,
            name=assets[item.asset_id].name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            total=item.total,
        ))

    db.session.add(invoice)
    db.session.flush()
    return invoice


def _apply_stock(req: InvoiceRequest, invoice: Invoice) -> None:
    if req.type == "sale":
        sign, action, verb = -1, "sold", "Sold"
    else:
        sign, action, verb = 1, "purchased", "Purchased"

    # Items are applied and logged in request order.
    for index, item in enumerate(req.items):
        try:
            asset = adjust_quantity(item.asset_id, sign * item.quantity)
            append_movement(
                asset=asset,
                action=action,
                type=req.type,
                quantity=item.quantity,
                invoice=invoice,
                party_name=req.party_name,
                remarks=f"{verb} via {invoice.invoice_number}",
            )
        except (AppError, IntegrityError) as exc:
            invoice_number = invoice.invoice_number
            db.session.rollback()
            logger.error(
                "Stock application failed for %s at item %d (asset %s): %s; unit of work rolled back",
                invoice_number, index, item.asset_id, exc,
            )
            raise PartialApplicationError(
                f"Stock adjustment failed for item {index} of {invoice_number}; invoice was not saved",
                invoice_number=invoice_number,
                item_index=index,
                asset_id=item.asset_id,
                rolled_back=True,
            ) from exc


def create_invoice(payload: dict, *, number_prefix: str = "INV", number_pad: int = 4) -> Invoice:
    """Run the invoice engine end to end and return the committed invoice."""
    try:
        req = parse_invoice_request(payload)
    except ValidationError as exc:
        exc.details.setdefault("stage", STAGE_VALIDATING)
        raise

    reached = {"stage": STAGE_VALIDATING}

    def _op() -> Invoice:
        reached["stage"] = STAGE_VALIDATING
        begin_write_transaction()

        assets = _load_assets(req)

        reached["stage"] = STAGE_NUMBERING
        scope_key = invoice_scope(number_prefix)
        try:
            invoice_number = format_invoice_number(scope_key, allocate(scope_key), number_pad)
        except SequenceError as exc:
            logger.error("Invoice numbering failed for scope %s: %s", scope_key, exc)
            raise InvoiceError("Could not allocate an invoice number", stage=STAGE_NUMBERING, status_code=503) from exc

        reached["stage"] = STAGE_PERSISTING
        try:
            invoice = _persist(req, invoice_number, assets)
        except IntegrityError as exc:
            db.session.rollback()
            logger.error("Persisting invoice %s failed: %s", invoice_number, exc)
            raise InvoiceError(f"Could not save invoice {invoice_number}", stage=STAGE_PERSISTING) from exc

        reached["stage"] = STAGE_STOCK_APPLYING
        _apply_stock(req, invoice)

        reached["stage"] = STAGE_COMMITTING
        db.session.commit()
        logger.info(
            "Invoice %s committed (%s, %d items, grand total %s)",
            invoice.invoice_number, invoice.type, len(req.items), invoice.grand_total,
        )
        return invoice

    try:
        return run_with_retry(_op)
    except DependencyError as exc:
        exc.details.setdefault("stage", reached["stage"])
        logger.error("Invoice creation gave up at stage %s: %s", reached["stage"], exc)
        raise


def list_invoices(*, type: str | None = None) -> list[Invoice]:
    if type and type not in INVOICE_TYPES:
        raise ValidationError(f"Invalid invoice type: {type!r}")
    q = db.session.query(Invoice)
    if type:
        q = q.filter(Invoice.type == type)
    return q.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()


def get_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFoundError("Invoice not found")
    return invoice


def find_by_number(invoice_number: str) -> Invoice | None:
    """Exact match only."""
    return db.session.query(Invoice).filter(Invoice.invoice_number == invoice_number).first()
