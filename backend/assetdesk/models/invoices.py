from __future__ import annotations

from ..extensions import db
from ..money import money_to_json
from ..time_utils import to_utc_z

INVOICE_TYPES = ("sale", "purchase")
PAYMENT_METHODS = ("cash", "bank", "digital", "credit")


class Invoice(db.Model):
    """
    Immutable record of one sale or purchase.

    Totals are computed once by invoice_service at creation time from the
    request's unit prices and never recomputed:
        grand_total = subtotal - discount + subtotal * vat / 100
        returned_amount = paid_amount - grand_total   (negative = still owed)

    buyer is set for sales, seller for purchases; never both.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
        db.Index("ix_invoices_type_created", "type", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # System-generated, e.g. "INV-2026-0001"
    invoice_number = db.Column(db.String(32), nullable=False)
    type = db.Column(db.String(16), nullable=False, default="sale")

    buyer = db.Column(db.String(255), nullable=True)
    seller = db.Column(db.String(255), nullable=True)

    subtotal = db.Column(db.Numeric(14, 2), nullable=False)
    discount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    vat = db.Column(db.Numeric(6, 3), nullable=False, default=0)
    # Unrounded: 2 places (subtotal) + 3 (vat) + 2 (/100) = scale 7
    vat_amount = db.Column(db.Numeric(21, 7), nullable=False)
    grand_total = db.Column(db.Numeric(21, 7), nullable=False)
    paid_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    returned_amount = db.Column(db.Numeric(21, 7), nullable=False)

    payment_method = db.Column(db.String(16), nullable=False, default="cash")
    notes = db.Column(db.Text, nullable=False, default="")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    lines = db.relationship(
        "InvoiceLine",
        backref=db.backref("invoice"),
        cascade="all, delete-orphan",
        order_by="InvoiceLine.position",
        lazy="selectin",
    )

    @property
    def party_name(self) -> str:
        return (self.buyer if self.type == "sale" else self.seller) or ""

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} number={self.invoice_number!r} type={self.type!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "type": self.type,
            "buyer": self.buyer or "",
            "seller": self.seller or "",
            "items": [line.to_dict() for line in self.lines],
            "subtotal": money_to_json(self.subtotal),
            "discount": money_to_json(self.discount),
            "vat": money_to_json(self.vat),
            "vat_amount": money_to_json(self.vat_amount),
            "grand_total": money_to_json(self.grand_total),
            "paid_amount": money_to_json(self.paid_amount),
            "returned_amount": money_to_json(self.returned_amount),
            "payment_method": self.payment_method,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class InvoiceLine(db.Model):
    """Line item snapshot. name/unit_price are copied, not looked up later."""
    __tablename__ = "invoice_lines"
    __table_args__ = (
        db.UniqueConstraint("invoice_id", "position", name="uq_invoice_lines_invoice_position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(
        db.Integer,
        db.ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = db.Column(db.Integer, nullable=False)

    # Plain reference: the asset may be deleted later, the invoice stays intact.
    asset_id = db.Column(db.Integer, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(14, 2), nullable=False)
    total = db.Column(db.Numeric(14, 2), nullable=False)

    def to_dict(self) -> dict:
        return {
            "asset_id": self.asset_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": money_to_json(self.unit_price),
            "total": money_to_json(self.total),
        }


class InvoiceCounter(db.Model):
    """
    Per-scope invoice sequence (scope is e.g. "INV-2026").

    Incremented only with a single UPDATE ... SET seq = seq + 1 in
    sequence_service, never read-then-written from Python.
    """
    __tablename__ = "invoice_counters"
    __table_args__ = (
        db.UniqueConstraint("key", name="uq_invoice_counters_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(64), nullable=False)
    seq = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "seq": self.seq,
            "updated_at": to_utc_z(self.updated_at),
        }
