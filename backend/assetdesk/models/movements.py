from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

MOVEMENT_ACTIONS = (
    "added",
    "edited",
    "deleted",
    "sold",
    "purchased",
    "stock_increased",
    "stock_decreased",
    "moved_outside",
    "lost",
    "returned",
    "under_repair",
)

# Movement category used for quick filters
MOVEMENT_TYPES = ("sale", "purchase", "adjustment")


class Movement(db.Model):
    """
    Append-only audit entry for a quantity or lifecycle change of an Asset.

    quantity is a magnitude; the direction is implied by action.
    asset_id is kept as a plain integer so the entry outlives the asset.
    """
    __tablename__ = "movements"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_movements_quantity_non_negative"),
        db.Index("ix_movements_type_action_created", "type", "action", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    asset_id = db.Column(db.Integer, nullable=False, index=True)
    asset_name = db.Column(db.String(255), nullable=False)

    action = db.Column(db.String(32), nullable=False, index=True)
    type = db.Column(db.String(16), nullable=False, default="adjustment", index=True)
    quantity = db.Column(db.Integer, nullable=False)

    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True, index=True)
    invoice_number = db.Column(db.String(32), nullable=False, default="")

    party_name = db.Column(db.String(255), nullable=False, default="")
    remarks = db.Column(db.String(255), nullable=False, default="")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "asset_id": self.asset_id,
            "asset_name": self.asset_name,
            "action": self.action,
            "type": self.type,
            "quantity": self.quantity,
            "invoice_id": self.invoice_id,
            "invoice_number": self.invoice_number,
            "party_name": self.party_name,
            "remarks": self.remarks,
            "created_at": to_utc_z(self.created_at),
        }
