from __future__ import annotations

from ..extensions import db
from ..money import money_to_json
from ..time_utils import to_iso_date, to_utc_z

# Closed enumerations. Changing them is a schema migration, not runtime config.
ASSET_CATEGORIES = (
    "Electronics",
    "Furniture",
    "Kitchen Accessories",
    "Interior",
    "Others",
)

ASSET_STATUSES = (
    "in stock",
    "issued",
    "moved outside",
    "lost",
    "under repair",
)


class Asset(db.Model):
    """
    A trackable inventory item.

    quantity is the on-hand count and is never negative. It is only changed
    through asset_service (validated PATCH path or guarded atomic adjust), and
    every change is mirrored by a Movement row.

    serial is "" when absent; a non-empty serial is unique across assets.
    """
    __tablename__ = "assets"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_assets_quantity_non_negative"),
        db.CheckConstraint("unit_price >= 0", name="ck_assets_unit_price_non_negative"),
        db.Index(
            "uq_assets_serial",
            "serial",
            unique=True,
            sqlite_where=db.text("serial != ''"),
            postgresql_where=db.text("serial != ''"),
        ),
        db.Index("ix_assets_name_category", "name", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=False, index=True)
    serial = db.Column(db.String(128), nullable=False, default="")
    purchase_date = db.Column(db.Date, nullable=True)

    unit_price = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    supplier = db.Column(db.String(255), nullable=False, default="")
    status = db.Column(db.String(32), nullable=False, default="in stock", index=True)
    location = db.Column(db.String(255), nullable=False, default="")
    image_url = db.Column(db.String(1024), nullable=False, default="")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Asset id={self.id} name={self.name!r} category={self.category!r} qty={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "serial": self.serial,
            "purchase_date": to_iso_date(self.purchase_date),
            "unit_price": money_to_json(self.unit_price),
            "quantity": self.quantity,
            "supplier": self.supplier,
            "status": self.status,
            "location": self.location,
            "image_url": self.image_url,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
