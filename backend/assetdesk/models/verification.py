from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class VerificationLog(db.Model):
    """One row per public invoice lookup, found or not."""
    __tablename__ = "verification_logs"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(64), nullable=False, index=True)
    found = db.Column(db.Boolean, nullable=False, default=False)
    ip = db.Column(db.String(64), nullable=False, default="unknown")
    user_agent = db.Column(db.String(512), nullable=False, default="unknown")
    verified_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "found": self.found,
            "ip": self.ip,
            "user_agent": self.user_agent,
            "verified_at": to_utc_z(self.verified_at),
        }
