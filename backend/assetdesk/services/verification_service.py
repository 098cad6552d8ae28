# Overview: Service-layer operations for public invoice verification and its audit trail.

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Invoice, VerificationLog
from .invoice_service import find_by_number

logger = logging.getLogger(__name__)


def client_ip(headers, remote_addr: str | None) -> str:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket peer."""
    forwarded = (headers.get("X-Forwarded-For") or "").split(",")[0].strip()
    return forwarded or (headers.get("X-Real-IP") or "").strip() or remote_addr or "unknown"


def record_lookup(invoice_number: str, *, found: bool, ip: str | None, user_agent: str | None) -> VerificationLog | None:
    """
    Append one VerificationLog row and commit it.

    Best-effort: a failed write is logged and swallowed so the lookup
    result still reaches the caller. Returns None when the write failed.
    """
    entry = VerificationLog(
        invoice_number=invoice_number[:64],
        found=found,
        ip=(ip or "unknown")[:64],
        user_agent=(user_agent or "unknown")[:512],
    )
    try:
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.warning("Could not record verification of %r", invoice_number, exc_info=True)
        return None
    return entry


def verify_invoice(invoice_number: str, *, ip: str | None = None, user_agent: str | None = None) -> Invoice | None:
    """
    Exact-match lookup by public invoice number.

    Every call, found or not, is recorded. Returns None when no invoice has
    exactly this number.
    """
    invoice = find_by_number(invoice_number)
    record_lookup(invoice_number, found=invoice is not None, ip=ip, user_agent=user_agent)
    return invoice


def list_verification_logs(limit: int = 100) -> list[VerificationLog]:
    return (
        db.session.query(VerificationLog)
        .order_by(VerificationLog.verified_at.desc(), VerificationLog.id.desc())
        .limit(limit)
        .all()
    )
