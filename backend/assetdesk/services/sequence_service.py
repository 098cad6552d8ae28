# Overview: Service-layer operations for invoice numbering; atomic per-scope counters.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import InvoiceCounter
from ..time_utils import current_year

"""
Sequence Allocator Invariants (authoritative)

- allocate() is one store-level read-modify-write: UPDATE ... SET seq = seq + 1.
  Python never reads the counter and writes back a computed value.
- The first allocation for a scope inserts seq=1; a concurrent first insert
  loses on the unique key inside a savepoint and falls back to the UPDATE path.
- allocate() runs inside the caller's transaction. If the caller rolls back,
  the increment rolls back with it, so committed numbers stay gapless.
- Numbers are sequential, not random: accounting documents need an
  ordered audit number.
"""


class SequenceError(Exception):
    """Raised when a counter cannot be allocated."""
    pass


def _read_seq(scope_key: str) -> int:
    return (
        db.session.query(InvoiceCounter.seq)
        .filter_by(key=scope_key)
        .scalar()
    )


def allocate(scope_key: str) -> int:
    """
    Atomically increment and return the counter for scope_key (1 on first use).

    Safe to call after other writes in the current transaction: a losing
    first insert is undone through a savepoint, not a session rollback.
    """
    if not scope_key:
        raise SequenceError("scope_key is required")

    stmt = (
        update(InvoiceCounter)
        .where(InvoiceCounter.key == scope_key)
        .values(seq=InvoiceCounter.seq + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        return _read_seq(scope_key)

    nested = db.session.begin_nested()
    try:
        db.session.add(InvoiceCounter(key=scope_key, seq=1))
        db.session.flush()
        nested.commit()
        return 1
    except IntegrityError:
        # Undo only the failed insert; earlier work in the transaction stays
        nested.rollback()
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise SequenceError(f"Counter {scope_key!r} could not be created or incremented")
        return _read_seq(scope_key)


def invoice_scope(prefix: str, year: int | None = None) -> str:
    """Counter key for a period, e.g. INV-2026."""
    return f"{prefix}-{year if year is not None else current_year()}"


def format_invoice_number(scope_key: str, seq: int, pad: int = 4) -> str:
    """INV-2026 and 7 -> INV-2026-0007."""
    return f"{scope_key}-{seq:0{pad}d}"


def next_invoice_number(*, prefix: str = "INV", pad: int = 4, year: int | None = None) -> str:
    scope_key = invoice_scope(prefix, year)
    return format_invoice_number(scope_key, allocate(scope_key), pad)
