from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Date, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError, ConflictError  # noqa: F401  (re-exported for routes)
from .models import ASSET_CATEGORIES, ASSET_STATUSES
from .time_utils import parse_iso_date


# Maximum price: 999,999,999.99, keeps Numeric(14, 2) columns from overflowing
MAX_PRICE = Decimal("999999999.99")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - defaults: values applied once, on create, for writable fields the client omitted
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = frozenset()
    defaults: dict[str, Any] = field(default_factory=dict)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_integer(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    # Whole floats (10.0) come from JSON number inputs in the dashboard
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def coerce_decimal(key: str, value: Any, *, places: int | None = None) -> Decimal:
    """Parse a decimal; with places set, extra fractional digits are rejected, never rounded."""
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    if isinstance(value, str) and not value.strip():
        raise ValidationError(f"{key} must be a number")
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{key} must be a number")
    if not d.is_finite():
        raise ValidationError(f"{key} must be a finite number")
    if places is not None:
        try:
            exceeds = d.quantize(Decimal(1).scaleb(-places)) != d
        except InvalidOperation:
            raise ValidationError(f"{key} is out of range")
        if exceeds:
            raise ValidationError(f"{key} must have at most {places} decimal places")
    return d


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_integer(col.key, value)

    if isinstance(coltype, Numeric):
        return coerce_decimal(col.key, value)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        # fallback: truthiness
        return bool(value)

    # Dates (accept "YYYY-MM-DD" or ISO-8601 datetimes)
    if isinstance(coltype, Date):
        try:
            return parse_iso_date(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{col.key} must be an ISO-8601 date")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create and defaults (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create, apply defaults)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # On create, null for a defaulted field means "use the default"
        if raw is None and k in policy.defaults and not partial:
            continue

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for required text fields
        if isinstance(col.type, (String, Text)) and k in policy.required_on_create:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    if not partial:
        for k, default in policy.defaults.items():
            patch.setdefault(k, default)

    return patch


def enforce_rules_asset(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Applied to every touched field, on create and on PATCH alike.
    """
    if "category" in patch and patch["category"] not in ASSET_CATEGORIES:
        raise ValidationError(
            f"Invalid category value: {patch['category']!r} (allowed: {', '.join(ASSET_CATEGORIES)})"
        )

    if "status" in patch and patch["status"] not in ASSET_STATUSES:
        raise ValidationError(
            f"Invalid status value: {patch['status']!r} (allowed: {', '.join(ASSET_STATUSES)})"
        )

    if "unit_price" in patch:
        price = patch["unit_price"]
        if price < 0:
            raise ValidationError("unit_price must be >= 0")
        if price > MAX_PRICE:
            raise ValidationError(f"unit_price cannot exceed {MAX_PRICE:,}")

    if "quantity" in patch and patch["quantity"] < 0:
        raise ValidationError("quantity must be >= 0")
