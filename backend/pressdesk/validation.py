from __future__ import annotations
import re
from datetime import date, datetime
from decimal import Decimal

from dataclasses import dataclass
from typing import Any

from sqlalchemy import JSON, Boolean, Date, Integer, Numeric, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from pressdesk.models.auth import ROLES
from pressdesk.money import MoneyError, to_decimal
from pressdesk.time_utils import parse_iso_datetime


# Maximum amount: $9,999,999.99
# Matches Numeric(12, 2) and keeps nonsensical prices out of the ledger
MAX_AMOUNT = Decimal("9999999.99")

_PICKUP_TIME = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate pipeline status)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - money_fields: Numeric columns that must be within [0, MAX_AMOUNT]
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    money_fields: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or 'e' in stripped.lower() or '.' in stripped:
                raise ValidationError(f"{col.key} must be a plain integer")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        raise ValidationError(f"{col.key} must be an integer")

    # Currency / rates (accept numbers or decimal strings)
    if isinstance(coltype, Numeric):
        try:
            return to_decimal(value)
        except MoneyError:
            raise ValidationError(f"{col.key} must be a decimal amount")

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return parse_iso_datetime(value)
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    # Dates ("YYYY-MM-DD"; a full timestamp is truncated to its date)
    if isinstance(coltype, Date):
        if isinstance(value, date) and not isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                return date.fromisoformat(value.strip()[:10])
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
        raise ValidationError(f"{col.key} must be a date")

    # Structured columns are checked by the per-table rules
    if isinstance(coltype, JSON):
        return value

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
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
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

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    for k in policy.money_fields or set():
        if k in patch and patch[k] is not None:
            enforce_amount(k, patch[k])

    return patch


def enforce_amount(field: str, amount: Decimal) -> None:
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT}")


def normalize_order_items(items: Any) -> list[dict]:
    """
    Validate order lines and return them in stored form.

    Each line needs a category, a positive integer quantity and a
    non-negative unit price. Line totals are rewritten as quantity x unit
    price so a stored ticket can never carry a hand-edited line total.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    lines = []
    for idx, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{idx}] must be an object")

        quantity = raw.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError(f"items[{idx}].quantity must be a positive integer")

        try:
            unit_price = to_decimal(raw.get("unit_price"))
        except MoneyError:
            raise ValidationError(f"items[{idx}].unit_price must be a decimal amount")
        enforce_amount(f"items[{idx}].unit_price", unit_price)

        category = str(raw.get("category") or "").strip()
        if not category:
            raise ValidationError(f"items[{idx}].category is required")

        lines.append({
            "id": str(raw.get("id") or idx),
            "category": category,
            "service_type": str(raw.get("service_type") or "Dry Clean"),
            "quantity": quantity,
            "unit_price": str(unit_price),
            "total": str(unit_price * quantity),
            "notes": raw.get("notes"),
        })
    return lines


def enforce_rules_order(patch: dict) -> None:
    if "items" in patch:
        patch["items"] = normalize_order_items(patch["items"])

    pickup_time = patch.get("pickup_time")
    if pickup_time and not _PICKUP_TIME.match(pickup_time):
        raise ValidationError("pickup_time must be HH:MM (24h)")


def enforce_rules_profile(patch: dict) -> None:
    if "role" in patch and patch["role"] not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")


def enforce_rules_time_log(patch: dict) -> None:
    clock_in = patch.get("clock_in")
    clock_out = patch.get("clock_out")
    if clock_in and clock_out and clock_out < clock_in:
        raise ValidationError("clock_out cannot be before clock_in")
