# Overview: Service-layer operations for the gateway tables; generic per-table CRUD with validation and change fan-out.

"""
Gateway Table Service

WHY: The console talks to one uniform surface for every collection it
mirrors: read-all, insert, update-by-id, delete-by-id, bulk upsert. Table
specific knowledge lives in TABLES (model, writable fields, business rules,
who may write, which child tables cascade).

Every committed write publishes a change event for the touched table(s) so
subscribed consoles re-read. Nothing here retries; a failed write is rolled
back and reported to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Customer, KanbanColumn, Order, Profile, ServiceCategory, Store, TimeLog
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_order,
    enforce_rules_profile,
    enforce_rules_time_log,
    validate_payload,
)
from .realtime_service import broadcaster


class TableNotFoundError(LookupError):
    """Raised for a table name the gateway does not expose."""


class RowNotFoundError(LookupError):
    """Raised when update/delete targets an id that does not exist."""


@dataclass(frozen=True)
class TableSpec:
    model: type
    policy: ModelValidationPolicy
    rules: Callable[[dict], None] | None = None
    # Writes require ADMIN or MANAGER
    restricted: bool = False
    # (child table, foreign key column) rows removed along with a parent
    cascades: tuple[tuple[str, str], ...] = field(default_factory=tuple)
    unique_fields: tuple[str, ...] = ()


TABLES: dict[str, TableSpec] = {
    "orders": TableSpec(
        model=Order,
        policy=ModelValidationPolicy(
            writable_fields={
                "id", "order_number", "hanger_number", "customer_id", "customer_name", "status",
                "items", "subtotal", "tax", "total", "created_at", "completed_at",
                "pickup_date", "pickup_time", "is_priority", "store_id", "special_handling",
            },
            required_on_create={"order_number", "customer_id", "customer_name", "status", "items", "store_id"},
            money_fields={"subtotal", "tax", "total"},
        ),
        rules=enforce_rules_order,
    ),
    "customers": TableSpec(
        model=Customer,
        policy=ModelValidationPolicy(
            writable_fields={
                "id", "first_name", "last_name", "email", "phone", "address", "notes",
                "total_spent", "last_order_date", "created_at",
            },
            required_on_create={"first_name", "last_name"},
            money_fields={"total_spent"},
        ),
        cascades=(("orders", "customer_id"),),
    ),
    "stores": TableSpec(
        model=Store,
        policy=ModelValidationPolicy(
            writable_fields={"id", "name", "address", "phone", "qz_enabled", "qz_printer_name"},
            required_on_create={"name"},
        ),
        restricted=True,
        cascades=(("orders", "store_id"),),
    ),
    "service_categories": TableSpec(
        model=ServiceCategory,
        policy=ModelValidationPolicy(
            writable_fields={"id", "name", "service_type", "item_class", "base_price", "position"},
            required_on_create={"name", "base_price"},
            money_fields={"base_price"},
        ),
        restricted=True,
    ),
    "kanban_columns": TableSpec(
        model=KanbanColumn,
        policy=ModelValidationPolicy(
            writable_fields={"id", "status", "label", "color", "position"},
            required_on_create={"status", "label"},
        ),
        restricted=True,
        unique_fields=("status",),
    ),
    "profiles": TableSpec(
        model=Profile,
        policy=ModelValidationPolicy(
            writable_fields={"id", "name", "email", "role", "avatar", "is_active"},
            required_on_create={"name"},
        ),
        rules=enforce_rules_profile,
        restricted=True,
        cascades=(("time_logs", "user_id"),),
    ),
    "time_logs": TableSpec(
        model=TimeLog,
        policy=ModelValidationPolicy(
            writable_fields={"id", "user_id", "clock_in", "clock_out", "notes"},
            required_on_create={"user_id", "clock_in"},
        ),
        rules=enforce_rules_time_log,
    ),
}

# Default read ordering per table (column, descending)
DEFAULT_ORDER = {
    "orders": ("created_at", True),
    "kanban_columns": ("position", False),
    "service_categories": ("position", False),
    "time_logs": ("clock_in", True),
}


def get_spec(table: str) -> TableSpec:
    spec = TABLES.get(table)
    if spec is None:
        raise TableNotFoundError(f"Unknown table: {table}")
    return spec


def _parse_order(spec: TableSpec, order: str | None, table: str):
    """Parse "column.asc" / "column.desc" into a SQLAlchemy ordering clause."""
    if order:
        column, _, direction = order.partition(".")
        descending = direction.lower() == "desc"
        if direction and direction.lower() not in {"asc", "desc"}:
            raise ValidationError(f"Invalid order direction: {direction}")
    elif table in DEFAULT_ORDER:
        column, descending = DEFAULT_ORDER[table]
    else:
        return spec.model.id.asc()

    attr = spec.model.__mapper__.columns.get(column)
    if attr is None:
        raise ValidationError(f"Unknown order column: {column}")
    return attr.desc() if descending else attr.asc()


def list_rows(table: str, *, order: str | None = None) -> list:
    spec = get_spec(table)
    return db.session.query(spec.model).order_by(_parse_order(spec, order, table)).all()


def _clean(spec: TableSpec, payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=spec.model, payload=payload, policy=spec.policy, partial=partial)
    if spec.rules:
        spec.rules(patch)
    return patch


def _check_unique(spec: TableSpec, patch: dict, row_id: str | None) -> None:
    for name in spec.unique_fields:
        if name not in patch:
            continue
        column = spec.model.__mapper__.columns[name]
        clash = db.session.query(spec.model).filter(column == patch[name])
        if row_id is not None:
            clash = clash.filter(spec.model.id != row_id)
        if clash.first() is not None:
            raise ConflictError(f"{name} '{patch[name]}' already exists")


def _commit(*changes: tuple[str, str]) -> None:
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(f"Write rejected by database constraint: {exc.orig}") from exc
    for table, change_type in changes:
        broadcaster.publish(table, change_type)


def insert_rows(table: str, payload: dict | list) -> list:
    spec = get_spec(table)
    rows_in = payload if isinstance(payload, list) else [payload]
    if not rows_in:
        raise ValidationError("Nothing to insert")

    created = []
    try:
        for raw in rows_in:
            patch = _clean(spec, raw, partial=False)
            if patch.get("id") and db.session.get(spec.model, patch["id"]) is not None:
                raise ConflictError(f"{table} row {patch['id']} already exists")
            _check_unique(spec, patch, None)
            row = spec.model(**patch)
            db.session.add(row)
            db.session.flush()
            created.append(row)
    except (ValidationError, ConflictError):
        db.session.rollback()
        raise

    _commit((table, "INSERT"))
    return created


def _apply_patch(spec: TableSpec, row, patch: dict) -> None:
    if "id" in patch and patch["id"] != row.id:
        raise ValidationError("id cannot be changed")
    _check_unique(spec, patch, row.id)
    for key, value in patch.items():
        setattr(row, key, value)


def update_row(table: str, row_id: str, payload: dict):
    spec = get_spec(table)
    row = db.session.get(spec.model, row_id)
    if row is None:
        raise RowNotFoundError(f"{table} row {row_id} not found")

    try:
        patch = _clean(spec, payload, partial=True)
        _apply_patch(spec, row, patch)
    except (ValidationError, ConflictError):
        db.session.rollback()
        raise

    _commit((table, "UPDATE"))
    return row


def upsert_rows(table: str, rows_in: list) -> list:
    """Insert-or-update by id in one transaction (used for column re-ordering)."""
    spec = get_spec(table)
    if not isinstance(rows_in, list) or not rows_in:
        raise ValidationError("upsert expects a non-empty list")

    result = []
    try:
        for raw in rows_in:
            if not isinstance(raw, dict) or not raw.get("id"):
                raise ValidationError("every upserted row needs an id")
            row = db.session.get(spec.model, raw["id"])
            if row is None:
                patch = _clean(spec, raw, partial=False)
                _check_unique(spec, patch, None)
                row = spec.model(**patch)
                db.session.add(row)
            else:
                _apply_patch(spec, row, _clean(spec, raw, partial=True))
            db.session.flush()
            result.append(row)
    except (ValidationError, ConflictError):
        db.session.rollback()
        raise

    _commit((table, "UPDATE"))
    return result


def delete_row(table: str, row_id: str) -> None:
    spec = get_spec(table)
    row = db.session.get(spec.model, row_id)
    if row is None:
        raise RowNotFoundError(f"{table} row {row_id} not found")

    changes = [(table, "DELETE")]
    for child_table, fk in spec.cascades:
        child = get_spec(child_table).model
        removed = db.session.query(child).filter(getattr(child, fk) == row_id).delete(synchronize_session=False)
        if removed:
            changes.append((child_table, "DELETE"))

    db.session.delete(row)
    _commit(*changes)
