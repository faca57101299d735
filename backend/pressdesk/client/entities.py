# Overview: Console entity model and wire-row normalization.

"""
Entities as the console sees them.

All entities are frozen dataclasses so a snapshot handed to a screen cannot
be edited in place; changes go through SyncStore mutations. from_row()
turns a gateway row (snake_case JSON, decimals as strings, ISO timestamps)
into the entity, filling defaults for missing optional fields. to_row()
goes the other way and produces JSON-safe values.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from decimal import Decimal
from typing import Any

from pressdesk.money import ZERO, to_decimal
from pressdesk.time_utils import parse_iso_datetime, to_utc_z


SERVICE_TYPES = ("Dry Clean", "Launder", "Alteration", "Specialty")
DEFAULT_SERVICE_TYPE = "Dry Clean"
DEFAULT_STATUSES = ("RECEIVED", "CLEANING", "READY", "COMPLETED", "HOLD", "VOID")


def wire_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return to_utc_z(value)
    if isinstance(value, (tuple, list)):
        return [wire_value(v) for v in value]
    if hasattr(value, "to_row"):
        return value.to_row()
    return value


def _text(value: Any, default: str = "") -> str:
    return default if value is None else str(value)


@dataclass(frozen=True)
class OrderItem:
    id: str
    category: str
    quantity: int = 1
    unit_price: Decimal = ZERO
    service_type: str = DEFAULT_SERVICE_TYPE
    notes: str | None = None

    @property
    def total(self) -> Decimal:
        return self.unit_price * self.quantity

    @classmethod
    def from_row(cls, row: dict) -> "OrderItem":
        return cls(
            id=_text(row.get("id")),
            category=_text(row.get("category")),
            quantity=int(row.get("quantity") or 1),
            unit_price=to_decimal(row.get("unit_price", row.get("unitPrice"))),
            service_type=row.get("service_type") or row.get("serviceType") or DEFAULT_SERVICE_TYPE,
            notes=row.get("notes"),
        )

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "category": self.category,
            "service_type": self.service_type,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
            "total": str(self.total),
            "notes": self.notes,
        }


@dataclass(frozen=True)
class Order:
    id: str
    order_number: str
    customer_id: str
    customer_name: str
    status: str
    items: tuple[OrderItem, ...] = ()
    subtotal: Decimal = ZERO
    tax: Decimal = ZERO
    total: Decimal = ZERO
    created_at: datetime | None = None
    completed_at: datetime | None = None
    pickup_date: str | None = None
    pickup_time: str | None = None
    is_priority: bool = False
    store_id: str = ""
    hanger_number: str | None = None
    special_handling: str | None = None

    @property
    def piece_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @classmethod
    def from_row(cls, row: dict) -> "Order":
        return cls(
            id=_text(row.get("id")),
            order_number=_text(row.get("order_number")),
            customer_id=_text(row.get("customer_id")),
            customer_name=_text(row.get("customer_name")),
            status=_text(row.get("status")),
            items=tuple(OrderItem.from_row(i) for i in row.get("items") or ()),
            subtotal=to_decimal(row.get("subtotal")),
            tax=to_decimal(row.get("tax")),
            total=to_decimal(row.get("total")),
            created_at=parse_iso_datetime(row.get("created_at")),
            completed_at=parse_iso_datetime(row.get("completed_at")),
            pickup_date=row.get("pickup_date"),
            pickup_time=row.get("pickup_time"),
            is_priority=bool(row.get("is_priority")),
            store_id=_text(row.get("store_id")),
            hanger_number=row.get("hanger_number") or None,
            special_handling=row.get("special_handling"),
        )

    def to_row(self) -> dict:
        row = {f.name: wire_value(getattr(self, f.name)) for f in fields(self) if f.name != "items"}
        row["items"] = [item.to_row() for item in self.items]
        return row


@dataclass(frozen=True)
class Customer:
    id: str
    first_name: str
    last_name: str
    email: str = ""
    phone: str = ""
    address: str = ""
    notes: str | None = None
    total_spent: Decimal = ZERO
    last_order_date: datetime | None = None
    created_at: datetime | None = None

    @property
    def display_name(self) -> str:
        """Name as written on tickets: "Last, First"."""
        return f"{self.last_name}, {self.first_name}"

    @classmethod
    def from_row(cls, row: dict) -> "Customer":
        return cls(
            id=_text(row.get("id")),
            first_name=_text(row.get("first_name")),
            last_name=_text(row.get("last_name")),
            email=_text(row.get("email")),
            phone=_text(row.get("phone")),
            address=_text(row.get("address")),
            notes=row.get("notes"),
            total_spent=to_decimal(row.get("total_spent")),
            last_order_date=parse_iso_datetime(row.get("last_order_date")),
            created_at=parse_iso_datetime(row.get("created_at")),
        )

    def to_row(self) -> dict:
        return {k: wire_value(v) for k, v in asdict(self).items()}


@dataclass(frozen=True)
class Store:
    id: str
    name: str
    address: str = ""
    phone: str = ""
    qz_enabled: bool = False
    qz_printer_name: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> "Store":
        return cls(
            id=_text(row.get("id")),
            name=_text(row.get("name")),
            address=_text(row.get("address")),
            phone=_text(row.get("phone")),
            qz_enabled=bool(row.get("qz_enabled")),
            qz_printer_name=row.get("qz_printer_name") or None,
        )

    def to_row(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ServiceCategory:
    id: str
    name: str
    service_type: str = DEFAULT_SERVICE_TYPE
    base_price: Decimal = ZERO
    position: int = 0
    item_class: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> "ServiceCategory":
        return cls(
            id=_text(row.get("id")),
            name=_text(row.get("name")),
            service_type=row.get("service_type") or DEFAULT_SERVICE_TYPE,
            base_price=to_decimal(row.get("base_price")),
            position=int(row.get("position") or 0),
            item_class=row.get("item_class"),
        )

    def to_row(self) -> dict:
        return {k: wire_value(v) for k, v in asdict(self).items()}


@dataclass(frozen=True)
class KanbanColumn:
    id: str
    status: str
    label: str
    color: str = "bg-slate-400"
    position: int = 0

    @classmethod
    def from_row(cls, row: dict) -> "KanbanColumn":
        return cls(
            id=_text(row.get("id")),
            status=_text(row.get("status")),
            label=_text(row.get("label")),
            color=row.get("color") or "bg-slate-400",
            position=int(row.get("position") or 0),
        )

    def to_row(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Profile:
    id: str
    name: str
    email: str = ""
    role: str = "STAFF"
    avatar: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> "Profile":
        return cls(
            id=_text(row.get("id")),
            name=_text(row.get("name")),
            email=_text(row.get("email")),
            role=row.get("role") or "STAFF",
            avatar=row.get("avatar"),
        )


@dataclass(frozen=True)
class TimeLog:
    id: str
    user_id: str
    clock_in: datetime
    clock_out: datetime | None = None
    notes: str | None = None

    @property
    def is_open(self) -> bool:
        return self.clock_out is None

    @classmethod
    def from_row(cls, row: dict) -> "TimeLog":
        return cls(
            id=_text(row.get("id")),
            user_id=_text(row.get("user_id")),
            clock_in=parse_iso_datetime(row.get("clock_in")),
            clock_out=parse_iso_datetime(row.get("clock_out")),
            notes=row.get("notes"),
        )


@dataclass(frozen=True)
class AppSettings:
    """Process-wide console settings. Last write wins; there is no merge."""
    tax_rate: Decimal = Decimal("0.0825")
    default_pickup_time: str = "17:00"
    order_number_prefix: str = "ORD-"
    company_name: str = "PressDesk Cleaners"
    company_address: str = ""
    company_phone: str = ""
    completed_status: str = "COMPLETED"
    completed_window_hours: int = 48
    printer_overrides: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict | None) -> "AppSettings":
        data = data or {}
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        if "tax_rate" in values:
            values["tax_rate"] = to_decimal(values["tax_rate"])
        if "completed_window_hours" in values:
            values["completed_window_hours"] = int(values["completed_window_hours"])
        if "printer_overrides" in values:
            values["printer_overrides"] = dict(values["printer_overrides"] or {})
        return cls(**values)

    def to_dict(self) -> dict:
        return {k: wire_value(v) for k, v in asdict(self).items()}

    def updated(self, **changes) -> "AppSettings":
        return AppSettings.from_dict({**self.to_dict(), **changes})


# Wire table -> entity normalizer
NORMALIZERS = {
    "orders": Order.from_row,
    "customers": Customer.from_row,
    "stores": Store.from_row,
    "service_categories": ServiceCategory.from_row,
    "kanban_columns": KanbanColumn.from_row,
    "profiles": Profile.from_row,
    "time_logs": TimeLog.from_row,
}
