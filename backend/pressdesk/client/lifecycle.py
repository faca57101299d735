# Overview: Order lifecycle engine; status transitions, board visibility, and derived pricing.

"""
Order Lifecycle

================================================================================
STATES
================================================================================

The valid statuses are whatever the pipeline columns say they are at the
moment of the transition: admins add, rename and remove columns at will.
There is no fixed enum and no adjacency rule; an order may move from any
configured status to any other (backwards, or skipping stages).

One status is special: the completed key (default "COMPLETED").

    enter completed  -> completed_at = now
    leave completed  -> completed_at = None
    anything else    -> no side effect

So completed_at is set exactly when status == completed key.

================================================================================
BOARD VISIBILITY
================================================================================

A completed order stays on the board for completed_window_hours (48) after
completed_at, then drops off. This is a read-time filter only; the order
record is untouched. A completed order with no completed_at is treated as
expired.

================================================================================
PRICING
================================================================================

    line total = quantity x unit_price
    subtotal   = sum(line totals)
    tax        = subtotal x tax_rate, rounded half-up to cents
    total      = subtotal + tax

The triple is always recomputed from the lines; nobody types a total.
"""

from __future__ import annotations

import random
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Sequence

from pressdesk.money import ZERO, round_cents

from .entities import DEFAULT_SERVICE_TYPE, DEFAULT_STATUSES, KanbanColumn, Order, OrderItem, ServiceCategory


DEFAULT_COMPLETED_STATUS = "COMPLETED"
DEFAULT_WINDOW_HOURS = 48
FALLBACK_INITIAL_STATUS = "RECEIVED"


class LifecycleError(ValueError):
    """Raised for a transition or line edit that the order rules forbid."""


# ---------------------------------------------------------------------------
# Statuses and transitions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StatusSet:
    """The live set of pipeline statuses plus which one means "completed"."""
    keys: frozenset[str]
    completed: str = DEFAULT_COMPLETED_STATUS

    @classmethod
    def from_columns(cls, columns: Iterable[KanbanColumn], completed: str = DEFAULT_COMPLETED_STATUS) -> "StatusSet":
        keys = frozenset(c.status for c in columns)
        # Before any column is configured the stock pipeline applies.
        return cls(keys=keys or frozenset(DEFAULT_STATUSES), completed=completed)

    def __contains__(self, status: str) -> bool:
        return status in self.keys

    def validate(self, status: str) -> str:
        if status not in self.keys:
            allowed = ", ".join(sorted(self.keys))
            raise LifecycleError(f"Invalid status '{status}'. Must be one of: {allowed}")
        return status


def completion_stamp(status: str, previous_status: str | None, previous_stamp: datetime | None,
                     *, completed: str, now: datetime) -> datetime | None:
    """
    completed_at value for an order moving to `status`.

    Re-dropping a completed order on the completed lane keeps its original
    stamp so the 48h window does not restart.
    """
    if status != completed:
        return None
    if previous_status == completed and previous_stamp is not None:
        return previous_stamp
    return now


def transition(order: Order, status: str, statuses: StatusSet, *, now: datetime) -> Order:
    """Return the order moved to `status`, with completed_at maintained."""
    statuses.validate(status)
    return replace(
        order,
        status=status,
        completed_at=completion_stamp(
            status, order.status, order.completed_at, completed=statuses.completed, now=now
        ),
    )


def initial_status(columns: Sequence[KanbanColumn]) -> str:
    """New tickets land in the first pipeline column."""
    if not columns:
        return FALLBACK_INITIAL_STATUS
    return min(columns, key=lambda c: c.position).status


# ---------------------------------------------------------------------------
# Board visibility
# ---------------------------------------------------------------------------

def is_on_board(order: Order, *, now: datetime, completed: str = DEFAULT_COMPLETED_STATUS,
                window_hours: int = DEFAULT_WINDOW_HOURS) -> bool:
    if order.status != completed:
        return True
    if order.completed_at is None:
        return False
    return now - order.completed_at <= timedelta(hours=window_hours)


def matches_search(order: Order, query: str) -> bool:
    q = (query or "").strip().lower()
    if not q:
        return True
    haystack = (order.customer_name, order.order_number, order.hanger_number or "")
    return any(q in value.lower() for value in haystack)


@dataclass(frozen=True)
class BoardLane:
    column: KanbanColumn
    orders: tuple[Order, ...]

    @property
    def count(self) -> int:
        return len(self.orders)


def board_view(
    orders: Iterable[Order],
    columns: Iterable[KanbanColumn],
    *,
    now: datetime,
    search: str = "",
    location: str = "all",
    completed: str = DEFAULT_COMPLETED_STATUS,
    window_hours: int = DEFAULT_WINDOW_HOURS,
) -> tuple[BoardLane, ...]:
    """
    Group the visible orders into one lane per pipeline column.

    Orders whose status has no column (e.g. the column was deleted) are not
    shown on any lane; they are still in the store and in reports.
    """
    visible = [
        o for o in orders
        if matches_search(o, search)
        and (location == "all" or o.store_id == location)
        and is_on_board(o, now=now, completed=completed, window_hours=window_hours)
    ]
    lanes = []
    for column in sorted(columns, key=lambda c: c.position):
        lanes.append(BoardLane(column=column, orders=tuple(o for o in visible if o.status == column.status)))
    return tuple(lanes)


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    tax: Decimal
    total: Decimal


def compute_totals(items: Iterable[OrderItem], tax_rate: Decimal) -> Totals:
    subtotal = sum((item.total for item in items), ZERO)
    tax = round_cents(subtotal * tax_rate)
    return Totals(subtotal=subtotal, tax=tax, total=subtotal + tax)


def new_line_id() -> str:
    return uuid.uuid4().hex[:9]


def new_order_number(prefix: str = "ORD-") -> str:
    return f"{prefix}{random.randint(1000, 9999)}"


class OrderDraft:
    """
    Line editor for an order being written or amended.

    Lines are validated at the edit boundary: quantities must be positive
    integers and the last remaining line cannot be removed. Choosing a
    category copies its current price and service type into the line; if
    the category has since been deleted, the line keeps what it had.
    """

    def __init__(self, items: Iterable[OrderItem] = (), categories: Iterable[ServiceCategory] = ()):
        self._items: list[OrderItem] = list(items) or [OrderItem(id=new_line_id(), category="")]
        self._categories = {c.name: c for c in categories}

    @classmethod
    def for_order(cls, order: Order, categories: Iterable[ServiceCategory] = ()) -> "OrderDraft":
        return cls(order.items, categories)

    @property
    def items(self) -> tuple[OrderItem, ...]:
        return tuple(self._items)

    def _index(self, item_id: str) -> int:
        for idx, item in enumerate(self._items):
            if item.id == item_id:
                return idx
        raise LifecycleError(f"No line {item_id} on this order")

    def add_item(self, category: str = "", quantity: int = 1) -> OrderItem:
        _check_quantity(quantity)
        item = OrderItem(id=new_line_id(), category="", quantity=quantity)
        self._items.append(item)
        if category:
            return self.set_category(item.id, category)
        return item

    def remove_item(self, item_id: str) -> None:
        idx = self._index(item_id)
        if len(self._items) <= 1:
            raise LifecycleError("An order must keep at least one line")
        del self._items[idx]

    def set_quantity(self, item_id: str, quantity: int) -> OrderItem:
        _check_quantity(quantity)
        idx = self._index(item_id)
        self._items[idx] = replace(self._items[idx], quantity=quantity)
        return self._items[idx]

    def set_category(self, item_id: str, category: str) -> OrderItem:
        idx = self._index(item_id)
        item = replace(self._items[idx], category=category)
        found = self._categories.get(category)
        if found is not None:
            item = replace(item, unit_price=found.base_price, service_type=found.service_type or DEFAULT_SERVICE_TYPE)
        self._items[idx] = item
        return item

    def set_notes(self, item_id: str, notes: str | None) -> OrderItem:
        idx = self._index(item_id)
        self._items[idx] = replace(self._items[idx], notes=notes or None)
        return self._items[idx]

    def totals(self, tax_rate: Decimal) -> Totals:
        return compute_totals(self._items, tax_rate)

    def validate(self) -> None:
        """Final check before a draft is written."""
        ensure_lines(self._items)
        for item in self._items:
            if not item.category.strip():
                raise LifecycleError("Every line needs a category")


def _check_quantity(quantity) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise LifecycleError("Quantity must be a positive whole number")


def ensure_lines(items: Iterable[OrderItem]) -> tuple[OrderItem, ...]:
    """Lines an order may be priced from; raises LifecycleError before anything is written."""
    items = tuple(items)
    if not items:
        raise LifecycleError("An order must keep at least one line")
    for item in items:
        _check_quantity(item.quantity)
        if item.unit_price < ZERO:
            raise LifecycleError(f"Unit price cannot be negative ({item.category or item.id})")
    return items


def priced(order: Order, items: Iterable[OrderItem], tax_rate: Decimal) -> Order:
    """Order with new lines and the totals recomputed for them."""
    items = tuple(items)
    totals = compute_totals(items, tax_rate)
    return replace(order, items=items, subtotal=totals.subtotal, tax=totals.tax, total=totals.total)
