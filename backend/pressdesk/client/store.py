# Overview: Client-side synchronized store; write-then-refetch mutations and push-driven refetch.

"""
SyncStore

The one in-memory copy of every collection the console shows. Screens read
snapshots from it and change things only through its mutation methods.

Consistency model
-----------------
1. A mutation writes to the gateway first. Nothing local changes before
   the gateway accepts the write, so a failed write needs no rollback.
2. After the write, the affected collections are refetched whole and
   swapped in. The mutation returns only after that refetch, so a caller
   that awaited it always reads its own effect.
3. Push notifications from the gateway run the same refetch path.

Concurrent refetches of one collection can finish out of order. Each read
takes a generation number when it starts; a result is applied only if no
read that started later has already been applied. The displayed state can
therefore never move backwards past a write the caller has awaited.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import fields, replace
from typing import Callable, Iterable

from pressdesk.time_utils import utcnow

from .entities import (
    NORMALIZERS,
    AppSettings,
    Customer,
    KanbanColumn,
    Order,
    Profile,
    ServiceCategory,
    Store,
    TimeLog,
    wire_value,
)
from .gateway import GatewayClient, GatewayError
from .lifecycle import LifecycleError, StatusSet, board_view, completion_stamp, ensure_lines, priced, transition


logger = logging.getLogger(__name__)

TABLES = (
    "orders",
    "customers",
    "stores",
    "service_categories",
    "kanban_columns",
    "profiles",
    "time_logs",
)

READ_ORDER = {
    "orders": "created_at.desc",
    "service_categories": "position.asc",
    "kanban_columns": "position.asc",
    "time_logs": "clock_in.desc",
}

# Deleting a parent row also removes these children on the gateway.
DELETE_CASCADES = {
    "customers": ("orders",),
    "stores": ("orders",),
    "profiles": ("time_logs",),
}

OPERATIONS = ("insert", "update", "delete", "upsert")

DERIVED_ORDER_FIELDS = {"subtotal", "tax", "total", "completed_at"}

ORDER_FIELDS = {f.name for f in fields(Order)} - DERIVED_ORDER_FIELDS - {"id"}

USER_FIELDS = {"name", "email", "role", "avatar"}


class TimekeepingError(ValueError):
    """Clock-in/clock-out rejected before anything was written."""


def new_id() -> str:
    return uuid.uuid4().hex


class SyncStore:
    def __init__(
        self,
        gateway: GatewayClient,
        settings: AppSettings | None = None,
        clock: Callable = utcnow,
        *,
        settings_writer: Callable[[AppSettings], None] | None = None,
    ):
        self.gateway = gateway
        self.settings = settings or AppSettings()
        self.clock = clock
        self._settings_writer = settings_writer
        self._collections: dict[str, tuple] = {table: () for table in TABLES}
        self._started = {table: 0 for table in TABLES}
        self._applied = {table: 0 for table in TABLES}
        self._listeners: list[Callable] = []
        self._push_task: asyncio.Task | None = None
        self.current_user: Profile | None = None
        self.search_query = ""
        self.location_filter = "all"

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    @property
    def orders(self) -> tuple[Order, ...]:
        return self._collections["orders"]

    @property
    def customers(self) -> tuple[Customer, ...]:
        return self._collections["customers"]

    @property
    def stores(self) -> tuple[Store, ...]:
        return self._collections["stores"]

    @property
    def service_categories(self) -> tuple[ServiceCategory, ...]:
        return self._collections["service_categories"]

    @property
    def kanban_columns(self) -> tuple[KanbanColumn, ...]:
        return self._collections["kanban_columns"]

    @property
    def users(self) -> tuple[Profile, ...]:
        return self._collections["profiles"]

    @property
    def time_logs(self) -> tuple[TimeLog, ...]:
        return self._collections["time_logs"]

    def snapshot(self) -> dict[str, tuple]:
        return dict(self._collections)

    def find(self, table: str, row_id: str):
        for row in self._collections[table]:
            if row.id == row_id:
                return row
        return None

    def statuses(self) -> StatusSet:
        return StatusSet.from_columns(self.kanban_columns, completed=self.settings.completed_status)

    def open_time_log(self, user_id: str) -> TimeLog | None:
        for log in self.time_logs:
            if log.user_id == user_id and log.is_open:
                return log
        return None

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def listen(self, callback: Callable[["SyncStore"], None]) -> Callable[[], None]:
        """Call `callback(store)` after every state replacement. Returns an unsubscribe function."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for callback in list(self._listeners):
            try:
                callback(self)
            except Exception:
                logger.exception("Store listener %r failed", callback)

    def set_current_user(self, profile: Profile | None) -> None:
        self.current_user = profile
        if profile is not None and profile.id not in {u.id for u in self.users}:
            self._collections["profiles"] = self.users + (profile,)
        self._notify()

    def set_search_query(self, query: str) -> None:
        self.search_query = query or ""
        self._notify()

    def set_location_filter(self, location: str) -> None:
        self.location_filter = location or "all"
        self._notify()

    def board(self):
        return board_view(
            self.orders,
            self.kanban_columns,
            now=self.clock(),
            search=self.search_query,
            location=self.location_filter,
            completed=self.settings.completed_status,
            window_hours=self.settings.completed_window_hours,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def fetch_all(self) -> None:
        """Read every collection in parallel and swap them all in together."""
        await self.fetch_tables(*TABLES)

    async def fetch_tables(self, *tables: str) -> None:
        tables = tuple(dict.fromkeys(tables))
        for table in tables:
            if table not in TABLES:
                raise ValueError(f"Unknown table: {table}")

        generations = {}
        for table in tables:
            self._started[table] += 1
            generations[table] = self._started[table]

        try:
            results = await asyncio.gather(*(self._read(table) for table in tables))
        except GatewayError:
            logger.exception("Refetch of %s failed", ", ".join(tables))
            raise

        changed = False
        for table, rows in zip(tables, results):
            if generations[table] <= self._applied[table]:
                logger.debug("Discarding stale read of %s (generation %s)", table, generations[table])
                continue
            self._applied[table] = generations[table]
            self._collections[table] = rows
            changed = True
        if changed:
            self._notify()

    async def _read(self, table: str) -> tuple:
        rows = await self.gateway.select(table, order=READ_ORDER.get(table))
        normalize = NORMALIZERS[table]
        entities = tuple(normalize(row) for row in rows)
        if table == "profiles" and self.current_user is not None:
            if self.current_user.id not in {p.id for p in entities}:
                entities = entities + (self.current_user,)
        return entities

    # ------------------------------------------------------------------
    # Generic write-then-refetch
    # ------------------------------------------------------------------

    async def mutate(self, table: str, operation: str, payload=None, row_id: str | None = None):
        if table not in TABLES:
            raise ValueError(f"Unknown table: {table}")
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown operation: {operation}")
        if operation in ("update", "delete") and not row_id:
            raise ValueError(f"{operation} requires a row id")

        try:
            if operation == "insert":
                result = await self.gateway.insert(table, payload)
            elif operation == "update":
                result = await self.gateway.update(table, row_id, payload)
            elif operation == "delete":
                result = await self.gateway.delete(table, row_id)
            else:
                result = await self.gateway.upsert(table, payload)
        except GatewayError:
            logger.exception("%s on %s failed", operation.capitalize(), table)
            raise

        affected = (table,)
        if operation == "delete":
            affected += DELETE_CASCADES.get(table, ())
        await self.fetch_tables(*affected)
        return result

    async def _insert_entity(self, table: str, row: dict):
        inserted = await self.mutate(table, "insert", row)
        if isinstance(inserted, list):
            inserted = inserted[0] if inserted else row
        return NORMALIZERS[table](inserted)

    async def _update_entity(self, table: str, row_id: str, changes: dict):
        updated = await self.mutate(table, "update", _wire_patch(changes), row_id=row_id)
        return NORMALIZERS[table](updated)

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def _order_or_error(self, order_id: str) -> Order:
        order = self.find("orders", order_id)
        if order is None:
            raise LifecycleError(f"Unknown order {order_id}")
        return order

    async def add_order(self, order: Order) -> Order:
        statuses = self.statuses()
        statuses.validate(order.status)
        ensure_lines(order.items)
        now = self.clock()
        order = priced(order, order.items, self.settings.tax_rate)
        order = replace(
            order,
            id=order.id or new_id(),
            created_at=order.created_at or now,
            completed_at=completion_stamp(
                order.status, None, None, completed=statuses.completed, now=order.created_at or now
            ),
        )
        return await self._insert_entity("orders", order.to_row())

    async def update_order(self, order_id: str, **changes) -> Order:
        """
        Patch an order. Totals are never taken from the caller: new lines are
        re-priced at the current tax rate, and a status change goes through
        the lifecycle transition so completed_at stays consistent.
        """
        derived = DERIVED_ORDER_FIELDS & set(changes)
        if derived:
            raise LifecycleError(f"Derived fields cannot be set directly: {', '.join(sorted(derived))}")
        unknown = set(changes) - ORDER_FIELDS
        if unknown:
            raise LifecycleError(
                f"Cannot update order fields: {', '.join(sorted(unknown))}. "
                f"Allowed: {', '.join(sorted(ORDER_FIELDS))}"
            )
        if "items" in changes:
            changes["items"] = ensure_lines(changes["items"])
        current = self._order_or_error(order_id)
        updated = replace(current, **changes)
        if "items" in changes:
            updated = priced(updated, changes["items"], self.settings.tax_rate)
            changes.update(subtotal=updated.subtotal, tax=updated.tax, total=updated.total)
        if "status" in changes:
            moved = transition(current, changes["status"], self.statuses(), now=self.clock())
            changes["completed_at"] = moved.completed_at
        return await self._update_entity("orders", order_id, changes)

    async def update_order_status(self, order_id: str, status: str) -> Order:
        current = self._order_or_error(order_id)
        moved = transition(current, status, self.statuses(), now=self.clock())
        return await self._update_entity(
            "orders", order_id, {"status": moved.status, "completed_at": moved.completed_at}
        )

    async def delete_order(self, order_id: str) -> None:
        await self.mutate("orders", "delete", row_id=order_id)

    # ------------------------------------------------------------------
    # Customers, stores, users, categories
    # ------------------------------------------------------------------

    async def add_customer(self, customer: Customer) -> Customer:
        customer = replace(customer, id=customer.id or new_id(), created_at=customer.created_at or self.clock())
        return await self._insert_entity("customers", customer.to_row())

    async def update_customer(self, customer_id: str, **changes) -> Customer:
        return await self._update_entity("customers", customer_id, changes)

    async def delete_customer(self, customer_id: str) -> None:
        await self.mutate("customers", "delete", row_id=customer_id)

    async def add_store(self, store: Store) -> Store:
        store = replace(store, id=store.id or new_id())
        return await self._insert_entity("stores", store.to_row())

    async def update_store(self, store_id: str, **changes) -> Store:
        return await self._update_entity("stores", store_id, changes)

    async def delete_store(self, store_id: str) -> None:
        await self.mutate("stores", "delete", row_id=store_id)

    async def update_user(self, user_id: str, **changes) -> Profile:
        unknown = set(changes) - USER_FIELDS
        if unknown:
            raise ValueError(f"Cannot update profile fields: {', '.join(sorted(unknown))}")
        profile = await self._update_entity("profiles", user_id, changes)
        if self.current_user is not None and self.current_user.id == user_id:
            self.current_user = profile
        return profile

    async def delete_user(self, user_id: str) -> None:
        await self.mutate("profiles", "delete", row_id=user_id)

    async def add_service_category(self, category: ServiceCategory) -> ServiceCategory:
        category = replace(category, id=category.id or new_id())
        return await self._insert_entity("service_categories", category.to_row())

    async def update_service_category(self, category_id: str, **changes) -> ServiceCategory:
        return await self._update_entity("service_categories", category_id, changes)

    async def delete_service_category(self, category_id: str) -> None:
        await self.mutate("service_categories", "delete", row_id=category_id)

    # ------------------------------------------------------------------
    # Pipeline columns
    # ------------------------------------------------------------------

    async def add_kanban_column(self, status: str, label: str, color: str = "bg-slate-400") -> KanbanColumn:
        column = KanbanColumn(
            id=new_id(), status=status, label=label, color=color, position=len(self.kanban_columns)
        )
        return await self._insert_entity("kanban_columns", column.to_row())

    async def update_kanban_column(self, column_id: str, **changes) -> KanbanColumn:
        return await self._update_entity("kanban_columns", column_id, changes)

    async def delete_kanban_column(self, column_id: str) -> None:
        await self.mutate("kanban_columns", "delete", row_id=column_id)

    async def reorder_kanban_columns(self, start_index: int, end_index: int) -> None:
        """
        Move one column and renumber every position.

        This is the one mutation applied locally first so a drag lands
        immediately; if the bulk write fails the columns are refetched from
        the gateway before the error propagates.
        """
        columns = list(self.kanban_columns)
        if not (0 <= start_index < len(columns) and 0 <= end_index < len(columns)):
            raise IndexError("Column index out of range")
        moved = columns.pop(start_index)
        columns.insert(end_index, moved)
        columns = [replace(column, position=idx) for idx, column in enumerate(columns)]

        self._collections["kanban_columns"] = tuple(columns)
        self._notify()

        try:
            await self.gateway.upsert("kanban_columns", [column.to_row() for column in columns])
        except GatewayError:
            logger.exception("Column reorder failed; restoring from gateway")
            await self.fetch_tables("kanban_columns")
            raise
        await self.fetch_tables("kanban_columns")

    # ------------------------------------------------------------------
    # Timekeeping
    # ------------------------------------------------------------------

    def _timekeeping_user(self, user_id: str | None) -> str:
        user_id = user_id or (self.current_user.id if self.current_user else None)
        if not user_id:
            raise TimekeepingError("No operator is signed in")
        return user_id

    async def clock_in(self, user_id: str | None = None) -> TimeLog:
        user_id = self._timekeeping_user(user_id)
        if self.open_time_log(user_id) is not None:
            raise TimekeepingError("You are already clocked in")
        row = {"id": new_id(), "user_id": user_id, "clock_in": wire_value(self.clock())}
        return await self._insert_entity("time_logs", row)

    async def clock_out(self, user_id: str | None = None) -> TimeLog:
        user_id = self._timekeeping_user(user_id)
        log = self.open_time_log(user_id)
        if log is None:
            raise TimekeepingError("No active clock-in found")
        return await self._update_entity("time_logs", log.id, {"clock_out": self.clock()})

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def update_settings(self, **changes) -> AppSettings:
        """Replace the settings singleton. Last write wins."""
        self.settings = self.settings.updated(**changes)
        if self._settings_writer is not None:
            self._settings_writer(self.settings)
        self._notify()
        return self.settings

    # ------------------------------------------------------------------
    # Push channel
    # ------------------------------------------------------------------

    async def handle_change(self, table: str) -> None:
        """A change notification for `table`: refetch it, whatever changed."""
        if table not in TABLES:
            logger.warning("Ignoring change notification for unknown table %s", table)
            return
        await self.fetch_tables(table)

    def subscribe_to_changes(self, tables: Iterable[str] = TABLES) -> Callable[[], None]:
        """
        Start consuming the push channel in a background task.

        Returns a function that stops it. A dropped channel is logged and not
        reopened; call again to resubscribe. A new subscription
        replaces the running one.
        """
        tables = tuple(tables)
        if self._push_task is not None and not self._push_task.done():
            self._push_task.cancel()
        self._push_task = asyncio.get_running_loop().create_task(self._consume_changes(tables))
        task = self._push_task

        def unsubscribe() -> None:
            task.cancel()

        return unsubscribe

    async def _consume_changes(self, tables: tuple) -> None:
        try:
            async for table in self.gateway.changes(tables):
                try:
                    await self.handle_change(table)
                except GatewayError:
                    # Logged by fetch_tables; the next notification retries.
                    continue
        except GatewayError:
            logger.exception("Push channel closed")


def _wire_patch(changes: dict) -> dict:
    return {key: wire_value(value) for key, value in changes.items()}
