# Overview: Order intake; customer bookkeeping, ticket creation and the silent receipt print.

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from pressdesk.money import round_cents

from .entities import Customer, Order
from .lifecycle import OrderDraft, initial_status, new_order_number
from .printing import PrintError, PrintService
from .signing_bridge import SigningError
from .store import SyncStore


logger = logging.getLogger(__name__)

DEFAULT_PICKUP_DAYS = 2


class IntakeError(ValueError):
    """The ticket cannot be written as entered."""


@dataclass(frozen=True)
class NewCustomer:
    first_name: str
    last_name: str
    phone: str = ""
    email: str = ""
    notes: str | None = None


@dataclass(frozen=True)
class IntakeResult:
    order: Order
    customer: Customer
    printed: bool = False


async def place_order(
    store: SyncStore,
    draft: OrderDraft,
    *,
    customer_id: str | None = None,
    new_customer: NewCustomer | None = None,
    store_id: str | None = None,
    pickup_date: str | None = None,
    pickup_time: str | None = None,
    hanger_number: str | None = None,
    is_priority: bool = False,
    special_handling: str = "",
    printer: PrintService | None = None,
) -> IntakeResult:
    """
    Write a new ticket.

    A new customer is written first so the ticket has an id to point at, and
    starts at zero spent. An existing customer gets last_order_date and
    total_spent bumped by this ticket's taxed amount once the order write
    has succeeded; a failed order write leaves the customer untouched.
    The running total is never reconciled against later edits or deletes.
    Printing failures are logged and reported in the result; they never
    undo the order.
    """
    draft.validate()
    if (customer_id is None) == (new_customer is None):
        raise IntakeError("Choose an existing customer or enter a new one")

    location = store_id or (store.stores[0].id if store.stores else None)
    if not location:
        raise IntakeError("No store is configured")

    settings = store.settings
    now = store.clock()
    totals = draft.totals(settings.tax_rate)

    if new_customer is not None:
        if not new_customer.first_name.strip() or not new_customer.last_name.strip():
            raise IntakeError("Customer first and last name are required")
        customer = await store.add_customer(
            Customer(
                id="",
                first_name=new_customer.first_name.strip(),
                last_name=new_customer.last_name.strip(),
                phone=new_customer.phone,
                email=new_customer.email,
                address="N/A",
                notes=new_customer.notes,
                created_at=now,
            )
        )
    else:
        existing = store.find("customers", customer_id)
        if existing is None:
            raise IntakeError(f"Unknown customer {customer_id}")
        customer = existing

    order = Order(
        id="",
        order_number=new_order_number(settings.order_number_prefix),
        hanger_number=(hanger_number or "").strip() or None,
        customer_id=customer.id,
        customer_name=customer.display_name,
        status=initial_status(store.kanban_columns),
        items=draft.items,
        created_at=now,
        pickup_date=pickup_date or (now + timedelta(days=DEFAULT_PICKUP_DAYS)).date().isoformat(),
        pickup_time=pickup_time or settings.default_pickup_time,
        is_priority=is_priority,
        store_id=location,
        special_handling=(special_handling or "").strip(),
    )
    order = await store.add_order(order)
    if customer_id is not None:
        spent = customer.total_spent + round_cents(totals.subtotal * (1 + settings.tax_rate))
        customer = await store.update_customer(customer.id, last_order_date=now, total_spent=spent)
    logger.info("Placed order %s for %s", order.order_number, order.customer_name)

    printed = False
    location_row = store.find("stores", order.store_id)
    if printer is not None and location_row is not None and location_row.qz_enabled:
        try:
            printed = await printer.print_receipt(order, location_row, settings, customer)
        except (PrintError, SigningError) as exc:
            logger.error("Silent printing failed for order %s: %s", order.order_number, exc)

    return IntakeResult(order=order, customer=customer, printed=printed)
