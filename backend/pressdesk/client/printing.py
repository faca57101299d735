# Overview: Silent receipt printing through the local print agent.

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Protocol

from jinja2 import Environment, PackageLoader, select_autoescape

from pressdesk.money import format_money

from .entities import AppSettings, Customer, Order, Store
from .signing_bridge import SigningBridge


logger = logging.getLogger(__name__)

DEFAULT_PRINTER = "Receipt"


class PrintError(RuntimeError):
    """The print agent could not take the job."""


class PrintAgent(Protocol):
    """The local print agent process as seen from the console."""

    async def connect(self) -> None: ...

    def is_active(self) -> bool: ...

    async def find_printers(self) -> list[str]: ...

    def set_certificate_provider(self, provider: Callable[[], str]) -> None: ...

    def set_signature_provider(self, provider) -> None: ...

    async def print(self, printer: str, data: list[dict]) -> None: ...


# ---------------------------------------------------------------------------
# Receipt markup
# ---------------------------------------------------------------------------

_env = Environment(
    loader=PackageLoader("pressdesk.client", "templates"),
    autoescape=select_autoescape(["html"]),
)
_env.filters["money"] = format_money


def format_pickup_time(value: str | None) -> str:
    """Render "17:00" as "5:00 PM"."""
    if not value:
        return "N/A"
    hours, _, minutes = value.partition(":")
    hour = int(hours)
    suffix = "PM" if hour >= 12 else "AM"
    return f"{hour % 12 or 12}:{minutes} {suffix}"


def format_pickup_date(value: str | None) -> str:
    if not value:
        return "N/A"
    day = datetime.strptime(value[:10], "%Y-%m-%d")
    return f"{day:%b} {day.day}, {day.year}"


def render_receipt(order: Order, store: Store | None, settings: AppSettings, customer: Customer | None = None) -> str:
    """Full HTML document for one receipt. Styles are inline; the agent fetches nothing."""
    template = _env.get_template("receipt.html")
    return template.render(
        order=order,
        customer=customer,
        company_name=(store.name if store and store.name else settings.company_name),
        company_address=(store.address if store and store.address else settings.company_address),
        company_phone=(store.phone if store and store.phone else settings.company_phone),
        received=order.created_at.strftime("%m/%d/%Y") if order.created_at else "",
        pickup_date=format_pickup_date(order.pickup_date),
        pickup_time=format_pickup_time(order.pickup_time),
    )


# ---------------------------------------------------------------------------
# Print service
# ---------------------------------------------------------------------------

class PrintService:
    def __init__(self, agent: PrintAgent, bridge: SigningBridge | None = None, renderer=render_receipt):
        self.agent = agent
        self.bridge = bridge
        self.renderer = renderer
        self._connected = False

    async def connect(self) -> None:
        if self._connected and self.agent.is_active():
            return
        try:
            if self.bridge is not None and not self.bridge.enabled:
                await self.bridge.setup()
            if self.bridge is not None:
                self.bridge.install(self.agent)
            if not self.agent.is_active():
                await self.agent.connect()
        except Exception as exc:
            logger.error("Print agent connection failed. Is it running? %s", exc)
            raise PrintError(f"Print agent connection failed: {exc}") from exc
        self._connected = True
        logger.info("Connected to print agent")

    async def get_printers(self) -> list[str]:
        try:
            await self.connect()
            return list(await self.agent.find_printers())
        except Exception:
            logger.exception("Failed to list printers")
            return []

    @staticmethod
    def resolve_printer(store: Store, settings: AppSettings) -> str:
        return settings.printer_overrides.get(store.id) or store.qz_printer_name or DEFAULT_PRINTER

    async def print_receipt(
        self,
        order: Order,
        store: Store,
        settings: AppSettings,
        customer: Customer | None = None,
    ) -> bool:
        """
        Send the receipt to the store's printer. Returns False when the store
        has silent printing switched off; raises PrintError when the job
        could not be submitted.
        """
        if not store.qz_enabled:
            logger.info("Silent printing is disabled for store %s", store.name)
            return False

        await self.connect()
        printer = self.resolve_printer(store, settings)
        html = self.renderer(order, store, settings, customer)
        job = [{"type": "html", "format": "plain", "data": html}]
        logger.info("Printing order %s on %s", order.order_number, printer)
        try:
            await self.agent.print(printer, job)
        except Exception as exc:
            logger.error("Silent printing failed for order %s: %s", order.order_number, exc)
            raise PrintError(f"Print job failed: {exc}") from exc
        return True
