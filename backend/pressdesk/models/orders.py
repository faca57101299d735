from __future__ import annotations

from ..extensions import db
from pressdesk.time_utils import to_utc_z
from ._ids import new_id


class Order(db.Model):
    """
    A garment drop-off ticket.

    items is stored as a JSON list of lines:
        {id, category, service_type, quantity, unit_price, total, notes}
    with amounts as decimal strings.

    subtotal / tax / total are written by the console from the items and the
    tax rate in force at edit time; the gateway stores what it is given.
    customer_id / customer_name are a snapshot taken when the ticket was
    written and are not kept in sync with later customer edits.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status", "status"),
        db.Index("ix_orders_store_created", "store_id", "created_at"),
    )

    id = db.Column(db.String(64), primary_key=True, default=new_id)
    order_number = db.Column(db.String(32), nullable=False)
    hanger_number = db.Column(db.String(32), nullable=True)

    customer_id = db.Column(db.String(64), db.ForeignKey("customers.id"), nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=False)

    status = db.Column(db.String(64), nullable=False)
    items = db.Column(db.JSON, nullable=False, default=list)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    pickup_date = db.Column(db.Date, nullable=True)
    pickup_time = db.Column(db.String(5), nullable=True)
    is_priority = db.Column(db.Boolean, nullable=False, default=False)

    store_id = db.Column(db.String(64), db.ForeignKey("stores.id"), nullable=False, index=True)
    special_handling = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "hanger_number": self.hanger_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "status": self.status,
            "items": list(self.items or []),
            "subtotal": self.subtotal,
            "tax": self.tax,
            "total": self.total,
            "created_at": to_utc_z(self.created_at),
            "completed_at": to_utc_z(self.completed_at),
            "pickup_date": self.pickup_date.isoformat() if self.pickup_date else None,
            "pickup_time": self.pickup_time,
            "is_priority": self.is_priority,
            "store_id": self.store_id,
            "special_handling": self.special_handling,
        }
