from __future__ import annotations

from ..extensions import db
from pressdesk.time_utils import to_utc_z
from ._ids import new_id


class Customer(db.Model):
    """
    Customer master data.

    total_spent is a running accumulator bumped by the console when an order
    is placed. It is never recomputed from order history, so edits and
    deletes after the fact are not reflected in it.
    """
    __tablename__ = "customers"

    id = db.Column(db.String(64), primary_key=True, default=new_id)
    first_name = db.Column(db.String(128), nullable=False)
    last_name = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    total_spent = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    last_order_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "notes": self.notes,
            "total_spent": self.total_spent,
            "last_order_date": to_utc_z(self.last_order_date),
            "created_at": to_utc_z(self.created_at),
        }
