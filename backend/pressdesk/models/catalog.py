from __future__ import annotations

from ..extensions import db
from ._ids import new_id


class Store(db.Model):
    """
    A physical drop-off location.

    qz_enabled / qz_printer_name configure silent receipt printing through the
    local print agent at this location.
    """
    __tablename__ = "stores"

    id = db.Column(db.String(64), primary_key=True, default=new_id)
    name = db.Column(db.String(120), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    qz_enabled = db.Column(db.Boolean, nullable=False, default=False)
    qz_printer_name = db.Column(db.String(128), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "qz_enabled": self.qz_enabled,
            "qz_printer_name": self.qz_printer_name,
        }


class ServiceCategory(db.Model):
    """Priced garment/service line offered at the counter (e.g. "Suit 2pc")."""
    __tablename__ = "service_categories"

    id = db.Column(db.String(64), primary_key=True, default=new_id)
    name = db.Column(db.String(128), nullable=False)
    service_type = db.Column(db.String(32), nullable=False, default="Dry Clean")
    item_class = db.Column(db.String(64), nullable=True)
    base_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    position = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "service_type": self.service_type,
            "item_class": self.item_class,
            "base_price": self.base_price,
            "position": self.position,
        }


class KanbanColumn(db.Model):
    """
    One pipeline stage.

    The set of status values across these rows is the set of valid order
    statuses; position is the display order on the board.
    """
    __tablename__ = "kanban_columns"

    id = db.Column(db.String(64), primary_key=True, default=new_id)
    status = db.Column(db.String(64), nullable=False, unique=True)
    label = db.Column(db.String(64), nullable=False)
    color = db.Column(db.String(64), nullable=True)
    position = db.Column(db.Integer, nullable=False, default=0, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "label": self.label,
            "color": self.color,
            "position": self.position,
        }
