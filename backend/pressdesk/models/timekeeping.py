from __future__ import annotations

from ..extensions import db
from pressdesk.time_utils import to_utc_z
from ._ids import new_id


class TimeLog(db.Model):
    """
    One staff shift.

    clock_out is NULL while the shift is open. The console refuses a second
    open shift per user before writing; the table itself does not.
    """
    __tablename__ = "time_logs"
    __table_args__ = (
        db.Index("ix_time_logs_user_clock_in", "user_id", "clock_in"),
    )

    id = db.Column(db.String(64), primary_key=True, default=new_id)
    user_id = db.Column(db.String(64), db.ForeignKey("profiles.id"), nullable=False, index=True)
    clock_in = db.Column(db.DateTime(timezone=True), nullable=False)
    clock_out = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "clock_in": to_utc_z(self.clock_in),
            "clock_out": to_utc_z(self.clock_out),
            "notes": self.notes,
        }
