# Overview: Reporting over store snapshots; revenue, customer value, pipeline load and attendance.

from __future__ import annotations

from collections import Counter
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, Sequence

from pressdesk.money import ZERO, round_cents
from pressdesk.time_utils import hours_between

from .entities import SERVICE_TYPES, Customer, KanbanColumn, Order, Profile, TimeLog


class ReportError(Exception):
    """Raised when a report cannot be built from the given snapshot."""
    pass


def revenue_by_service_type(orders: Iterable[Order]) -> list[dict]:
    """Line revenue per service type; types with no revenue are left out."""
    totals = {service_type: ZERO for service_type in SERVICE_TYPES}
    for order in orders:
        for item in order.items:
            totals[item.service_type] = totals.get(item.service_type, ZERO) + item.total
    return [
        {"service_type": service_type, "revenue": revenue}
        for service_type, revenue in totals.items()
        if revenue > 0
    ]


def daily_revenue(orders: Iterable[Order], *, today: date, days: int = 7) -> list[dict]:
    """Order count and revenue per creation day, oldest first, `days` days ending today."""
    if days < 1:
        raise ReportError("days must be at least 1")
    window = [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]
    rows = {day: {"date": day.isoformat(), "volume": 0, "revenue": ZERO} for day in window}
    for order in orders:
        if order.created_at is None:
            continue
        row = rows.get(order.created_at.date())
        if row is None:
            continue
        row["volume"] += 1
        row["revenue"] += order.total
    return [rows[day] for day in window]


def top_customers(customers: Iterable[Customer], *, limit: int = 5) -> list[dict]:
    ranked = sorted(customers, key=lambda c: c.total_spent, reverse=True)[:limit]
    return [
        {
            "customer_id": c.id,
            "name": f"{c.first_name} {c.last_name[:1]}." if c.last_name else c.first_name,
            "total_spent": c.total_spent,
        }
        for c in ranked
    ]


def average_customer_value(customers: Sequence[Customer]) -> Decimal:
    if not customers:
        return ZERO
    total = sum((c.total_spent for c in customers), ZERO)
    return round_cents(total / len(customers))


def pipeline_load(
    orders: Iterable[Order],
    columns: Iterable[KanbanColumn],
    *,
    completed: str = "COMPLETED",
) -> dict:
    """
    Orders waiting in each open pipeline status, and the busiest one.

    The completed status is not a stage anyone works on, so it is excluded.
    Ties for the bottleneck go to the earlier column.
    """
    statuses = [c.status for c in sorted(columns, key=lambda c: c.position) if c.status != completed]
    counts = Counter(order.status for order in orders)
    rows = [{"status": status, "count": counts.get(status, 0)} for status in statuses]

    bottleneck = None
    for row in rows:
        if bottleneck is None or row["count"] > bottleneck["count"]:
            bottleneck = row
    return {"statuses": rows, "bottleneck": bottleneck}


def shift_hours(log: TimeLog, *, now: datetime | None = None) -> float | None:
    """Length of a shift in hours. Open shifts run to `now`, or None when no `now` is given."""
    end = log.clock_out or now
    if end is None:
        return None
    return hours_between(log.clock_in, end)


def format_duration(log: TimeLog) -> str:
    if log.clock_out is None:
        return "Active..."
    minutes = int((log.clock_out - log.clock_in).total_seconds() // 60)
    return f"{minutes // 60}h {minutes % 60}m"


def attendance_summary(
    logs: Iterable[TimeLog],
    users: Iterable[Profile],
    *,
    today: date,
) -> dict:
    logs = list(logs)
    names = {u.id: u.name for u in users}
    return {
        "active_staff": sum(1 for log in logs if log.is_open),
        "shifts_today": sum(1 for log in logs if log.clock_in.date() == today),
        "rows": [
            {
                "log_id": log.id,
                "user_id": log.user_id,
                "name": names.get(log.user_id, "Unknown User"),
                "clock_in": log.clock_in,
                "clock_out": log.clock_out,
                "duration": format_duration(log),
            }
            for log in logs
        ],
    }
