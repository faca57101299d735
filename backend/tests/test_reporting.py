"""
Reports over store snapshots.

Verifies:
- Revenue is grouped per service type and per creation day
- Customer ranking and average value
- Pipeline load skips the completed status and names the bottleneck
- Attendance counts open shifts and today's shifts
"""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from pressdesk.client.entities import Customer, KanbanColumn, Order, OrderItem, Profile, TimeLog
from pressdesk.client.reporting import (
    ReportError,
    attendance_summary,
    average_customer_value,
    daily_revenue,
    format_duration,
    pipeline_load,
    revenue_by_service_type,
    shift_hours,
    top_customers,
)


TODAY = date(2026, 3, 2)


def _order(status="RECEIVED", created_at=None, total="0.00", items=()):
    return Order(
        id=f"o-{status}-{total}",
        order_number="ORD-1001",
        customer_id="c1",
        customer_name="Lovelace, Ada",
        status=status,
        items=tuple(items),
        total=Decimal(total),
        created_at=created_at or datetime(2026, 3, 2, 10, 0),
    )


def _item(service_type, price, quantity=1):
    return OrderItem(id=f"l-{service_type}", category="x", quantity=quantity,
                     unit_price=Decimal(price), service_type=service_type)


def _columns(*statuses):
    return [KanbanColumn(id=s.lower(), status=s, label=s.title(), position=i) for i, s in enumerate(statuses)]


class TestRevenue:
    def test_by_service_type(self):
        orders = [
            _order(items=[_item("Launder", "8.50", 2), _item("Dry Clean", "12.00")]),
            _order(items=[_item("Launder", "3.00")]),
        ]

        rows = revenue_by_service_type(orders)

        assert rows == [
            {"service_type": "Dry Clean", "revenue": Decimal("12.00")},
            {"service_type": "Launder", "revenue": Decimal("20.00")},
        ]

    def test_daily_window(self):
        orders = [
            _order(created_at=datetime(2026, 3, 2, 9), total="10.00"),
            _order(created_at=datetime(2026, 3, 2, 17), total="5.50"),
            _order(created_at=datetime(2026, 2, 28, 12), total="20.00"),
            _order(created_at=datetime(2026, 2, 1, 12), total="99.00"),
        ]

        rows = daily_revenue(orders, today=TODAY, days=3)

        assert rows == [
            {"date": "2026-02-28", "volume": 1, "revenue": Decimal("20.00")},
            {"date": "2026-03-01", "volume": 0, "revenue": Decimal("0.00")},
            {"date": "2026-03-02", "volume": 2, "revenue": Decimal("15.50")},
        ]

    def test_daily_window_must_be_positive(self):
        with pytest.raises(ReportError):
            daily_revenue([], today=TODAY, days=0)


class TestCustomers:
    def test_top_customers(self):
        customers = [
            Customer(id="c1", first_name="Ada", last_name="Lovelace", total_spent=Decimal("40.00")),
            Customer(id="c2", first_name="Grace", last_name="Hopper", total_spent=Decimal("95.10")),
            Customer(id="c3", first_name="Cher", last_name="", total_spent=Decimal("12.00")),
        ]

        rows = top_customers(customers, limit=2)

        assert [r["name"] for r in rows] == ["Grace H.", "Ada L."]
        assert rows[0]["total_spent"] == Decimal("95.10")
        assert top_customers(customers)[-1]["name"] == "Cher"

    def test_average_value(self):
        customers = [
            Customer(id="c1", first_name="A", last_name="B", total_spent=Decimal("10.00")),
            Customer(id="c2", first_name="C", last_name="D", total_spent=Decimal("10.00")),
            Customer(id="c3", first_name="E", last_name="F", total_spent=Decimal("10.01")),
        ]
        assert average_customer_value(customers) == Decimal("10.00")
        assert average_customer_value([]) == Decimal("0.00")


class TestPipelineLoad:
    def test_bottleneck(self):
        orders = [_order("CLEANING"), _order("CLEANING"), _order("READY"), _order("COMPLETED"), _order("COMPLETED")]

        load = pipeline_load(orders, _columns("RECEIVED", "CLEANING", "READY", "COMPLETED"))

        assert [r["status"] for r in load["statuses"]] == ["RECEIVED", "CLEANING", "READY"]
        assert load["bottleneck"] == {"status": "CLEANING", "count": 2}

    def test_tie_goes_to_earlier_column(self):
        orders = [_order("RECEIVED"), _order("READY")]

        load = pipeline_load(orders, _columns("RECEIVED", "CLEANING", "READY", "COMPLETED"))

        assert load["bottleneck"]["status"] == "RECEIVED"

    def test_no_columns(self):
        assert pipeline_load([], []) == {"statuses": [], "bottleneck": None}


class TestAttendance:
    def test_summary(self):
        start = datetime(2026, 3, 2, 8, 0)
        logs = [
            TimeLog(id="t1", user_id="u1", clock_in=start),
            TimeLog(id="t2", user_id="u2", clock_in=start, clock_out=start + timedelta(hours=7, minutes=45)),
            TimeLog(id="t3", user_id="gone", clock_in=start - timedelta(days=1),
                    clock_out=start - timedelta(hours=16)),
        ]
        users = [Profile(id="u1", name="Sam Staff"), Profile(id="u2", name="Avery Admin")]

        summary = attendance_summary(logs, users, today=TODAY)

        assert summary["active_staff"] == 1
        assert summary["shifts_today"] == 2
        assert [r["name"] for r in summary["rows"]] == ["Sam Staff", "Avery Admin", "Unknown User"]
        assert [r["duration"] for r in summary["rows"]] == ["Active...", "7h 45m", "8h 0m"]

    def test_shift_hours(self):
        start = datetime(2026, 3, 2, 8, 0)
        open_log = TimeLog(id="t1", user_id="u1", clock_in=start)

        assert shift_hours(open_log) is None
        assert shift_hours(open_log, now=start + timedelta(hours=2, minutes=30)) == 2.5
        assert format_duration(TimeLog(id="t2", user_id="u1", clock_in=start,
                                       clock_out=start + timedelta(minutes=59))) == "0h 59m"
