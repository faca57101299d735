"""
Clock-in / clock-out through the synchronized store.

Verifies:
- One open shift per operator; a second clock-in is refused without a request
- Clock-out closes the open shift and the duration reads "Xh Ym"
- Clock-out without an open shift is refused
"""

from datetime import datetime, timedelta

import pytest

from pressdesk.client.reporting import format_duration
from pressdesk.client.store import SyncStore, TimekeepingError

from conftest import make_gateway, run


T0 = datetime(2026, 3, 2, 8, 0)


@pytest.fixture
def clock():
    return {"now": T0}


@pytest.fixture
def requests_log():
    return []


@pytest.fixture
def store(client, seeded, staff, staff_token, clock, requests_log):
    store = SyncStore(make_gateway(client, staff_token, log=requests_log), clock=lambda: clock["now"])
    run(store.fetch_all())
    store.set_current_user(store.find("profiles", staff.id))
    return store


class TestClockIn:
    def test_clock_in_opens_shift(self, store, staff):
        log = run(store.clock_in())

        assert log.user_id == staff.id
        assert log.clock_in == T0
        assert log.is_open
        assert store.open_time_log(staff.id).id == log.id

    def test_second_clock_in_refused_locally(self, store, requests_log):
        run(store.clock_in())
        requests_log.clear()

        with pytest.raises(TimekeepingError, match="already clocked in"):
            run(store.clock_in())

        assert requests_log == []
        assert len(store.time_logs) == 1

    def test_other_operator_unaffected(self, store, staff, admin):
        run(store.clock_in())
        log = run(store.clock_in(admin.id))

        assert log.user_id == admin.id
        assert {l.user_id for l in store.time_logs if l.is_open} == {staff.id, admin.id}

    def test_no_operator_signed_in(self, store):
        store.set_current_user(None)
        with pytest.raises(TimekeepingError, match="No operator"):
            run(store.clock_in())


class TestClockOut:
    def test_clock_out_closes_shift(self, store, staff, clock):
        run(store.clock_in())
        clock["now"] = T0 + timedelta(hours=8, minutes=30)

        log = run(store.clock_out())

        assert log.clock_out == T0 + timedelta(hours=8, minutes=30)
        assert store.open_time_log(staff.id) is None
        assert format_duration(store.time_logs[0]) == "8h 30m"

    def test_clock_out_without_open_shift(self, store, requests_log):
        requests_log.clear()
        with pytest.raises(TimekeepingError, match="No active clock-in"):
            run(store.clock_out())
        assert requests_log == []

    def test_clock_in_again_after_clock_out(self, store, clock):
        run(store.clock_in())
        clock["now"] = T0 + timedelta(hours=4)
        run(store.clock_out())
        clock["now"] = T0 + timedelta(hours=5)

        log = run(store.clock_in())

        assert log.clock_in == T0 + timedelta(hours=5)
        assert [l.is_open for l in store.time_logs] == [True, False]
