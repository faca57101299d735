"""
Push channel: in-process broadcaster, SSE framing and the client-side parser.
"""

import json

from pressdesk.client.gateway import _parse_change_events
from pressdesk.services.realtime_service import MAX_PENDING_EVENTS, ChangeBroadcaster, ChangeEvent

from conftest import gateway_headers, run


class TestChangeBroadcaster:
    def test_publish_reaches_interested_subscribers_only(self):
        hub = ChangeBroadcaster()
        orders = hub.subscribe(["orders"])
        everything = hub.subscribe()
        logs = hub.subscribe(["time_logs"])

        assert hub.publish("orders", "INSERT") == 2
        assert orders.next_event(timeout=0).table == "orders"
        assert everything.next_event(timeout=0).table == "orders"
        assert logs.next_event(timeout=0) is None

    def test_unsubscribe(self):
        hub = ChangeBroadcaster()
        sub = hub.subscribe(["orders"])
        hub.unsubscribe(sub)
        assert hub.subscriber_count == 0
        assert hub.publish("orders", "UPDATE") == 0

    def test_slow_subscriber_drops_instead_of_blocking(self):
        hub = ChangeBroadcaster()
        sub = hub.subscribe(["orders"])
        for _ in range(MAX_PENDING_EVENTS + 5):
            hub.publish("orders", "UPDATE")
        assert sub.dropped == 5

    def test_sse_frame(self):
        frame = ChangeEvent(table="orders", type="DELETE").to_sse()
        head, data, blank = frame.split("\n")[:3]
        assert head == "event: change"
        assert json.loads(data[len("data: "):]) == {"table": "orders", "type": "DELETE"}
        assert frame.endswith("\n\n")

    def test_stream_yields_keepalive_then_events_and_cleans_up(self):
        hub = ChangeBroadcaster()
        sub = hub.subscribe(["orders"])
        stream = hub.stream(sub, keepalive_seconds=0.01)

        assert next(stream) == ": connected\n\n"
        assert next(stream) == ": keep-alive\n\n"
        hub.publish("orders", "INSERT")
        assert next(stream).startswith("event: change")

        stream.close()
        assert hub.subscriber_count == 0


class TestChangesRoute:
    def test_requires_session(self, client, db_session):
        resp = client.get("/realtime/v1/changes", headers=gateway_headers())
        assert resp.status_code == 401

    def test_unknown_table_rejected(self, client, admin_token):
        resp = client.get("/realtime/v1/changes?tables=orders,payments", headers=gateway_headers(admin_token))
        assert resp.status_code == 400
        assert "payments" in resp.json["error"]


async def _lines(lines):
    for line in lines:
        yield line


async def _collect(lines):
    return [table async for table in _parse_change_events(_lines(lines))]


class TestChangeEventParser:
    def test_parses_change_frames(self):
        lines = [
            ": connected", "",
            "event: change", 'data: {"table": "orders", "type": "INSERT"}', "",
            ": keep-alive", "",
            "event: change", 'data: {"table": "time_logs", "type": "UPDATE"}', "",
        ]
        assert run(_collect(lines)) == ["orders", "time_logs"]

    def test_ignores_other_events_and_bad_json(self):
        lines = [
            "event: hello", 'data: {"table": "orders"}', "",
            "event: change", "data: not-json", "",
            "event: change", 'data: {"table": "customers"}', "",
        ]
        assert run(_collect(lines)) == ["customers"]

    def test_incomplete_trailing_frame_is_dropped(self):
        lines = ["event: change", 'data: {"table": "orders"}']
        assert run(_collect(lines)) == []
