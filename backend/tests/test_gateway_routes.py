"""
Gateway table routes.

Verifies:
- The api key and an operator session are both required (401)
- STAFF cannot write admin-managed tables (403)
- Reads honor ?order=column.direction
- Insert / patch / upsert / delete round trip through JSON rows
- Deleting a parent removes its children
- Every committed write is announced on the change broadcaster
"""

import pytest

from pressdesk.models import Customer, KanbanColumn, Order, Store, TimeLog
from pressdesk.services.realtime_service import broadcaster

from conftest import gateway_headers


def _order_payload(customer_id, store_id, **overrides):
    payload = {
        "order_number": "ORD-1234",
        "customer_id": customer_id,
        "customer_name": "Lovelace, Ada",
        "status": "RECEIVED",
        "items": [{"id": "l1", "category": "Shirt", "quantity": 3, "unit_price": "3.50"}],
        "subtotal": "10.50",
        "tax": "0.87",
        "total": "11.37",
        "store_id": store_id,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def shop(db_session):
    store = Store(name="Main Street", qz_enabled=True, qz_printer_name="Front Counter")
    customer = Customer(first_name="Ada", last_name="Lovelace", phone="555-0100")
    db_session.add_all([store, customer])
    db_session.commit()
    return store, customer


# =============================================================================
# AUTHENTICATION: 401
# =============================================================================


class TestGatewayAuthentication:
    def test_missing_api_key(self, client, admin_token):
        resp = client.get("/rest/v1/orders", headers={"Authorization": f"Bearer {admin_token}"})
        assert resp.status_code == 401
        assert resp.json["error"] == "Invalid API key"

    def test_wrong_api_key(self, client, admin_token):
        resp = client.get("/rest/v1/orders", headers={"apikey": "nope", "Authorization": f"Bearer {admin_token}"})
        assert resp.status_code == 401

    def test_missing_session(self, client, db_session):
        resp = client.get("/rest/v1/orders", headers=gateway_headers())
        assert resp.status_code == 401
        assert resp.json["error"] == "Authentication required"

    def test_unknown_token(self, client, db_session):
        resp = client.get("/rest/v1/orders", headers=gateway_headers("not-a-token"))
        assert resp.status_code == 401

    def test_unknown_table(self, client, admin_token):
        resp = client.get("/rest/v1/payments", headers=gateway_headers(admin_token))
        assert resp.status_code == 404


# =============================================================================
# ROLE RULES: 403
# =============================================================================


class TestRestrictedTables:
    @pytest.mark.parametrize("table,payload", [
        ("stores", {"name": "Annex"}),
        ("service_categories", {"name": "Gown", "base_price": "40"}),
        ("kanban_columns", {"status": "PRESSING", "label": "Pressing"}),
        ("profiles", {"name": "New Hire"}),
    ])
    def test_staff_cannot_write(self, client, staff_token, table, payload):
        resp = client.post(f"/rest/v1/{table}", json=payload, headers=gateway_headers(staff_token))
        assert resp.status_code == 403
        assert resp.json["required_roles"] == ["ADMIN", "MANAGER"]

    def test_staff_can_read_restricted_tables(self, client, staff_token):
        resp = client.get("/rest/v1/stores", headers=gateway_headers(staff_token))
        assert resp.status_code == 200

    def test_staff_can_write_orders_and_customers(self, client, staff_token, shop):
        store, customer = shop
        resp = client.post("/rest/v1/customers", json={"first_name": "Grace", "last_name": "Hopper"},
                           headers=gateway_headers(staff_token))
        assert resp.status_code == 201
        resp = client.post("/rest/v1/orders", json=_order_payload(customer.id, store.id),
                           headers=gateway_headers(staff_token))
        assert resp.status_code == 201

    def test_admin_can_write(self, client, admin_token):
        resp = client.post("/rest/v1/stores", json={"name": "Annex"}, headers=gateway_headers(admin_token))
        assert resp.status_code == 201


# =============================================================================
# CRUD
# =============================================================================


class TestTableCrud:
    def test_insert_returns_rows_with_generated_id(self, client, admin_token, shop):
        store, customer = shop
        resp = client.post("/rest/v1/orders", json=_order_payload(customer.id, store.id),
                           headers=gateway_headers(admin_token))
        assert resp.status_code == 201
        row = resp.json[0]
        assert len(row["id"]) == 32
        assert row["subtotal"] == "10.50"
        assert row["items"][0]["total"] == "10.50"
        assert row["created_at"].endswith("Z")
        assert row["completed_at"] is None

    def test_insert_keeps_client_id(self, client, admin_token):
        resp = client.post("/rest/v1/stores", json={"id": "store-annex", "name": "Annex"},
                           headers=gateway_headers(admin_token))
        assert resp.json[0]["id"] == "store-annex"

    def test_duplicate_id_conflicts(self, client, admin_token):
        headers = gateway_headers(admin_token)
        client.post("/rest/v1/stores", json={"id": "s1", "name": "Annex"}, headers=headers)
        resp = client.post("/rest/v1/stores", json={"id": "s1", "name": "Annex 2"}, headers=headers)
        assert resp.status_code == 409

    def test_bulk_insert(self, client, admin_token):
        resp = client.post("/rest/v1/stores", json=[{"name": "A"}, {"name": "B"}],
                           headers=gateway_headers(admin_token))
        assert resp.status_code == 201
        assert [r["name"] for r in resp.json] == ["A", "B"]

    def test_validation_error_is_400(self, client, admin_token, shop):
        store, customer = shop
        bad = _order_payload(customer.id, store.id, items=[])
        resp = client.post("/rest/v1/orders", json=bad, headers=gateway_headers(admin_token))
        assert resp.status_code == 400
        assert "items" in resp.json["error"]

    def test_patch_updates_fields(self, client, admin_token, shop, db_session):
        store, customer = shop
        resp = client.patch(f"/rest/v1/customers/{customer.id}", json={"notes": "Starch light"},
                            headers=gateway_headers(admin_token))
        assert resp.status_code == 200
        assert resp.json["notes"] == "Starch light"
        assert db_session.get(Customer, customer.id).notes == "Starch light"

    def test_patch_cannot_change_id(self, client, admin_token, shop):
        _, customer = shop
        resp = client.patch(f"/rest/v1/customers/{customer.id}", json={"id": "other"},
                            headers=gateway_headers(admin_token))
        assert resp.status_code == 400

    def test_patch_missing_row_is_404(self, client, admin_token):
        resp = client.patch("/rest/v1/customers/missing", json={"notes": "x"}, headers=gateway_headers(admin_token))
        assert resp.status_code == 404

    def test_read_ordering(self, client, admin_token, db_session):
        db_session.add_all([
            KanbanColumn(status="READY", label="Ready", position=2),
            KanbanColumn(status="RECEIVED", label="Received", position=0),
            KanbanColumn(status="CLEANING", label="Cleaning", position=1),
        ])
        db_session.commit()
        headers = gateway_headers(admin_token)

        default = client.get("/rest/v1/kanban_columns", headers=headers).json
        assert [c["status"] for c in default] == ["RECEIVED", "CLEANING", "READY"]

        desc = client.get("/rest/v1/kanban_columns?order=position.desc", headers=headers).json
        assert [c["status"] for c in desc] == ["READY", "CLEANING", "RECEIVED"]

    def test_bad_order_column_is_400(self, client, admin_token):
        resp = client.get("/rest/v1/orders?order=secret.asc", headers=gateway_headers(admin_token))
        assert resp.status_code == 400

    def test_duplicate_pipeline_status_conflicts(self, client, admin_token):
        headers = gateway_headers(admin_token)
        client.post("/rest/v1/kanban_columns", json={"status": "HOLD", "label": "Hold"}, headers=headers)
        resp = client.post("/rest/v1/kanban_columns", json={"status": "HOLD", "label": "Hold 2"}, headers=headers)
        assert resp.status_code == 409

    def test_upsert_updates_positions(self, client, admin_token, db_session):
        a = KanbanColumn(id="a", status="RECEIVED", label="Received", position=0)
        b = KanbanColumn(id="b", status="READY", label="Ready", position=1)
        db_session.add_all([a, b])
        db_session.commit()

        resp = client.post("/rest/v1/kanban_columns/upsert", json=[
            {"id": "b", "status": "READY", "label": "Ready", "position": 0},
            {"id": "a", "status": "RECEIVED", "label": "Received", "position": 1},
        ], headers=gateway_headers(admin_token))
        assert resp.status_code == 200
        assert db_session.get(KanbanColumn, "b").position == 0
        assert db_session.get(KanbanColumn, "a").position == 1

    def test_upsert_requires_ids(self, client, admin_token):
        resp = client.post("/rest/v1/kanban_columns/upsert", json=[{"status": "X", "label": "X"}],
                           headers=gateway_headers(admin_token))
        assert resp.status_code == 400

    def test_delete(self, client, admin_token, shop, db_session):
        store, _ = shop
        resp = client.delete(f"/rest/v1/stores/{store.id}", headers=gateway_headers(admin_token))
        assert resp.status_code == 204
        assert db_session.get(Store, store.id) is None


class TestCascades:
    def test_deleting_customer_removes_orders(self, client, admin_token, shop, db_session):
        store, customer = shop
        client.post("/rest/v1/orders", json=_order_payload(customer.id, store.id),
                    headers=gateway_headers(admin_token))
        assert db_session.query(Order).count() == 1

        resp = client.delete(f"/rest/v1/customers/{customer.id}", headers=gateway_headers(admin_token))
        assert resp.status_code == 204
        assert db_session.query(Order).count() == 0

    def test_deleting_profile_removes_time_logs(self, client, admin_token, staff, db_session):
        headers = gateway_headers(admin_token)
        client.post("/rest/v1/time_logs", json={"user_id": staff.id, "clock_in": "2026-03-01T09:00:00Z"},
                    headers=headers)
        resp = client.delete(f"/rest/v1/profiles/{staff.id}", headers=headers)
        assert resp.status_code == 204
        assert db_session.query(TimeLog).count() == 0


class TestChangeAnnouncements:
    def test_write_publishes_change(self, client, admin_token, shop):
        _, customer = shop
        sub = broadcaster.subscribe(["customers"])
        try:
            client.patch(f"/rest/v1/customers/{customer.id}", json={"notes": "VIP"},
                         headers=gateway_headers(admin_token))
            event = sub.next_event(timeout=1)
            assert (event.table, event.type) == ("customers", "UPDATE")
        finally:
            broadcaster.unsubscribe(sub)

    def test_cascade_announces_child_table(self, client, admin_token, shop):
        store, customer = shop
        headers = gateway_headers(admin_token)
        client.post("/rest/v1/orders", json=_order_payload(customer.id, store.id), headers=headers)

        sub = broadcaster.subscribe(["orders", "stores"])
        try:
            client.delete(f"/rest/v1/stores/{store.id}", headers=headers)
            seen = {sub.next_event(timeout=1).table, sub.next_event(timeout=1).table}
            assert seen == {"orders", "stores"}
        finally:
            broadcaster.unsubscribe(sub)

    def test_failed_write_publishes_nothing(self, client, admin_token):
        sub = broadcaster.subscribe(["stores"])
        try:
            client.post("/rest/v1/stores", json={"bogus": 1}, headers=gateway_headers(admin_token))
            assert sub.next_event(timeout=0.05) is None
        finally:
            broadcaster.unsubscribe(sub)
