# Overview: Pytest coverage for customer, work order, inventory, dashboard and health endpoints.

from datetime import timedelta
import re

from cyclemart.models import Customer, InventoryItem
from cyclemart.time_utils import start_of_day, to_utc_z, utcnow


class TestCustomers:
    def test_create_and_fetch(self, client, db_session):
        resp = client.post("/api/customers", json={
            "first_name": "Meena", "last_name": "Shah", "phone": "9812345678", "city": "Surat",
        })
        assert resp.status_code == 201
        customer = resp.get_json()["customer"]

        resp = client.get(f"/api/customers/{customer['id']}")
        assert resp.status_code == 200
        assert resp.get_json()["customer"]["machines"] == []

    def test_duplicate_phone_is_conflict(self, client, customer):
        resp = client.post("/api/customers", json={
            "first_name": "Other", "last_name": "Person", "phone": customer.phone,
        })
        assert resp.status_code == 409
        assert "phone" in resp.get_json()["message"]

    def test_missing_phone_is_400(self, client, db_session):
        resp = client.post("/api/customers", json={"first_name": "No", "last_name": "Phone"})
        assert resp.status_code == 400

    def test_search(self, client, customer):
        found = client.get("/api/customers?search=Patel").get_json()
        assert found["count"] == 1
        assert client.get("/api/customers?search=nobody").get_json()["count"] == 0

    def test_update(self, client, customer):
        resp = client.put(f"/api/customers/{customer.id}", json={"city": "Ahmedabad"})
        assert resp.status_code == 200
        assert resp.get_json()["customer"]["city"] == "Ahmedabad"

    def test_delete_blocked_while_referenced(self, client, db_session, customer, machine):
        resp = client.delete(f"/api/customers/{customer.id}")
        assert resp.status_code == 409
        assert resp.get_json()["errors"] == [{"reference": "machines", "count": 1}]
        assert db_session.get(Customer, customer.id) is not None

    def test_delete_unreferenced(self, client, db_session, customer):
        assert client.delete(f"/api/customers/{customer.id}").status_code == 204
        assert client.get(f"/api/customers/{customer.id}").status_code == 404

    def test_machines(self, client, customer):
        resp = client.post("/api/sewing-machines", json={
            "customer_id": customer.id, "brand": "Singer", "model": "Heavy Duty 4423",
            "purchase_date": "2024-03-01",
        })
        assert resp.status_code == 201
        assert resp.get_json()["machine"]["purchase_date"] == "2024-03-01T00:00:00Z"

        listed = client.get(f"/api/sewing-machines?customer_id={customer.id}").get_json()
        assert listed["count"] == 1

        resp = client.post("/api/sewing-machines", json={"customer_id": 999, "brand": "X", "model": "Y"})
        assert resp.status_code == 404


class TestWorkOrders:
    def test_numbering_and_completion_stamp(self, client, customer, machine):
        resp = client.post("/api/work-orders", json={
            "customer_id": customer.id,
            "machine_id": machine.id,
            "problem_description": "Thread keeps breaking",
            "priority": "high",
            "estimated_cost": "350",
        })
        assert resp.status_code == 201
        work_order = resp.get_json()["work_order"]
        assert re.fullmatch(rf"WO-{utcnow().year}-000001", work_order["order_number"])
        assert work_order["status"] == "pending"
        assert work_order["estimated_cost"] == "350.00"
        assert work_order["completed_at"] is None

        resp = client.patch(f"/api/work-orders/{work_order['id']}", json={
            "status": "completed", "actual_cost": "420.00",
        })
        assert resp.status_code == 200
        updated = resp.get_json()["work_order"]
        assert updated["completed_at"] is not None

        invoice = client.post(f"/api/work-orders/{work_order['id']}/invoice").get_json()["invoice"]
        assert invoice["subtotal"] == "420.00"
        assert invoice["tax_amount"] == "33.60"

    def test_invalid_status(self, client, customer):
        resp = client.post("/api/work-orders", json={
            "customer_id": customer.id, "problem_description": "x", "status": "lost",
        })
        assert resp.status_code == 400

    def test_machine_must_belong_to_customer(self, client, db_session, customer, machine):
        other = Customer(first_name="A", last_name="B", phone="9000000099")
        db_session.add(other)
        db_session.commit()

        resp = client.post("/api/work-orders", json={
            "customer_id": other.id, "machine_id": machine.id, "problem_description": "noise",
        })
        assert resp.status_code == 400

    def test_list_by_status(self, client, completed_work_order):
        assert client.get("/api/work-orders?status=completed").get_json()["count"] == 1
        assert client.get("/api/work-orders?status=pending").get_json()["count"] == 0


class TestInventory:
    def test_create_with_generated_sku(self, client, db_session):
        resp = client.post("/api/inventory", json={
            "name": "Bobbin winder tyre", "category": "Spare parts",
            "cost": "5.00", "price": "12.50", "quantity": 40, "minimum_stock": 10,
        })
        assert resp.status_code == 201
        item = resp.get_json()["item"]
        assert re.fullmatch(r"SKU-\d{6}", item["sku"])
        assert item["type"] == "parts"
        assert item["warranty_period_years"] == 0

    def test_duplicate_sku_is_conflict(self, client, item_a):
        resp = client.post("/api/inventory", json={
            "sku": "sku-a", "name": "Copy", "category": "Spare parts", "cost": "1", "price": "2",
        })
        assert resp.status_code == 409

    def test_negative_quantity_rejected(self, client, item_a):
        resp = client.patch(f"/api/inventory/{item_a.id}", json={"quantity": -1})
        assert resp.status_code == 400

    def test_manual_adjustment(self, client, db_session, item_a):
        resp = client.put(f"/api/inventory/{item_a.id}", json={"quantity": 1, "location": "Shelf B2"})
        assert resp.status_code == 200
        item = resp.get_json()["item"]
        assert item["quantity"] == 1
        assert item["location"] == "Shelf B2"
        assert item["is_low_stock"] is True

        low = client.get("/api/inventory/low-stock").get_json()
        assert [i["id"] for i in low["items"]] == [item_a.id]

    def test_delete_blocked_by_invoice_snapshot(self, client, db_session, customer, item_a, due_date):
        client.post("/api/invoices", json={
            "customer_id": customer.id,
            "type": "new_sale",
            "items": [{"inventory_item_id": item_a.id, "quantity": 1, "price": "100.00"}],
            "due_date": due_date,
        })

        resp = client.delete(f"/api/inventory/{item_a.id}")
        assert resp.status_code == 409
        assert db_session.get(InventoryItem, item_a.id) is not None

    def test_delete_unreferenced(self, client, item_a):
        assert client.delete(f"/api/inventory/{item_a.id}").status_code == 204
        assert client.get(f"/api/inventory/{item_a.id}").status_code == 404

    def test_search_and_pagination(self, client, item_a, item_b):
        page = client.get("/api/inventory?page=1&per_page=1").get_json()
        assert page["count"] == 1
        assert page["pagination"]["total"] == 2
        assert page["pagination"]["has_next"] is True

        found = client.get("/api/inventory?search=belt").get_json()
        assert [i["sku"] for i in found["items"]] == ["SKU-B"]


class TestDashboard:
    def test_metrics(self, client, db_session, customer, machine, item_a, item_b, due_date):
        client.post("/api/work-orders", json={
            "customer_id": customer.id,
            "problem_description": "Due today",
            "due_date": to_utc_z(start_of_day(utcnow()) + timedelta(hours=12)),
        })
        client.post("/api/work-orders", json={
            "customer_id": customer.id, "problem_description": "Later", "status": "in_progress",
            "due_date": to_utc_z(utcnow() + timedelta(days=3)),
        })
        client.post("/api/invoices", json={
            "customer_id": customer.id,
            "type": "service",
            "subtotal": "500.00",
            "tax_rate": "0.18",
            "due_date": due_date,
            "initial_payment": {"amount": "590.00", "payment_method": "cash"},
        })

        metrics = client.get("/api/dashboard/metrics").get_json()
        assert metrics["todays_sales"] == "590.00"
        assert metrics["active_repairs"] == 2
        assert metrics["due_today"] == 1
        assert metrics["new_customers"] == 1
        # item_b: 1 on hand, minimum 2
        assert metrics["low_stock_items"] == 1

    def test_activity(self, client, completed_work_order):
        activity = client.get("/api/dashboard/activity").get_json()
        recent = activity["recent_work_orders"][0]
        assert recent["order_number"] == completed_work_order.order_number
        assert recent["customer"]["last_name"] == "Patel"
        assert recent["machine"]["brand"] == "Usha"
        assert len(activity["recent_customers"]) == 1


def test_health(client, db_session):
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"]["details"]["invoices"] == 0
