# Overview: Pytest coverage for inventory HTTP routes.

from gympos.extensions import db
from gympos.models import InventoryItem, InventoryTransaction


def _quantity(item_id):
    db.session.expire_all()
    return db.session.get(InventoryItem, item_id).quantity


class TestItemRoutes:

    def test_create_item_with_opening_stock(self, client, admin_headers, branch):
        resp = client.post("/api/inventory/items", headers=admin_headers, json={
            "name": "Protein Bar",
            "sku": "BAR-1",
            "price": 2.5,
            "cost": 1.2,
            "quantity": 12,
            "category": "Snacks",
        })

        assert resp.status_code == 201
        body = resp.json
        assert body["quantity"] == 12
        assert body["price"] == 2.5
        assert body["branchId"] == str(branch.id)

        history = client.get(f"/api/inventory/items/{body['id']}/transactions", headers=admin_headers)
        assert history.status_code == 200
        (entry,) = history.json["transactions"]
        assert entry["type"] == "beginning"
        assert entry["quantity"] == 12
        assert entry["price"] == 1.2
        assert entry["totalAmount"] == 14.4

    def test_duplicate_sku_conflicts(self, client, admin_headers, make_item):
        make_item(sku="DUP-1")

        resp = client.post("/api/inventory/items", headers=admin_headers, json={
            "name": "Shaker", "sku": "DUP-1", "price": 8, "cost": 3,
        })

        assert resp.status_code == 409
        assert resp.json["error"] == "Item with this SKU already exists"

    def test_default_sku(self, client, admin_headers):
        resp = client.post("/api/inventory/items", headers=admin_headers, json={
            "name": "Towel", "price": 5, "cost": 2,
        })

        assert resp.status_code == 201
        assert resp.json["sku"].startswith("ITEM-")

    def test_missing_price_is_400(self, client, admin_headers):
        resp = client.post("/api/inventory/items", headers=admin_headers, json={"name": "Towel", "cost": 2})
        assert resp.status_code == 400

    def test_update_never_touches_quantity(self, client, admin_headers, make_item):
        item = make_item(quantity=3)

        resp = client.put(f"/api/inventory/items/{item.id}", headers=admin_headers, json={"quantity": 50})
        assert resp.status_code == 400

        resp = client.put(f"/api/inventory/items/{item.id}", headers=admin_headers, json={"name": "Renamed", "price": "11.99"})
        assert resp.status_code == 200
        assert resp.json["name"] == "Renamed"
        assert resp.json["price"] == 11.99
        assert _quantity(item.id) == 3

    def test_delete_item_removes_ledger(self, client, admin_headers, make_item):
        item = make_item(quantity=3)
        item_id = item.id

        resp = client.delete(f"/api/inventory/items/{item_id}", headers=admin_headers)

        assert resp.status_code == 200
        db.session.expire_all()
        assert db.session.get(InventoryItem, item_id) is None
        assert db.session.query(InventoryTransaction).filter_by(item_id=item_id).count() == 0

    def test_delete_item_with_sales_conflicts(self, client, admin_headers, make_item):
        item = make_item(quantity=3)
        client.post("/api/sales", headers=admin_headers, json={
            "items": [{"id": item.id, "quantity": 1, "price": 10}],
            "payment_method": "cash",
        })

        resp = client.delete(f"/api/inventory/items/{item.id}", headers=admin_headers)

        assert resp.status_code == 409
        assert _quantity(item.id) == 2

    def test_other_branch_item_is_hidden(self, client, admin_headers, make_item, other_branch):
        item = make_item(quantity=3, branch_id=other_branch.id)

        assert client.get(f"/api/inventory/items/{item.id}", headers=admin_headers).status_code == 404
        listed = client.get("/api/inventory/items", headers=admin_headers).json["items"]
        assert str(item.id) not in {row["id"] for row in listed}


class TestTransactionRoutes:

    def test_record_purchase(self, client, admin_headers, make_item):
        item = make_item(quantity=2)

        resp = client.post("/api/inventory/transactions", headers=admin_headers, json={
            "itemId": str(item.id),
            "type": "purchase",
            "quantity": 8,
            "price": 3,
            "customerSupplier": "Acme Supplements",
            "paymentStatus": "paid",
        })

        assert resp.status_code == 201
        assert resp.json["itemId"] == str(item.id)
        assert resp.json["totalAmount"] == 24.0
        assert resp.json["customerSupplier"] == "Acme Supplements"
        assert resp.json["createdByName"] == "Admin"
        assert _quantity(item.id) == 10

    def test_insufficient_stock(self, client, admin_headers, make_item):
        item = make_item(quantity=2)

        resp = client.post("/api/inventory/transactions", headers=admin_headers, json={
            "itemId": item.id, "type": "adjustment_out", "quantity": 3,
        })

        assert resp.status_code == 400
        assert resp.json["requested"] == 3
        assert resp.json["available"] == 2
        assert _quantity(item.id) == 2

    def test_unknown_item(self, client, admin_headers):
        resp = client.post("/api/inventory/transactions", headers=admin_headers, json={
            "itemId": 98765, "type": "purchase", "quantity": 1,
        })
        assert resp.status_code == 404

    def test_invalid_payload(self, client, admin_headers, make_item):
        item = make_item()

        for payload in (
            {"type": "purchase", "quantity": 1},
            {"itemId": item.id, "quantity": 1},
            {"itemId": item.id, "type": "purchase", "quantity": 0},
            {"itemId": item.id, "type": "teleport", "quantity": 1},
        ):
            resp = client.post("/api/inventory/transactions", headers=admin_headers, json=payload)
            assert resp.status_code == 400, payload

    def test_bulk_transactions(self, client, admin_headers, make_item):
        a = make_item(quantity=5)
        b = make_item(quantity=5)

        resp = client.post("/api/inventory/bulk-transactions", headers=admin_headers, json={
            "type": "sale",
            "items": [{"itemId": a.id, "quantity": 2}, {"itemId": b.id, "quantity": 6}],
        })
        assert resp.status_code == 400
        assert _quantity(a.id) == 5

        resp = client.post("/api/inventory/bulk-transactions", headers=admin_headers, json={
            "type": "sale",
            "items": [{"itemId": a.id, "quantity": 2}, {"itemId": b.id, "quantity": 5}],
        })
        assert resp.status_code == 201
        assert resp.json["success"] is True
        assert len(resp.json["transactions"]) == 2
        assert _quantity(b.id) == 0

    def test_bulk_rejects_adjustments(self, client, admin_headers, make_item):
        a = make_item(quantity=5)

        resp = client.post("/api/inventory/bulk-transactions", headers=admin_headers, json={
            "type": "adjustment_in", "items": [{"itemId": a.id, "quantity": 1}],
        })
        assert resp.status_code == 400

    def test_list_transactions_newest_first(self, client, admin_headers, make_item):
        item = make_item(quantity=1)
        client.post("/api/inventory/transactions", headers=admin_headers, json={
            "itemId": item.id, "type": "purchase", "quantity": 2,
        })

        resp = client.get("/api/inventory/transactions", headers=admin_headers)

        assert resp.status_code == 200
        assert [row["type"] for row in resp.json["transactions"]] == ["purchase", "beginning"]

    def test_reconcile(self, client, admin_headers, make_item):
        item = make_item(quantity=4)

        resp = client.get(f"/api/inventory/items/{item.id}/reconcile", headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json == {"itemId": str(item.id), "quantity": 4, "ledgerQuantity": 4, "inSync": True}
        assert client.get("/api/inventory/items/999/reconcile", headers=admin_headers).status_code == 404


class TestInventoryPermissions:

    def test_staff_can_view_but_not_adjust(self, client, staff_headers, make_item):
        item = make_item(quantity=4)

        assert client.get("/api/inventory/items", headers=staff_headers).status_code == 200
        resp = client.post("/api/inventory/transactions", headers=staff_headers, json={
            "itemId": item.id, "type": "adjustment_in", "quantity": 1,
        })
        assert resp.status_code == 403
        assert _quantity(item.id) == 4

    def test_requires_auth(self, client, db_session):
        assert client.get("/api/inventory/items").status_code == 401
        assert client.post("/api/inventory/transactions", json={}).status_code == 401
