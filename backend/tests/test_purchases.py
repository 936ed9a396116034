"""
Supplier purchase tests.

Verifies:
- stored total is net of reduce_amount plus additional expenses
- receiving adds stock once and notifies admins
- cancelling a received purchase takes the stock back out
- items are frozen and delete is blocked once received
"""

import pytest

from phoneshop.models import Notification, Product, Purchase


@pytest.fixture
def purchase_body(make_supplier, make_product):
    supplier = make_supplier()
    product = make_product(stock=2)

    def _body(**overrides) -> dict:
        body = {
            "supplier_id": supplier.id,
            "total_amount": 1000,
            "reduce_amount": 100,
            "payment_method": "BANK_TRANSFER",
            "additional_expenses": [{"label": "Delivery", "amount": 50}],
            "items": [{"product_id": product.id, "quantity": 5, "unit_cost": 200}],
        }
        body.update(overrides)
        return body

    _body.product = product
    return _body


class TestCreatePurchase:

    def test_net_total(self, client, admin_headers, purchase_body):
        resp = client.post("/purchases", json=purchase_body(), headers=admin_headers)

        assert resp.status_code == 201
        assert resp.json["status"] == "PENDING"
        assert resp.json["total_amount"] == 950
        assert resp.json["additional_expenses"] == [{"label": "Delivery", "amount": 50.0}]

    def test_pending_purchase_does_not_touch_stock(self, client, admin_headers, purchase_body, db_session):
        client.post("/purchases", json=purchase_body(), headers=admin_headers)
        assert db_session.get(Product, purchase_body.product.id).stock == 2

    def test_items_required(self, client, admin_headers, purchase_body):
        resp = client.post("/purchases", json=purchase_body(items=[]), headers=admin_headers)
        assert resp.status_code == 400

    def test_bad_extra_expense(self, client, admin_headers, purchase_body):
        resp = client.post(
            "/purchases",
            json=purchase_body(additional_expenses=[{"label": "Tax", "amount": -1}]),
            headers=admin_headers,
        )
        assert resp.status_code == 400

    def test_unknown_supplier_is_404(self, client, admin_headers, purchase_body):
        resp = client.post("/purchases", json=purchase_body(supplier_id=999), headers=admin_headers)
        assert resp.status_code == 404

    def test_seller_cannot_create(self, client, seller_headers, purchase_body):
        assert client.post("/purchases", json=purchase_body(), headers=seller_headers).status_code == 403


class TestReceiving:

    @pytest.fixture
    def purchase_id(self, client, admin_headers, purchase_body):
        return client.post("/purchases", json=purchase_body(), headers=admin_headers).json["id"]

    def test_receive_adds_stock_once(self, client, admin_headers, admin_user, purchase_body, purchase_id, db_session):
        resp = client.patch(f"/purchases/{purchase_id}", json={"status": "RECEIVED"}, headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["received_at"] is not None
        assert db_session.get(Product, purchase_body.product.id).stock == 7

        # Re-sending the same status is a no-op
        client.patch(f"/purchases/{purchase_id}", json={"status": "RECEIVED", "note": "checked"}, headers=admin_headers)
        assert db_session.get(Product, purchase_body.product.id).stock == 7

        notes = db_session.query(Notification).filter_by(user_id=admin_user.id, title="Purchase received").all()
        assert len(notes) == 1

    def test_cancel_received_removes_stock(self, client, admin_headers, purchase_body, purchase_id, db_session):
        client.patch(f"/purchases/{purchase_id}", json={"status": "RECEIVED"}, headers=admin_headers)
        resp = client.patch(f"/purchases/{purchase_id}", json={"status": "CANCELLED"}, headers=admin_headers)

        assert resp.status_code == 200
        assert db_session.get(Product, purchase_body.product.id).stock == 2

    def test_cancelled_is_final(self, client, admin_headers, purchase_id):
        client.patch(f"/purchases/{purchase_id}", json={"status": "CANCELLED"}, headers=admin_headers)
        resp = client.patch(f"/purchases/{purchase_id}", json={"status": "RECEIVED"}, headers=admin_headers)

        assert resp.status_code == 400
        assert resp.json["error"] == "Cannot change purchase from CANCELLED to RECEIVED"

    def test_items_frozen_after_receipt(self, client, admin_headers, purchase_body, purchase_id):
        client.patch(f"/purchases/{purchase_id}", json={"status": "RECEIVED"}, headers=admin_headers)
        resp = client.patch(
            f"/purchases/{purchase_id}",
            json={"items": [{"product_id": purchase_body.product.id, "quantity": 1, "unit_cost": 10}]},
            headers=admin_headers,
        )
        assert resp.status_code == 400

    def test_replacing_items_recomputes_total(self, client, admin_headers, purchase_body, purchase_id):
        resp = client.patch(
            f"/purchases/{purchase_id}",
            json={"items": [{"product_id": purchase_body.product.id, "quantity": 3, "unit_cost": 100}]},
            headers=admin_headers,
        )
        # 300 - 100 reduce + 50 delivery
        assert resp.json["total_amount"] == 250
        assert len(resp.json["items"]) == 1

    def test_delete_received_blocked(self, client, admin_headers, purchase_id, db_session):
        client.patch(f"/purchases/{purchase_id}", json={"status": "RECEIVED"}, headers=admin_headers)
        resp = client.delete(f"/purchases/{purchase_id}", headers=admin_headers)

        assert resp.status_code == 400
        assert db_session.get(Purchase, purchase_id) is not None

    def test_delete_pending(self, client, admin_headers, purchase_id, db_session):
        assert client.delete(f"/purchases/{purchase_id}", headers=admin_headers).status_code == 200
        assert db_session.get(Purchase, purchase_id) is None
