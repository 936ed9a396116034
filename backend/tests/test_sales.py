"""
Checkout, void and refund tests.

Verifies:
- checkout decrements stock, marks IMEIs SOLD and issues an invoice number
- insufficient stock / unavailable IMEIs reject the whole sale
- void and refund restore stock and IMEIs exactly once
- low stock raises an admin notification
"""

import pytest

from phoneshop.models import IMEI, Notification, Product, Sale
from phoneshop.services import sale_service
from phoneshop.validation import InvalidStateError, ValidationError


def _body(*items, **totals) -> dict:
    body = {
        "subtotal": 100,
        "total_amount": 100,
        "paid_amount": 100,
        "payment_method": "CASH",
        "items": list(items),
    }
    body.update(totals)
    return body


class TestCheckout:

    def test_checkout_updates_stock_and_imei(self, client, seller_headers, make_product, make_imei, db_session):
        product = make_product(stock=10)
        imei = make_imei(product)

        resp = client.post("/sales", json=_body(
            {"product_id": product.id, "imei_id": imei.id, "quantity": 1, "unit_price": 100},
        ), headers=seller_headers)

        assert resp.status_code == 201
        assert resp.json["status"] == "COMPLETED"
        assert resp.json["invoice_no"].startswith("INV-")
        assert len(resp.json["items"]) == 1
        assert db_session.get(Product, product.id).stock == 9
        assert db_session.get(IMEI, imei.id).status == "SOLD"

    def test_insufficient_stock_rejects_everything(self, client, seller_headers, make_product, db_session):
        product = make_product(stock=1)

        resp = client.post("/sales", json=_body(
            {"product_id": product.id, "quantity": 1, "unit_price": 50},
            {"product_id": product.id, "quantity": 1, "unit_price": 50},
        ), headers=seller_headers)

        assert resp.status_code == 400
        assert "Insufficient stock" in resp.json["error"]
        assert db_session.query(Sale).count() == 0
        assert db_session.get(Product, product.id).stock == 1

    def test_sold_imei_cannot_be_sold_again(self, make_product, make_imei, db_session):
        product = make_product(stock=5)
        imei = make_imei(product, status="SOLD")

        with pytest.raises(InvalidStateError):
            sale_service.create_sale(_body({"product_id": product.id, "imei_id": imei.id, "quantity": 1, "unit_price": 100}))
        assert db_session.get(Product, product.id).stock == 5

    def test_imei_must_belong_to_item_product(self, make_product, make_imei):
        product = make_product()
        other = make_imei(make_product())

        with pytest.raises(ValidationError):
            sale_service.create_sale(_body({"product_id": product.id, "imei_id": other.id, "quantity": 1, "unit_price": 100}))

    def test_same_imei_twice_rejected(self, make_product, make_imei):
        product = make_product()
        imei = make_imei(product)
        line = {"product_id": product.id, "imei_id": imei.id, "quantity": 1, "unit_price": 100}

        with pytest.raises(ValidationError):
            sale_service.create_sale(_body(line, dict(line)))

    def test_item_errors_are_indexed(self, client, seller_headers, make_product):
        product = make_product()
        resp = client.post("/sales", json=_body(
            {"product_id": product.id, "quantity": 1, "unit_price": 100},
            {"product_id": product.id, "quantity": 0},
        ), headers=seller_headers)

        assert resp.status_code == 400
        fields = {err["field"] for err in resp.json["errors"]}
        assert {"items[1].quantity", "items[1].unit_price"} <= fields

    def test_invoice_numbers_increase(self, make_product, make_sale):
        product = make_product(stock=10)
        first = make_sale(product)
        second = make_sale(product)

        assert first.invoice_no < second.invoice_no
        assert first.invoice_no.endswith("-0001")
        assert second.invoice_no.endswith("-0002")

    def test_rejected_checkout_does_not_use_an_invoice_number(self, make_product, make_sale):
        product = make_product(stock=1)

        with pytest.raises(InvalidStateError):
            sale_service.create_sale(_body({"product_id": product.id, "quantity": 2, "unit_price": 100}))

        assert make_sale(product).invoice_no.endswith("-0001")

    def test_low_stock_notifies_admins(self, admin_user, make_product, make_sale, db_session):
        product = make_product(stock=6)
        make_sale(product, quantity=2)

        note = db_session.query(Notification).filter_by(user_id=admin_user.id, title="Low stock").one()
        assert product.name in note.message
        assert note.type == "WARNING"


class TestReversals:

    @pytest.mark.parametrize("action,status", [("void", "VOIDED"), ("refund", "REFUNDED")])
    def test_reversal_restores_stock_and_imei(self, client, admin_headers, make_product, make_imei, make_sale, db_session, action, status):
        product = make_product(stock=3)
        imei = make_imei(product)
        sale = make_sale(product, imei=imei)
        assert db_session.get(Product, product.id).stock == 2

        resp = client.post(f"/sales/{sale.id}/{action}", headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["status"] == status
        assert db_session.get(Product, product.id).stock == 3
        assert db_session.get(IMEI, imei.id).status == "IN_STOCK"

    def test_cannot_reverse_twice(self, client, admin_headers, make_product, make_sale, db_session):
        product = make_product(stock=3)
        sale = make_sale(product)

        assert client.post(f"/sales/{sale.id}/void", headers=admin_headers).status_code == 200
        resp = client.post(f"/sales/{sale.id}/refund", headers=admin_headers)

        assert resp.status_code == 400
        assert resp.json["error"] == "Cannot refund a voided sale"
        assert db_session.get(Product, product.id).stock == 3

    def test_void_is_admin_only(self, client, seller_headers, make_product, make_sale):
        sale = make_sale(make_product())
        assert client.post(f"/sales/{sale.id}/void", headers=seller_headers).status_code == 403

    def test_missing_sale_is_404(self, client, admin_headers, db_session):
        assert client.post("/sales/999/void", headers=admin_headers).status_code == 404


class TestSaleListing:

    def test_filters_and_search(self, client, seller_headers, make_product, make_customer, make_sale):
        product = make_product(stock=10)
        customer = make_customer(name="Daw Khin")
        make_sale(product, customer=customer)
        make_sale(product)

        resp = client.get("/sales?q=khin", headers=seller_headers)
        assert resp.json["total"] == 1
        assert resp.json["data"][0]["customer"]["name"] == "Daw Khin"

        resp = client.get("/sales?status=COMPLETED&payment_method=CASH", headers=seller_headers)
        assert resp.json["total"] == 2

        resp = client.get("/sales?from=not-a-date", headers=seller_headers)
        assert resp.status_code == 400
