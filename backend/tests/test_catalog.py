"""
Category and product tests.

Verifies:
- category names and product barcodes are unique (409)
- categories with products cannot be deleted (409)
- product deletes are soft once the product has history, hard otherwise
- list envelope, search, filters and paging
"""

from phoneshop.models import Product


# =============================================================================
# CATEGORIES
# =============================================================================


class TestCategories:

    def test_create_and_duplicate(self, client, admin_headers):
        resp = client.post("/categories", json={"name": "Smartphones"}, headers=admin_headers)
        assert resp.status_code == 201

        resp = client.post("/categories", json={"name": "Smartphones"}, headers=admin_headers)
        assert resp.status_code == 409
        assert resp.json["error"] == "Category with this name already exists"

    def test_name_required(self, client, admin_headers):
        resp = client.post("/categories", json={"description": "no name"}, headers=admin_headers)
        assert resp.status_code == 400
        assert {"field": "name", "message": "name is required"} in resp.json["errors"]

    def test_delete_blocked_while_products_exist(self, client, admin_headers, make_product):
        product = make_product()
        resp = client.delete(f"/categories/{product.category_id}", headers=admin_headers)

        assert resp.status_code == 409
        assert resp.json["error"] == "Cannot delete category with existing products"

    def test_delete_empty_category(self, client, admin_headers, make_category):
        category = make_category()
        assert client.delete(f"/categories/{category.id}", headers=admin_headers).status_code == 200
        assert client.get(f"/categories/{category.id}", headers=admin_headers).status_code == 404

    def test_list_is_paginated_by_name(self, client, seller_headers, make_category):
        for name in ("Cases", "Accessories", "Chargers"):
            make_category(name)

        resp = client.get("/categories?limit=2", headers=seller_headers)

        assert resp.status_code == 200
        assert resp.json["total"] == 3
        assert resp.json["totalPages"] == 2
        assert [c["name"] for c in resp.json["data"]] == ["Accessories", "Cases"]


# =============================================================================
# PRODUCTS
# =============================================================================


def _product_body(category_id: int, **overrides) -> dict:
    body = {
        "name": "Galaxy A15",
        "brand": "Samsung",
        "model": "SM-A155",
        "barcode": "8806095000001",
        "category_id": category_id,
        "price": 450000,
        "cost_price": 400000,
        "stock": 3,
    }
    body.update(overrides)
    return body


class TestProducts:

    def test_create_product(self, client, admin_headers, make_category):
        category = make_category()
        resp = client.post("/products", json=_product_body(category.id), headers=admin_headers)

        assert resp.status_code == 201
        assert resp.json["price"] == 450000
        assert resp.json["category"]["id"] == category.id

    def test_duplicate_barcode_conflicts(self, client, admin_headers, make_category):
        category = make_category()
        client.post("/products", json=_product_body(category.id), headers=admin_headers)

        resp = client.post("/products", json=_product_body(category.id, name="Other"), headers=admin_headers)
        assert resp.status_code == 409

    def test_missing_fields_reported_together(self, client, admin_headers):
        resp = client.post("/products", json={"name": "X"}, headers=admin_headers)

        assert resp.status_code == 400
        fields = {err["field"] for err in resp.json["errors"]}
        assert {"brand", "model", "barcode", "category_id", "price"} <= fields

    def test_price_must_be_positive_and_stock_bounded(self, client, admin_headers, make_category):
        category = make_category()
        resp = client.post("/products", json=_product_body(category.id, price=0), headers=admin_headers)
        assert resp.status_code == 400

        resp = client.post("/products", json=_product_body(category.id, stock=10001), headers=admin_headers)
        assert resp.status_code == 400

    def test_unknown_category_is_404(self, client, admin_headers, db_session):
        resp = client.post("/products", json=_product_body(999), headers=admin_headers)
        assert resp.status_code == 404

    def test_partial_update(self, client, admin_headers, make_product):
        product = make_product()
        resp = client.put(f"/products/{product.id}", json={"price": 120}, headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["price"] == 120
        assert resp.json["name"] == product.name

    def test_delete_without_history_is_hard(self, client, admin_headers, make_product, db_session):
        product = make_product()
        resp = client.delete(f"/products/{product.id}", headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["soft_deleted"] is False
        assert db_session.get(Product, product.id) is None

    def test_delete_with_history_is_soft(self, client, admin_headers, make_product, make_imei, db_session):
        product = make_product()
        make_imei(product)

        resp = client.delete(f"/products/{product.id}", headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["soft_deleted"] is True
        assert db_session.get(Product, product.id).is_deleted is True
        assert client.get(f"/products/{product.id}", headers=admin_headers).status_code == 404

    def test_list_search_sort_and_filter(self, client, seller_headers, make_product, make_category):
        phones = make_category("Phones")
        make_product(name="Zeta", price="300.00", category=phones)
        make_product(name="Alpha", price="500.00", category=phones)
        make_product(name="Cable", price="5.00")

        resp = client.get(f"/products?category_id={phones.id}&sortBy=price&sortOrder=desc", headers=seller_headers)
        assert [p["name"] for p in resp.json["data"]] == ["Alpha", "Zeta"]

        resp = client.get("/products?q=cab", headers=seller_headers)
        assert [p["name"] for p in resp.json["data"]] == ["Cable"]

    def test_limit_is_clamped(self, client, seller_headers, make_product):
        make_product()
        resp = client.get("/products?limit=1000&page=0", headers=seller_headers)

        assert resp.json["limit"] == 100
        assert resp.json["page"] == 1
