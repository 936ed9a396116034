"""
Expense and expense category tests.

Verifies:
- category names are unique (409) and in-use categories cannot be deleted
- expense list totals cover every matching row, not just the page
- date range filters are inclusive of the whole `to` day
"""

from phoneshop.models import Expense, ExpenseCategory


class TestExpenseCategories:

    def test_duplicate_name_conflicts(self, client, seller_headers, make_expense_category):
        make_expense_category("Rent")
        resp = client.post("/expenses/categories", json={"name": "Rent"}, headers=seller_headers)

        assert resp.status_code == 409
        assert resp.json["error"] == "Category name already exists"

    def test_list_includes_expense_counts(self, client, seller_headers, make_expense_category):
        rent = make_expense_category("Rent")
        make_expense_category("Salaries")
        client.post("/expenses", json={"title": "October rent", "amount": 500, "category_id": rent.id}, headers=seller_headers)

        resp = client.get("/expenses/categories", headers=seller_headers)

        counts = {row["name"]: row["expense_count"] for row in resp.json["data"]}
        assert counts == {"Rent": 1, "Salaries": 0}

    def test_delete_in_use_category_blocked(self, client, admin_headers, make_expense_category, db_session):
        category = make_expense_category()
        db_session.add(Expense(title="Power", amount=10, category_id=category.id))
        db_session.commit()

        resp = client.delete(f"/expenses/categories/{category.id}", headers=admin_headers)

        assert resp.status_code == 400
        assert resp.json["error"] == "Cannot delete: 1 expense(s) use this category"
        assert db_session.get(ExpenseCategory, category.id) is not None

    def test_delete_unused_category(self, client, admin_headers, seller_headers, make_expense_category, db_session):
        category = make_expense_category()

        assert client.delete(f"/expenses/categories/{category.id}", headers=seller_headers).status_code == 403
        assert client.delete(f"/expenses/categories/{category.id}", headers=admin_headers).status_code == 200
        assert db_session.get(ExpenseCategory, category.id) is None


class TestExpenses:

    def test_create_records_user(self, client, seller_headers, seller_user):
        resp = client.post("/expenses", json={"title": "Tea", "amount": 3500}, headers=seller_headers)

        assert resp.status_code == 201
        assert resp.json["user_id"] == seller_user.id
        assert resp.json["amount"] == 3500
        assert resp.json["date"] is not None

    def test_amount_must_be_positive(self, client, seller_headers):
        resp = client.post("/expenses", json={"title": "Tea", "amount": 0}, headers=seller_headers)
        assert resp.status_code == 400

    def test_unknown_category_is_404(self, client, seller_headers, db_session):
        resp = client.post("/expenses", json={"title": "Tea", "amount": 10, "category_id": 99}, headers=seller_headers)
        assert resp.status_code == 404

    def test_total_amount_spans_all_pages(self, client, seller_headers):
        for amount in (100, 200, 300):
            client.post("/expenses", json={"title": f"Item {amount}", "amount": amount}, headers=seller_headers)

        resp = client.get("/expenses?limit=1", headers=seller_headers)

        assert len(resp.json["data"]) == 1
        assert resp.json["total"] == 3
        assert resp.json["totalAmount"] == 600

    def test_date_range_includes_whole_end_day(self, client, seller_headers):
        client.post("/expenses", json={"title": "Early", "amount": 10, "date": "2026-03-01T08:00:00"}, headers=seller_headers)
        client.post("/expenses", json={"title": "Late", "amount": 20, "date": "2026-03-31T23:30:00"}, headers=seller_headers)
        client.post("/expenses", json={"title": "April", "amount": 40, "date": "2026-04-01T00:30:00"}, headers=seller_headers)

        resp = client.get("/expenses?from=2026-03-01&to=2026-03-31", headers=seller_headers)

        assert sorted(row["title"] for row in resp.json["data"]) == ["Early", "Late"]
        assert resp.json["totalAmount"] == 30

    def test_update_and_delete(self, client, admin_headers, seller_headers, db_session):
        expense_id = client.post("/expenses", json={"title": "Tea", "amount": 10}, headers=seller_headers).json["id"]

        resp = client.patch(f"/expenses/{expense_id}", json={"amount": 15}, headers=seller_headers)
        assert resp.json["amount"] == 15

        assert client.delete(f"/expenses/{expense_id}", headers=seller_headers).status_code == 403
        assert client.delete(f"/expenses/{expense_id}", headers=admin_headers).status_code == 200
        assert db_session.get(Expense, expense_id) is None
