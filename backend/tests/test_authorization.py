"""
Authorization tests for the phone shop API.

Verifies:
- Unauthenticated requests return 401
- Seller role denied admin-only operations (403)
- Admin role can perform privileged operations
- Health check stays public
"""

import pytest


# =============================================================================
# UNAUTHENTICATED ACCESS — 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/auth/me"),
            ("POST", "/auth/logout"),
            ("GET", "/users"),
            ("GET", "/categories"),
            ("GET", "/products"),
            ("POST", "/products"),
            ("GET", "/customers"),
            ("GET", "/suppliers"),
            ("GET", "/imeis"),
            ("POST", "/imeis/bulk"),
            ("GET", "/purchases"),
            ("GET", "/sales"),
            ("POST", "/sales"),
            ("GET", "/expenses"),
            ("GET", "/expenses/categories"),
            ("GET", "/installments"),
            ("POST", "/installments/1/payments"),
            ("GET", "/repairs"),
            ("GET", "/trade-ins"),
            ("GET", "/warranties"),
            ("GET", "/dashboard/stats"),
            ("GET", "/reports/sales"),
            ("GET", "/reports/profit-loss"),
            ("GET", "/notifications"),
            ("GET", "/audit-logs"),
        ],
    )
    def test_requires_auth(self, client, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_health_is_public(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"


# =============================================================================
# SELLER DENIED ADMIN OPERATIONS — 403
# =============================================================================


class TestSellerDeniedAdminOnly:
    """Seller role cannot perform privileged operations."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/users"),
            ("POST", "/users"),
            ("DELETE", "/users/1"),
            ("POST", "/categories"),
            ("DELETE", "/categories/1"),
            ("POST", "/products"),
            ("PUT", "/products/1"),
            ("DELETE", "/products/1"),
            ("DELETE", "/customers/1"),
            ("POST", "/suppliers"),
            ("POST", "/imeis"),
            ("POST", "/imeis/bulk"),
            ("PATCH", "/imeis/1/status"),
            ("POST", "/purchases"),
            ("PATCH", "/purchases/1"),
            ("POST", "/sales/1/void"),
            ("POST", "/sales/1/refund"),
            ("DELETE", "/expenses/1"),
            ("DELETE", "/warranties/1"),
            ("GET", "/reports/profit-loss"),
            ("GET", "/audit-logs"),
            ("GET", "/audit-logs/filters"),
        ],
    )
    def test_admin_only(self, client, seller_headers, method, path):
        resp = getattr(client, method.lower())(path, json={}, headers=seller_headers)
        assert resp.status_code == 403, f"{method} {path} returned {resp.status_code}"
        assert resp.json["error"] == "Forbidden: Insufficient permissions"


# =============================================================================
# SELLER ALLOWED DAY-TO-DAY OPERATIONS
# =============================================================================


class TestSellerAllowed:

    @pytest.mark.parametrize(
        "path",
        ["/products", "/customers", "/imeis", "/sales", "/installments", "/repairs", "/trade-ins", "/notifications"],
    )
    def test_can_read(self, client, seller_headers, path):
        assert client.get(path, headers=seller_headers).status_code == 200

    def test_can_create_customer(self, client, seller_headers):
        resp = client.post("/customers", json={"name": "Ko Aung", "phone": "0945111222"}, headers=seller_headers)
        assert resp.status_code == 201


# =============================================================================
# ADMIN ALLOWED
# =============================================================================


class TestAdminAllowed:

    def test_can_list_users(self, client, admin_headers):
        resp = client.get("/users", headers=admin_headers)
        assert resp.status_code == 200

    def test_can_read_audit_log(self, client, admin_headers):
        resp = client.get("/audit-logs", headers=admin_headers)
        assert resp.status_code == 200

    def test_can_create_category(self, client, admin_headers):
        resp = client.post("/categories", json={"name": "Tablets"}, headers=admin_headers)
        assert resp.status_code == 201
