"""
Notification inbox and audit log tests.

Verifies:
- notifications are scoped to their owner (others' rows are 404)
- read / read-all / delete and the unread counter
- audit entries carry the acting user and are filterable by admins only
- side-channel failures never undo the committed operation
"""

from unittest.mock import patch

from phoneshop.extensions import db
from phoneshop.models import AuditLog, Customer, Notification
from phoneshop.services import events, partner_service


def _notify(user, title="Hello", **fields):
    events.notify(user_id=user.id, title=title, message=f"{title} message", **fields)
    return db.session.query(Notification).filter_by(user_id=user.id, title=title).one()


class TestNotifications:

    def test_list_is_scoped_to_current_user(self, client, seller_headers, seller_user, admin_user):
        _notify(seller_user, "Mine")
        _notify(admin_user, "Theirs")

        resp = client.get("/notifications", headers=seller_headers)

        assert resp.status_code == 200
        assert [n["title"] for n in resp.json["data"]] == ["Mine"]
        assert resp.json["unreadCount"] == 1
        assert resp.json["limit"] == 20

    def test_mark_read_and_unread_count(self, client, seller_headers, seller_user):
        first = _notify(seller_user, "First")
        _notify(seller_user, "Second")

        resp = client.patch(f"/notifications/{first.id}/read", headers=seller_headers)
        assert resp.status_code == 200
        assert resp.json["is_read"] is True

        assert client.get("/notifications/unread-count", headers=seller_headers).json == {"count": 1}

        resp = client.get("/notifications?unread_only=true", headers=seller_headers)
        assert [n["title"] for n in resp.json["data"]] == ["Second"]

    def test_read_all(self, client, seller_headers, seller_user, admin_user):
        _notify(seller_user, "One")
        _notify(seller_user, "Two")
        _notify(admin_user, "Admin's")

        resp = client.put("/notifications/read-all", headers=seller_headers)

        assert resp.json["count"] == 2
        assert client.get("/notifications/unread-count", headers=seller_headers).json["count"] == 0
        assert db.session.query(Notification).filter_by(user_id=admin_user.id, is_read=False).count() == 1

    def test_cannot_touch_other_users_notification(self, client, seller_headers, admin_user):
        theirs = _notify(admin_user, "Private")

        assert client.patch(f"/notifications/{theirs.id}/read", headers=seller_headers).status_code == 404
        assert client.delete(f"/notifications/{theirs.id}", headers=seller_headers).status_code == 404
        assert db.session.get(Notification, theirs.id).is_read is False

    def test_delete_own(self, client, seller_headers, seller_user):
        mine = _notify(seller_user, "Bye")
        assert client.delete(f"/notifications/{mine.id}", headers=seller_headers).status_code == 200
        assert db.session.get(Notification, mine.id) is None

    def test_notify_admins_skips_inactive(self, admin_user, seller_user, db_session):
        admin_user.status = "INACTIVE"
        db_session.commit()

        assert events.notify_admins(title="Ping", message="ping") == 0


class TestAuditLog:

    def test_request_actor_is_recorded(self, client, seller_headers, seller_user, db_session):
        client.post("/customers", json={"name": "Ma Su", "phone": "0945777888"}, headers=seller_headers)

        entry = db_session.query(AuditLog).filter_by(entity="Customer", action="CREATE").one()
        assert entry.user_id == seller_user.id
        assert entry.new_data["name"] == "Ma Su"

    def test_list_filters(self, client, admin_headers, make_customer):
        customer = make_customer()
        client.put(f"/customers/{customer.id}", json={"address": "Mandalay"}, headers=admin_headers)
        client.post("/categories", json={"name": "Audio"}, headers=admin_headers)

        resp = client.get("/audit-logs?entity=Customer", headers=admin_headers)
        assert resp.status_code == 200
        assert [row["action"] for row in resp.json["data"]] == ["UPDATE"]
        assert resp.json["data"][0]["user"]["name"] == "Admin"

        resp = client.get("/audit-logs/filters", headers=admin_headers)
        assert resp.json["entities"] == ["Category", "Customer"]
        assert resp.json["actions"] == ["CREATE", "UPDATE"]

    def test_audit_failure_does_not_undo_operation(self, app, db_session):
        with patch.object(events, "AuditLog", side_effect=RuntimeError("audit store down")):
            customer = partner_service.create_customer({"name": "Ko Zaw", "phone": "0945666777"})

        assert db_session.get(Customer, customer.id) is not None
        assert db_session.query(AuditLog).count() == 0
