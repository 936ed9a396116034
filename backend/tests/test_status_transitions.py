"""
Status changes for trade-ins, repairs, IMEIs and warranties.

Verifies:
- values outside each status set are rejected (400) without writes
- trade-in acceptance marks the linked IMEI TRADED_IN in the same unit of work
- REJECTED / RESOLD never touch the IMEI
- completing a repair stamps completed_at
- missing ids are 404
"""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from phoneshop.models import AuditLog, IMEI, Notification, TradeIn
from phoneshop.services import imei_service, repair_service, tradein_service, warranty_service
from phoneshop.time_utils import utcnow
from phoneshop.validation import NotFoundError, ValidationError


@pytest.fixture
def phone_imei(make_product, make_imei):
    return make_imei(make_product())


def _trade_in(**fields) -> TradeIn:
    payload = {"device_name": "Redmi Note 11", "condition": "Good", "offered_price": "150000"}
    payload.update(fields)
    return tradein_service.create_trade_in(payload)


# =============================================================================
# TRADE-INS
# =============================================================================


class TestTradeInStatus:

    def test_created_pending(self, db_session):
        trade_in = _trade_in()
        assert trade_in.status == "PENDING"

    def test_accept_marks_imei_traded_in(self, db_session, phone_imei):
        trade_in = _trade_in(imei_id=phone_imei.id)

        tradein_service.update_status(trade_in.id, "ACCEPTED")

        assert db_session.get(TradeIn, trade_in.id).status == "ACCEPTED"
        assert db_session.get(IMEI, phone_imei.id).status == "TRADED_IN"

    def test_accept_without_imei_only_updates_trade_in(self, db_session):
        trade_in = _trade_in()
        tradein_service.update_status(trade_in.id, "ACCEPTED")
        assert db_session.get(TradeIn, trade_in.id).status == "ACCEPTED"

    @pytest.mark.parametrize("status", ["REJECTED", "RESOLD"])
    def test_other_statuses_leave_imei_alone(self, db_session, phone_imei, status):
        trade_in = _trade_in(imei_id=phone_imei.id)

        tradein_service.update_status(trade_in.id, status)

        assert db_session.get(TradeIn, trade_in.id).status == status
        assert db_session.get(IMEI, phone_imei.id).status == "IN_STOCK"

    def test_invalid_status_rejected_without_writes(self, db_session, phone_imei):
        trade_in = _trade_in(imei_id=phone_imei.id)

        with pytest.raises(ValidationError):
            tradein_service.update_status(trade_in.id, "APPROVED")

        assert db_session.get(TradeIn, trade_in.id).status == "PENDING"
        assert db_session.get(IMEI, phone_imei.id).status == "IN_STOCK"

    def test_missing_trade_in_not_found(self, db_session, phone_imei):
        with pytest.raises(NotFoundError):
            tradein_service.update_status(999, "ACCEPTED")
        assert db_session.get(IMEI, phone_imei.id).status == "IN_STOCK"

    def test_failed_commit_keeps_trade_in_and_imei(self, db_session, phone_imei):
        trade_in = _trade_in(imei_id=phone_imei.id)

        with patch.object(db_session, "commit", side_effect=OperationalError("COMMIT", {}, Exception("disk I/O error"))):
            with pytest.raises(OperationalError):
                tradein_service.update_status(trade_in.id, "ACCEPTED")

        assert db_session.get(TradeIn, trade_in.id).status == "PENDING"
        assert db_session.get(IMEI, phone_imei.id).status == "IN_STOCK"
        assert db_session.query(AuditLog).filter_by(action="STATUS_CHANGE").count() == 0

    def test_status_change_is_audited(self, db_session):
        trade_in = _trade_in()
        tradein_service.update_status(trade_in.id, "REJECTED")

        entry = (
            db_session.query(AuditLog)
            .filter_by(entity="TradeIn", action="STATUS_CHANGE", entity_id=trade_in.id)
            .one()
        )
        assert entry.old_data == {"status": "PENDING"}
        assert entry.new_data == {"status": "REJECTED"}


# =============================================================================
# REPAIRS
# =============================================================================


class TestRepairStatus:

    @pytest.fixture
    def order(self, make_customer):
        customer = make_customer()
        return repair_service.create_repair_order({
            "customer_id": customer.id,
            "device_info": "iPhone 12",
            "issue": "Cracked screen",
        })

    def test_created_received_with_ticket(self, order):
        assert order.status == "RECEIVED"
        assert order.ticket_no.startswith("RPR-")
        assert order.completed_at is None

    def test_intermediate_status_does_not_stamp_completion(self, order):
        updated = repair_service.update_status(order.id, "REPAIRING")
        assert updated.status == "REPAIRING"
        assert updated.completed_at is None

    def test_completed_stamps_completed_at(self, order, db_session):
        before = utcnow().replace(microsecond=0)
        updated = repair_service.update_repair_order(order.id, {
            "status": "COMPLETED",
            "diagnosis": "Replaced display",
            "repair_cost": "85000",
        })

        assert updated.status == "COMPLETED"
        assert updated.completed_at is not None
        assert updated.completed_at >= before
        assert updated.diagnosis == "Replaced display"
        assert float(updated.repair_cost) == 85000.0

    def test_first_completion_notifies_admins(self, order, admin_user, db_session):
        repair_service.update_status(order.id, "COMPLETED")
        repair_service.update_status(order.id, "COMPLETED")

        notes = db_session.query(Notification).filter_by(user_id=admin_user.id, title="Repair completed").all()
        assert len(notes) == 1

    def test_invalid_status_rejected(self, order, db_session):
        with pytest.raises(ValidationError):
            repair_service.update_status(order.id, "FIXED")
        assert repair_service.get_repair_order(order.id).status == "RECEIVED"

    def test_missing_order_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            repair_service.update_status(4242, "DIAGNOSING")


# =============================================================================
# IMEIS & WARRANTIES (no transition table)
# =============================================================================


class TestDirectStatusSets:

    def test_imei_any_status_may_be_set(self, phone_imei):
        assert imei_service.update_status(phone_imei.id, "DEFECTIVE").status == "DEFECTIVE"
        assert imei_service.update_status(phone_imei.id, "IN_STOCK").status == "IN_STOCK"

    def test_imei_status_change_is_audited(self, db_session, phone_imei):
        imei_service.update_status(phone_imei.id, "DEFECTIVE")

        entry = (
            db_session.query(AuditLog)
            .filter_by(entity="IMEI", action="STATUS_CHANGE", entity_id=phone_imei.id)
            .one()
        )
        assert entry.old_data == {"status": "IN_STOCK"}
        assert entry.new_data == {"status": "DEFECTIVE"}

    def test_imei_invalid_status(self, phone_imei):
        with pytest.raises(ValidationError):
            imei_service.update_status(phone_imei.id, "LOST")

    def test_warranty_status(self, make_product):
        product = make_product()
        warranty = warranty_service.create_warranty({
            "product_id": product.id,
            "type": "SHOP",
            "start_date": "2026-01-01",
            "end_date": "2027-01-01",
        })
        assert warranty.status == "ACTIVE"

        assert warranty_service.update_status(warranty.id, "CLAIMED").status == "CLAIMED"
        with pytest.raises(ValidationError):
            warranty_service.update_status(warranty.id, "BROKEN")
        with pytest.raises(NotFoundError):
            warranty_service.update_status(999, "VOIDED")

    def test_warranty_end_before_start_rejected(self, make_product):
        product = make_product()
        with pytest.raises(ValidationError):
            warranty_service.create_warranty({
                "product_id": product.id,
                "type": "MANUFACTURER",
                "start_date": "2026-06-01",
                "end_date": "2026-01-01",
            })


# =============================================================================
# API
# =============================================================================


class TestStatusApi:

    def test_trade_in_accept_over_http(self, client, seller_headers, phone_imei):
        resp = client.post("/trade-ins", json={
            "device_name": "Galaxy S10",
            "condition": "Fair",
            "offered_price": 120000,
            "imei_id": phone_imei.id,
        }, headers=seller_headers)
        assert resp.status_code == 201
        trade_in_id = resp.json["id"]

        resp = client.patch(f"/trade-ins/{trade_in_id}/status", json={"status": "ACCEPTED"}, headers=seller_headers)
        assert resp.status_code == 200
        assert resp.json["status"] == "ACCEPTED"

        resp = client.get(f"/imeis/{phone_imei.id}", headers=seller_headers)
        assert resp.json["status"] == "TRADED_IN"

    def test_trade_in_put_updates_status(self, client, seller_headers, db_session, phone_imei):
        trade_in = _trade_in(imei_id=phone_imei.id)

        resp = client.put(f"/trade-ins/{trade_in.id}", json={"status": "ACCEPTED"}, headers=seller_headers)

        assert resp.status_code == 200
        assert resp.json["status"] == "ACCEPTED"
        assert db_session.get(TradeIn, trade_in.id).status == "ACCEPTED"
        assert db_session.get(IMEI, phone_imei.id).status == "TRADED_IN"

    def test_bad_status_is_400_and_missing_is_404(self, client, seller_headers):
        resp = client.patch("/trade-ins/1/status", json={"status": "NOPE"}, headers=seller_headers)
        assert resp.status_code == 400

        resp = client.patch("/trade-ins/999/status", json={"status": "ACCEPTED"}, headers=seller_headers)
        assert resp.status_code == 404

        resp = client.patch("/repairs/999/status", json={"status": "COMPLETED"}, headers=seller_headers)
        assert resp.status_code == 404
