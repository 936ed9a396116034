"""
Daily document number tests (repair tickets and sale invoices).

Verifies:
- format RPR-YYYYMMDD-NNNN / INV-YYYYMMDD-NNNN
- numbering restarts at 0001 every UTC day
- strictly increasing within a day
- a day's counter is seeded from the highest ticket already issued
"""

from datetime import datetime

from phoneshop.models import RepairOrder
from phoneshop.services.document_service import generate_invoice_no, generate_ticket_no


DAY_ONE = datetime(2024, 5, 1, 9, 30)
DAY_TWO = datetime(2024, 5, 2, 0, 5)


class TestTicketNumbers:

    def test_first_ticket_of_day(self, db_session):
        assert generate_ticket_no(now=DAY_ONE) == "RPR-20240501-0001"

    def test_strictly_increasing_within_day(self, db_session):
        numbers = [generate_ticket_no(now=DAY_ONE) for _ in range(3)]
        db_session.commit()

        assert numbers == ["RPR-20240501-0001", "RPR-20240501-0002", "RPR-20240501-0003"]

    def test_restarts_on_new_day(self, db_session):
        generate_ticket_no(now=DAY_ONE)
        generate_ticket_no(now=DAY_ONE)
        db_session.commit()

        assert generate_ticket_no(now=DAY_TWO) == "RPR-20240502-0001"
        assert generate_ticket_no(now=DAY_ONE) == "RPR-20240501-0003"

    def test_seeds_from_last_issued_ticket(self, db_session, make_customer):
        customer = make_customer()
        db_session.add(RepairOrder(
            ticket_no="RPR-20240501-0007",
            customer_id=customer.id,
            device_info="Pixel 6",
            issue="Battery",
            status="RECEIVED",
        ))
        db_session.commit()

        assert generate_ticket_no(now=DAY_ONE) == "RPR-20240501-0008"

    def test_other_days_do_not_affect_seed(self, db_session, make_customer):
        customer = make_customer()
        db_session.add(RepairOrder(
            ticket_no="RPR-20240430-0042",
            customer_id=customer.id,
            device_info="Pixel 6",
            issue="Battery",
            status="RECEIVED",
        ))
        db_session.commit()

        assert generate_ticket_no(now=DAY_ONE) == "RPR-20240501-0001"

    def test_tickets_and_invoices_count_separately(self, db_session):
        assert generate_ticket_no(now=DAY_ONE) == "RPR-20240501-0001"
        assert generate_invoice_no(now=DAY_ONE) == "INV-20240501-0001"
        assert generate_ticket_no(now=DAY_ONE) == "RPR-20240501-0002"


class TestRepairTickets:

    def test_created_repairs_get_unique_sequential_tickets(self, client, seller_headers, make_customer):
        customer = make_customer()
        tickets = []
        for _ in range(3):
            resp = client.post("/repairs", json={
                "customer_id": customer.id,
                "device_info": "iPhone 11",
                "issue": "No power",
            }, headers=seller_headers)
            assert resp.status_code == 201
            tickets.append(resp.json["ticket_no"])

        assert len(set(tickets)) == 3
        assert tickets == sorted(tickets)
        assert all(t.startswith("RPR-") and t.endswith(f"-000{i + 1}") for i, t in enumerate(tickets))

    def test_repair_for_unknown_customer_is_404(self, client, seller_headers):
        resp = client.post("/repairs", json={
            "customer_id": 999,
            "device_info": "iPhone 11",
            "issue": "No power",
        }, headers=seller_headers)
        assert resp.status_code == 404
