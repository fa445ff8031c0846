"""
Invoice and sales report tests.

Verifies:
- Daily sales reports compute the royalty from the franchise rate
- One sales report per franchise and day
- Monthly royalty invoices sum the period's royalties, once per period
- Invoice numbers continue the historical sequence (FACT-{year}-{seq:06d})
- Manual invoices, payment status updates and PDF download
- Overdue sweep
"""

from datetime import date, datetime, timedelta

import pytest

from drivncook.models import Invoice, Notification, SalesReport
from drivncook.services import invoice_service
from drivncook.time_utils import utcnow

from .conftest import login


YEAR = utcnow().year


def _report(db_session, franchise, day, sales_cents):
    report = SalesReport(
        franchise_id=franchise.id,
        report_date=day,
        daily_sales_cents=sales_cents,
        transaction_count=10,
        average_ticket_cents=sales_cents // 10,
        royalty_amount_cents=round(sales_cents * franchise.royalty_rate / 100),
    )
    db_session.add(report)
    db_session.commit()
    return report


def _invoice(db_session, franchise, number, **kwargs):
    values = {
        "amount_cents": 10_000,
        "description": f"Facture {number}",
        "due_date": datetime(2030, 1, 31),
        "payment_status": "PENDING",
    }
    values.update(kwargs)
    invoice = Invoice(invoice_number=number, franchise_id=franchise.id, **values)
    db_session.add(invoice)
    db_session.commit()
    return invoice


class TestSalesReports:
    """POST/GET /api/sales-reports"""

    def test_franchisee_declares_sales(self, client, db_session, franchisee, franchise):
        resp = client.post("/api/sales-reports", json={
            "report_date": "2026-03-05",
            "daily_sales_cents": 100_000,
            "transaction_count": 40,
            "location": "Place de la République",
        }, headers=login(client, franchisee))
        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["franchise_id"] == franchise.id
        assert data["report_date"] == "2026-03-05"
        assert data["royalty_amount_cents"] == 4_000
        assert data["average_ticket_cents"] == 2_500

    def test_one_report_per_day(self, client, db_session, franchisee, franchise):
        headers = login(client, franchisee)
        payload = {"report_date": "2026-03-05", "daily_sales_cents": 100_000}
        assert client.post("/api/sales-reports", json=payload, headers=headers).status_code == 201

        resp = client.post("/api/sales-reports", json=payload, headers=headers)
        assert resp.status_code == 400
        assert db_session.query(SalesReport).count() == 1

    @pytest.mark.parametrize("payload", [
        {"daily_sales_cents": 100},
        {"report_date": "2026-03-05", "daily_sales_cents": -1},
        {"report_date": "hier", "daily_sales_cents": 100},
        {"report_date": "2026-03-05", "daily_sales_cents": 100, "transaction_count": -2},
    ])
    def test_invalid_reports(self, client, db_session, franchisee, payload):
        resp = client.post("/api/sales-reports", json=payload, headers=login(client, franchisee))
        assert resp.status_code == 400
        assert db_session.query(SalesReport).count() == 0

    def test_admin_must_name_franchise(self, client, db_session, admin_user, franchise):
        headers = login(client, admin_user)
        payload = {"report_date": "2026-03-06", "daily_sales_cents": 50_000}
        assert client.post("/api/sales-reports", json=payload, headers=headers).status_code == 400

        resp = client.post("/api/sales-reports", json={**payload, "franchise_id": franchise.id}, headers=headers)
        assert resp.status_code == 201
        assert resp.get_json()["data"]["royalty_amount_cents"] == 2_000

    def test_listing_is_scoped_and_filtered(self, client, db_session, franchisee, franchise, other_franchise):
        _report(db_session, franchise, date(2026, 3, 1), 10_000)
        _report(db_session, franchise, date(2026, 4, 1), 10_000)
        _report(db_session, other_franchise, date(2026, 3, 1), 10_000)

        resp = client.get(
            "/api/sales-reports?start_date=2026-03-01&end_date=2026-03-31",
            headers=login(client, franchisee),
        )
        rows = resp.get_json()["data"]["data"]
        assert [(r["franchise_id"], r["report_date"]) for r in rows] == [(franchise.id, "2026-03-01")]


class TestRoyaltyGeneration:
    """POST /api/invoices/generate"""

    def test_generate_monthly_royalties(self, client, db_session, admin_user, franchisee, franchise):
        _report(db_session, franchise, date(2026, 3, 1), 100_000)
        _report(db_session, franchise, date(2026, 3, 31), 50_000)
        _report(db_session, franchise, date(2026, 4, 1), 999_000)

        resp = client.post("/api/invoices/generate", json={"franchise_id": franchise.id, "period": "2026-03"},
                           headers=login(client, admin_user))
        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["period"] == "2026-03"
        assert data["report_count"] == 2
        invoice = data["invoice"]
        assert invoice["amount_cents"] == 6_000
        assert invoice["description"] == "Redevances 2026-03"
        assert invoice["payment_status"] == "PENDING"
        assert invoice["invoice_number"] == f"FACT-{YEAR}-000001"

        generated = db_session.query(Notification).filter_by(type="INVOICE_GENERATED").all()
        assert sorted(n.target_role for n in generated) == ["ADMIN", "FRANCHISEE"]

    def test_period_is_billed_once(self, client, db_session, admin_user, franchise):
        _report(db_session, franchise, date(2026, 3, 10), 100_000)
        headers = login(client, admin_user)
        body = {"franchise_id": franchise.id, "period": "2026-03"}
        assert client.post("/api/invoices/generate", json=body, headers=headers).status_code == 201

        resp = client.post("/api/invoices/generate", json=body, headers=headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Une facture pour cette période existe déjà"
        assert db_session.query(Invoice).count() == 1

    def test_nothing_to_bill(self, client, db_session, admin_user, franchise):
        resp = client.post("/api/invoices/generate", json={"franchise_id": franchise.id, "period": "2026-02"},
                           headers=login(client, admin_user))
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Aucune redevance à facturer pour cette période"

    def test_numbering_continues_history(self, client, db_session, admin_user, franchise):
        for n in range(1, 6):
            _invoice(db_session, franchise, f"FACT-2020-{n:06d}")
        _report(db_session, franchise, date(2026, 3, 10), 100_000)

        resp = client.post("/api/invoices/generate", json={"franchise_id": franchise.id, "period": "2026-03"},
                           headers=login(client, admin_user))
        assert resp.get_json()["data"]["invoice"]["invoice_number"] == f"FACT-{YEAR}-000006"

    def test_missing_franchise(self, client, db_session, admin_user):
        headers = login(client, admin_user)
        assert client.post("/api/invoices/generate", json={"period": "2026-03"}, headers=headers).status_code == 400
        assert client.post("/api/invoices/generate", json={"franchise_id": 9999}, headers=headers).status_code == 404

    @pytest.mark.parametrize("value,expected", [
        ("2026-03", (2026, 3)),
        ("2025-12", (2025, 12)),
    ])
    def test_parse_period(self, value, expected):
        assert invoice_service.parse_period(value) == expected

    @pytest.mark.parametrize("value", [None, "", "mars", "2026-3"])
    def test_parse_period_defaults_to_current_month(self, app, value):
        now = utcnow()
        assert invoice_service.parse_period(value) == (now.year, now.month)

    @pytest.mark.parametrize("value", ["2026-13", "2026-00"])
    def test_impossible_month_is_rejected(self, client, db_session, admin_user, franchise, value):
        _report(db_session, franchise, utcnow().date(), 100_000)

        resp = client.post("/api/invoices/generate", json={"franchise_id": franchise.id, "period": value},
                           headers=login(client, admin_user))
        assert resp.status_code == 400
        assert resp.get_json()["details"] == ["period: mois invalide"]
        assert db_session.query(Invoice).count() == 0


class TestInvoices:
    """Manual invoices, updates, visibility and PDFs."""

    def test_manual_invoice(self, client, db_session, admin_user, franchise):
        resp = client.post("/api/invoices", json={
            "franchise_id": franchise.id,
            "amount_cents": 25_000,
            "description": "Formation hygiène",
            "due_date": "2030-06-30",
        }, headers=login(client, admin_user))
        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["invoice_number"] == f"FACT-{YEAR}-000001"
        assert data["due_date"] == "2030-06-30T00:00:00Z"

        notification = db_session.query(Notification).filter_by(type="INVOICE_GENERATED").one()
        assert notification.target_role == "FRANCHISEE"

    def test_manual_invoice_validation(self, client, db_session, admin_user, franchise):
        resp = client.post("/api/invoices", json={"franchise_id": franchise.id, "amount_cents": -5},
                           headers=login(client, admin_user))
        assert resp.status_code == 400
        details = resp.get_json()["details"]
        assert "due_date: champ requis" in details
        assert "description: champ requis" in details

    def test_mark_paid_sets_paid_date(self, client, db_session, admin_user, franchise):
        invoice = _invoice(db_session, franchise, "FACT-2026-000100")
        resp = client.put(f"/api/invoices/{invoice.id}", json={"payment_status": "PAID"},
                          headers=login(client, admin_user))
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["payment_status"] == "PAID"
        assert data["paid_date"] is not None

    def test_unknown_payment_status(self, client, db_session, admin_user, franchise):
        invoice = _invoice(db_session, franchise, "FACT-2026-000101")
        resp = client.put(f"/api/invoices/{invoice.id}", json={"payment_status": "MAYBE"},
                          headers=login(client, admin_user))
        assert resp.status_code == 400

    def test_franchisee_sees_own_invoices(self, client, db_session, franchisee, franchise, other_franchise):
        own = _invoice(db_session, franchise, "FACT-2026-000102")
        _invoice(db_session, other_franchise, "FACT-2026-000103")

        resp = client.get("/api/invoices", headers=login(client, franchisee))
        assert [i["id"] for i in resp.get_json()["data"]["data"]] == [own.id]

    def test_download(self, client, db_session, franchisee, franchise):
        invoice = _invoice(db_session, franchise, "FACT-2026-000104")
        resp = client.get(f"/api/invoices/{invoice.id}/download", headers=login(client, franchisee))
        assert resp.status_code == 200
        assert resp.mimetype == "application/pdf"
        assert resp.data.startswith(b"%PDF")
        assert 'filename="facture-FACT-2026-000104.pdf"' in resp.headers["Content-Disposition"]


class TestOverdue:
    """invoice_service.mark_overdue()"""

    def test_mark_overdue(self, app, db_session, franchisee, franchise):
        late = _invoice(db_session, franchise, "FACT-2026-000200", due_date=utcnow() - timedelta(days=1))
        _invoice(db_session, franchise, "FACT-2026-000201", due_date=utcnow() + timedelta(days=10))
        _invoice(db_session, franchise, "FACT-2026-000202", due_date=utcnow() - timedelta(days=3),
                 payment_status="PAID")

        assert invoice_service.mark_overdue() == 1
        db_session.expire_all()
        assert db_session.get(Invoice, late.id).payment_status == "OVERDUE"
        assert db_session.query(Notification).filter_by(type="INVOICE_OVERDUE").count() == 2

        assert invoice_service.mark_overdue() == 0
        assert db_session.query(Notification).filter_by(type="INVOICE_OVERDUE").count() == 2
