"""
Authorization tests.

Verifies:
- Every protected endpoint refuses anonymous callers (401)
- Franchisees are refused admin-only operations (403) and the denial is logged
- Franchisees cannot read or change another franchise's resources
- Admin listings are unrestricted, franchisee listings are scoped
"""

from datetime import datetime

import pytest

from drivncook.models import Franchise, Invoice, Order, SecurityEvent

from .conftest import login


PROTECTED_ENDPOINTS = [
    ("get", "/api/auth/me"),
    ("post", "/api/auth/logout"),
    ("get", "/api/franchises"),
    ("post", "/api/franchises"),
    ("get", "/api/franchises/1"),
    ("put", "/api/franchises/1"),
    ("delete", "/api/franchises/1"),
    ("post", "/api/franchises/1/validate-documents"),
    ("post", "/api/franchises/1/request-documents"),
    ("get", "/api/franchises/1/contract"),
    ("get", "/api/vehicles"),
    ("post", "/api/vehicles"),
    ("get", "/api/maintenance"),
    ("get", "/api/warehouses"),
    ("get", "/api/products"),
    ("post", "/api/products"),
    ("get", "/api/product-categories"),
    ("get", "/api/stocks"),
    ("post", "/api/stocks"),
    ("get", "/api/orders"),
    ("post", "/api/orders"),
    ("post", "/api/orders/1/transmit"),
    ("get", "/api/order-items?order_id=1"),
    ("post", "/api/order-items"),
    ("get", "/api/invoices"),
    ("post", "/api/invoices/generate"),
    ("get", "/api/sales-reports"),
    ("post", "/api/payments/entry-fee/intent"),
    ("post", "/api/payments/orders/intent"),
    ("get", "/api/notifications"),
    ("post", "/api/notifications/mark-all-read"),
    ("get", "/api/admin/notifications"),
    ("post", "/api/admin/orders/1/confirm-reception"),
    ("get", "/api/dashboard/stats"),
]

ADMIN_ONLY_ENDPOINTS = [
    ("get", "/api/franchises"),
    ("post", "/api/franchises"),
    ("delete", "/api/franchises/1"),
    ("post", "/api/franchises/1/validate-documents"),
    ("post", "/api/vehicles"),
    ("post", "/api/products"),
    ("post", "/api/product-categories"),
    ("post", "/api/warehouses"),
    ("post", "/api/stocks"),
    ("post", "/api/invoices"),
    ("post", "/api/invoices/generate"),
    ("get", "/api/admin/notifications"),
    ("post", "/api/admin/orders/1/confirm-reception"),
]


def _order(db_session, franchise, number="CMD-2026-000900"):
    order = Order(order_number=number, franchise_id=franchise.id, status="PENDING", total_amount_cents=0)
    db_session.add(order)
    db_session.commit()
    return order


class TestAnonymousAccess:
    """No token, no cookie: 401 everywhere except the public routes."""

    @pytest.mark.parametrize("method,path", PROTECTED_ENDPOINTS)
    def test_requires_authentication(self, client, db_session, method, path):
        resp = getattr(client, method)(path, json={})
        assert resp.status_code == 401
        assert resp.get_json()["success"] is False

    def test_health_is_public(self, client, db_session):
        assert client.get("/api/health").status_code == 200


class TestFranchiseeRestrictions:
    """Role permissions are enforced before any service work."""

    @pytest.mark.parametrize("method,path", ADMIN_ONLY_ENDPOINTS)
    def test_admin_only(self, client, franchisee, method, path):
        headers = login(client, franchisee)
        resp = getattr(client, method)(path, json={}, headers=headers)
        assert resp.status_code == 403

    def test_denial_is_logged(self, client, db_session, franchisee):
        headers = login(client, franchisee)
        client.post("/api/invoices/generate", json={}, headers=headers)

        event = db_session.query(SecurityEvent).filter_by(event_type="PERMISSION_DENIED").one()
        assert event.user_id == franchisee.id
        assert event.action == "GENERATE_INVOICES"
        assert event.resource == "/api/invoices/generate"

    def test_super_admin_only_delete(self, client, admin_user, franchise):
        headers = login(client, admin_user)
        resp = client.delete(f"/api/franchises/{franchise.id}", headers=headers)
        assert resp.status_code == 403


class TestOwnership:
    """A franchisee only sees and changes what belongs to their franchise."""

    def test_foreign_franchise_is_forbidden(self, client, db_session, franchisee, other_franchise):
        headers = login(client, franchisee)
        resp = client.get(f"/api/franchises/{other_franchise.id}", headers=headers)
        assert resp.status_code == 403

        event = db_session.query(SecurityEvent).filter_by(event_type="OWNERSHIP_DENIED").one()
        assert event.user_id == franchisee.id

    def test_own_franchise_is_visible(self, client, franchisee, franchise):
        headers = login(client, franchisee)
        resp = client.get(f"/api/franchises/{franchise.id}", headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["siret_number"] == franchise.siret_number

    def test_foreign_order(self, client, db_session, franchisee, other_franchise):
        order = _order(db_session, other_franchise)
        headers = login(client, franchisee)

        assert client.get(f"/api/orders/{order.id}", headers=headers).status_code == 403
        assert client.put(f"/api/orders/{order.id}", json={"notes": "x"}, headers=headers).status_code == 403
        assert client.delete(f"/api/orders/{order.id}", headers=headers).status_code == 403

        db_session.expire_all()
        assert db_session.get(Order, order.id).notes is None

    def test_foreign_invoice(self, client, db_session, franchisee, other_franchise):
        invoice = Invoice(
            invoice_number="FACT-2026-000900",
            franchise_id=other_franchise.id,
            amount_cents=1000,
            description="Redevance mars 2026",
            due_date=datetime(2030, 1, 31),
            payment_status="PENDING",
        )
        db_session.add(invoice)
        db_session.commit()

        headers = login(client, franchisee)
        assert client.get(f"/api/invoices/{invoice.id}", headers=headers).status_code == 403
        assert client.get(f"/api/invoices/{invoice.id}/download", headers=headers).status_code == 403

    def test_order_listing_is_scoped(self, client, db_session, franchisee, franchise, other_franchise, admin_user):
        _order(db_session, franchise, "CMD-2026-000901")
        _order(db_session, other_franchise, "CMD-2026-000902")

        resp = client.get("/api/orders", headers=login(client, franchisee))
        numbers = [o["order_number"] for o in resp.get_json()["data"]["data"]]
        assert numbers == ["CMD-2026-000901"]

        resp = client.get("/api/orders", headers=login(client, admin_user))
        assert resp.get_json()["data"]["pagination"]["total"] == 2

    def test_franchisee_cannot_escalate_own_franchise(self, client, db_session, franchisee, franchise):
        headers = login(client, franchisee)
        resp = client.put(
            f"/api/franchises/{franchise.id}",
            json={"status": "ACTIVE", "royalty_rate": 0, "contact_phone": "0699887766"},
            headers=headers,
        )
        assert resp.status_code == 200

        db_session.expire_all()
        refreshed = db_session.get(Franchise, franchise.id)
        assert refreshed.royalty_rate == 4.0
        assert refreshed.contact_phone == "0699887766"
