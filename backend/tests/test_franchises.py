"""
Franchise administration tests.

Verifies:
- Admin creation of a franchisee account and franchise
- Search and status filters on the franchise list
- Document validation activates a PENDING franchise only when complete
- Document requests are notified and emailed (email failure -> 500)
- Deletion is refused while vehicles or orders reference the franchise
- Contract PDF
"""

from datetime import date

import pytest

from drivncook.models import (
    Franchise,
    Notification,
    NotificationDelivery,
    Order,
    SalesReport,
    SessionToken,
    User,
    Vehicle,
)

from .conftest import get_auth_token, login, make_franchise, make_user


@pytest.fixture
def pending(db_session):
    user = make_user(db_session, "pending@trucks.test", "FRANCHISEE", is_active=False)
    return make_franchise(
        db_session, user, siret="33344455500066", status="PENDING",
        kbis_document_url=None, id_card_document_url=None,
    )


class TestCreateAndList:
    """POST/GET /api/franchises"""

    def test_admin_creates_franchise(self, client, db_session, admin_user):
        resp = client.post("/api/franchises", json={
            "email": "Marc.Petit@trucks.test",
            "password": "Truck2026!",
            "first_name": "Marc",
            "last_name": "Petit",
            "business_name": "Petit Truck",
            "siret_number": "77788899900011",
            "address": "8 boulevard Voltaire",
            "city": "Lyon",
            "postal_code": "69003",
            "region": "Auvergne-Rhône-Alpes",
            "contact_email": "contact@petit.test",
            "contact_phone": "0478000000",
            "royalty_rate": 5.5,
        }, headers=login(client, admin_user))
        assert resp.status_code == 201, resp.get_json()
        data = resp.get_json()["data"]
        assert data["status"] == "PENDING"
        assert data["royalty_rate"] == 5.5
        assert data["user"]["email"] == "marc.petit@trucks.test"
        assert data["user"]["is_active"] is True

    def test_weak_password(self, client, db_session, admin_user):
        resp = client.post("/api/franchises", json={
            "email": "weak@trucks.test",
            "password": "password",
            "first_name": "Weak",
            "last_name": "Pass",
            "business_name": "Weak Truck",
            "siret_number": "77788899900022",
            "address": "8 boulevard Voltaire",
            "city": "Lyon",
            "postal_code": "69003",
            "region": "Rhône",
            "contact_email": "weak@petit.test",
            "contact_phone": "0478000000",
        }, headers=login(client, admin_user))
        assert resp.status_code == 400
        assert db_session.query(User).filter_by(email="weak@trucks.test").first() is None

    @pytest.mark.parametrize("query,expected", [
        ("search=Food", 3),
        ("search=98765432100022", 1),
        ("search=contact-011", 1),
        ("status=ACTIVE", 2),
        ("status=PENDING", 1),
        ("search=Nowhere", 0),
    ])
    def test_list_filters(self, client, db_session, admin_user, franchise, other_franchise, pending, query, expected):
        resp = client.get(f"/api/franchises?{query}", headers=login(client, admin_user))
        assert resp.status_code == 200
        assert resp.get_json()["data"]["pagination"]["total"] == expected

    def test_admin_updates_status(self, client, db_session, admin_user, franchisee, franchise):
        resp = client.put(f"/api/franchises/{franchise.id}", json={"status": "SUSPENDED"},
                          headers=login(client, admin_user))
        assert resp.status_code == 200

        notification = db_session.query(Notification).filter_by(type="FRANCHISE_SUSPENDED").one()
        assert notification.target_user_id == franchisee.id


class TestDocumentValidation:
    """POST /api/franchises/<id>/validate-documents"""

    def test_missing_documents_change_nothing(self, client, db_session, admin_user, pending):
        resp = client.post(f"/api/franchises/{pending.id}/validate-documents", headers=login(client, admin_user))
        assert resp.status_code == 400
        assert resp.get_json()["error"] == (
            "Documents manquants: Document KBIS, Carte d'identité. "
            "Tous les documents doivent être présents avant validation."
        )

        db_session.expire_all()
        franchise = db_session.get(Franchise, pending.id)
        assert franchise.status == "PENDING"
        assert franchise.user.is_active is False

    def test_complete_documents_activate(self, client, db_session, admin_user, pending):
        pending.kbis_document_url = "https://files.test/kbis.pdf"
        pending.id_card_document_url = "https://files.test/id.pdf"
        db_session.commit()

        resp = client.post(f"/api/franchises/{pending.id}/validate-documents", headers=login(client, admin_user))
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["status_updated"] is True
        assert data["new_status"] == "ACTIVE"
        assert data["recipient_email"] == "pending@trucks.test"
        assert data["validation_date"].endswith("Z")

        db_session.expire_all()
        franchise = db_session.get(Franchise, pending.id)
        assert franchise.status == "ACTIVE"
        assert franchise.user.is_active is True
        approved = db_session.query(Notification).filter_by(type="FRANCHISE_APPROVED").all()
        assert sorted(n.target_role for n in approved) == ["ADMIN", "FRANCHISEE"]

    def test_active_franchise_keeps_status(self, client, db_session, admin_user, franchise):
        resp = client.post(f"/api/franchises/{franchise.id}/validate-documents", headers=login(client, admin_user))
        assert resp.status_code == 200
        assert resp.get_json()["data"]["status_updated"] is False
        assert resp.get_json()["data"]["new_status"] == "ACTIVE"


class TestDocumentRequest:
    """POST /api/franchises/<id>/request-documents"""

    def test_request_defaults_to_missing_documents(self, client, db_session, mailer, admin_user, pending):
        resp = client.post(f"/api/franchises/{pending.id}/request-documents",
                           json={"custom_message": "Merci d'avance."}, headers=login(client, admin_user))
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["missing_documents"] == ["Document KBIS", "Carte d'identité"]
        assert data["recipient_email"] == "pending@trucks.test"

        assert len(mailer.sent) == 1
        assert mailer.sent[0]["recipients"] == ["pending@trucks.test"]
        assert "Merci d'avance." in mailer.sent[0]["text"]

        notification = db_session.query(Notification).filter_by(type="FRANCHISE_DOCUMENTS_REQUIRED").one()
        assert notification.data["missing_documents"] == ["Document KBIS", "Carte d'identité"]
        assert db_session.query(NotificationDelivery).one().status == "SENT"

    def test_nothing_missing(self, client, db_session, mailer, admin_user, franchise):
        resp = client.post(f"/api/franchises/{franchise.id}/request-documents", json={},
                           headers=login(client, admin_user))
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Aucun document manquant détecté"
        assert mailer.sent == []

    def test_explicit_list(self, client, db_session, mailer, admin_user, franchise):
        resp = client.post(f"/api/franchises/{franchise.id}/request-documents",
                           json={"missing_documents": ["Attestation d'assurance"]},
                           headers=login(client, admin_user))
        assert resp.status_code == 200
        assert resp.get_json()["data"]["missing_documents"] == ["Attestation d'assurance"]

    def test_email_failure(self, client, db_session, mailer, admin_user, pending):
        mailer.fail = True
        resp = client.post(f"/api/franchises/{pending.id}/request-documents", json={},
                           headers=login(client, admin_user))
        assert resp.status_code == 500

        delivery = db_session.query(NotificationDelivery).one()
        assert delivery.status == "FAILED"
        assert "SMTP indisponible" in delivery.last_error


class TestDeleteFranchise:
    """DELETE /api/franchises/<id> (SUPER_ADMIN)"""

    def test_refused_with_vehicle(self, client, db_session, super_admin, franchise):
        db_session.add(Vehicle(license_plate="AB-123-CD", brand="Renault", model="Master", year=2022,
                               vin="VF1MA000000000001", status="ASSIGNED", franchise_id=franchise.id))
        db_session.commit()

        resp = client.delete(f"/api/franchises/{franchise.id}", headers=login(client, super_admin))
        assert resp.status_code == 400
        assert db_session.get(Franchise, franchise.id) is not None

    def test_refused_with_order(self, client, db_session, super_admin, franchise):
        db_session.add(Order(order_number="CMD-2026-000800", franchise_id=franchise.id, status="DELIVERED",
                             total_amount_cents=0))
        db_session.commit()

        resp = client.delete(f"/api/franchises/{franchise.id}", headers=login(client, super_admin))
        assert resp.status_code == 400

    def test_delete_cascades_and_deactivates(self, client, db_session, super_admin, franchisee, franchise):
        db_session.add(SalesReport(franchise_id=franchise.id, report_date=date(2026, 3, 1),
                                   daily_sales_cents=1000, royalty_amount_cents=40))
        db_session.commit()
        assert get_auth_token(client, franchisee.email) is not None

        resp = client.delete(f"/api/franchises/{franchise.id}", headers=login(client, super_admin))
        assert resp.status_code == 200

        db_session.expire_all()
        assert db_session.get(Franchise, franchise.id) is None
        assert db_session.query(SalesReport).count() == 0
        assert db_session.get(User, franchisee.id).is_active is False
        owner_sessions = db_session.query(SessionToken).filter_by(user_id=franchisee.id).all()
        assert owner_sessions and all(s.is_revoked for s in owner_sessions)


class TestContract:
    """GET /api/franchises/<id>/contract"""

    def test_contract_pdf(self, client, db_session, franchisee, franchise):
        resp = client.get(f"/api/franchises/{franchise.id}/contract", headers=login(client, franchisee))
        assert resp.status_code == 200
        assert resp.data.startswith(b"%PDF")
        assert f'filename="contrat-franchise-{franchise.id}.pdf"' in resp.headers["Content-Disposition"]
