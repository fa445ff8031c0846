"""
Vehicle and maintenance tests.

Verifies:
- Vehicle creation, uniqueness of plate and VIN, assignment notifications
- Franchisees only see and report on their own trucks
- Maintenance lifecycle drives the vehicle status
- A vehicle under maintenance cannot be deleted
"""

from datetime import datetime

import pytest

from drivncook.models import Maintenance, Notification, Vehicle

from .conftest import login


def _vehicle_payload(**overrides):
    payload = {
        "license_plate": "GH-456-IJ",
        "brand": "Citroën",
        "model": "Jumper",
        "year": 2023,
        "vin": "VF7YD000000000042",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def vehicle(db_session, franchise):
    truck = Vehicle(license_plate="AB-123-CD", brand="Renault", model="Master", year=2022,
                    vin="VF1MA000000000001", status="ASSIGNED", franchise_id=franchise.id)
    db_session.add(truck)
    db_session.commit()
    return truck


class TestVehicles:
    """/api/vehicles"""

    def test_create_available_vehicle(self, client, db_session, admin_user):
        resp = client.post("/api/vehicles", json=_vehicle_payload(), headers=login(client, admin_user))
        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["status"] == "AVAILABLE"
        assert data["franchise_id"] is None
        assert db_session.query(Notification).count() == 0

    def test_create_assigned_vehicle(self, client, db_session, admin_user, franchisee, franchise):
        resp = client.post("/api/vehicles", json=_vehicle_payload(franchise_id=franchise.id),
                           headers=login(client, admin_user))
        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["status"] == "ASSIGNED"
        assert data["assignment_date"] is not None

        assigned = db_session.query(Notification).filter_by(type="VEHICLE_ASSIGNED").all()
        assert sorted(n.target_role for n in assigned) == ["ADMIN", "FRANCHISEE"]

    def test_unknown_franchise(self, client, db_session, admin_user):
        resp = client.post("/api/vehicles", json=_vehicle_payload(franchise_id=9999),
                           headers=login(client, admin_user))
        assert resp.status_code == 400
        assert db_session.query(Vehicle).count() == 0

    @pytest.mark.parametrize("field", ["license_plate", "vin"])
    def test_duplicates(self, client, db_session, admin_user, vehicle, field):
        payload = _vehicle_payload(**{field: getattr(vehicle, field)})
        resp = client.post("/api/vehicles", json=payload, headers=login(client, admin_user))
        assert resp.status_code == 400

    @pytest.mark.parametrize("overrides", [
        {"year": 1980},
        {"vin": "SHORT"},
        {"status": "FLYING"},
        {"current_mileage": -1},
    ])
    def test_invalid_vehicle(self, client, db_session, admin_user, overrides):
        resp = client.post("/api/vehicles", json=_vehicle_payload(**overrides), headers=login(client, admin_user))
        assert resp.status_code == 400

    def test_unassign(self, client, db_session, admin_user, vehicle):
        resp = client.put(f"/api/vehicles/{vehicle.id}", json={"franchise_id": None},
                          headers=login(client, admin_user))
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["franchise_id"] is None
        assert data["status"] == "AVAILABLE"
        assert data["assignment_date"] is None

    def test_franchisee_reports_mileage_only(self, client, db_session, franchisee, vehicle):
        resp = client.put(f"/api/vehicles/{vehicle.id}",
                          json={"current_mileage": 48_000, "franchise_id": None, "status": "AVAILABLE"},
                          headers=login(client, franchisee))
        assert resp.status_code == 200

        db_session.expire_all()
        truck = db_session.get(Vehicle, vehicle.id)
        assert truck.current_mileage == 48_000
        assert truck.status == "ASSIGNED"
        assert truck.franchise_id is not None

    def test_franchisee_sees_own_fleet(self, client, db_session, franchisee, other_franchisee, vehicle):
        resp = client.get("/api/vehicles", headers=login(client, franchisee))
        assert resp.get_json()["data"]["pagination"]["total"] == 1

        resp = client.get("/api/vehicles", headers=login(client, other_franchisee))
        assert resp.get_json()["data"]["pagination"]["total"] == 0
        assert client.get(f"/api/vehicles/{vehicle.id}", headers=login(client, other_franchisee)).status_code == 403


class TestMaintenance:
    """/api/maintenance"""

    def test_repair_reports_breakdown(self, client, db_session, franchisee, vehicle):
        resp = client.post("/api/maintenance", json={
            "vehicle_id": vehicle.id,
            "type": "REPAIR",
            "title": "Embrayage",
            "scheduled_date": "2026-05-02T08:00:00Z",
            "status": "IN_PROGRESS",
        }, headers=login(client, franchisee))
        assert resp.status_code == 201
        assert resp.get_json()["data"]["license_plate"] == vehicle.license_plate

        db_session.expire_all()
        assert db_session.get(Vehicle, vehicle.id).status == "MAINTENANCE"
        breakdown = db_session.query(Notification).filter_by(type="VEHICLE_BREAKDOWN").one()
        assert breakdown.priority == "HIGH"

    def test_preventive_is_maintenance_due(self, client, db_session, admin_user, vehicle):
        resp = client.post("/api/maintenance", json={
            "vehicle_id": vehicle.id,
            "type": "PREVENTIVE",
            "title": "Vidange",
            "scheduled_date": "2026-06-01",
        }, headers=login(client, admin_user))
        assert resp.status_code == 201
        assert resp.get_json()["data"]["status"] == "SCHEDULED"
        assert db_session.query(Notification).filter_by(type="VEHICLE_MAINTENANCE_DUE").count() == 1

    def test_completion_restores_vehicle(self, client, db_session, admin_user, vehicle):
        headers = login(client, admin_user)
        maintenance_id = client.post("/api/maintenance", json={
            "vehicle_id": vehicle.id, "type": "INSPECTION", "title": "Contrôle technique",
            "scheduled_date": "2026-05-02", "status": "IN_PROGRESS",
        }, headers=headers).get_json()["data"]["id"]

        resp = client.put(f"/api/maintenance/{maintenance_id}", json={"status": "COMPLETED", "cost_cents": 9_000},
                          headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["completed_date"] is not None

        db_session.expire_all()
        assert db_session.get(Vehicle, vehicle.id).status == "ASSIGNED"

    def test_foreign_vehicle(self, client, db_session, other_franchisee, vehicle):
        resp = client.post("/api/maintenance", json={
            "vehicle_id": vehicle.id, "type": "CLEANING", "title": "Nettoyage", "scheduled_date": "2026-05-02",
        }, headers=login(client, other_franchisee))
        assert resp.status_code == 403
        assert db_session.query(Maintenance).count() == 0

    def test_vehicle_under_maintenance_cannot_be_deleted(self, client, db_session, admin_user, vehicle):
        db_session.add(Maintenance(vehicle_id=vehicle.id, type="REPAIR", status="IN_PROGRESS", title="Moteur",
                                   scheduled_date=datetime(2026, 5, 2, 8, 0)))
        db_session.commit()
        headers = login(client, admin_user)

        assert client.delete(f"/api/vehicles/{vehicle.id}", headers=headers).status_code == 400

        maintenance = db_session.query(Maintenance).one()
        maintenance.status = "COMPLETED"
        db_session.commit()
        assert client.delete(f"/api/vehicles/{vehicle.id}", headers=headers).status_code == 200
        assert db_session.query(Maintenance).count() == 0
