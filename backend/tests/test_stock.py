"""
Stock adjustment tests.

Verifies:
- ADD / REMOVE / SET arithmetic, REMOVE clamped at zero
- Repeated ADDs equal a single ADD of the summed quantity
- A stock row is created on first ADD or SET but never by REMOVE
- Adjustments are audited in the same transaction
- Dropping to the product minimum raises a STOCK_LOW notification
- Listing filters (warehouse, product, low_stock)
"""

import pytest

from drivncook.models import AuditLog, Notification, Product, Stock, Warehouse

from .conftest import login


def _adjust(client, headers, product, warehouse, quantity, operation, **extra):
    payload = {
        "product_id": product.id,
        "warehouse_id": warehouse.id,
        "quantity": quantity,
        "operation": operation,
    }
    payload.update(extra)
    return client.post("/api/stocks", json=payload, headers=headers)


class TestAdjustStock:
    """POST /api/stocks"""

    @pytest.mark.parametrize("operation,quantity,expected", [
        ("ADD", 25, 125),
        ("REMOVE", 40, 60),
        ("REMOVE", 250, 0),
        ("SET", 12, 12),
        ("SET", 0, 0),
        ("add", 1, 101),
    ])
    def test_operations(self, client, db_session, admin_user, product, warehouse, stock, operation, quantity, expected):
        resp = _adjust(client, login(client, admin_user), product, warehouse, quantity, operation)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["quantity"] == expected

        db_session.expire_all()
        assert db_session.get(Stock, stock.id).quantity == expected

    @pytest.mark.parametrize("times,delta", [(3, 7), (5, 1), (2, 250)])
    def test_repeated_adds_equal_one_summed_add(self, client, db_session, admin_user, product, warehouse,
                                                times, delta):
        other = Warehouse(name="Entrepôt Rungis", address="1 rue de la Tour", city="Rungis", postal_code="94150",
                          region="Île-de-France", capacity=10_000, is_active=True)
        db_session.add(other)
        db_session.commit()
        headers = login(client, admin_user)

        for _ in range(times):
            assert _adjust(client, headers, product, warehouse, delta, "ADD").status_code == 200
        resp = _adjust(client, headers, product, other, times * delta, "ADD")
        assert resp.status_code == 200

        db_session.expire_all()
        stepwise = db_session.query(Stock).filter_by(warehouse_id=warehouse.id).one()
        summed = db_session.query(Stock).filter_by(warehouse_id=other.id).one()
        assert stepwise.quantity == summed.quantity == times * delta

    def test_add_creates_row(self, client, db_session, admin_user, product, warehouse):
        resp = _adjust(client, login(client, admin_user), product, warehouse, 40, "ADD")
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["quantity"] == 40
        assert data["reserved_qty"] == 0
        assert data["last_restock_date"] is not None
        assert db_session.query(Stock).count() == 1

    def test_remove_without_row(self, client, db_session, admin_user, product, warehouse):
        resp = _adjust(client, login(client, admin_user), product, warehouse, 5, "REMOVE")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Impossible de retirer du stock inexistant"
        assert db_session.query(Stock).count() == 0

    def test_adjustment_keeps_reservations(self, client, db_session, admin_user, product, warehouse, stock):
        stock.reserved_qty = 20
        db_session.commit()

        _adjust(client, login(client, admin_user), product, warehouse, 50, "SET")
        db_session.expire_all()
        refreshed = db_session.get(Stock, stock.id)
        assert refreshed.quantity == 50
        assert refreshed.reserved_qty == 20

    @pytest.mark.parametrize("payload", [
        {"quantity": 5, "operation": "MULTIPLY"},
        {"quantity": -5, "operation": "ADD"},
        {"quantity": "cinq", "operation": "ADD"},
        {"operation": "ADD"},
    ])
    def test_invalid_payload(self, client, db_session, admin_user, product, warehouse, stock, payload):
        body = {"product_id": product.id, "warehouse_id": warehouse.id, **payload}
        resp = client.post("/api/stocks", json=body, headers=login(client, admin_user))
        assert resp.status_code == 400

        db_session.expire_all()
        assert db_session.get(Stock, stock.id).quantity == 100

    def test_unknown_warehouse(self, client, db_session, admin_user, product):
        resp = client.post("/api/stocks", json={
            "product_id": product.id, "warehouse_id": 9999, "quantity": 1, "operation": "ADD",
        }, headers=login(client, admin_user))
        assert resp.status_code == 404

    def test_adjustment_is_audited(self, client, db_session, admin_user, product, warehouse, stock):
        _adjust(client, login(client, admin_user), product, warehouse, 30, "REMOVE", notes="Casse")

        entry = db_session.query(AuditLog).filter_by(table_name="stocks", record_id=stock.id).one()
        assert entry.user_id == admin_user.id
        assert entry.new_values == {"operation": "REMOVE", "quantity": 30, "new_total": 70, "notes": "Casse"}


class TestLowStock:
    """STOCK_LOW fires when quantity reaches the product minimum."""

    def test_low_stock_notification(self, client, db_session, admin_user, product, warehouse, stock):
        _adjust(client, login(client, admin_user), product, warehouse, 96, "REMOVE")

        notification = db_session.query(Notification).filter_by(type="STOCK_LOW").one()
        assert notification.priority == "HIGH"
        assert notification.target_role == "ADMIN"
        assert notification.data["quantity"] == 4

    def test_above_minimum_is_quiet(self, client, db_session, admin_user, product, warehouse, stock):
        _adjust(client, login(client, admin_user), product, warehouse, 10, "REMOVE")
        assert db_session.query(Notification).filter_by(type="STOCK_LOW").count() == 0


class TestListStocks:
    """GET /api/stocks"""

    @pytest.fixture
    def second_product(self, db_session, category, warehouse):
        prod = Product(name="Frites", sku="LEG-001", unit_price_cents=300, unit="kg",
                       min_stock=50, category_id=category.id, is_active=True)
        db_session.add(prod)
        db_session.commit()
        db_session.add(Stock(product_id=prod.id, warehouse_id=warehouse.id, quantity=20, reserved_qty=0))
        db_session.commit()
        return prod

    def test_low_stock_filter(self, client, db_session, franchisee, stock, second_product):
        resp = client.get("/api/stocks?low_stock=true", headers=login(client, franchisee))
        assert resp.status_code == 200
        rows = resp.get_json()["data"]["data"]
        assert [r["product_id"] for r in rows] == [second_product.id]

    def test_product_filter(self, client, db_session, franchisee, product, stock, second_product):
        resp = client.get(f"/api/stocks?product_id={product.id}", headers=login(client, franchisee))
        rows = resp.get_json()["data"]["data"]
        assert len(rows) == 1
        assert rows[0]["available_qty"] == 100

    def test_default_page_size(self, client, db_session, franchisee, stock):
        resp = client.get("/api/stocks", headers=login(client, franchisee))
        assert resp.get_json()["data"]["pagination"]["limit"] == 20
