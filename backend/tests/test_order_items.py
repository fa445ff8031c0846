"""
Order item tests.

Verifies:
- Adding an item reserves stock; a reservation beyond availability fails
  and writes nothing
- The order total always equals the sum of its item totals
- Removing an item releases its reservation
- Closed orders cannot be edited
"""

import pytest

from drivncook.models import Order, OrderItem, Product, Stock

from .conftest import login


@pytest.fixture
def order(db_session, franchise):
    order = Order(order_number="CMD-2026-000500", franchise_id=franchise.id, status="PENDING", total_amount_cents=0)
    db_session.add(order)
    db_session.commit()
    return order


def _add(client, headers, order, product, warehouse, quantity, **extra):
    payload = {
        "order_id": order.id,
        "product_id": product.id,
        "warehouse_id": warehouse.id,
        "quantity": quantity,
    }
    payload.update(extra)
    return client.post("/api/order-items", json=payload, headers=headers)


class TestReservation:
    """Stock is held as soon as an item is added."""

    def test_add_item_reserves_stock(self, client, db_session, franchisee, order, product, warehouse, stock):
        resp = _add(client, login(client, franchisee), order, product, warehouse, 30)
        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["item"]["quantity"] == 30
        assert data["item"]["unit_price_cents"] == product.unit_price_cents
        assert data["item"]["total_price_cents"] == 30 * product.unit_price_cents
        assert data["order_total_cents"] == 30 * product.unit_price_cents

        db_session.expire_all()
        refreshed = db_session.get(Stock, stock.id)
        assert refreshed.reserved_qty == 30
        assert refreshed.quantity == 100

    def test_over_reservation_fails_atomically(self, client, db_session, franchisee, order, product, warehouse, stock):
        headers = login(client, franchisee)
        assert _add(client, headers, order, product, warehouse, 30).status_code == 201

        resp = _add(client, headers, order, product, warehouse, 80)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Stock insuffisant"

        db_session.expire_all()
        assert db_session.get(Stock, stock.id).reserved_qty == 30
        assert db_session.query(OrderItem).count() == 1
        assert db_session.get(Order, order.id).total_amount_cents == 30 * product.unit_price_cents

    def test_exact_availability_is_accepted(self, client, db_session, franchisee, order, product, warehouse, stock):
        headers = login(client, franchisee)
        assert _add(client, headers, order, product, warehouse, 100).status_code == 201
        assert _add(client, headers, order, product, warehouse, 1).status_code == 400

    def test_no_stock_row(self, client, db_session, franchisee, order, product, warehouse):
        resp = _add(client, login(client, franchisee), order, product, warehouse, 1)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Stock insuffisant"

    @pytest.mark.parametrize("quantity", [0, -3, "deux", 1.5])
    def test_invalid_quantity(self, client, db_session, franchisee, order, product, warehouse, stock, quantity):
        resp = _add(client, login(client, franchisee), order, product, warehouse, quantity)
        assert resp.status_code == 400

        db_session.expire_all()
        assert db_session.get(Stock, stock.id).reserved_qty == 0

    def test_unknown_product(self, client, db_session, franchisee, order, warehouse):
        resp = client.post("/api/order-items", json={
            "order_id": order.id, "product_id": 9999, "warehouse_id": warehouse.id, "quantity": 1,
        }, headers=login(client, franchisee))
        assert resp.status_code == 404


class TestTotals:
    """total_amount_cents == sum(item.total_price_cents)"""

    def test_total_is_sum_of_items(self, client, db_session, franchisee, order, category, product, warehouse, stock):
        second = Product(name="Pain brioché", sku="BOU-001", unit_price_cents=250, unit="pièce",
                         min_stock=0, category_id=category.id, is_active=True)
        db_session.add(second)
        db_session.commit()
        db_session.add(Stock(product_id=second.id, warehouse_id=warehouse.id, quantity=500, reserved_qty=0))
        db_session.commit()

        headers = login(client, franchisee)
        _add(client, headers, order, product, warehouse, 3)
        _add(client, headers, order, second, warehouse, 40)
        resp = _add(client, headers, order, product, warehouse, 2, unit_price_cents=900)
        assert resp.get_json()["data"]["order_total_cents"] == 3 * 1000 + 40 * 250 + 2 * 900

        items = client.get(f"/api/order-items?order_id={order.id}", headers=headers).get_json()["data"]
        assert len(items) == 3

        db_session.expire_all()
        refreshed = db_session.get(Order, order.id)
        assert refreshed.total_amount_cents == sum(i.total_price_cents for i in refreshed.items)

    def test_remove_item_releases_and_recomputes(self, client, db_session, franchisee, order, product, warehouse, stock):
        headers = login(client, franchisee)
        first = _add(client, headers, order, product, warehouse, 10).get_json()["data"]["item"]
        _add(client, headers, order, product, warehouse, 5)

        resp = client.delete(f"/api/order-items/{first['id']}", headers=headers)
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["total_amount_cents"] == 5 * product.unit_price_cents
        assert [i["quantity"] for i in data["items"]] == [5]

        db_session.expire_all()
        assert db_session.get(Stock, stock.id).reserved_qty == 5

    def test_listing_requires_order_id(self, client, db_session, franchisee):
        resp = client.get("/api/order-items", headers=login(client, franchisee))
        assert resp.status_code == 400


class TestClosedOrders:
    """Only DRAFT and PENDING orders accept item changes."""

    @pytest.mark.parametrize("status", ["CONFIRMED", "IN_PREPARATION", "SHIPPED", "DELIVERED", "CANCELLED", "PAID"])
    def test_cannot_add_to_closed_order(self, client, db_session, franchisee, order, product, warehouse, stock, status):
        order.status = status
        db_session.commit()

        resp = _add(client, login(client, franchisee), order, product, warehouse, 1)
        assert resp.status_code == 400

        db_session.expire_all()
        assert db_session.get(Stock, stock.id).reserved_qty == 0

    def test_cannot_remove_from_closed_order(self, client, db_session, franchisee, order, product, warehouse, stock):
        headers = login(client, franchisee)
        item_id = _add(client, headers, order, product, warehouse, 4).get_json()["data"]["item"]["id"]
        order.status = "SHIPPED"
        db_session.commit()

        assert client.delete(f"/api/order-items/{item_id}", headers=headers).status_code == 400

        db_session.expire_all()
        assert db_session.get(Stock, stock.id).reserved_qty == 4

    def test_draft_order_accepts_items(self, client, db_session, franchisee, order, product, warehouse, stock):
        order.status = "DRAFT"
        db_session.commit()
        assert _add(client, login(client, franchisee), order, product, warehouse, 1).status_code == 201

    def test_foreign_order(self, client, db_session, other_franchisee, order, product, warehouse, stock):
        resp = _add(client, login(client, other_franchisee), order, product, warehouse, 1)
        assert resp.status_code == 403
