"""
Catalog and warehouse tests.

Verifies:
- Product creation, detail with per-warehouse stock, update and delete
- SKU uniqueness and category existence
- Products used in orders cannot be deleted
- Category list hides inactive categories unless asked
- Warehouse creation and validation
"""

import pytest

from drivncook.models import Order, OrderItem, Product, ProductCategory, Stock, Warehouse

from .conftest import login


def _product_payload(category, **overrides):
    payload = {
        "name": "Sauce barbecue",
        "sku": "SAU-010",
        "unit_price_cents": 450,
        "unit": "litre",
        "min_stock": 10,
        "category_id": category.id,
    }
    payload.update(overrides)
    return payload


class TestProducts:
    """/api/products"""

    def test_create_and_read(self, client, db_session, admin_user, category, warehouse):
        headers = login(client, admin_user)
        resp = client.post("/api/products", json=_product_payload(category), headers=headers)
        assert resp.status_code == 201
        product_id = resp.get_json()["data"]["id"]

        db_session.add(Stock(product_id=product_id, warehouse_id=warehouse.id, quantity=30, reserved_qty=5))
        db_session.commit()

        data = client.get(f"/api/products/{product_id}", headers=headers).get_json()["data"]
        assert data["sku"] == "SAU-010"
        assert data["category"]["name"] == "Viandes"
        assert data["total_quantity"] == 30
        assert data["stocks"] == [{
            "warehouse_id": warehouse.id,
            "warehouse_name": warehouse.name,
            "quantity": 30,
            "reserved_qty": 5,
            "available_qty": 25,
        }]

    def test_duplicate_sku(self, client, db_session, admin_user, category, product):
        resp = client.post("/api/products", json=_product_payload(category, sku=product.sku),
                           headers=login(client, admin_user))
        assert resp.status_code == 400
        assert db_session.query(Product).count() == 1

    def test_unknown_category(self, client, db_session, admin_user, category):
        resp = client.post("/api/products", json=_product_payload(category, category_id=9999),
                           headers=login(client, admin_user))
        assert resp.status_code == 404

    @pytest.mark.parametrize("overrides", [
        {"unit_price_cents": -1},
        {"unit_price_cents": "12.5"},
        {"name": "X"},
        {"sku": None},
        {"min_stock": -4},
    ])
    def test_invalid_product(self, client, db_session, admin_user, category, overrides):
        resp = client.post("/api/products", json=_product_payload(category, **overrides),
                           headers=login(client, admin_user))
        assert resp.status_code == 400
        assert db_session.query(Product).count() == 0

    def test_update_price(self, client, db_session, admin_user, product):
        resp = client.put(f"/api/products/{product.id}", json={"unit_price_cents": 1150, "is_active": False},
                          headers=login(client, admin_user))
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["unit_price_cents"] == 1150
        assert data["is_active"] is False

    def test_list_filters(self, client, db_session, franchisee, category, product):
        db_session.add(Product(name="Cheddar", sku="FRO-001", unit_price_cents=800, unit="kg", min_stock=0,
                               category_id=category.id, is_active=False))
        db_session.commit()
        headers = login(client, franchisee)

        def total(query):
            return client.get(f"/api/products?{query}", headers=headers).get_json()["data"]["pagination"]["total"]

        assert total("") == 2
        assert total("is_active=true") == 1
        assert total("search=fro-") == 1
        assert total(f"category_id={category.id}") == 2

    @pytest.mark.parametrize("query", [
        "sort_by=unit_price_cents&sort_order=asc",
        "sortBy=unit_price_cents&sortOrder=asc",
        "sortBy=unitPriceCents&sortOrder=ASC",
    ])
    def test_sort_parameters(self, client, db_session, franchisee, category, product, query):
        db_session.add_all([
            Product(name="Cheddar", sku="FRO-001", unit_price_cents=800, unit="kg", min_stock=0,
                    category_id=category.id, is_active=True),
            Product(name="Brioche", sku="BOU-001", unit_price_cents=1500, unit="piece", min_stock=0,
                    category_id=category.id, is_active=True),
        ])
        db_session.commit()

        resp = client.get(f"/api/products?{query}", headers=login(client, franchisee))
        assert resp.status_code == 200
        assert [p["unit_price_cents"] for p in resp.get_json()["data"]["data"]] == [800, 1000, 1500]

    def test_delete_unused_product(self, client, db_session, admin_user, product, stock):
        resp = client.delete(f"/api/products/{product.id}", headers=login(client, admin_user))
        assert resp.status_code == 200
        assert db_session.query(Product).count() == 0
        assert db_session.query(Stock).count() == 0

    def test_delete_ordered_product(self, client, db_session, admin_user, franchise, product, warehouse):
        order = Order(order_number="CMD-2026-000600", franchise_id=franchise.id, status="PENDING",
                      total_amount_cents=1000)
        db_session.add(order)
        db_session.commit()
        db_session.add(OrderItem(order_id=order.id, product_id=product.id, warehouse_id=warehouse.id,
                                 quantity=1, unit_price_cents=1000, total_price_cents=1000))
        db_session.commit()

        resp = client.delete(f"/api/products/{product.id}", headers=login(client, admin_user))
        assert resp.status_code == 400
        assert db_session.get(Product, product.id) is not None

    def test_unknown_product(self, client, db_session, franchisee):
        assert client.get("/api/products/4242", headers=login(client, franchisee)).status_code == 404


class TestCategories:
    """/api/product-categories"""

    def test_inactive_hidden_by_default(self, client, db_session, franchisee, category):
        db_session.add(ProductCategory(name="Archives", is_active=False))
        db_session.commit()
        headers = login(client, franchisee)

        names = [c["name"] for c in client.get("/api/product-categories", headers=headers).get_json()["data"]]
        assert names == ["Viandes"]

        resp = client.get("/api/product-categories?include_inactive=true", headers=headers)
        assert [c["name"] for c in resp.get_json()["data"]] == ["Archives", "Viandes"]

    def test_duplicate_name_is_case_insensitive(self, client, db_session, admin_user, category):
        resp = client.post("/api/product-categories", json={"name": "viandes"}, headers=login(client, admin_user))
        assert resp.status_code == 400

    def test_create(self, client, db_session, admin_user):
        resp = client.post("/api/product-categories", json={"name": "Boissons"}, headers=login(client, admin_user))
        assert resp.status_code == 201
        assert resp.get_json()["data"]["is_active"] is True


class TestWarehouses:
    """/api/warehouses"""

    def test_create_warehouse(self, client, db_session, admin_user):
        resp = client.post("/api/warehouses", json={
            "name": "Entrepôt Nord",
            "address": "1 rue du Port",
            "city": "Gennevilliers",
            "postal_code": "92230",
            "region": "Île-de-France",
            "capacity": 5000,
            "email": "nord@drivncook.test",
        }, headers=login(client, admin_user))
        assert resp.status_code == 201
        assert resp.get_json()["data"]["capacity"] == 5000

    @pytest.mark.parametrize("overrides", [
        {"postal_code": "9223"},
        {"capacity": 0},
        {"email": "pas-un-email"},
        {"latitude": 120},
    ])
    def test_invalid_warehouse(self, client, db_session, admin_user, overrides):
        payload = {
            "name": "Entrepôt Nord",
            "address": "1 rue du Port",
            "city": "Gennevilliers",
            "postal_code": "92230",
            "region": "Île-de-France",
            "capacity": 5000,
        }
        payload.update(overrides)
        resp = client.post("/api/warehouses", json=payload, headers=login(client, admin_user))
        assert resp.status_code == 400
        assert db_session.query(Warehouse).count() == 0

    def test_franchisee_reads_warehouses(self, client, db_session, franchisee, warehouse):
        headers = login(client, franchisee)
        resp = client.get("/api/warehouses", headers=headers)
        assert resp.get_json()["data"]["pagination"]["total"] == 1
        assert client.get(f"/api/warehouses/{warehouse.id}", headers=headers).status_code == 200
        assert client.put(f"/api/warehouses/{warehouse.id}", json={"capacity": 1}, headers=headers).status_code == 403
