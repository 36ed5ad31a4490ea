# Overview: Pytest coverage for product CRUD, low-stock queries and the conditional stock decrement.

import pytest

from rpbiz.models import Product, Sale
from rpbiz.services import sales_service
from rpbiz.services.products_service import InsufficientStockError, decrement_stock


class TestProductRoutes:

    def test_create_product(self, client, db_session, business, owner_headers):
        resp = client.post(
            "/api/products",
            json={"businessId": business.id, "name": "Engine Oil", "price": "19.99", "stock": 12},
            headers=owner_headers,
        )
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["price"] == "19.99"
        assert body["priceCents"] == 1999
        assert body["stock"] == 12
        assert body["businessId"] == business.id

    def test_employee_can_create_product(self, client, staffed_business, employee_headers):
        resp = client.post(
            "/api/products",
            json={"businessId": staffed_business.id, "name": "Wrench", "price": 5},
            headers=employee_headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["stock"] == 0

    @pytest.mark.parametrize("payload, message", [
        ({"name": "X", "price": "1.00"}, "name must be at least 2 characters"),
        ({"name": "Valid", "price": "-1.00"}, "price must be >= 0"),
        ({"name": "Valid", "price": "1.001"}, "price: amount cannot have more than 2 decimal places"),
        ({"name": "Valid", "price": "1.00", "stock": -3}, "stock must be >= 0"),
        ({"name": "Valid"}, "Missing required fields: price"),
        ({"name": "Valid", "price": "1.00", "sku": "ABC"}, "Field not allowed: sku"),
    ])
    def test_create_product_validation(self, client, business, owner_headers, payload, message):
        payload = dict(payload, businessId=business.id)
        resp = client.post("/api/products", json=payload, headers=owner_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == message

    def test_create_requires_business_id(self, client, owner_headers):
        resp = client.post("/api/products", json={"name": "Orphan", "price": "1.00"}, headers=owner_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "businessId required"

    def test_update_ignores_business_change(self, client, db_session, business, other_business, product, owner_headers):
        resp = client.patch(
            f"/api/products/{product.id}",
            json={"businessId": other_business.id, "stock": 9, "price": "120.50"},
            headers=owner_headers,
        )
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["businessId"] == business.id
        assert body["stock"] == 9
        assert body["price"] == "120.50"

    def test_list_products_across_businesses(self, client, business, product, make_product, owner_headers):
        make_product(business, "Spark Plug", 300, 40)
        resp = client.get("/api/products", headers=owner_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["count"] == 2
        assert body["items"][0]["business"]["id"] == business.id

    def test_list_low_stock(self, client, business, product, make_product, owner_headers):
        make_product(business, "Spark Plug", 300, 40)
        resp = client.get("/api/products?lowStock=true", headers=owner_headers)
        body = resp.get_json()
        assert [p["name"] for p in body["items"]] == ["Repair Kit"]

        resp = client.get("/api/products?lowStock=true&threshold=2", headers=owner_headers)
        assert resp.get_json()["count"] == 0

    def test_list_foreign_business_forbidden(self, client, other_business, owner_headers):
        resp = client.get(f"/api/products?businessId={other_business.id}", headers=owner_headers)
        assert resp.status_code == 403

    def test_only_owner_deletes(self, client, staffed_business, product, employee_headers, owner_headers):
        resp = client.delete(f"/api/products/{product.id}", headers=employee_headers)
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "Only the owner can perform this action"

        resp = client.delete(f"/api/products/{product.id}", headers=owner_headers)
        assert resp.status_code == 200

    def test_delete_keeps_sale_snapshots(self, client, db_session, business, owner, product, owner_headers):
        sale = sales_service.create_web_sale(
            business_id=business.id, user_id=owner.id, buyer_name="A", lines=[(product.id, 1)],
        )
        resp = client.delete(f"/api/products/{product.id}", headers=owner_headers)
        assert resp.status_code == 200

        db_session.expire_all()
        item = db_session.get(Sale, sale.id).items[0]
        assert item.product_id is None
        assert item.product_name == "Repair Kit"


class TestDecrementStock:

    def test_decrement(self, db_session, business, product):
        decrement_stock(product_id=product.id, business_id=business.id, quantity=2)
        db_session.commit()
        db_session.expire_all()
        assert db_session.get(Product, product.id).stock == 1

    def test_refuses_to_go_negative(self, db_session, business, product):
        with pytest.raises(InsufficientStockError):
            decrement_stock(product_id=product.id, business_id=business.id, quantity=4)
        db_session.rollback()
        assert db_session.get(Product, product.id).stock == 3

    def test_wrong_business_matches_nothing(self, db_session, other_business, product):
        with pytest.raises(InsufficientStockError):
            decrement_stock(product_id=product.id, business_id=other_business.id, quantity=1)
        db_session.rollback()

    def test_stock_change_behind_the_orms_back(self, db_session, business, product):
        """A concurrent writer draining stock makes the guarded UPDATE affect zero rows."""
        db_session.execute(
            Product.__table__.update().where(Product.id == product.id).values(stock=0)
        )
        with pytest.raises(InsufficientStockError):
            decrement_stock(product_id=product.id, business_id=business.id, quantity=1)
        db_session.rollback()


class TestProductIntegerBounds:

    def test_patch_stock_out_of_range(self, client, db_session, product, owner_headers):
        resp = client.patch(f"/api/products/{product.id}", json={"stock": 10 ** 20}, headers=owner_headers)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "stock is out of range"
        db_session.expire_all()
        assert db_session.get(Product, product.id).stock == 3

    def test_create_with_huge_business_id(self, client, owner_headers):
        resp = client.post(
            "/api/products",
            json={"businessId": 10 ** 20, "name": "Wrench", "price": "5.00"},
            headers=owner_headers,
        )
        assert resp.status_code == 400

    def test_huge_path_id_is_not_found(self, client, owner_headers):
        resp = client.get(f"/api/products/{10 ** 20}", headers=owner_headers)
        assert resp.status_code == 404

    def test_huge_business_filter_is_ignored(self, client, product, owner_headers):
        resp = client.get(f"/api/products?businessId={10 ** 20}", headers=owner_headers)
        assert resp.status_code == 200
        assert resp.get_json()["count"] == 1
