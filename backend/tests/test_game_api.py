# Overview: Pytest coverage for the API-key authenticated game sale endpoint.

from rpbiz.models import Invoice, Product, Sale, SecurityEvent


def _payload(business, product, quantity=1, **extra):
    payload = {
        "businessApiKey": business.api_key,
        "buyerName": "Player One",
        "items": [{"productId": product.id, "quantity": quantity}],
    }
    payload.update(extra)
    return payload


class TestGameSales:

    def test_valid_key_creates_sale(self, client, db_session, business, owner, product):
        resp = client.post("/api/game/sales", json=_payload(business, product, 2))
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["success"] is True
        assert body["totalAmount"] == "200.00"
        assert body["invoiceNumber"] == f"INV-{business.id:04d}-000001"

        sale = db_session.get(Sale, body["saleId"])
        assert sale.source == "game"
        assert sale.status == "completed"
        assert sale.seller_id == owner.id
        db_session.expire_all()
        assert db_session.get(Product, product.id).stock == 1

    def test_invalid_key_writes_nothing(self, client, db_session, business, product):
        resp = client.post("/api/game/sales", json=_payload(business, product, businessApiKey="rp_forged"))
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid API key"

        assert db_session.query(Sale).count() == 0
        assert db_session.query(Invoice).count() == 0
        db_session.expire_all()
        assert db_session.get(Product, product.id).stock == 3
        assert db_session.query(SecurityEvent).filter_by(event_type="INVALID_API_KEY").count() == 1

    def test_missing_key(self, client, db_session, business, product):
        payload = _payload(business, product)
        del payload["businessApiKey"]
        assert client.post("/api/game/sales", json=payload).status_code == 401

    def test_employee_seller_is_used(self, client, db_session, staffed_business, employee, product):
        resp = client.post("/api/game/sales", json=_payload(staffed_business, product, sellerId=employee.id))
        assert resp.status_code == 201
        assert db_session.get(Sale, resp.get_json()["saleId"]).seller_id == employee.id

    def test_unrelated_seller_falls_back_to_owner(self, client, db_session, business, owner, stranger, product):
        resp = client.post("/api/game/sales", json=_payload(business, product, sellerId=stranger.id))
        assert resp.status_code == 201
        assert db_session.get(Sale, resp.get_json()["saleId"]).seller_id == owner.id

    def test_client_price_ignored(self, client, db_session, business, product):
        payload = _payload(business, product)
        payload["items"][0]["price"] = "0.01"
        resp = client.post("/api/game/sales", json=payload)
        assert resp.get_json()["totalAmount"] == "100.00"

    def test_insufficient_stock(self, client, db_session, business, product):
        resp = client.post("/api/game/sales", json=_payload(business, product, 5))
        assert resp.status_code == 400
        assert "Insufficient stock" in resp.get_json()["error"]
        assert db_session.query(Sale).count() == 0

    def test_product_from_other_business(self, client, db_session, business, other_business, make_product):
        foreign = make_product(other_business, "Cocktail", 1500, 50)
        resp = client.post("/api/game/sales", json=_payload(business, foreign))
        assert resp.status_code == 400

    def test_rotated_key_stops_working(self, client, db_session, business, product, owner_headers):
        old_key = business.api_key
        resp = client.post(f"/api/businesses/{business.id}/api-key", headers=owner_headers)
        assert resp.status_code == 200
        new_key = resp.get_json()["apiKey"]
        assert new_key != old_key

        assert client.post("/api/game/sales", json=_payload(business, product, businessApiKey=old_key)).status_code == 401
        assert client.post("/api/game/sales", json=_payload(business, product, businessApiKey=new_key)).status_code == 201

    def test_inactive_business(self, client, db_session, business, product):
        business.is_active = False
        db_session.commit()
        assert client.post("/api/game/sales", json=_payload(business, product)).status_code == 403
