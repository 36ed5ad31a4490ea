# Overview: Pytest coverage for dashboard rollups.

from datetime import timedelta

from rpbiz.models import Sale
from rpbiz.services import sales_service
from rpbiz.services.dashboard_service import get_dashboard_stats
from rpbiz.time_utils import start_of_local_day_utc


class TestDashboardStats:

    def test_empty(self, db_session, stranger):
        assert get_dashboard_stats(stranger.id) == {
            "totalSalesToday": "0.00",
            "totalSalesTodayCents": 0,
            "totalOrders": 0,
            "lowStockItems": 0,
            "totalBusinesses": 0,
        }

    def test_rollups(self, db_session, business, other_business, owner, product, make_product):
        make_product(business, "Spark Plug", 300, 40)
        sales_service.create_web_sale(
            business_id=business.id, user_id=owner.id, buyer_name="A", lines=[(product.id, 1)],
        )
        sales_service.create_web_sale(
            business_id=business.id, user_id=owner.id, buyer_name="B", lines=[(product.id, 1)],
            status="pending",
        )
        old = sales_service.create_web_sale(
            business_id=business.id, user_id=owner.id, buyer_name="C", lines=[(product.id, 1)],
        )
        old.created_at = start_of_local_day_utc() - timedelta(hours=1)
        db_session.commit()

        stats = get_dashboard_stats(owner.id)
        assert stats["totalSalesToday"] == "100.00"
        assert stats["totalOrders"] == 2
        # Repair Kit drained to 0, Spark Plug still at 40
        assert stats["lowStockItems"] == 1
        assert stats["totalBusinesses"] == 1

    def test_route(self, client, staffed_business, product, employee_headers):
        resp = client.get("/api/dashboard/stats", headers=employee_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["totalBusinesses"] == 1
        assert body["lowStockItems"] == 1
