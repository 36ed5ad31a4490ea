# Overview: Read-only dashboard rollups over the businesses a user can access.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Sale
from ..money import format_cents
from .access_service import accessible_business_ids
from .products_service import low_stock_query
from rpbiz.time_utils import start_of_local_day_utc


def get_dashboard_stats(user_id: str, threshold: int | None = None) -> dict:
    """
    Rollups for the dashboard header.

    - totalSalesToday: revenue of completed sales since local midnight
    - totalOrders: completed sales ever
    - lowStockItems: products at or below the low-stock threshold
    - totalBusinesses: businesses the user owns or works at
    """
    business_ids = accessible_business_ids(user_id)
    if not business_ids:
        return {
            "totalSalesToday": format_cents(0),
            "totalSalesTodayCents": 0,
            "totalOrders": 0,
            "lowStockItems": 0,
            "totalBusinesses": 0,
        }

    completed = db.session.query(Sale).filter(
        Sale.business_id.in_(business_ids),
        Sale.status == "completed",
    )

    today_cents = (
        completed.filter(Sale.created_at >= start_of_local_day_utc())
        .with_entities(func.coalesce(func.sum(Sale.total_amount_cents), 0))
        .scalar()
    )
    total_orders = completed.with_entities(func.count(Sale.id)).scalar()
    low_stock = low_stock_query(business_ids, threshold).count()

    return {
        "totalSalesToday": format_cents(int(today_cents)),
        "totalSalesTodayCents": int(today_cents),
        "totalOrders": int(total_orders or 0),
        "lowStockItems": low_stock,
        "totalBusinesses": len(business_ids),
    }
