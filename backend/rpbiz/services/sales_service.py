"""
Sales Service - sale creation and lookups

A sale is created in one shot: every requested line is checked against the
business and current stock before anything is written, then the sale, its
items, the stock decrements and the invoice are written in a single
transaction. A failure at any point (including a concurrent sale winning
the last unit of stock) rolls all of it back.

Prices and product names always come from the product rows at the time of
sale, never from the caller.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import false

from ..extensions import db
from ..models import Business, Product, Sale, SaleItem
from ..models.sales import SALE_SOURCES, SALE_STATUSES
from ..money import MAX_SALE_TOTAL_CENTS
from ..validation import ValidationError, parse_buyer_name
from rpbiz.time_utils import utcnow
from .access_service import MEMBER, NotFoundError, accessible_business_ids, is_authorized, require_business_access
from .concurrency import lock_for_update, run_with_retry
from .invoice_service import issue_invoice
from .products_service import InsufficientStockError, decrement_stock

# Sales are never created already cancelled
CREATABLE_SALE_STATUSES = ("pending", "completed")


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ProductNotFoundError(SaleError):
    """A requested product does not exist."""


class ProductBusinessMismatchError(SaleError):
    """A requested product belongs to a different business."""


class InsufficientStockSaleError(SaleError):
    """A requested quantity exceeds the product's stock."""


def _resolve_lines(business: Business, lines: list[tuple[int, int]]) -> list[tuple[Product, int]]:
    """
    Load and lock every requested product, checking business and stock.

    Quantities for a product requested on several lines are summed before
    the stock check.
    """
    product_ids = sorted({product_id for product_id, _ in lines})
    products = {
        p.id: p
        for p in lock_for_update(
            db.session.query(Product).filter(Product.id.in_(product_ids)).order_by(Product.id)
        ).all()
    }

    requested: dict[int, int] = {}
    resolved: list[tuple[Product, int]] = []
    for product_id, quantity in lines:
        product = products.get(product_id)
        if product is None:
            raise ProductNotFoundError(
                f"Product {product_id} not found",
                details={"productId": product_id},
            )
        if product.business_id != business.id:
            raise ProductBusinessMismatchError(
                f"Product {product.name} does not belong to this business",
                details={"productId": product_id, "businessId": business.id},
            )
        requested[product_id] = requested.get(product_id, 0) + quantity
        resolved.append((product, quantity))

    insufficient = []
    for product_id, qty in requested.items():
        product = products[product_id]
        if (product.stock or 0) < qty:
            insufficient.append({
                "productId": product_id,
                "productName": product.name,
                "requestedQuantity": qty,
                "stock": product.stock or 0,
            })

    if insufficient:
        names = ", ".join(item["productName"] for item in insufficient)
        raise InsufficientStockSaleError(
            f"Insufficient stock for {names}",
            details={"items": insufficient},
        )

    return resolved


def create_sale(
    *,
    business_id: int,
    seller_id: str,
    buyer_name: str,
    lines: list[tuple[int, int]],
    buyer_info: str | None = None,
    status: str = "completed",
    source: str = "web",
    due_date: datetime | None = None,
) -> Sale:
    """
    Create a sale with its items and invoice as one atomic unit.

    The seller must already be authorized for the business; callers check
    that through access_service (web) or the API key (game).

    Raises:
        ValidationError for malformed input
        NotFoundError if the business doesn't exist
        SaleError subclasses for product/stock problems
    """
    buyer_name = parse_buyer_name(buyer_name)
    if not lines:
        raise ValidationError("items must be a non-empty list")
    for product_id, quantity in lines:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError(f"quantity for product {product_id} must be a positive integer")
    if status not in SALE_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(SALE_STATUSES)}")
    if source not in SALE_SOURCES:
        raise ValidationError(f"source must be one of: {', '.join(SALE_SOURCES)}")

    def _op() -> Sale:
        business = db.session.query(Business).filter_by(id=business_id).first()
        if not business:
            raise NotFoundError("Business not found")

        try:
            resolved = _resolve_lines(business, lines)
            total_cents = sum(product.price_cents * quantity for product, quantity in resolved)
            if total_cents > MAX_SALE_TOTAL_CENTS:
                raise ValidationError("sale total is too large")

            sale = Sale(
                business_id=business.id,
                seller_id=seller_id,
                buyer_name=buyer_name,
                buyer_info=buyer_info,
                status=status,
                source=source,
                total_amount_cents=0,
                created_at=utcnow(),
            )
            db.session.add(sale)

            for product, quantity in resolved:
                unit_price_cents = product.price_cents
                line_total_cents = unit_price_cents * quantity

                sale.items.append(SaleItem(
                    product_id=product.id,
                    product_name=product.name,
                    quantity=quantity,
                    unit_price_cents=unit_price_cents,
                    total_price_cents=line_total_cents,
                ))

                try:
                    decrement_stock(product_id=product.id, business_id=business.id, quantity=quantity)
                except InsufficientStockError as exc:
                    raise InsufficientStockSaleError(
                        f"Insufficient stock for {product.name}",
                        details=exc.details,
                    ) from exc

            sale.total_amount_cents = total_cents
            db.session.flush()

            issue_invoice(sale, due_date=due_date)

            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        return sale

    return run_with_retry(_op)


def create_web_sale(
    *,
    business_id: int,
    user_id: str,
    buyer_name,
    lines: list[tuple[int, int]],
    buyer_info: str | None = None,
    status: str | None = None,
) -> Sale:
    """Sale entered by a logged-in member; the member is the seller."""
    require_business_access(business_id, user_id, MEMBER)

    status = status or "completed"
    if status not in CREATABLE_SALE_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(CREATABLE_SALE_STATUSES)}")

    return create_sale(
        business_id=business_id,
        seller_id=user_id,
        buyer_name=buyer_name,
        buyer_info=buyer_info,
        lines=lines,
        status=status,
        source="web",
    )


def resolve_game_seller(business: Business, seller_id: str | None) -> str:
    """
    Seller for a game-server sale.

    A supplied seller id is used only if that user is the owner or an
    employee of the business; anything else falls back to the owner.
    """
    if seller_id and is_authorized(str(seller_id), business.id):
        return str(seller_id)
    return business.owner_id


def create_game_sale(
    *,
    business: Business,
    buyer_name,
    lines: list[tuple[int, int]],
    buyer_info: str | None = None,
    seller_id: str | None = None,
) -> Sale:
    """Sale pushed by a game server authenticated with the business's API key."""
    return create_sale(
        business_id=business.id,
        seller_id=resolve_game_seller(business, seller_id),
        buyer_name=buyer_name,
        buyer_info=buyer_info,
        lines=lines,
        status="completed",
        source="game",
    )


def get_sale(sale_id: int, user_id: str) -> Sale:
    sale = db.session.query(Sale).filter_by(id=sale_id).first()
    if not sale:
        raise NotFoundError("Sale not found")
    require_business_access(sale.business_id, user_id, MEMBER)
    return sale


def list_sales_query(
    user_id: str,
    business_id: int | None = None,
    status: str | None = None,
    source: str | None = None,
):
    """Query for the sales of every business the user can access, newest first."""
    if business_id is not None:
        require_business_access(business_id, user_id, MEMBER)
        business_ids = {business_id}
    else:
        business_ids = accessible_business_ids(user_id)

    query = db.session.query(Sale)
    if business_ids:
        query = query.filter(Sale.business_id.in_(business_ids))
    else:
        query = query.filter(false())
    if status is not None:
        if status not in SALE_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(SALE_STATUSES)}")
        query = query.filter(Sale.status == status)
    if source is not None:
        if source not in SALE_SOURCES:
            raise ValidationError(f"source must be one of: {', '.join(SALE_SOURCES)}")
        query = query.filter(Sale.source == source)

    return query.order_by(Sale.created_at.desc(), Sale.id.desc())
