# Overview: Flask API routes for sales; parses input and returns JSON responses.

"""
Sales API routes.

Sales are created in one request together with their items and invoice and
are never edited afterwards; only the invoice status moves.
"""

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth
from ..services import sales_service
from ..services.access_service import AccessDeniedError, NotFoundError
from ..services.products_service import paginate
from ..services.sales_service import SaleError
from ..validation import ValidationError, db_int, parse_sale_items, require_int

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    Query params:
    - businessId: int (optional)
    - status: pending | completed | cancelled (optional)
    - source: web | game (optional)
    - page / perPage: int (optional)
    """
    try:
        query = sales_service.list_sales_query(
            g.current_user.id,
            business_id=request.args.get("businessId", type=db_int),
            status=request.args.get("status") or None,
            source=request.args.get("source") or None,
        )
        result = paginate(
            query,
            request.args.get("page", type=db_int),
            request.args.get("perPage", type=db_int),
            lambda s: s.to_dict(include_items=True, include_invoice=True),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except AccessDeniedError as e:
        return {"error": str(e)}, 403

    return result, 200


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Create a sale for a business the caller belongs to.

    Body: {businessId, buyerName, buyerInfo?, status?, items: [{productId, quantity}]}

    Item prices and names are read from the products; any price sent by the
    client is ignored.
    """
    payload = request.get_json(silent=True) or {}

    try:
        business_id = require_int(payload, "businessId")
        lines = parse_sale_items(payload.get("items"))
        buyer_info = payload.get("buyerInfo")
        if buyer_info is not None and not isinstance(buyer_info, str):
            raise ValidationError("buyerInfo must be a string")

        sale = sales_service.create_web_sale(
            business_id=business_id,
            user_id=g.current_user.id,
            buyer_name=payload.get("buyerName"),
            buyer_info=buyer_info,
            lines=lines,
            status=payload.get("status"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except AccessDeniedError as e:
        return {"error": str(e)}, 403
    except SaleError as e:
        body = {"error": str(e)}
        if e.details:
            body["details"] = e.details
        return body, 400
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return {"error": "Internal server error"}, 500

    current_app.logger.info(
        "Sale %s created for business %s by %s (%s)",
        sale.id, sale.business_id, sale.seller_id, sale.invoice.invoice_number,
    )
    return sale.to_dict(include_items=True, include_invoice=True), 201


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id, g.current_user.id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except AccessDeniedError as e:
        return {"error": str(e)}, 403

    return sale.to_dict(include_items=True, include_invoice=True), 200
