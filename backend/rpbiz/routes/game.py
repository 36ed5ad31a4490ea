# Overview: Game-server integration route, authenticated by a business API key.

"""
Game integration API.

Game servers push sales with the business's API key in the request body
instead of a user session. The seller defaults to the business owner unless
a sellerId belonging to the owner or an employee is supplied. Only
productId and quantity are read from each item; prices always come from
the product rows.
"""

from flask import Blueprint, current_app, request

from ..money import format_cents
from ..services import business_service, sales_service
from ..services.access_service import NotFoundError
from ..services.sales_service import SaleError
from ..validation import ValidationError, parse_sale_items

game_bp = Blueprint("game", __name__, url_prefix="/api/game")


@game_bp.post("/sales")
def create_game_sale_route():
    """
    Body: {businessApiKey, buyerName, buyerInfo?, sellerId?, items: [{productId, quantity}]}

    Returns 201 {success, saleId, invoiceNumber, totalAmount}, 401 for an
    unknown key, 400 for validation or stock failures.
    """
    payload = request.get_json(silent=True) or {}

    business = business_service.get_business_by_api_key(payload.get("businessApiKey"))
    if business is None:
        return {"error": "Invalid API key"}, 401
    if not business.is_active:
        return {"error": "Business is inactive"}, 403

    try:
        lines = parse_sale_items(payload.get("items"))
        buyer_info = payload.get("buyerInfo")
        if buyer_info is not None and not isinstance(buyer_info, str):
            raise ValidationError("buyerInfo must be a string")

        sale = sales_service.create_game_sale(
            business=business,
            buyer_name=payload.get("buyerName"),
            buyer_info=buyer_info,
            lines=lines,
            seller_id=payload.get("sellerId"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except SaleError as e:
        body = {"error": str(e)}
        if e.details:
            body["details"] = e.details
        return body, 400
    except Exception:
        current_app.logger.exception("Failed to create game sale")
        return {"error": "Internal server error"}, 500

    current_app.logger.info("Game sale %s recorded for business %s", sale.id, sale.business_id)
    return {
        "success": True,
        "saleId": sale.id,
        "invoiceNumber": sale.invoice.invoice_number,
        "totalAmount": format_cents(sale.total_amount_cents),
    }, 201
