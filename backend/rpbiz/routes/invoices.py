# Overview: Flask API routes for invoices.

from flask import Blueprint, g, request

from ..decorators import require_auth
from ..services import invoice_service
from ..services.access_service import AccessDeniedError, NotFoundError
from ..services.invoice_service import InvoiceError
from rpbiz.time_utils import parse_iso_datetime
from ..validation import db_int

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.get("")
@require_auth
def list_invoices_route():
    """
    Query params:
    - status: pending | paid | cancelled (optional)
    - businessId: int (optional)
    """
    try:
        invoices = invoice_service.list_invoices(
            g.current_user.id,
            status=request.args.get("status") or None,
            business_id=request.args.get("businessId", type=db_int),
        )
    except InvoiceError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except AccessDeniedError as e:
        return {"error": str(e)}, 403

    items = [i.to_dict(include_sale=True) for i in invoices]
    return {"items": items, "count": len(items)}, 200


@invoices_bp.get("/<int:invoice_id>")
@require_auth
def get_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(invoice_id, g.current_user.id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except AccessDeniedError as e:
        return {"error": str(e)}, 403

    return invoice.to_dict(include_sale=True), 200


@invoices_bp.patch("/<int:invoice_id>")
@require_auth
def update_invoice_route(invoice_id: int):
    """
    Body: {status?, dueDate?}

    Marking an invoice paid stamps paidAt the first time only.
    """
    payload = request.get_json(silent=True) or {}

    unknown = set(payload) - {"status", "dueDate"}
    if unknown:
        return {"error": f"Field not allowed: {sorted(unknown)[0]}"}, 400
    if not payload:
        return {"error": "status or dueDate required"}, 400

    kwargs = {}
    if "status" in payload:
        if not isinstance(payload["status"], str):
            return {"error": "status must be a string"}, 400
        kwargs["status"] = payload["status"]
    if "dueDate" in payload:
        raw = payload["dueDate"]
        if raw is not None and not isinstance(raw, str):
            return {"error": "dueDate must be an ISO-8601 datetime"}, 400
        try:
            kwargs["due_date"] = parse_iso_datetime(raw)
        except ValueError:
            return {"error": "dueDate must be an ISO-8601 datetime"}, 400

    try:
        invoice = invoice_service.update_invoice(invoice_id, g.current_user.id, **kwargs)
    except InvoiceError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except AccessDeniedError as e:
        return {"error": str(e)}, 403

    return invoice.to_dict(include_sale=True), 200
