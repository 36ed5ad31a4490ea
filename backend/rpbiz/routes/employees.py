# Overview: Flask API routes for business memberships.

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth
from ..services import business_service
from ..services.access_service import AccessDeniedError, NotFoundError
from ..validation import ConflictError, ValidationError, db_int, require_int, validate_employee_role

employees_bp = Blueprint("employees", __name__, url_prefix="/api/employees")


@employees_bp.get("")
@require_auth
def list_employees_route():
    """
    Employees of every business the caller can access.

    Query params:
    - businessId: int (optional) - restrict to one business
    """
    business_id = request.args.get("businessId", type=db_int)
    try:
        employees = business_service.list_employees(g.current_user.id, business_id=business_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except AccessDeniedError as e:
        return {"error": str(e)}, 403

    items = [e.to_dict(include_user=True, include_business=True) for e in employees]
    return {"items": items, "count": len(items)}, 200


@employees_bp.post("")
@require_auth
def add_employee_route():
    """
    Add a user to a business by email (owner only).

    Body: {businessId, email, role?}
    """
    payload = request.get_json(silent=True) or {}

    try:
        business_id = require_int(payload, "businessId")
        email = payload.get("email")
        if not isinstance(email, str) or not email.strip():
            raise ValidationError("email required")
        role = validate_employee_role(payload.get("role"))
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        employee = business_service.add_employee(
            business_id=business_id,
            email=email,
            role=role,
            user_id=g.current_user.id,
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except AccessDeniedError as e:
        return {"error": str(e)}, 403
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to add employee")
        return {"error": "Internal server error"}, 500

    return employee.to_dict(include_user=True, include_business=True), 201


@employees_bp.delete("/<int:employee_id>")
@require_auth
def remove_employee_route(employee_id: int):
    try:
        business_service.remove_employee(employee_id, g.current_user.id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except AccessDeniedError as e:
        return {"error": str(e)}, 403

    return {"success": True}, 200
