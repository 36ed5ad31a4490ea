from __future__ import annotations

import secrets

from sqlalchemy.exc import IntegrityError

from rpbiz.extensions import db
from rpbiz.models import Business, BusinessEmployee, Sale, User
from rpbiz.services.access_service import (
    MEMBER,
    OWNER,
    NotFoundError,
    accessible_business_ids,
    log_security_event,
    require_business_access,
)
from rpbiz.services.concurrency import lock_for_update
from rpbiz.services.invoice_service import ensure_invoice_sequence
from rpbiz.validation import ConflictError

API_KEY_PREFIX = "rp_"

BUSINESS_MUTABLE_FIELDS = {"name", "business_type", "description", "is_active"}


def generate_api_key() -> str:
    """Game-integration key: fixed prefix plus 32 hex chars from a CSPRNG."""
    return f"{API_KEY_PREFIX}{secrets.token_hex(16)}"


def create_business(*, owner_id: str, patch: dict) -> Business:
    """Create a business owned by ``owner_id`` with a fresh API key and invoice counter."""
    business = Business(owner_id=owner_id, api_key=generate_api_key(), is_active=True)
    for k, v in patch.items():
        if k in BUSINESS_MUTABLE_FIELDS:
            setattr(business, k, v)

    db.session.add(business)
    db.session.flush()
    ensure_invoice_sequence(business.id)
    db.session.commit()
    return business


def list_businesses(user_id: str) -> list[Business]:
    """Businesses the user owns or works at, owned ones first."""
    business_ids = accessible_business_ids(user_id)
    if not business_ids:
        return []
    businesses = (
        db.session.query(Business)
        .filter(Business.id.in_(business_ids))
        .order_by(Business.created_at.asc(), Business.id.asc())
        .all()
    )
    return sorted(businesses, key=lambda b: b.owner_id != user_id)


def get_business(business_id: int, user_id: str) -> Business:
    return require_business_access(business_id, user_id, MEMBER)


def get_business_by_api_key(api_key: str | None) -> Business | None:
    """
    Resolve a game-integration API key.

    Unknown keys are logged as security events and return None.
    """
    if not api_key or not isinstance(api_key, str):
        return None
    business = db.session.query(Business).filter_by(api_key=api_key).first()
    if business is None:
        log_security_event(
            user_id=None,
            event_type="INVALID_API_KEY",
            success=False,
            reason="Unknown business API key",
        )
    return business


def update_business(business_id: int, user_id: str, patch: dict) -> Business:
    business = require_business_access(business_id, user_id, OWNER)
    for k, v in patch.items():
        if k in BUSINESS_MUTABLE_FIELDS:
            setattr(business, k, v)
    db.session.commit()
    return business


def delete_business(business_id: int, user_id: str) -> None:
    """Delete a business together with its employees, products, sales and invoices."""
    business = require_business_access(business_id, user_id, OWNER)

    # Sales go first so their items release product references before products are removed
    for sale in db.session.query(Sale).filter_by(business_id=business.id).all():
        db.session.delete(sale)
    db.session.flush()

    db.session.delete(business)
    db.session.commit()


def rotate_api_key(business_id: int, user_id: str) -> Business:
    """Replace the business's API key; the old key stops working immediately."""
    require_business_access(business_id, user_id, OWNER)
    business = lock_for_update(db.session.query(Business).filter_by(id=business_id)).first()
    business.api_key = generate_api_key()
    db.session.commit()
    return business


def list_employees(user_id: str, business_id: int | None = None) -> list[BusinessEmployee]:
    """Memberships of every business the user can access."""
    if business_id is not None:
        require_business_access(business_id, user_id, MEMBER)
        business_ids = {business_id}
    else:
        business_ids = accessible_business_ids(user_id)

    if not business_ids:
        return []

    return (
        db.session.query(BusinessEmployee)
        .filter(BusinessEmployee.business_id.in_(business_ids))
        .order_by(BusinessEmployee.joined_at.asc(), BusinessEmployee.id.asc())
        .all()
    )


def add_employee(*, business_id: int, email: str, role: str, user_id: str) -> BusinessEmployee:
    """
    Add an existing user (looked up by email) to a business. Owner only.

    The user must have signed in at least once so a local mirror exists.
    """
    business = require_business_access(business_id, user_id, OWNER)

    user = db.session.query(User).filter(db.func.lower(User.email) == email.strip().lower()).first()
    if not user:
        raise NotFoundError("User not found with that email")

    if user.id == business.owner_id:
        raise ConflictError("User already owns this business")

    existing = db.session.query(BusinessEmployee).filter_by(
        business_id=business.id,
        user_id=user.id,
    ).first()
    if existing:
        raise ConflictError("User is already an employee of this business")

    employee = BusinessEmployee(business_id=business.id, user_id=user.id, role=role)
    db.session.add(employee)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("User is already an employee of this business")
    return employee


def remove_employee(employee_id: int, user_id: str) -> None:
    employee = db.session.query(BusinessEmployee).filter_by(id=employee_id).first()
    if not employee:
        raise NotFoundError("Employee not found")
    require_business_access(employee.business_id, user_id, OWNER)

    db.session.delete(employee)
    db.session.commit()
