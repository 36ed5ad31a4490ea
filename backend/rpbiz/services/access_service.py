# Overview: Business authorization gate and security event logging.

"""
Business Access Policy

Every business-scoped route asks this module whether the current user may
act on a business. There are two capability levels:

- MEMBER: the business owner, or any user with a BusinessEmployee row
- OWNER: the business owner only (deletion, employee management, API keys)

Manager vs. employee membership roles grant the same access here; the role
tag is informational for clients.

Denials are written to security_events so probing shows up in the audit log.
"""

from __future__ import annotations

from flask import has_request_context, request

from ..extensions import db
from ..models import Business, BusinessEmployee, SecurityEvent
from rpbiz.time_utils import utcnow


MEMBER = "member"
OWNER = "owner"


class NotFoundError(LookupError):
    """Raised when a referenced record does not exist (404)."""


class AccessDeniedError(Exception):
    """Raised when the user lacks the required access level for a business (403)."""


def log_security_event(
    user_id: str | None,
    event_type: str,
    success: bool,
    reason: str | None = None,
    business_id: int | None = None,
) -> SecurityEvent:
    """
    Append a security event, capturing request metadata when available.

    event_type examples:
    - BUSINESS_ACCESS_DENIED
    - INVALID_API_KEY
    - AUTH_FAILED
    """
    event = SecurityEvent(
        user_id=user_id,
        business_id=business_id,
        event_type=event_type,
        success=success,
        reason=reason,
        occurred_at=utcnow(),
    )
    if has_request_context():
        event.resource = request.path[:255]
        event.action = request.method
        event.ip_address = request.remote_addr
        user_agent = request.headers.get("User-Agent")
        event.user_agent = user_agent[:255] if user_agent else None

    db.session.add(event)
    db.session.commit()

    return event


def is_owner(user_id: str, business: Business) -> bool:
    return business.owner_id == user_id


def is_member(user_id: str, business_id: int) -> bool:
    """True if the user holds a BusinessEmployee row for the business."""
    return db.session.query(
        db.session.query(BusinessEmployee)
        .filter_by(business_id=business_id, user_id=user_id)
        .exists()
    ).scalar()


def is_authorized(user_id: str, business_id: int) -> bool:
    """True iff the user owns the business or is employed by it."""
    owned = db.session.query(
        db.session.query(Business)
        .filter_by(id=business_id, owner_id=user_id)
        .exists()
    ).scalar()
    if owned:
        return True
    return is_member(user_id, business_id)


def has_access(user_id: str, business: Business, level: str = MEMBER) -> bool:
    if is_owner(user_id, business):
        return True
    if level == OWNER:
        return False
    return is_member(user_id, business.id)


def require_business_access(business_id: int, user_id: str, level: str = MEMBER) -> Business:
    """
    Load a business and verify the user's access level.

    Raises:
        NotFoundError if the business doesn't exist
        AccessDeniedError if the user is not a member (or not the owner, for OWNER)
    """
    business = db.session.query(Business).filter_by(id=business_id).first()
    if not business:
        raise NotFoundError("Business not found")

    if not has_access(user_id, business, level):
        log_security_event(
            user_id=user_id,
            event_type="BUSINESS_ACCESS_DENIED",
            success=False,
            reason=f"{level} access required",
            business_id=business_id,
        )
        if level == OWNER:
            raise AccessDeniedError("Only the owner can perform this action")
        raise AccessDeniedError("Not authorized to access this business")

    return business


def accessible_business_ids(user_id: str) -> set[int]:
    """IDs of every business the user owns or works at."""
    owned = db.session.query(Business.id).filter(Business.owner_id == user_id).all()
    employed = db.session.query(BusinessEmployee.business_id).filter(
        BusinessEmployee.user_id == user_id
    ).all()
    return {row[0] for row in owned} | {row[0] for row in employed}
