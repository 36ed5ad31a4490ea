from __future__ import annotations

from ..extensions import db
from rpbiz.time_utils import to_utc_z


class SecurityEvent(db.Model):
    """
    Security event audit log.

    Records denied business access, rejected API keys and failed
    authentications. Append-only: never updated or deleted by the API.
    """
    __tablename__ = "security_events"
    __table_args__ = (
        db.Index("ix_security_events_user_type", "user_id", "event_type"),
        db.Index("ix_security_events_occurred", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # No FKs: events outlive the rows they mention
    user_id = db.Column(db.String(64), nullable=True, index=True)
    business_id = db.Column(db.Integer, nullable=True, index=True)

    event_type = db.Column(db.String(64), nullable=False, index=True)  # BUSINESS_ACCESS_DENIED, INVALID_API_KEY, AUTH_FAILED
    resource = db.Column(db.String(255), nullable=True)
    action = db.Column(db.String(64), nullable=True)

    success = db.Column(db.Boolean, nullable=False, index=True)
    reason = db.Column(db.String(500), nullable=True)

    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "businessId": self.business_id,
            "eventType": self.event_type,
            "resource": self.resource,
            "action": self.action,
            "success": self.success,
            "reason": self.reason,
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
            "occurredAt": to_utc_z(self.occurred_at),
        }
