# Overview: Flask API routes for the authenticated user and their cached session.

from flask import Blueprint, g

from ..decorators import require_auth
from ..services import identity_service
from rpbiz.time_utils import to_utc_z

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.get("/user")
@require_auth
def current_user_route():
    return g.current_user.to_dict(), 200


@auth_bp.get("/session")
@require_auth
def session_route():
    """Current user plus how long the verified token stays cached."""
    return {
        "user": g.current_user.to_dict(),
        "session": {
            "createdAt": to_utc_z(g.identity_session.created_at),
            "expiresAt": to_utc_z(g.identity_session.expires_at),
        },
    }, 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """
    Drop the cached verification of the caller's token.

    The token itself stays valid at the identity provider; the next request
    with it will be re-verified there.
    """
    identity_service.revoke_session(g.auth_token, reason="User logout")
    return {"success": True}, 200
