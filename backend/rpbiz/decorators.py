# Overview: Request decorators for API routes.

from functools import wraps
from flask import current_app, request, jsonify, g

from .services import identity_service
from .services.access_service import log_security_event
from .services.identity_service import IdentityConflictError, IdentityProviderError


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def require_auth(f):
    """
    Require a verified bearer token.

    Sets the following Flask g attributes:
    - g.current_user: the local User mirror of the token's owner
    - g.identity_session: the cached verification (IdentitySession)
    - g.auth_token: the raw bearer token (for logout)

    Returns 401 if the header is missing or the provider rejects the token,
    503 if the provider cannot be reached.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if token is None:
            return jsonify({"error": "Authentication required"}), 401

        try:
            context = identity_service.resolve_identity(token)
        except IdentityProviderError:
            current_app.logger.exception("Identity provider unavailable")
            return jsonify({"error": "Authentication service unavailable"}), 503
        except IdentityConflictError as e:
            return jsonify({"error": str(e)}), 409

        if not context:
            log_security_event(
                user_id=None,
                event_type="AUTH_FAILED",
                success=False,
                reason="Token rejected by identity provider",
            )
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.identity_session = context.session
        g.auth_token = token

        return f(*args, **kwargs)

    return decorated_function
