# Overview: Request decorators for gateway routes (api key, operator session).

import hmac
from functools import wraps
from flask import request, jsonify, g, current_app

from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_api_key(f):
    """
    Require the gateway key in the "apikey" header.

    The key identifies the console deployment, not the operator; routes
    that act on behalf of someone also need @require_auth.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get("GATEWAY_API_KEY") or ""
        presented = request.headers.get("apikey") or request.args.get("apikey") or ""
        if not expected or not hmac.compare_digest(presented, expected):
            return jsonify({"error": "Invalid API key"}), 401
        return f(*args, **kwargs)

    return decorated_function


def require_auth(f):
    """
    Require an operator session.

    Sets the following Flask g attributes:
    - g.current_profile: The authenticated Profile
    - g.session_context: The full SessionContext object

    Returns 401 if the Authorization header is missing, or the token is
    invalid, expired, revoked, or belongs to a deactivated profile.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_profile = context.profile
        g.session_context = context
        return f(*args, **kwargs)

    return decorated_function

