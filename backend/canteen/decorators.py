# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'auth')


def require_auth(f):
    """
    Require a valid bearer token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.auth: The AuthContext handed to services
    - g.session_context: The full SessionContext object

    Returns 401 if the header is missing, the token is invalid, expired or
    revoked, or the user account is deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]
        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.auth = context.auth
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """Require one of the given roles. Use after @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if g.auth.role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "code": "FORBIDDEN",
                    "details": {"required_roles": list(roles)},
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
