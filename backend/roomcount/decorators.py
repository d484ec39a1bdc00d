# Overview: Request authentication and role decorators for API routes.

from functools import wraps
from flask import current_app, request, jsonify, g

from .services import identity_service
from .services.visibility import Caller


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def current_caller() -> Caller:
    """Explicit identity handed to the service layer."""
    return Caller(user_id=g.current_user.id, role=g.current_user.role)


def require_auth(f):
    """
    Require a valid bearer token.

    Sets g.current_user to the authenticated, active User.

    Returns 401 if:
    - No Authorization header
    - Unknown, revoked or expired token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1].strip()

        user = identity_service.validate_token(token)
        if not user:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """Require the authenticated user to hold one of the given roles."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            user = g.current_user
            if user.role not in roles:
                current_app.logger.warning(
                    "Role denied: user_id=%s role=%s path=%s required=%s",
                    user.id, user.role, request.path, ",".join(roles),
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                    "message": f"Access denied. Required role: {' or '.join(roles)}",
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
