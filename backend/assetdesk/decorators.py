# Overview: Request decorators for API routes.

from functools import wraps
from flask import session, jsonify, g


SESSION_KEY = "admin_email"


def current_admin() -> str | None:
    return session.get(SESSION_KEY)


def require_auth(f):
    """
    Require a logged-in administrator.

    The admin identity lives in the signed Flask session cookie set by
    POST /api/auth/login. Sets g.admin_email for the route.

    Returns 401 when no admin is logged in.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        admin_email = current_admin()
        if not admin_email:
            return jsonify({"error": "Authentication required"}), 401

        g.admin_email = admin_email
        return f(*args, **kwargs)

    return decorated_function
