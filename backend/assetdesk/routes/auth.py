# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/assetdesk/routes/auth.py
"""
Administrator session routes.

The dashboard has a single administrator configured through ADMIN_EMAIL and
ADMIN_PASSWORD. A successful login stores the admin's email in the signed
Flask session cookie; @require_auth checks for it.
"""

import hmac

from flask import Blueprint, request, jsonify, current_app, session

from ..decorators import SESSION_KEY, current_admin


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _matches(given: str, expected: str) -> bool:
    return hmac.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


@auth_bp.post("/login")
def login_route():
    """
    Authenticate the administrator.

    Request body: {"email": "...", "password": "..."}
    """
    data = request.get_json(silent=True) or {}
    email = str(data.get("email") or "").strip().lower()
    password = str(data.get("password") or "")

    if not email or not password:
        return jsonify({"error": "email and password required"}), 400

    expected_email = str(current_app.config.get("ADMIN_EMAIL") or "").strip().lower()
    expected_password = str(current_app.config.get("ADMIN_PASSWORD") or "")

    # Both comparisons always run
    email_ok = _matches(email, expected_email)
    password_ok = _matches(password, expected_password)
    if not (email_ok and password_ok and expected_password):
        current_app.logger.warning("Failed admin login from %s", request.remote_addr)
        return jsonify({"error": "Invalid credentials"}), 401

    session.clear()
    session[SESSION_KEY] = expected_email
    current_app.logger.info("Admin login from %s", request.remote_addr)
    return jsonify({"ok": True, "email": expected_email}), 200


@auth_bp.post("/logout")
def logout_route():
    session.pop(SESSION_KEY, None)
    return jsonify({"ok": True}), 200


@auth_bp.get("/session")
def session_route():
    admin_email = current_admin()
    if not admin_email:
        return jsonify({"authenticated": False}), 401
    return jsonify({"authenticated": True, "email": admin_email}), 200
