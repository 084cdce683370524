# Overview: Flask API routes for login, logout, session validation and password change.

"""
Authentication API routes

SECURITY FEATURES:
- Login scoped by organization code
- Suspended and revoked credentials cannot log in
- Failed attempts recorded as LOGIN_FAILED security events
- Session management with token-based auth
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import DOMAIN_ERRORS, bearer_token, error_response, require_auth
from ..services import auth_service, permission_service, session_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and create a session token.

    Request body:
    {
        "email": "ana@bar.example",
        "password": "...",
        "org_code": "BAR01"
    }

    Returns the principal, its effective permissions and the token. The
    token must be sent as "Authorization: Bearer <token>".
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")
        org_code = data.get("org_code")

        if not all([email, password, org_code]):
            return jsonify({"error": "email, password and org_code required"}), 400

        principal = auth_service.authenticate(email, password, org_code)
        if not principal:
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            principal_id=principal.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        permissions = permission_service.get_effective_permissions(token)

        return jsonify({
            "principal": principal.to_dict(),
            "permissions": permissions.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "org_id": session.org_id,
            "must_change_password": principal.must_change_password,
            "message": "Login successful",
        }), 200

    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to login")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """Revoke the caller's session token."""
    try:
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        if not session_service.revoke_session(token, reason="Logout"):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to logout")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/validate")
@require_auth
def validate_route():
    """
    Validate the session and return identity with effective permissions.

    WHY: The frontend hides navigation and buttons from the matrix; a
    deny-all matrix means "show nothing", not an error.
    """
    try:
        return jsonify({
            "principal": g.principal.to_dict(),
            "permissions": g.permissions.to_dict(),
            "org_id": g.org_id,
            "message": "Token valid",
        }), 200
    except Exception:
        current_app.logger.exception("Failed to validate session")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/change-password")
@require_auth
def change_password_route():
    """
    Change the caller's password.

    Request body: {"current_password": "...", "new_password": "..."}
    """
    try:
        data = request.get_json(silent=True) or {}
        current_password = data.get("current_password")
        new_password = data.get("new_password")
        if not current_password or not new_password:
            return jsonify({"error": "current_password and new_password required"}), 400

        principal = auth_service.change_password(g.principal.principal_id, current_password, new_password)
        return jsonify({"principal": principal.to_dict(), "message": "Password changed"}), 200

    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to change password")
        return jsonify({"error": "Internal server error"}), 500
