# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

- Login issues an opaque bearer token (see session_service)
- Logout revokes it
- select-branch switches the branch scope of the current session
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import auth_service, branch_service, permission_service, session_service
from ..services.session_service import BranchAccessError
from ..validation import ValidationError, coerce_id


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _user_payload(user, branch_id):
    branches = branch_service.list_user_branches(user.id)
    return {
        "user": user.to_dict(),
        "permissions": sorted(permission_service.get_user_permissions(user.id)),
        "branches": [branch.to_dict() for branch in branches],
        "selected_branch_id": branch_id,
    }


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in the Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not email or not password:
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            current_app.logger.info("Failed login for %s", email)
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({"token": token, **_user_payload(user, session.branch_id)}), 200

    except Exception:
        current_app.logger.exception("Login failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.auth_token, reason="User logout")
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify(_user_payload(g.current_user, g.branch_id)), 200


@auth_bp.post("/select-branch")
@require_auth
def select_branch_route():
    data = request.get_json(silent=True) or {}
    try:
        branch_id = coerce_id(data.get("branch_id", data.get("branchId")), "branch_id")
        branch = session_service.select_branch(g.session_context.session, branch_id)
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    except BranchAccessError as exc:
        return jsonify({"error": str(exc)}), 403

    return jsonify({"selected_branch_id": branch.id, "branch": branch.to_dict()}), 200
