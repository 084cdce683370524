# Overview: Flask API routes for staff records and their access lifecycle.

"""
Staff API routes

PERMISSIONS (employee_administration module):
- list / read:               view
- create:                    create
- update, grant, suspend,
  reactivate:                edit
- remove:                    delete (plus the typed confirmation string)

Lifecycle routes also require a non-administrator caller to strictly
outrank the staff member's role and any role being granted.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import DOMAIN_ERRORS, error_response, require_access, require_auth
from ..permissions import Action, Module
from ..services import employee_access_service, staff_service


staff_bp = Blueprint("staff", __name__, url_prefix="/api/staff")


@staff_bp.get("")
@require_auth
@require_access(Module.EMPLOYEE_ADMINISTRATION, Action.VIEW)
def list_staff_route():
    try:
        staff = staff_service.list_staff(g.org_id, access_state=request.args.get("access_state"))
        return jsonify({"staff": [member.to_dict() for member in staff]}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list staff")
        return jsonify({"error": "Internal server error"}), 500


@staff_bp.post("")
@require_auth
@require_access(Module.EMPLOYEE_ADMINISTRATION, Action.CREATE)
def create_staff_route():
    """
    Create a staff record (no system access yet).

    Request body: {"full_name": "...", "email": "...", "phone": "...", "job_title": "...", "notes": "..."}
    """
    try:
        data = request.get_json(silent=True) or {}
        staff = staff_service.create_staff(g.org_id, **{
            key: data[key] for key in staff_service.EDITABLE_FIELDS if key in data
        })
        return jsonify({"staff": staff.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create staff")
        return jsonify({"error": "Internal server error"}), 500


@staff_bp.get("/<int:staff_id>")
@require_auth
@require_access(Module.EMPLOYEE_ADMINISTRATION, Action.VIEW)
def get_staff_route(staff_id: int):
    try:
        staff = staff_service.get_staff(g.org_id, staff_id)
        return jsonify({"staff": staff.to_dict()}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load staff %s", staff_id)
        return jsonify({"error": "Internal server error"}), 500


@staff_bp.patch("/<int:staff_id>")
@require_auth
@require_access(Module.EMPLOYEE_ADMINISTRATION, Action.EDIT)
def update_staff_route(staff_id: int):
    try:
        data = request.get_json(silent=True) or {}
        staff = staff_service.update_staff(g.org_id, staff_id, **{
            key: data[key] for key in staff_service.EDITABLE_FIELDS if key in data
        })
        return jsonify({"staff": staff.to_dict()}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update staff %s", staff_id)
        return jsonify({"error": "Internal server error"}), 500


@staff_bp.post("/<int:staff_id>/credentials")
@require_auth
@require_access(Module.EMPLOYEE_ADMINISTRATION, Action.EDIT)
def grant_credentials_route(staff_id: int):
    """
    Issue credentials. The temporary password appears only in this response.

    Request body (optional): {"role": "cashier"}
    """
    try:
        data = request.get_json(silent=True) or {}
        result = employee_access_service.grant_credentials(
            g.org_id,
            staff_id,
            role=data.get("role"),
            actor=g.permissions,
        )
        return jsonify(result.to_dict()), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to grant credentials to staff %s", staff_id)
        return jsonify({"error": "Internal server error"}), 500


@staff_bp.post("/<int:staff_id>/suspend")
@require_auth
@require_access(Module.EMPLOYEE_ADMINISTRATION, Action.EDIT)
def suspend_route(staff_id: int):
    """Request body (optional): {"reason": "..."}"""
    try:
        data = request.get_json(silent=True) or {}
        result = employee_access_service.suspend_access(
            g.org_id,
            staff_id,
            reason=data.get("reason"),
            actor=g.permissions,
        )
        return jsonify(result.to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to suspend staff %s", staff_id)
        return jsonify({"error": "Internal server error"}), 500


@staff_bp.post("/<int:staff_id>/reactivate")
@require_auth
@require_access(Module.EMPLOYEE_ADMINISTRATION, Action.EDIT)
def reactivate_route(staff_id: int):
    try:
        result = employee_access_service.reactivate_access(g.org_id, staff_id, actor=g.permissions)
        return jsonify(result.to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reactivate staff %s", staff_id)
        return jsonify({"error": "Internal server error"}), 500


@staff_bp.delete("/<int:staff_id>")
@require_auth
@require_access(Module.EMPLOYEE_ADMINISTRATION, Action.DELETE)
def remove_route(staff_id: int):
    """
    Permanently remove a staff record.

    Request body: {"confirmation": "REMOVE", "reason": "..."}
    """
    try:
        data = request.get_json(silent=True) or {}
        result = employee_access_service.remove_staff(
            g.org_id,
            staff_id,
            data.get("confirmation"),
            reason=data.get("reason"),
            actor=g.permissions,
        )
        return jsonify(result.to_dict()), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to remove staff %s", staff_id)
        return jsonify({"error": "Internal server error"}), 500
