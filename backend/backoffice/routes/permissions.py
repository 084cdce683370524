# Overview: Flask API routes for effective permissions, module catalog, presets and override editing.

"""
Permission API routes

All routes require a valid session. Editing routes additionally require
staff-management capability; the service layer enforces tenant isolation
and the role hierarchy.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import DOMAIN_ERRORS, error_response, require_auth, require_staff_manager
from ..permissions import (
    ACTIONS,
    MODULES,
    get_module_definition,
    get_role_definition,
    list_presets,
    preset_to_dict,
    ROLE_DEFINITIONS,
)
from ..services import permission_service


permissions_bp = Blueprint("permissions", __name__, url_prefix="/api/permissions")


@permissions_bp.get("/me")
@require_auth
def my_permissions_route():
    """Effective matrix of the caller (deny-all when deactivated)."""
    return jsonify(g.permissions.to_dict()), 200


@permissions_bp.get("/modules")
@require_auth
def modules_route():
    """Module catalog, actions and role templates for the permission editor."""
    return jsonify({
        "modules": [get_module_definition(code) for code in MODULES],
        "actions": list(ACTIONS),
        "roles": [get_role_definition(role) for role in ROLE_DEFINITIONS],
    }), 200


@permissions_bp.get("/presets")
@require_auth
@require_staff_manager
def presets_route():
    return jsonify({"presets": [preset_to_dict(preset) for preset in list_presets()]}), 200


@permissions_bp.get("/principals/<int:principal_id>")
@require_auth
@require_staff_manager
def principal_permissions_route(principal_id: int):
    try:
        return jsonify(permission_service.permissions_for_principal(g.permissions, principal_id)), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load permissions for principal %s", principal_id)
        return jsonify({"error": "Internal server error"}), 500


@permissions_bp.put("/principals/<int:principal_id>/modules/<module>")
@require_auth
@require_staff_manager
def set_module_route(principal_id: int, module: str):
    """
    Replace one module's cells for a principal.

    Request body: {"view": true, "create": false, "edit": true, "delete": false, "administer": false}
    Missing actions are denied.
    """
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "JSON object of action -> boolean required"}), 400
        cells = data.get("cells", data)
        if not isinstance(cells, dict):
            return jsonify({"error": "cells must be a JSON object of action -> boolean"}), 400

        row = permission_service.set_module_permissions(g.permissions, principal_id, module, cells)
        return jsonify({"override": row.to_dict()}), 200

    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to set %s permissions for principal %s", module, principal_id)
        return jsonify({"error": "Internal server error"}), 500


@permissions_bp.delete("/principals/<int:principal_id>/modules/<module>")
@require_auth
@require_staff_manager
def clear_module_route(principal_id: int, module: str):
    """Revert one module to the role default."""
    try:
        removed = permission_service.clear_module_permissions(g.permissions, principal_id, module)
        return jsonify({"removed": removed}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to clear %s permissions for principal %s", module, principal_id)
        return jsonify({"error": "Internal server error"}), 500


@permissions_bp.delete("/principals/<int:principal_id>/overrides")
@require_auth
@require_staff_manager
def clear_overrides_route(principal_id: int):
    """Revert every module to the role default."""
    try:
        count = permission_service.clear_permissions(g.permissions, principal_id)
        return jsonify({"removed": count}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to clear overrides for principal %s", principal_id)
        return jsonify({"error": "Internal server error"}), 500


@permissions_bp.post("/principals/<int:principal_id>/preset")
@require_auth
@require_staff_manager
def apply_preset_route(principal_id: int):
    """
    Apply a preset to every module.

    Request body: {"preset": "cashier"}
    """
    try:
        data = request.get_json(silent=True) or {}
        preset_id = data.get("preset")
        if not preset_id:
            return jsonify({"error": "preset required"}), 400

        rows = permission_service.apply_preset(g.permissions, principal_id, preset_id)
        return jsonify({"preset": preset_id, "overrides": [row.to_dict() for row in rows]}), 200

    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to apply preset for principal %s", principal_id)
        return jsonify({"error": "Internal server error"}), 500
