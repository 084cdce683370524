# Overview: Request decorators establishing identity, tenant and effective permissions for API routes.

from functools import wraps

from flask import current_app, g, jsonify, request

from .errors import (
    AggregatedPartialFailure,
    AlreadyCredentialed,
    AuthenticationFailure,
    ConfirmationRequired,
    LifecycleError,
    NotCredentialed,
    RecordInaccessible,
    ServiceNotReady,
    StaffNotFound,
    StoreUnavailable,
    TenantMismatch,
)
from .services import permission_service
from .services.auth_service import PasswordValidationError
from .services.permission_service import PermissionDeniedError


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def error_response(exc: Exception):
    """
    JSON response for a known domain error.

    Unknown exceptions are the caller's job (log and answer 500).
    """
    if isinstance(exc, AuthenticationFailure):
        return jsonify({"error": "Not authenticated"}), 401
    if isinstance(exc, (TenantMismatch, PermissionDeniedError)):
        return jsonify({"error": "Access denied", "message": str(exc)}), 403
    if isinstance(exc, StaffNotFound):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, (AlreadyCredentialed, NotCredentialed)):
        return jsonify({"error": str(exc), "code": type(exc).__name__}), 409
    if isinstance(exc, ConfirmationRequired):
        return jsonify({"error": str(exc), "code": "ConfirmationRequired"}), 400
    if isinstance(exc, LifecycleError):
        # LifecycleError is a ValueError; keep it ahead of the generic branch
        return jsonify({"error": str(exc)}), 409
    if isinstance(exc, (ValueError, PasswordValidationError)):
        return jsonify({"error": str(exc)}), 400
    if isinstance(exc, (StoreUnavailable, RecordInaccessible, ServiceNotReady)):
        return jsonify({"error": "Service temporarily unavailable"}), 503
    if isinstance(exc, AggregatedPartialFailure):
        return jsonify({
            "error": "Operation failed",
            "operation": exc.operation,
            "rolled_back": exc.rolled_back,
        }), 500
    return None


DOMAIN_ERRORS = (
    AuthenticationFailure,
    TenantMismatch,
    PermissionDeniedError,
    LifecycleError,
    ValueError,
    PasswordValidationError,
    StoreUnavailable,
    RecordInaccessible,
    ServiceNotReady,
    AggregatedPartialFailure,
)


def require_auth(f):
    """
    Require authentication and establish tenant and permission context.

    Sets the following Flask g attributes:
    - g.principal: ResolvedPrincipal (id, org, email, role, access state)
    - g.org_id: The organization ID (tenant context)
    - g.permissions: EffectivePermissions for this request
    - g.session_token: The bearer token

    SECURITY: Returns 401 for a missing or invalid session and 503 when
    identity could not be resolved because the store is unavailable.
    A suspended principal passes with a deny-all matrix.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        try:
            permissions = permission_service.get_effective_permissions(token)
        except AuthenticationFailure:
            return jsonify({"error": "Not authenticated"}), 401

        if permissions.principal is None:
            return jsonify({"error": "Authorization service unavailable"}), 503

        g.principal = permissions.principal
        g.org_id = permissions.org_id
        g.permissions = permissions
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_access(module: str, action: str):
    """Require one matrix cell. Use after @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if getattr(g, "permissions", None) is None:
                return jsonify({"error": "Authentication required"}), 401

            try:
                permission_service.require_access(g.permissions, module, action, resource=request.path)
            except PermissionDeniedError as e:
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": f"{module}.{action}",
                    "message": str(e),
                }), 403
            except StoreUnavailable:
                current_app.logger.exception("Failed to record permission denial")
                return jsonify({"error": "Permission denied"}), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_staff_manager(f):
    """Require staff-management capability (administrator or employee_administration edit/administer)."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if getattr(g, "permissions", None) is None:
            return jsonify({"error": "Authentication required"}), 401

        try:
            permission_service.require_staff_manager(g.permissions, resource=request.path)
        except PermissionDeniedError as e:
            return jsonify({"error": "Permission denied", "message": str(e)}), 403
        except StoreUnavailable:
            current_app.logger.exception("Failed to record permission denial")
            return jsonify({"error": "Permission denied"}), 403

        return f(*args, **kwargs)

    return decorated_function
