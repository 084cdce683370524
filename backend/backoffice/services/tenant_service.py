"""
Multi-Tenant Service: Tenant Validation Helpers

WHY: Centralize tenant validation logic for reuse across services and routes.
Every operation is scoped to a tenant (organization), and cross-tenant
access must be explicitly denied.

SECURITY INVARIANTS:
1. Every authenticated request has g.org_id set
2. Principal and staff ids from client input are validated against the caller's org
3. Cross-tenant access attempts are logged as security events
4. A mismatch is never corrected silently; TenantMismatch always propagates
"""

from flask import current_app, g, has_request_context, request

from ..errors import StaffNotFound, StoreUnavailable, TenantMismatch
from ..extensions import db
from ..models import Principal, StaffMember
from .persistence import store_call
from .security_service import current_principal_id, log_security_event


def get_current_org_id() -> int:
    """
    Get current tenant's org_id from Flask g context.

    SECURITY: Raises TenantMismatch if org_id not set.
    This should never happen after @require_auth, but is a safety check.
    """
    if getattr(g, "org_id", None) is None:
        raise TenantMismatch("Tenant context not established")
    return g.org_id


def require_principal_in_org(principal_id: int, org_id: int) -> Principal:
    """
    Validate that a principal belongs to the specified organization.

    SECURITY: Core tenant isolation check for every override and role write.

    Raises:
        TenantMismatch if the principal doesn't exist or belongs to another org
    """
    with store_call("principal lookup"):
        principal = db.session.get(Principal, principal_id)

    if principal is None:
        _log_cross_tenant_attempt(f"Principal {principal_id} not found", org_id=org_id)
        raise TenantMismatch("Principal not found")

    if principal.org_id != org_id:
        # CRITICAL: Cross-tenant access attempt
        _log_cross_tenant_attempt(
            f"Principal {principal_id} belongs to org {principal.org_id}, not {org_id}",
            org_id=org_id,
            resource=f"principal:{principal_id}",
        )
        raise TenantMismatch("Principal not found")  # Don't reveal it exists in another org

    return principal


def require_staff_in_org(staff_id: int, org_id: int) -> StaffMember:
    """
    Validate that a staff record belongs to the specified organization.

    Raises:
        StaffNotFound if no such record exists
        TenantMismatch if it belongs to another org
    """
    with store_call("staff lookup"):
        staff = db.session.get(StaffMember, staff_id)

    if staff is None:
        raise StaffNotFound("Staff member not found")

    if staff.org_id != org_id:
        _log_cross_tenant_attempt(
            f"Staff {staff_id} belongs to org {staff.org_id}, not {org_id}",
            org_id=org_id,
            resource=f"staff:{staff_id}",
        )
        raise TenantMismatch("Staff member not found")

    return staff


def _log_cross_tenant_attempt(
    reason: str,
    org_id: int | None = None,
    resource: str | None = None,
) -> None:
    """
    Log a cross-tenant access attempt as a security event.

    SECURITY: Critical audit trail for detecting unauthorized access attempts.
    A failure to record the event is logged and never replaces the
    TenantMismatch the caller is about to raise.
    """
    if has_request_context():
        resource = resource or request.path
        action = request.method
    else:
        action = None

    current_app.logger.warning("Cross-tenant access denied: %s", reason)
    try:
        with store_call("security event"):
            log_security_event(
                principal_id=current_principal_id(),
                event_type="CROSS_TENANT_ACCESS_DENIED",
                success=False,
                resource=resource,
                action=action,
                reason=reason,
                org_id=org_id,
            )
    except StoreUnavailable:
        current_app.logger.exception("Failed to record cross-tenant security event")
