# Overview: Append-only security event logging with tenant context.

from __future__ import annotations

from flask import g, has_request_context, request

from ..extensions import db
from ..models import SecurityEvent
from .persistence import store_call
from backoffice.time_utils import utcnow


def log_security_event(
    principal_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    org_id: int | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail with tenant context.

    WHY: Immutable audit log for compliance and security monitoring.

    When called inside a request, client address and user agent are taken
    from the request unless given explicitly.

    event_type values:
    - PERMISSION_DENIED
    - CROSS_TENANT_ACCESS_DENIED
    - ACCESS_GRANTED / ACCESS_SUSPENDED / ACCESS_REACTIVATED / STAFF_REMOVED
    - PERMISSIONS_CHANGED
    - LOGIN_FAILED
    """
    if has_request_context():
        ip_address = ip_address or request.remote_addr
        user_agent = user_agent or request.headers.get("User-Agent")

    event = SecurityEvent(
        principal_id=principal_id,
        org_id=org_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )

    with store_call("security event"):
        db.session.add(event)
        db.session.commit()

    return event


def current_principal_id() -> int | None:
    """Principal of the current request, if one was authenticated."""
    if not has_request_context():
        return None
    principal = getattr(g, "principal", None)
    return getattr(principal, "principal_id", None)
