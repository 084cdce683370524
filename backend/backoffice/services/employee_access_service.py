# Overview: Employee access lifecycle: grant, suspend, reactivate and remove, with compensating rollback.

"""
Employee Access Lifecycle

================================================================================
STATE MACHINE (attribute of the staff record)
================================================================================

    no_access --grant--> active --suspend--> deactivated
                           ^                      |
                           +------reactivate------+

    no_access | active | deactivated --remove--> removed (row deleted)

RULES:
1. grant issues credentials, writes the role mapping (role from the job
   title keyword table) and leaves overrides empty
2. suspend keeps overrides so reactivate restores the exact prior matrix
3. suspend on deactivated and reactivate on active are no-op successes
4. remove requires the literal confirmation string and is irreversible
5. A credential change that is not followed by its database change is
   compensated (grant -> revoke, suspend -> reinstate, reactivate ->
   suspend) and reported as AggregatedPartialFailure
6. No principal is ever left with valid credentials and no role mapping
7. When an actor is given, a non-administrator must strictly outrank both
   the staff member's current role and any role being granted

LOCKING: staff key first, then the principal key, both tenant scoped.
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..errors import (
    AggregatedPartialFailure,
    AlreadyCredentialed,
    ConfirmationRequired,
    LifecycleError,
    NotCredentialed,
    RecordInaccessible,
)
from ..extensions import db
from ..models import AccessState, AssignmentSource, AssignmentStatus, StaffMember
from ..permissions import validate_role
from .concurrency import principal_lock
from .credential_service import IssuedCredential, get_credential_issuer
from .override_store import clear_all_overrides
from .permission_service import EffectivePermissions, require_role_authority
from .persistence import store_call
from .role_cache import invalidate_mapping, lookup_assignment, set_mapping_status, write_mapping
from .role_resolver import keyword_role, resolve_principal
from .security_service import log_security_event
from .tenant_service import require_principal_in_org, require_staff_in_org
from backoffice.time_utils import utcnow


VALID_TRANSITIONS = {
    AccessState.NO_ACCESS: {AccessState.ACTIVE, AccessState.REMOVED},
    AccessState.ACTIVE: {AccessState.DEACTIVATED, AccessState.REMOVED},
    AccessState.DEACTIVATED: {AccessState.ACTIVE, AccessState.REMOVED},
    AccessState.REMOVED: set(),
}


def can_transition(current: str, target: str) -> bool:
    return target in VALID_TRANSITIONS.get(current, set())


@dataclass(frozen=True)
class TransitionResult:
    staff_id: int
    previous_state: str
    state: str
    changed: bool
    principal_id: int | None = None
    role: str | None = None
    credential: IssuedCredential | None = None

    def to_dict(self) -> dict:
        data = {
            "staff_id": self.staff_id,
            "previous_state": self.previous_state,
            "state": self.state,
            "changed": self.changed,
            "principal_id": self.principal_id,
            "role": self.role,
        }
        if self.credential is not None:
            data["credential"] = self.credential.to_dict()
        return data


def _commit(operation: str) -> None:
    with store_call(operation):
        db.session.commit()


def _compensate(operation: str, error: Exception, undo) -> None:
    """Run the compensating action and raise AggregatedPartialFailure either way."""
    db.session.rollback()
    current_app.logger.error("%s failed, compensating: %s", operation, error)
    try:
        undo()
    except Exception as undo_error:
        current_app.logger.exception("%s compensation failed", operation)
        raise AggregatedPartialFailure(operation, [error, undo_error], rolled_back=False) from error
    raise AggregatedPartialFailure(operation, [error], rolled_back=True) from error


def _audit(event_type: str, staff: StaffMember | int, org_id: int, actor_principal_id: int | None, reason: str):
    staff_id = staff if isinstance(staff, int) else staff.id
    log_security_event(
        principal_id=actor_principal_id,
        event_type=event_type,
        success=True,
        resource=f"staff:{staff_id}",
        action=event_type,
        reason=reason,
        org_id=org_id,
    )


def _current_roles(org_id: int, principal_id: int) -> set[str]:
    """
    Resolved role plus the recorded one.

    A suspended mapping is inactive and resolves to the lowest role, so the
    recorded role is checked as well.
    """
    target = resolve_principal(require_principal_in_org(principal_id, org_id), org_id)
    roles = {target.role}
    try:
        assignment = lookup_assignment(org_id, principal_id)
    except RecordInaccessible:
        assignment = None
    if assignment is not None and assignment.role:
        roles.add(assignment.role)
    return roles


def _authorize_actor(
    actor: EffectivePermissions | None,
    org_id: int,
    staff: StaffMember,
    granted_role: str | None = None,
) -> None:
    """Hierarchy check against the staff member's current role and the role being granted."""
    if actor is None:
        return
    resource = f"staff:{staff.id}"
    if staff.principal_id is not None:
        for role in _current_roles(org_id, staff.principal_id):
            require_role_authority(actor, role, resource)
    if granted_role is not None:
        require_role_authority(actor, granted_role, resource)


def _actor_id(actor: EffectivePermissions | None, actor_principal_id: int | None) -> int | None:
    if actor_principal_id is None and actor is not None and actor.principal is not None:
        return actor.principal.principal_id
    return actor_principal_id


def grant_credentials(
    org_id: int,
    staff_id: int,
    *,
    role: str | None = None,
    actor: EffectivePermissions | None = None,
    actor_principal_id: int | None = None,
) -> TransitionResult:
    """
    no_access -> active.

    The role defaults to the job title keyword match (lowest role when
    nothing matches). Raises AlreadyCredentialed when called twice without
    an intervening removal, PermissionDeniedError when actor does not
    outrank the resulting role.
    """
    if role is not None and not validate_role(role):
        raise ValueError(f"Unknown role: {role}")
    actor_principal_id = _actor_id(actor, actor_principal_id)

    with principal_lock(org_id, "staff", staff_id):
        staff = require_staff_in_org(staff_id, org_id)
        if staff.principal_id is not None or staff.access_state != AccessState.NO_ACCESS:
            raise AlreadyCredentialed("Staff member already has credentials")
        if not staff.email:
            raise LifecycleError("Staff member needs an email before credentials can be issued")

        role = role or keyword_role(staff.job_title)
        _authorize_actor(actor, org_id, staff, granted_role=role)
        issuer = get_credential_issuer()

        # Nothing to compensate if issuance itself fails
        credential = issuer.issue(org_id, staff.email, display_name=staff.full_name)
        principal_id = credential.principal_id

        with principal_lock(org_id, "principal", principal_id):
            try:
                clear_all_overrides(org_id, principal_id, commit=False)
                write_mapping(
                    org_id,
                    principal_id,
                    role,
                    job_title=staff.job_title,
                    status=AssignmentStatus.ACTIVE,
                    source=AssignmentSource.GRANT,
                    commit=False,
                )
                staff.principal_id = principal_id
                staff.access_state = AccessState.ACTIVE
                staff.deactivated_at = None
                staff.deactivation_reason = None
                _commit("grant credentials")
            except Exception as exc:
                _compensate(
                    "grant credentials",
                    exc,
                    lambda: issuer.revoke(principal_id, reason="Credential grant rolled back"),
                )

    _audit("ACCESS_GRANTED", staff_id, org_id, actor_principal_id, f"Credentials issued with role {role}")
    return TransitionResult(
        staff_id=staff_id,
        previous_state=AccessState.NO_ACCESS,
        state=AccessState.ACTIVE,
        changed=True,
        principal_id=principal_id,
        role=role,
        credential=credential,
    )


def suspend_access(
    org_id: int,
    staff_id: int,
    *,
    reason: str | None = None,
    actor: EffectivePermissions | None = None,
    actor_principal_id: int | None = None,
) -> TransitionResult:
    """active -> deactivated. Overrides are kept. Suspending twice is a no-op."""
    actor_principal_id = _actor_id(actor, actor_principal_id)
    with principal_lock(org_id, "staff", staff_id):
        staff = require_staff_in_org(staff_id, org_id)
        principal_id = staff.principal_id

        if staff.access_state == AccessState.DEACTIVATED:
            return TransitionResult(staff_id, AccessState.DEACTIVATED, AccessState.DEACTIVATED, False, principal_id)
        if principal_id is None or not can_transition(staff.access_state, AccessState.DEACTIVATED):
            raise NotCredentialed("Staff member has no active credentials")

        _authorize_actor(actor, org_id, staff)
        issuer = get_credential_issuer()
        with principal_lock(org_id, "principal", principal_id):
            issuer.suspend(principal_id)
            try:
                set_mapping_status(org_id, principal_id, AssignmentStatus.INACTIVE, commit=False)
                staff.access_state = AccessState.DEACTIVATED
                staff.deactivated_at = utcnow()
                staff.deactivation_reason = reason
                _commit("suspend access")
            except Exception as exc:
                _compensate("suspend access", exc, lambda: issuer.reinstate(principal_id))

    _audit("ACCESS_SUSPENDED", staff_id, org_id, actor_principal_id, reason or "Access suspended")
    return TransitionResult(staff_id, AccessState.ACTIVE, AccessState.DEACTIVATED, True, principal_id)


def reactivate_access(
    org_id: int,
    staff_id: int,
    *,
    actor: EffectivePermissions | None = None,
    actor_principal_id: int | None = None,
) -> TransitionResult:
    """deactivated -> active. Overrides from before suspension apply unchanged."""
    actor_principal_id = _actor_id(actor, actor_principal_id)
    with principal_lock(org_id, "staff", staff_id):
        staff = require_staff_in_org(staff_id, org_id)
        principal_id = staff.principal_id

        if staff.access_state == AccessState.ACTIVE:
            return TransitionResult(staff_id, AccessState.ACTIVE, AccessState.ACTIVE, False, principal_id)
        if principal_id is None or not can_transition(staff.access_state, AccessState.ACTIVE):
            raise NotCredentialed("Staff member has no suspended credentials")

        _authorize_actor(actor, org_id, staff)
        issuer = get_credential_issuer()
        with principal_lock(org_id, "principal", principal_id):
            issuer.reinstate(principal_id)
            try:
                set_mapping_status(org_id, principal_id, AssignmentStatus.ACTIVE, commit=False)
                staff.access_state = AccessState.ACTIVE
                staff.deactivated_at = None
                staff.deactivation_reason = None
                _commit("reactivate access")
            except Exception as exc:
                _compensate("reactivate access", exc, lambda: issuer.suspend(principal_id))

    _audit("ACCESS_REACTIVATED", staff_id, org_id, actor_principal_id, "Access reactivated")
    return TransitionResult(staff_id, AccessState.DEACTIVATED, AccessState.ACTIVE, True, principal_id)


def remove_staff(
    org_id: int,
    staff_id: int,
    confirmation: str | None,
    *,
    reason: str | None = None,
    actor: EffectivePermissions | None = None,
    actor_principal_id: int | None = None,
) -> TransitionResult:
    """
    Any state -> removed.

    Revokes credentials, deletes overrides, logically removes the role
    mapping and deletes the staff record. Revocation happens first and is
    not undone: if a later step fails the error is AggregatedPartialFailure
    with rolled_back=False, and repeating the call completes the removal.
    """
    expected = current_app.config.get("REMOVAL_CONFIRMATION", "REMOVE")
    if confirmation != expected:
        raise ConfirmationRequired(f'Type "{expected}" to confirm removal')
    actor_principal_id = _actor_id(actor, actor_principal_id)

    with principal_lock(org_id, "staff", staff_id):
        staff = require_staff_in_org(staff_id, org_id)
        previous_state = staff.access_state
        principal_id = staff.principal_id
        _authorize_actor(actor, org_id, staff)

        if principal_id is None:
            with store_call("remove staff"):
                db.session.delete(staff)
                db.session.commit()
        else:
            with principal_lock(org_id, "principal", principal_id):
                get_credential_issuer().revoke(principal_id, reason="Staff removed")
                try:
                    clear_all_overrides(org_id, principal_id, commit=False)
                    invalidate_mapping(org_id, principal_id, commit=False)
                    db.session.delete(staff)
                    _commit("remove staff")
                except Exception as exc:
                    db.session.rollback()
                    current_app.logger.error("Removal of staff %s failed after revocation: %s", staff_id, exc)
                    raise AggregatedPartialFailure("remove staff", [exc], rolled_back=False) from exc

    _audit("STAFF_REMOVED", staff_id, org_id, actor_principal_id, reason or "Staff removed")
    return TransitionResult(staff_id, previous_state, AccessState.REMOVED, True, principal_id)
