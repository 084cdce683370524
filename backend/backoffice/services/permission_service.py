# Overview: Permission resolution engine and permission editing with audit logging.

"""
Permission Resolution and Editing with Multi-Tenant Support

WHY: Compute the effective module x action matrix for a principal, expose
access checks, and let staff managers customize another principal's
matrix with an audit trail.

RESOLUTION ORDER:
1. Resolve identity (session -> principal, tenant, role, access state)
2. Access state deactivated/removed (or no_access): deny-all, unconditionally
3. Empty matrix -> role defaults -> per-module overrides

DESIGN PRINCIPLES:
- Fail closed: store failures yield the deny-all matrix flagged degraded,
  never a stale or permissive one
- Overrides replace a module wholesale, never per action
- Log denials and changes, not grants
- Tenant isolation: every edit validates the target against the actor's org
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..errors import RecordInaccessible, StoreUnavailable
from ..models import AccessState
from ..permissions import (
    ACTIONS,
    MODULES,
    ROLE_HIERARCHY,
    TOP_PRIVILEGE_ROLE,
    Action,
    Module,
    apply_overrides,
    apply_role,
    can_manage_role,
    empty_matrix,
    get_preset,
    granted_cells,
    has_access as matrix_has_access,
)
from .override_store import (
    OverrideRow,
    clear_all_overrides,
    clear_module_override,
    fetch_overrides,
    overrides_by_module,
    replace_all_overrides,
    replace_module_override,
)
from .role_resolver import ResolvedPrincipal, resolve, resolve_principal
from .security_service import log_security_event
from .tenant_service import require_principal_in_org


# Any of these states resolves to the all-false matrix
DENY_ALL_STATES = frozenset({AccessState.DEACTIVATED, AccessState.REMOVED, AccessState.NO_ACCESS})


class PermissionDeniedError(Exception):
    """Raised when the principal lacks a required permission."""
    pass


@dataclass(frozen=True)
class EffectivePermissions:
    """
    Effective matrix for one principal in one tenant.

    principal is None only when identity could not be established because
    the store was unavailable. degraded marks a fail-closed result.
    """
    principal: ResolvedPrincipal | None
    matrix: dict = field(hash=False)
    degraded: bool = False

    @property
    def role(self) -> str | None:
        return self.principal.role if self.principal else None

    @property
    def org_id(self) -> int | None:
        return self.principal.org_id if self.principal else None

    @property
    def is_active(self) -> bool:
        return (
            self.principal is not None
            and not self.degraded
            and self.principal.access_state == AccessState.ACTIVE
        )

    def has_access(self, module: str, action: str) -> bool:
        return matrix_has_access(self.matrix, module, action)

    def to_dict(self) -> dict:
        return {
            "principal": self.principal.to_dict() if self.principal else None,
            "role": self.role,
            "matrix": self.matrix,
            "granted": granted_cells(self.matrix),
            "is_administrator": is_administrator(self),
            "can_manage_staff": can_manage_staff(self),
            "degraded": self.degraded,
        }


def deny_all(principal: ResolvedPrincipal | None = None, *, degraded: bool = False) -> EffectivePermissions:
    return EffectivePermissions(principal=principal, matrix=empty_matrix(), degraded=degraded)


def compute_matrix(role: str | None, overrides: dict) -> dict:
    """Pure composition: empty -> role defaults -> module overrides."""
    return apply_overrides(apply_role(empty_matrix(), role), overrides)


def effective_permissions_for(principal: ResolvedPrincipal) -> EffectivePermissions:
    """Matrix for an already resolved principal. Store failures fail closed."""
    if principal.access_state in DENY_ALL_STATES:
        return deny_all(principal)

    try:
        overrides = fetch_overrides(principal.org_id, principal.principal_id)
    except (StoreUnavailable, RecordInaccessible) as e:
        current_app.logger.warning(
            "Override fetch failed for principal %s (%s); answering deny-all", principal.principal_id, e
        )
        return deny_all(principal, degraded=True)

    matrix = compute_matrix(principal.role, overrides_by_module(overrides))
    return EffectivePermissions(principal=principal, matrix=matrix)


def get_effective_permissions(session_token: str | None) -> EffectivePermissions:
    """
    Effective permissions for the holder of session_token.

    Raises AuthenticationFailure when the session is invalid. Any store
    failure during resolution yields a degraded deny-all result.
    """
    try:
        principal = resolve(session_token)
    except (StoreUnavailable, RecordInaccessible):
        current_app.logger.warning("Identity resolution unavailable; answering deny-all")
        return deny_all(degraded=True)
    return effective_permissions_for(principal)


def has_access(permissions: EffectivePermissions | dict, module: str, action: str) -> bool:
    """Cell lookup on a matrix or EffectivePermissions. Unknown keys are denied."""
    matrix = permissions.matrix if isinstance(permissions, EffectivePermissions) else permissions
    return matrix_has_access(matrix, module, action)


def is_administrator(permissions: EffectivePermissions) -> bool:
    """
    Top privilege role, or settings.administer granted (by role or override).

    Always False for an inactive or degraded result.
    """
    if not permissions.is_active:
        return False
    if permissions.role == TOP_PRIVILEGE_ROLE:
        return True
    return permissions.has_access(Module.SETTINGS, Action.ADMINISTER)


def can_manage_staff(permissions: EffectivePermissions) -> bool:
    if is_administrator(permissions):
        return True
    return (
        permissions.has_access(Module.EMPLOYEE_ADMINISTRATION, Action.EDIT)
        or permissions.has_access(Module.EMPLOYEE_ADMINISTRATION, Action.ADMINISTER)
    )


def _deny(permissions: EffectivePermissions, action: str, reason: str, resource: str | None = None):
    # Log only denials (policy: no granted logs)
    log_security_event(
        principal_id=permissions.principal.principal_id if permissions.principal else None,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource,
        action=action,
        reason=reason,
        org_id=permissions.org_id,
    )
    raise PermissionDeniedError(reason)


def require_access(
    permissions: EffectivePermissions,
    module: str,
    action: str,
    resource: str | None = None,
) -> None:
    """
    Require a matrix cell, raise PermissionDeniedError if not set.

    Usage:
        require_access(g.permissions, Module.CASH_MANAGEMENT, Action.EDIT, resource=request.path)
    """
    if not permissions.has_access(module, action):
        _deny(permissions, f"{module}.{action}", f"Missing permission: {module}.{action}", resource)


def require_staff_manager(permissions: EffectivePermissions, resource: str | None = None) -> None:
    if not can_manage_staff(permissions):
        _deny(permissions, "MANAGE_STAFF", "Staff management capability required", resource)


def require_role_authority(permissions: EffectivePermissions, role: str | None, resource: str | None = None) -> None:
    """
    Administrators act on any role; everyone else only on roles they strictly outrank.

    Used for role grants and for lifecycle actions on another principal.
    """
    if is_administrator(permissions):
        return
    if not can_manage_role(permissions.role, role):
        _deny(permissions, "MANAGE_ROLE", f"Role {permissions.role} cannot manage role {role}", resource)


# =============================================================================
# Permission editing
# =============================================================================

def _authorize_edit(actor: EffectivePermissions, target_principal_id: int) -> ResolvedPrincipal:
    """
    Actor must manage staff, share the target's tenant, and either be an
    administrator or strictly outrank the target's role.
    """
    resource = f"principal:{target_principal_id}"
    require_staff_manager(actor, resource=resource)

    target = require_principal_in_org(target_principal_id, actor.org_id)
    target_resolved = resolve_principal(target, actor.org_id)

    if is_administrator(actor):
        return target_resolved

    actor_rank = ROLE_HIERARCHY.get(actor.role, 0)
    if actor_rank <= ROLE_HIERARCHY.get(target_resolved.role, 0):
        _deny(
            actor,
            "EDIT_PERMISSIONS",
            f"Role {actor.role} cannot manage role {target_resolved.role}",
            resource,
        )
    return target_resolved


def _ensure_within_actor_grant(actor: EffectivePermissions, cells_by_module: dict, target_principal_id: int) -> None:
    """Non-administrators can only hand out cells they hold themselves."""
    if is_administrator(actor):
        return
    for module, cells in cells_by_module.items():
        for action in ACTIONS:
            if cells.get(action) is True and not actor.has_access(module, action):
                _deny(
                    actor,
                    "EDIT_PERMISSIONS",
                    f"Cannot grant {module}.{action} without holding it",
                    f"principal:{target_principal_id}",
                )


def _log_change(actor: EffectivePermissions, target_principal_id: int, reason: str) -> None:
    log_security_event(
        principal_id=actor.principal.principal_id,
        event_type="PERMISSIONS_CHANGED",
        success=True,
        resource=f"principal:{target_principal_id}",
        action="EDIT_PERMISSIONS",
        reason=reason,
        org_id=actor.org_id,
    )


def permissions_for_principal(actor: EffectivePermissions, target_principal_id: int) -> dict:
    """Target's resolved identity, effective matrix and raw overrides, for staff managers."""
    require_staff_manager(actor, resource=f"principal:{target_principal_id}")
    target = require_principal_in_org(target_principal_id, actor.org_id)
    target_resolved = resolve_principal(target, actor.org_id)
    effective = effective_permissions_for(target_resolved)
    overrides = fetch_overrides(actor.org_id, target_principal_id)
    return {
        **effective.to_dict(),
        "overrides": [row.to_dict() for row in overrides],
    }


def set_module_permissions(
    actor: EffectivePermissions,
    target_principal_id: int,
    module: str,
    cells: dict,
) -> OverrideRow:
    """Replace one module's cells for the target. Unknown modules raise ValueError."""
    if module not in MODULES:
        raise ValueError(f"Unknown module: {module}")
    if not isinstance(cells, dict):
        raise ValueError("Cells must map action -> boolean")
    _authorize_edit(actor, target_principal_id)
    _ensure_within_actor_grant(actor, {module: cells}, target_principal_id)

    row = replace_module_override(
        actor.org_id,
        target_principal_id,
        module,
        cells,
        updated_by=actor.principal.principal_id,
    )
    _log_change(actor, target_principal_id, f"Override set for {module}")
    return row


def clear_module_permissions(actor: EffectivePermissions, target_principal_id: int, module: str) -> bool:
    """Revert one module to the role default."""
    if module not in MODULES:
        raise ValueError(f"Unknown module: {module}")
    _authorize_edit(actor, target_principal_id)

    removed = clear_module_override(actor.org_id, target_principal_id, module)
    if removed:
        _log_change(actor, target_principal_id, f"Override cleared for {module}")
    return removed


def clear_permissions(actor: EffectivePermissions, target_principal_id: int) -> int:
    """Revert every module to the role default. A repeat call removes nothing."""
    _authorize_edit(actor, target_principal_id)

    count = clear_all_overrides(actor.org_id, target_principal_id)
    if count:
        _log_change(actor, target_principal_id, f"All overrides cleared ({count})")
    return count


def apply_preset(actor: EffectivePermissions, target_principal_id: int, preset_id: str) -> list[OverrideRow]:
    """
    Write an override for every module from a preset.

    The target's matrix equals the preset exactly afterwards.
    """
    preset = get_preset(preset_id)
    if preset is None:
        raise ValueError(f"Unknown preset: {preset_id}")

    matrix = {
        module: {action: action in granted for action in ACTIONS}
        for module, granted in preset["permissions"].items()
    }

    _authorize_edit(actor, target_principal_id)
    _ensure_within_actor_grant(actor, matrix, target_principal_id)

    rows = replace_all_overrides(
        actor.org_id,
        target_principal_id,
        matrix,
        updated_by=actor.principal.principal_id,
    )
    _log_change(actor, target_principal_id, f"Preset {preset_id} applied")
    return rows
