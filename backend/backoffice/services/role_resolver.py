# Overview: Role/identity resolution as an ordered chain of pure strategies with write-through cache fill.

"""
Role/Identity Resolver

Resolves a session token to (principal, tenant, role, access state).

PRECEDENCE (first strategy returning a role wins):
0. Deployment super-user email            -> top privilege role
1. Operator administrative override list  -> listed role
2. Canonical role record, status ACTIVE   -> recorded role, verbatim
3. Canonical record without a role        -> job title keyword, else lowest role
4. No canonical record (absent/refused)   -> email local-part keyword
5. Terminal default                       -> lowest privilege role

Strategies are pure functions of a ResolutionContext, so each is testable
without a database. All I/O happens while building the context and while
writing back the decision.

CACHE FILL: decisions from steps 1, 3 and 4 are written to the canonical
record (insert-if-absent) so step 2 answers next time. A fill is not a
grant; the permission engine still applies deny-by-default downstream.

FAILURES:
- AuthenticationFailure only when the session itself is invalid
- StoreUnavailable propagates (never downgraded to a default role)
- RecordInaccessible on the canonical lookup means "no canonical record";
  on the admin list or staff lookup it means "no entry"
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from flask import current_app

from ..errors import AuthenticationFailure, RecordInaccessible
from ..extensions import db
from ..models import (
    AccessState,
    AdminRoleOverride,
    AssignmentSource,
    AssignmentStatus,
    CredentialStatus,
    Principal,
    RoleAssignment,
    StaffMember,
)
from ..permissions import LOWEST_PRIVILEGE_ROLE, TOP_PRIVILEGE_ROLE, role_from_keywords, validate_role
from .persistence import store_call
from .role_cache import fill_mapping, lookup_assignment
from .session_service import validate_session


@dataclass(frozen=True)
class AssignmentSnapshot:
    role: Optional[str]
    status: str
    job_title: Optional[str]

    @classmethod
    def from_model(cls, assignment: RoleAssignment) -> "AssignmentSnapshot":
        return cls(role=assignment.role, status=assignment.status, job_title=assignment.job_title)


@dataclass(frozen=True)
class ResolutionContext:
    """Everything the strategies may look at. Built once per resolution."""
    email: str
    superuser_email: Optional[str] = None
    admin_list_role: Optional[str] = None
    assignment: Optional[AssignmentSnapshot] = None
    record_inaccessible: bool = False
    staff_job_title: Optional[str] = None

    @property
    def job_title(self) -> Optional[str]:
        if self.assignment is not None and self.assignment.job_title:
            return self.assignment.job_title
        return self.staff_job_title

    @property
    def email_local_part(self) -> str:
        return (self.email or "").split("@", 1)[0]


@dataclass(frozen=True)
class RoleDecision:
    role: str
    source: str


@dataclass(frozen=True)
class ResolvedPrincipal:
    principal_id: int
    org_id: int
    email: str
    role: str
    role_source: str
    access_state: str
    staff_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "principal_id": self.principal_id,
            "org_id": self.org_id,
            "email": self.email,
            "role": self.role,
            "role_source": self.role_source,
            "access_state": self.access_state,
            "staff_id": self.staff_id,
        }


# Terminal default has no cache source; it is recomputed each time
TERMINAL_DEFAULT = "DEFAULT"
CANONICAL = "CANONICAL"

CACHE_FILL_SOURCES = frozenset({
    AssignmentSource.ADMIN_LIST,
    AssignmentSource.TITLE_KEYWORD,
    AssignmentSource.EMAIL_KEYWORD,
})


def superuser_strategy(context: ResolutionContext) -> Optional[RoleDecision]:
    if context.superuser_email and context.email.lower() == context.superuser_email.lower():
        return RoleDecision(TOP_PRIVILEGE_ROLE, AssignmentSource.SUPERUSER)
    return None


def admin_list_strategy(context: ResolutionContext) -> Optional[RoleDecision]:
    # Entries naming an unknown role are ignored rather than trusted
    if context.admin_list_role and validate_role(context.admin_list_role):
        return RoleDecision(context.admin_list_role, AssignmentSource.ADMIN_LIST)
    return None


def canonical_strategy(context: ResolutionContext) -> Optional[RoleDecision]:
    assignment = context.assignment
    if assignment is None or not assignment.role:
        return None
    if assignment.status != AssignmentStatus.ACTIVE:
        return None
    return RoleDecision(assignment.role, CANONICAL)


def title_keyword_strategy(context: ResolutionContext) -> Optional[RoleDecision]:
    """A record exists without a role: the job title decides, else the lowest role."""
    if context.assignment is None or context.assignment.role:
        return None
    role = role_from_keywords(context.job_title) or LOWEST_PRIVILEGE_ROLE
    return RoleDecision(role, AssignmentSource.TITLE_KEYWORD)


def email_keyword_strategy(context: ResolutionContext) -> Optional[RoleDecision]:
    if context.assignment is not None:
        return None
    role = role_from_keywords(context.email_local_part)
    if role is None:
        return None
    return RoleDecision(role, AssignmentSource.EMAIL_KEYWORD)


def terminal_default_strategy(context: ResolutionContext) -> Optional[RoleDecision]:
    return RoleDecision(LOWEST_PRIVILEGE_ROLE, TERMINAL_DEFAULT)


ROLE_STRATEGIES: tuple[Callable[[ResolutionContext], Optional[RoleDecision]], ...] = (
    superuser_strategy,
    admin_list_strategy,
    canonical_strategy,
    title_keyword_strategy,
    email_keyword_strategy,
    terminal_default_strategy,
)


def decide_role(context: ResolutionContext, strategies=ROLE_STRATEGIES) -> RoleDecision:
    """Evaluate strategies left to right; the first decision wins."""
    for strategy in strategies:
        decision = strategy(context)
        if decision is not None:
            return decision
    return RoleDecision(LOWEST_PRIVILEGE_ROLE, TERMINAL_DEFAULT)


def keyword_role(text: str | None) -> str:
    """Role for a free-text job title; lowest role when nothing matches."""
    return role_from_keywords(text) or LOWEST_PRIVILEGE_ROLE


# Most restrictive first
_STATE_SEVERITY = {
    AccessState.REMOVED: 3,
    AccessState.DEACTIVATED: 2,
    AccessState.NO_ACCESS: 1,
    AccessState.ACTIVE: 0,
}

_ASSIGNMENT_STATE = {
    AssignmentStatus.ACTIVE: AccessState.ACTIVE,
    AssignmentStatus.INACTIVE: AccessState.DEACTIVATED,
    AssignmentStatus.REMOVED: AccessState.REMOVED,
}


def derive_access_state(
    credential_status: str,
    staff_state: str | None,
    assignment_status: str | None,
) -> str:
    """The most restrictive state among credentials, staff record and assignment."""
    states = [AccessState.ACTIVE]
    if credential_status == CredentialStatus.SUSPENDED:
        states.append(AccessState.DEACTIVATED)
    elif credential_status == CredentialStatus.REVOKED:
        states.append(AccessState.REMOVED)
    if staff_state:
        states.append(staff_state)
    if assignment_status:
        states.append(_ASSIGNMENT_STATE.get(assignment_status, AccessState.DEACTIVATED))
    return max(states, key=lambda state: _STATE_SEVERITY.get(state, 2))


def _admin_list_role(org_id: int, email: str) -> str | None:
    # Org-specific entry wins over a global one
    try:
        with store_call("admin override list"):
            entries = db.session.query(AdminRoleOverride).filter(
                db.func.lower(AdminRoleOverride.email) == email.lower(),
                db.or_(AdminRoleOverride.org_id == org_id, AdminRoleOverride.org_id.is_(None)),
            ).all()
    except RecordInaccessible:
        current_app.logger.warning("Admin override list refused for org %s; treating as no entry", org_id)
        return None
    entries.sort(key=lambda entry: entry.org_id is None)
    return entries[0].role if entries else None


def _staff_record(org_id: int, principal_id: int) -> StaffMember | None:
    try:
        with store_call("staff lookup"):
            return db.session.query(StaffMember).filter_by(
                org_id=org_id, principal_id=principal_id,
            ).first()
    except RecordInaccessible:
        current_app.logger.warning(
            "Staff record refused for principal %s in org %s; treating as no record", principal_id, org_id
        )
        return None


def _fill_cache(org_id: int, principal_id: int, decision: RoleDecision, job_title: str | None) -> None:
    try:
        fill_mapping(org_id, principal_id, decision.role, decision.source, job_title=job_title)
    except RecordInaccessible:
        current_app.logger.warning(
            "Role cache fill refused for principal %s in org %s", principal_id, org_id
        )


def resolve_principal(principal: Principal, org_id: int) -> ResolvedPrincipal:
    """Resolve role and access state for a known principal in its session's tenant."""
    if principal.org_id != org_id:
        raise AuthenticationFailure("Session tenant does not match principal")

    staff = _staff_record(org_id, principal.id)

    record_inaccessible = False
    try:
        assignment = lookup_assignment(org_id, principal.id)
    except RecordInaccessible:
        assignment = None
        record_inaccessible = True

    snapshot = AssignmentSnapshot.from_model(assignment) if assignment is not None else None

    context = ResolutionContext(
        email=principal.email,
        superuser_email=current_app.config.get("SUPERUSER_EMAIL"),
        admin_list_role=_admin_list_role(org_id, principal.email),
        assignment=snapshot,
        record_inaccessible=record_inaccessible,
        staff_job_title=staff.job_title if staff is not None else None,
    )

    decision = decide_role(context)

    # A recorded role is never overwritten, so only fill an empty slot
    has_recorded_role = snapshot is not None and snapshot.role is not None
    if decision.source in CACHE_FILL_SOURCES and not has_recorded_role:
        _fill_cache(org_id, principal.id, decision, context.job_title)

    access_state = derive_access_state(
        principal.credential_status,
        staff.access_state if staff is not None else None,
        snapshot.status if snapshot is not None else None,
    )

    return ResolvedPrincipal(
        principal_id=principal.id,
        org_id=org_id,
        email=principal.email,
        role=decision.role,
        role_source=decision.source,
        access_state=access_state,
        staff_id=staff.id if staff is not None else None,
    )


def resolve(session_token: str | None) -> ResolvedPrincipal:
    """
    Resolve a session token to principal, tenant and role.

    Raises:
        AuthenticationFailure: no valid session
        StoreUnavailable: the session or role lookup could not be completed
    """
    session_context = validate_session(session_token)
    if session_context is None:
        raise AuthenticationFailure("Invalid or expired session")
    return resolve_principal(session_context.principal, session_context.org_id)
