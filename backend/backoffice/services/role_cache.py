# Overview: Write-through canonical role mapping keyed by (tenant, principal).

"""
Role Mapping Cache

The role_assignments table is both the canonical role record and the cache
the resolver fills when a heuristic decides a role.

KEY: (org_id, principal_id), one row at most.

OPERATIONS:
- fill_mapping: insert-if-absent, or fill a NULL role. Never overwrites a
  role that is already recorded.
- write_mapping: overwrite (credential grant)
- set_mapping_status: ACTIVE <-> INACTIVE (suspend / reactivate)
- invalidate_mapping: logical delete (status REMOVED) on staff removal
"""

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import AssignmentSource, AssignmentStatus, RoleAssignment
from .concurrency import lock_for_update, principal_lock, run_with_retry
from .persistence import insert_if_absent, store_call


def lookup_assignment(org_id: int, principal_id: int) -> RoleAssignment | None:
    """
    Canonical role record for the key, or None.

    Raises RecordInaccessible when the store refuses the row and
    StoreUnavailable on transport failure.
    """
    with store_call("role lookup"):
        return db.session.query(RoleAssignment).filter_by(
            org_id=org_id, principal_id=principal_id,
        ).first()


def fill_mapping(
    org_id: int,
    principal_id: int,
    role: str,
    source: str,
    job_title: str | None = None,
) -> bool:
    """
    Persist a heuristically resolved role.

    Inserts an ACTIVE row if none exists; otherwise fills the role only when
    the existing row has none. Returns True when a row was written.
    """
    values = {
        "org_id": org_id,
        "principal_id": principal_id,
        "role": role,
        "job_title": job_title,
        "status": AssignmentStatus.ACTIVE,
        "source": source,
    }

    def _op():
        written = insert_if_absent(RoleAssignment, values, ["org_id", "principal_id"])
        if not written:
            result = db.session.execute(
                update(RoleAssignment)
                .where(
                    RoleAssignment.org_id == org_id,
                    RoleAssignment.principal_id == principal_id,
                    RoleAssignment.role.is_(None),
                )
                .values(role=role, source=source, version_id=RoleAssignment.version_id + 1)
                .execution_options(synchronize_session=False)
            )
            written = result.rowcount == 1
        db.session.commit()
        return written

    with principal_lock(org_id, "principal", principal_id):
        with store_call("role cache fill"):
            return run_with_retry(_op)


def _locked_assignment(org_id: int, principal_id: int) -> RoleAssignment | None:
    return lock_for_update(
        db.session.query(RoleAssignment).filter_by(org_id=org_id, principal_id=principal_id)
    ).first()


def write_mapping(
    org_id: int,
    principal_id: int,
    role: str,
    *,
    job_title: str | None = None,
    status: str = AssignmentStatus.ACTIVE,
    source: str = AssignmentSource.GRANT,
    commit: bool = True,
) -> RoleAssignment:
    """Create or overwrite the mapping."""
    with principal_lock(org_id, "principal", principal_id):
        with store_call("role mapping write"):
            assignment = _locked_assignment(org_id, principal_id)
            if assignment is None:
                assignment = RoleAssignment(org_id=org_id, principal_id=principal_id)
                db.session.add(assignment)
            assignment.role = role
            assignment.job_title = job_title
            assignment.status = status
            assignment.source = source
            if commit:
                db.session.commit()
            else:
                db.session.flush()
            return assignment


def set_mapping_status(
    org_id: int,
    principal_id: int,
    status: str,
    *,
    commit: bool = True,
) -> RoleAssignment | None:
    """Change the status of an existing mapping. Returns None when no mapping exists."""
    with principal_lock(org_id, "principal", principal_id):
        with store_call("role mapping status"):
            assignment = _locked_assignment(org_id, principal_id)
            if assignment is None:
                return None
            if assignment.status != status:
                assignment.status = status
            if commit:
                db.session.commit()
            else:
                db.session.flush()
            return assignment


def invalidate_mapping(org_id: int, principal_id: int, *, commit: bool = True) -> RoleAssignment | None:
    """Logically remove the mapping; the row stays for audit continuity."""
    return set_mapping_status(org_id, principal_id, AssignmentStatus.REMOVED, commit=commit)
