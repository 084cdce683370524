# Overview: Tenant-scoped fetch, replace and delete of per-principal permission override rows.

"""
Override Store

Every read filters by (org_id, principal_id) together. Every write first
checks that the target principal belongs to the caller's tenant and
refuses with TenantMismatch otherwise, whatever the database would permit.

Writes hold the per-(tenant, principal) lock and rely on the row's
version_id for optimistic concurrency across processes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from sqlalchemy.exc import IntegrityError

from ..errors import ConcurrentModification
from ..extensions import db
from ..models import PermissionOverride
from ..permissions import ACTIONS, validate_module
from .concurrency import lock_for_update, principal_lock, run_with_retry
from .persistence import store_call
from .tenant_service import require_principal_in_org


_CELL_COLUMNS = {action: f"can_{action}" for action in ACTIONS}


@dataclass(frozen=True)
class OverrideRow:
    org_id: int
    principal_id: int
    module: str
    cells: dict = field(hash=False)
    updated_by_principal_id: int | None = None
    version_id: int | None = None

    @classmethod
    def from_model(cls, row: PermissionOverride) -> "OverrideRow":
        return cls(
            org_id=row.org_id,
            principal_id=row.principal_id,
            module=row.module,
            cells=row.cells(),
            updated_by_principal_id=row.updated_by_principal_id,
            version_id=row.version_id,
        )

    def to_dict(self) -> dict:
        return {
            "module": self.module,
            "cells": dict(self.cells),
            "updated_by_principal_id": self.updated_by_principal_id,
            "version_id": self.version_id,
        }


def overrides_by_module(rows: list[OverrideRow]) -> dict[str, dict[str, bool]]:
    return {row.module: row.cells for row in rows}


def fetch_overrides(org_id: int, principal_id: int) -> list[OverrideRow]:
    """
    All override rows for one principal in one tenant.

    An empty list is a valid result. Store failures raise StoreUnavailable.
    """
    with store_call("fetch overrides"):
        rows = (
            db.session.query(PermissionOverride)
            .filter_by(org_id=org_id, principal_id=principal_id)
            .order_by(PermissionOverride.module)
            .all()
        )
    return [OverrideRow.from_model(row) for row in rows]


def _require_module(module: str) -> None:
    if not validate_module(module):
        raise ValueError(f"Unknown module: {module}")


def _apply_cells(row: PermissionOverride, cells: Mapping[str, bool]) -> None:
    # Missing action keys are denied
    for action, column in _CELL_COLUMNS.items():
        setattr(row, column, cells.get(action) is True)


def _upsert(org_id, principal_id, module, cells, updated_by) -> PermissionOverride:
    row = lock_for_update(
        db.session.query(PermissionOverride).filter_by(
            org_id=org_id, principal_id=principal_id, module=module,
        )
    ).first()
    if row is None:
        row = PermissionOverride(org_id=org_id, principal_id=principal_id, module=module)
        db.session.add(row)
    _apply_cells(row, cells)
    row.updated_by_principal_id = updated_by
    return row


def _write(operation: str, org_id: int, principal_id: int, work, commit: bool):
    """
    Run work() under the principal lock with error translation.

    With commit=True the unit is committed and retried on lock/version
    conflicts. With commit=False it is flushed into the caller's transaction.
    """
    def _op():
        result = work()
        if commit:
            db.session.commit()
        else:
            db.session.flush()
        return result

    with principal_lock(org_id, "principal", principal_id):
        try:
            with store_call(operation):
                return run_with_retry(_op) if commit else _op()
        except IntegrityError as exc:
            raise ConcurrentModification(f"{operation}: concurrent insert for principal {principal_id}") from exc


def replace_module_override(
    org_id: int,
    principal_id: int,
    module: str,
    cells: Mapping[str, bool],
    *,
    updated_by: int | None = None,
    commit: bool = True,
) -> OverrideRow:
    """
    Create or replace the override for one module.

    All five actions are taken from cells; absent keys become False.
    """
    _require_module(module)
    require_principal_in_org(principal_id, org_id)

    row = _write(
        "replace override",
        org_id,
        principal_id,
        lambda: _upsert(org_id, principal_id, module, cells, updated_by),
        commit,
    )
    return OverrideRow.from_model(row)


def clear_module_override(
    org_id: int,
    principal_id: int,
    module: str,
    *,
    commit: bool = True,
) -> bool:
    """Delete one module's override, reverting it to the role default. Returns whether a row existed."""
    _require_module(module)
    require_principal_in_org(principal_id, org_id)

    def _delete():
        return db.session.query(PermissionOverride).filter_by(
            org_id=org_id, principal_id=principal_id, module=module,
        ).delete(synchronize_session=False) > 0

    return _write("clear override", org_id, principal_id, _delete, commit)


def clear_all_overrides(org_id: int, principal_id: int, *, commit: bool = True) -> int:
    """Delete every override for the principal. A second call deletes nothing."""
    require_principal_in_org(principal_id, org_id)

    def _delete():
        return db.session.query(PermissionOverride).filter_by(
            org_id=org_id, principal_id=principal_id,
        ).delete(synchronize_session=False)

    return _write("clear overrides", org_id, principal_id, _delete, commit)


def replace_all_overrides(
    org_id: int,
    principal_id: int,
    matrix: Mapping[str, Mapping[str, bool]],
    *,
    updated_by: int | None = None,
    commit: bool = True,
) -> list[OverrideRow]:
    """
    Replace the principal's whole override set in one transaction.

    Existing rows for modules absent from matrix are deleted.
    """
    for module in matrix:
        _require_module(module)
    require_principal_in_org(principal_id, org_id)

    def _replace():
        db.session.query(PermissionOverride).filter(
            PermissionOverride.org_id == org_id,
            PermissionOverride.principal_id == principal_id,
            PermissionOverride.module.notin_(list(matrix)),
        ).delete(synchronize_session=False)
        return [
            _upsert(org_id, principal_id, module, cells, updated_by)
            for module, cells in matrix.items()
        ]

    rows = _write("replace overrides", org_id, principal_id, _replace, commit)
    return [OverrideRow.from_model(row) for row in rows]
