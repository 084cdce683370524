# Overview: Pure functions building and querying a module x action permission matrix.

"""
Permission Matrix

A matrix is a dict of module -> {action: bool}. Matrices built here are
total: every known module/action pair is present, and unset cells are False.

Overrides replace a module wholesale. An override never merges with the
role default action by action.
"""

from __future__ import annotations

from typing import Iterable, Mapping

from .definitions import ACTIONS, MODULES
from .roles import DEFAULT_ROLE_PERMISSIONS


Matrix = dict[str, dict[str, bool]]


def module_cells(granted: Iterable[str] = ()) -> dict[str, bool]:
    """Five-action cell for one module with the given actions set."""
    granted = set(granted)
    return {action: action in granted for action in ACTIONS}


def empty_matrix() -> Matrix:
    """All-false total matrix."""
    return {module: module_cells() for module in MODULES}


def apply_role(matrix: Matrix, role: str | None) -> Matrix:
    """
    Overlay role defaults onto an empty base.

    Unknown roles overlay nothing (deny-by-default).
    """
    result = {module: dict(cells) for module, cells in matrix.items()}
    for module, granted in DEFAULT_ROLE_PERMISSIONS.get(role, {}).items():
        if module in result:
            result[module] = module_cells(granted)
    return result


def apply_overrides(matrix: Matrix, overrides: Mapping[str, Mapping[str, bool]]) -> Matrix:
    """
    Replace each overridden module's five cells with the override's values.

    Missing action keys in an override count as False. Modules outside the
    fixed enumeration are ignored. Modules without an override are untouched.
    """
    result = {module: dict(cells) for module, cells in matrix.items()}
    for module, cells in overrides.items():
        if module not in result:
            continue
        result[module] = {action: cells.get(action) is True for action in ACTIONS}
    return result


def has_access(matrix: Mapping[str, Mapping[str, bool]], module: str, action: str) -> bool:
    """Direct cell lookup. Unknown module or action means not configured: False."""
    return matrix.get(module, {}).get(action) is True


def is_deny_all(matrix: Mapping[str, Mapping[str, bool]]) -> bool:
    return not any(value for cells in matrix.values() for value in cells.values())


def granted_cells(matrix: Mapping[str, Mapping[str, bool]]) -> list[str]:
    """Sorted "module.action" codes for every True cell."""
    return sorted(
        f"{module}.{action}"
        for module, cells in matrix.items()
        for action, value in cells.items()
        if value
    )


def role_matrix(role: str | None) -> Matrix:
    return apply_role(empty_matrix(), role)
