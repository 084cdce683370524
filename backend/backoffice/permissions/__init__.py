# Overview: Permission matrix package.
# Re-exports the module/action enumerations, role templates and matrix functions.

from .categories import Action, Module, ModuleCategory
from .definitions import ACTIONS, MODULE_DEFINITIONS, MODULES
from .roles import (
    DEFAULT_ROLE_PERMISSIONS,
    LOWEST_PRIVILEGE_ROLE,
    ROLE_DEFINITIONS,
    ROLE_HIERARCHY,
    ROLE_KEYWORDS,
    TOP_PRIVILEGE_ROLE,
    RoleName,
)
from .matrix import (
    Matrix,
    apply_overrides,
    apply_role,
    empty_matrix,
    granted_cells,
    has_access,
    is_deny_all,
    module_cells,
    role_matrix,
)
from .presets import get_preset, list_presets, preset_to_dict
from .helpers import (
    can_manage_role,
    get_module_definition,
    get_role_definition,
    normalize_text,
    role_from_keywords,
    validate_action,
    validate_module,
    validate_role,
)

__all__ = [
    "Action",
    "Module",
    "ModuleCategory",
    "ACTIONS",
    "MODULE_DEFINITIONS",
    "MODULES",
    "DEFAULT_ROLE_PERMISSIONS",
    "LOWEST_PRIVILEGE_ROLE",
    "ROLE_DEFINITIONS",
    "ROLE_HIERARCHY",
    "ROLE_KEYWORDS",
    "TOP_PRIVILEGE_ROLE",
    "RoleName",
    "Matrix",
    "apply_overrides",
    "apply_role",
    "empty_matrix",
    "granted_cells",
    "has_access",
    "is_deny_all",
    "module_cells",
    "role_matrix",
    "get_preset",
    "list_presets",
    "preset_to_dict",
    "can_manage_role",
    "get_module_definition",
    "get_role_definition",
    "normalize_text",
    "role_from_keywords",
    "validate_action",
    "validate_module",
    "validate_role",
]
