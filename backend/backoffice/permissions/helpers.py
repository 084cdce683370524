# Overview: Utility functions for module, action and role lookups.

import unicodedata

from .definitions import ACTIONS, MODULE_DEFINITIONS, MODULES
from .roles import ROLE_DEFINITIONS, ROLE_HIERARCHY, ROLE_KEYWORDS, TOP_PRIVILEGE_ROLE


def get_module_definition(code):
    """Get full definition for a module code."""
    for module in MODULE_DEFINITIONS:
        if module[0] == code:
            return {
                "code": module[0],
                "name": module[1],
                "description": module[2],
                "category": module[3],
            }
    return None


def validate_module(code):
    """Check if a module code is valid."""
    return code in MODULES


def validate_action(action):
    return action in ACTIONS


def validate_role(role):
    return role in ROLE_DEFINITIONS


def get_role_definition(role):
    definition = ROLE_DEFINITIONS.get(role)
    if definition is None:
        return None
    return {
        "role": role,
        "display_name": definition["display_name"],
        "description": definition["description"],
        "hierarchy": definition["hierarchy"],
    }


def can_manage_role(manager_role, target_role):
    """
    Whether manager_role outranks target_role.

    The administrator manages everyone. Otherwise the manager must sit
    strictly higher in the hierarchy. Unknown roles manage nothing.
    """
    if manager_role == TOP_PRIVILEGE_ROLE:
        return True
    if manager_role not in ROLE_HIERARCHY:
        return False
    return ROLE_HIERARCHY[manager_role] > ROLE_HIERARCHY.get(target_role, 0)


def normalize_text(text):
    """Lowercase and strip accents ("Garçom" -> "garcom")."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.lower()


def role_from_keywords(text):
    """First role whose keyword occurs in text, or None. Never raises."""
    normalized = normalize_text(text)
    if not normalized:
        return None
    for keywords, role in ROLE_KEYWORDS:
        if any(keyword in normalized for keyword in keywords):
            return role
    return None
