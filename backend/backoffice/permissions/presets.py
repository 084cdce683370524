# Overview: Named permission presets an administrator can apply in one step.

from .definitions import MODULES
from .roles import DEFAULT_ROLE_PERMISSIONS, FULL, NO_ACCESS, READ_ONLY, ROLE_DEFINITIONS


READ_ONLY_PRESET = "read_only"
NO_ACCESS_PRESET = "no_access"

# Extra presets beyond one per role template
_EXTRA_PRESETS = {
    READ_ONLY_PRESET: {
        "name": "Read Only",
        "description": "View every module, change nothing",
        "permissions": {module: READ_ONLY for module in MODULES},
    },
    NO_ACCESS_PRESET: {
        "name": "No Access",
        "description": "Deny every module",
        "permissions": {module: NO_ACCESS for module in MODULES},
    },
}


def get_preset(preset_id: str) -> dict | None:
    """
    Preset by id: a role name or one of the extra presets.

    The returned permissions cover every module, so applying a preset
    fully determines the principal's matrix.
    """
    if preset_id in DEFAULT_ROLE_PERMISSIONS:
        definition = ROLE_DEFINITIONS[preset_id]
        granted = DEFAULT_ROLE_PERMISSIONS[preset_id]
        return {
            "id": preset_id,
            "name": definition["display_name"],
            "description": definition["description"],
            "role": preset_id,
            "permissions": {module: granted.get(module, NO_ACCESS) for module in MODULES},
        }

    extra = _EXTRA_PRESETS.get(preset_id)
    if extra is None:
        return None
    return {"id": preset_id, "role": None, **extra}


def list_presets() -> list[dict]:
    preset_ids = list(DEFAULT_ROLE_PERMISSIONS) + list(_EXTRA_PRESETS)
    return [get_preset(preset_id) for preset_id in preset_ids]


def preset_to_dict(preset: dict) -> dict:
    return {
        "id": preset["id"],
        "name": preset["name"],
        "description": preset["description"],
        "role": preset["role"],
        "permissions": {
            module: sorted(granted) for module, granted in preset["permissions"].items()
        },
        "full_modules": sorted(m for m, g in preset["permissions"].items() if g == FULL),
    }
