from .tenancy import Organization
from .auth import (
    AdminRoleOverride,
    AssignmentSource,
    AssignmentStatus,
    CredentialStatus,
    PermissionOverride,
    Principal,
    RoleAssignment,
    SessionToken,
)
from .staff import AccessState, StaffMember
from .security import SecurityEvent

__all__ = [
    'Organization',
    'Principal', 'SessionToken', 'RoleAssignment', 'AdminRoleOverride', 'PermissionOverride',
    'CredentialStatus', 'AssignmentStatus', 'AssignmentSource',
    'StaffMember', 'AccessState',
    'SecurityEvent',
]
