# Overview: Password hashing, temporary password generation, login and password change.

"""
Authentication Service with Multi-Tenant Support

WHY: Every action must be attributable. Uses bcrypt for secure password
hashing and validates password strength.

MULTI-TENANT: Principals belong to exactly one organization. Login is
scoped by organization code; the same email may exist in several orgs.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS)
- Minimum 8 characters, upper, lower, digit and special char required
- Temporary passwords are 12+ characters and satisfy the same rules
- Only ACTIVE credentials can log in
"""

import re
import secrets
import string

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import CredentialStatus, Organization, Principal
from .persistence import store_call
from .security_service import log_security_event
from backoffice.time_utils import utcnow


TEMPORARY_PASSWORD_LENGTH = 12
SPECIAL_CHARACTERS = "!@#$%&*"


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt."""
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    Malformed hashes never verify.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def generate_temporary_password(length: int = TEMPORARY_PASSWORD_LENGTH) -> str:
    """
    Random password with at least one upper, lower, digit and special char.

    Uses secrets so the password is unpredictable.
    """
    length = max(length, TEMPORARY_PASSWORD_LENGTH)
    required = [
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.digits),
        secrets.choice(SPECIAL_CHARACTERS),
    ]
    alphabet = string.ascii_letters + string.digits + SPECIAL_CHARACTERS
    rest = [secrets.choice(alphabet) for _ in range(length - len(required))]

    characters = required + rest
    # Fisher-Yates with a CSPRNG
    for i in range(len(characters) - 1, 0, -1):
        j = secrets.randbelow(i + 1)
        characters[i], characters[j] = characters[j], characters[i]
    return "".join(characters)


def authenticate(email: str, password: str, org_code: str) -> Principal | None:
    """
    Authenticate a principal by email and password within an organization.

    Returns Principal if credentials valid, None otherwise. Failed attempts
    are logged as LOGIN_FAILED security events.
    """
    email = (email or "").strip().lower()

    with store_call("authenticate"):
        org = db.session.query(Organization).filter_by(code=org_code, is_active=True).first()
        principal = None
        if org is not None:
            principal = db.session.query(Principal).filter_by(org_id=org.id, email=email).first()

    if principal is None or not verify_password(password, principal.password_hash):
        _log_login_failure(org, principal, email, "Invalid credentials")
        return None

    if principal.credential_status != CredentialStatus.ACTIVE:
        _log_login_failure(org, principal, email, f"Credentials {principal.credential_status.lower()}")
        return None

    with store_call("record login"):
        principal.last_login_at = utcnow()
        db.session.commit()
    return principal


def _log_login_failure(org, principal, email, reason):
    log_security_event(
        principal_id=principal.id if principal else None,
        event_type="LOGIN_FAILED",
        success=False,
        resource="/api/auth/login",
        action="LOGIN",
        reason=f"{reason} for {email}",
        org_id=org.id if org else None,
    )


def change_password(principal_id: int, current_password: str, new_password: str) -> Principal:
    """
    Change a principal's password and clear must_change_password.

    Other sessions are left alone; the caller's session stays valid.

    Raises:
        ValueError: principal missing or current password wrong
        PasswordValidationError: new password too weak
    """
    with store_call("change password"):
        principal = db.session.get(Principal, principal_id)
        if principal is None:
            raise ValueError("Principal not found")
        if not verify_password(current_password, principal.password_hash):
            raise ValueError("Current password is incorrect")
        if current_password == new_password:
            raise PasswordValidationError("New password must differ from the current one")

        principal.password_hash = hash_password(new_password)
        principal.must_change_password = False
        db.session.commit()
    return principal


def set_password(principal: Principal, password: str, *, must_change: bool) -> None:
    """Replace the hash without verifying the old password (credential issuance only)."""
    principal.password_hash = hash_password(password)
    principal.must_change_password = must_change

