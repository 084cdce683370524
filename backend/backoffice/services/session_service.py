# Overview: Session token issue, validation and revocation (the session/identity collaborator).

"""
Session Token Management Service with Multi-Tenant Support

WHY: Secure session management with automatic timeout and revocation.
Tokens are cryptographically secure, hashed in database, and time-limited.

MULTI-TENANT: Sessions capture org_id at creation time. This fixes the
tenant for every request made with the token.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- 24-hour absolute timeout (SESSION_ABSOLUTE_TIMEOUT)
- 2-hour idle timeout (SESSION_IDLE_TIMEOUT)
- Revoked on logout and when the principal's credentials are revoked
- Suspended credentials keep existing sessions valid; the permission
  engine answers deny-all for them instead
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from ..extensions import db
from ..models import CredentialStatus, Organization, Principal, SessionToken
from .persistence import store_call
from backoffice.time_utils import utcnow


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)  # Maximum session length
SESSION_IDLE_TIMEOUT = timedelta(hours=2)        # Activity timeout


@dataclass
class SessionContext:
    """
    Session context returned by validate_session.

    MULTI-TENANT: org_id comes from the immutable session record.
    """
    principal: Principal
    session: SessionToken
    org_id: int


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    WHY SHA-256 not bcrypt: Tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    principal_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token for a principal with tenant context.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.

    Raises ValueError if the principal is missing, not ACTIVE, or its
    organization is inactive.
    """
    with store_call("create session"):
        principal = db.session.get(Principal, principal_id)
        if not principal:
            raise ValueError("Principal not found")

        if principal.credential_status != CredentialStatus.ACTIVE:
            raise ValueError("Credentials are not active")

        org = db.session.get(Organization, principal.org_id)
        if not org or not org.is_active:
            raise ValueError("Organization is not active")

        plaintext_token = generate_token()
        now = utcnow()

        session = SessionToken(
            principal_id=principal_id,
            org_id=principal.org_id,
            token_hash=hash_token(plaintext_token),
            created_at=now,
            last_used_at=now,
            expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
            user_agent=user_agent,
            ip_address=ip_address,
            is_revoked=False,
        )

        db.session.add(session)
        db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str | None) -> SessionContext | None:
    """
    Validate session token and return SessionContext if valid.

    Returns None if:
    - Token is missing, unknown, expired, idle too long, or revoked
    - The principal's credentials were revoked
    - Organization is deactivated

    Raises StoreUnavailable when the lookup itself fails, so callers can
    tell "no session" from "could not check".
    """
    if not token:
        return None

    with store_call("validate session"):
        now = utcnow()

        session = db.session.query(SessionToken).filter_by(
            token_hash=hash_token(token),
            is_revoked=False,
        ).first()

        if not session:
            return None

        if session.expires_at < now:
            return None

        if now - session.last_used_at > SESSION_IDLE_TIMEOUT:
            _revoke(session, "Idle timeout")
            return None

        principal = session.principal
        if not principal or principal.credential_status == CredentialStatus.REVOKED:
            _revoke(session, "Credentials revoked")
            return None

        org = db.session.get(Organization, session.org_id)
        if not org or not org.is_active:
            _revoke(session, "Organization deactivated")
            return None

        session.last_used_at = now
        db.session.commit()

        return SessionContext(principal=principal, session=session, org_id=session.org_id)


def revoke_session(token: str, reason: str = "Logout") -> bool:
    """Revoke session token. Returns True if session was revoked, False if not found."""
    with store_call("revoke session"):
        session = db.session.query(SessionToken).filter_by(
            token_hash=hash_token(token),
            is_revoked=False,
        ).first()

        if not session:
            return False

        _revoke(session, reason)
        return True


def revoke_all_principal_sessions(principal_id: int, reason: str = "Revoke all sessions", *, commit: bool = True) -> int:
    """
    Revoke all active sessions for a principal.

    Returns count of sessions revoked.
    """
    now = utcnow()
    with store_call("revoke sessions"):
        count = db.session.query(SessionToken).filter_by(
            principal_id=principal_id,
            is_revoked=False,
        ).update(
            {"is_revoked": True, "revoked_at": now, "revoked_reason": reason},
            synchronize_session=False,
        )
        if commit:
            db.session.commit()
    return count


def cleanup_expired_sessions(older_than: timedelta = timedelta(days=30)) -> int:
    """
    Delete expired and revoked sessions created before the cutoff.

    Returns count of sessions deleted.
    """
    now = utcnow()
    cutoff = now - older_than

    with store_call("cleanup sessions"):
        deleted = db.session.query(SessionToken).filter(
            db.or_(
                SessionToken.expires_at < now,
                SessionToken.is_revoked.is_(True),
            ),
            SessionToken.created_at < cutoff,
        ).delete(synchronize_session=False)

        db.session.commit()
    return deleted
