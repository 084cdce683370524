from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


class CredentialStatus:
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    REVOKED = "REVOKED"


class AssignmentStatus:
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    REMOVED = "REMOVED"


class AssignmentSource:
    """How a role mapping came to exist."""
    GRANT = "GRANT"
    ADMIN_LIST = "ADMIN_LIST"
    TITLE_KEYWORD = "TITLE_KEYWORD"
    EMAIL_KEYWORD = "EMAIL_KEYWORD"
    SUPERUSER = "SUPERUSER"


class Principal(db.Model):
    """
    Credentialed identity: a staff member or administrator who can log in.

    MULTI-TENANT: Principals belong to exactly one organization (org_id).
    Email is unique within an organization, not globally.

    WHY: Every action must be attributable. No shared logins.

    CREDENTIALS:
    - ACTIVE: may log in
    - SUSPENDED: may not start new sessions; existing sessions resolve to deny-all
    - REVOKED: every session invalid; the row is kept for attribution
    """
    __tablename__ = "principals"
    __table_args__ = (
        db.UniqueConstraint("org_id", "email", name="uq_principals_org_email"),
        db.Index("ix_principals_org_id", "org_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # MULTI-TENANT: Principal belongs to exactly one organization
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False)

    email = db.Column(db.String(255), nullable=False)
    display_name = db.Column(db.String(255), nullable=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    # Identity id at the hosted credential service (remote issuer only)
    external_id = db.Column(db.String(64), nullable=True, index=True)

    credential_status = db.Column(db.String(16), nullable=False, default=CredentialStatus.ACTIVE, index=True)
    must_change_password = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    organization = db.relationship("Organization", backref=db.backref("principals", lazy=True))

    def __repr__(self) -> str:
        return f"<Principal id={self.id} org_id={self.org_id} email={self.email!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "email": self.email,
            "display_name": self.display_name,
            "credential_status": self.credential_status,
            "must_change_password": self.must_change_password,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class SessionToken(db.Model):
    """
    Secure session token management with tenant context.

    MULTI-TENANT: Session tokens carry org_id to establish tenant context for
    every authenticated request. The tenant is fixed for the session lifetime.

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256)
    - 24-hour absolute timeout
    - 2-hour idle timeout
    - Revocable on logout or when credentials are revoked
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_principal_active", "principal_id", "is_revoked"),
        db.Index("ix_session_tokens_org_id", "org_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    principal_id = db.Column(db.Integer, db.ForeignKey("principals.id"), nullable=False, index=True)

    # MULTI-TENANT: Tenant context captured at session creation
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False)

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)  # IPv6 max length

    principal = db.relationship("Principal", backref=db.backref("session_tokens", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "principal_id": self.principal_id,
            "org_id": self.org_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
            "revoked_at": to_utc_z(self.revoked_at) if self.revoked_at else None,
        }


class RoleAssignment(db.Model):
    """
    Canonical role mapping for one principal in one organization.

    WHY: The resolver checks this row before any heuristic. Heuristic
    outcomes are written back here so the next resolution short-circuits.

    DESIGN:
    - Keyed by (org_id, principal_id); at most one row per key
    - role may be NULL: a record exists but the role is unknown, so the
      resolver derives it from job_title
    - status REMOVED is a logical delete, kept for audit continuity
    - version_id guards against lost updates from concurrent writers
    """
    __tablename__ = "role_assignments"
    __table_args__ = (
        db.UniqueConstraint("org_id", "principal_id", name="uq_role_assignments_org_principal"),
        db.Index("ix_role_assignments_org_status", "org_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    principal_id = db.Column(db.Integer, db.ForeignKey("principals.id"), nullable=False, index=True)

    role = db.Column(db.String(64), nullable=True)
    job_title = db.Column(db.String(128), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=AssignmentStatus.ACTIVE)
    source = db.Column(db.String(16), nullable=False, default=AssignmentSource.GRANT)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    principal = db.relationship("Principal", backref=db.backref("role_assignments", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "principal_id": self.principal_id,
            "role": self.role,
            "job_title": self.job_title,
            "status": self.status,
            "source": self.source,
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at),
        }


class AdminRoleOverride(db.Model):
    """
    Operator-maintained email -> role list for emergency/manual assignment.

    DESIGN:
    - org_id NULL means the entry applies in every organization
    - An org-specific entry wins over a global one for the same email
    - Maintained through the CLI, never through the API
    """
    __tablename__ = "admin_role_overrides"
    __table_args__ = (
        db.UniqueConstraint("org_id", "email", name="uq_admin_role_overrides_org_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=True, index=True)
    email = db.Column(db.String(255), nullable=False, index=True)
    role = db.Column(db.String(64), nullable=False)
    note = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "email": self.email,
            "role": self.role,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }


class PermissionOverride(db.Model):
    """
    Per-principal, per-module permission cells.

    WHY: Role templates don't cover all cases. An administrator can give a
    specific principal more or less access on one module.

    DESIGN:
    - One row per (org_id, principal_id, module)
    - A row replaces the role default for its module wholesale: all five
      actions come from the row, never blended with the role template
    - Deleting the row reverts the module to the role default

    AUDIT:
    - Tracks who last wrote the row and when
    """
    __tablename__ = "permission_overrides"
    __table_args__ = (
        db.UniqueConstraint("org_id", "principal_id", "module", name="uq_permission_overrides_org_principal_module"),
        db.Index("ix_permission_overrides_org_principal", "org_id", "principal_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    principal_id = db.Column(db.Integer, db.ForeignKey("principals.id"), nullable=False, index=True)

    module = db.Column(db.String(64), nullable=False)

    can_view = db.Column(db.Boolean, nullable=False, default=False)
    can_create = db.Column(db.Boolean, nullable=False, default=False)
    can_edit = db.Column(db.Boolean, nullable=False, default=False)
    can_delete = db.Column(db.Boolean, nullable=False, default=False)
    can_administer = db.Column(db.Boolean, nullable=False, default=False)

    # Who last wrote this override
    updated_by_principal_id = db.Column(db.Integer, db.ForeignKey("principals.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    principal = db.relationship("Principal", foreign_keys=[principal_id], backref=db.backref("permission_overrides", lazy=True))
    updated_by = db.relationship("Principal", foreign_keys=[updated_by_principal_id])

    __mapper_args__ = {"version_id_col": version_id}

    def cells(self) -> dict:
        return {
            "view": bool(self.can_view),
            "create": bool(self.can_create),
            "edit": bool(self.can_edit),
            "delete": bool(self.can_delete),
            "administer": bool(self.can_administer),
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "principal_id": self.principal_id,
            "module": self.module,
            "cells": self.cells(),
            "updated_by_principal_id": self.updated_by_principal_id,
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at),
        }
