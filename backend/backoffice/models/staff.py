from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


class AccessState:
    NO_ACCESS = "no_access"
    ACTIVE = "active"
    DEACTIVATED = "deactivated"
    REMOVED = "removed"


class StaffMember(db.Model):
    """
    Staff record for one employee in one organization.

    MULTI-TENANT: Staff records are scoped to organizations via org_id.

    WHY: Contact details live in their own columns; nothing is encoded in
    the free-text notes field.

    ACCESS STATE:
    - no_access: record only, no principal
    - active: principal issued, role assignment active
    - deactivated: credentials suspended, assignment inactive
    - removed: never stored; removal deletes the row
    """
    __tablename__ = "staff_members"
    __table_args__ = (
        db.UniqueConstraint("org_id", "email", name="uq_staff_members_org_email"),
        db.Index("ix_staff_members_org_state", "org_id", "access_state"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    full_name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    job_title = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    access_state = db.Column(db.String(16), nullable=False, default=AccessState.NO_ACCESS)
    principal_id = db.Column(db.Integer, db.ForeignKey("principals.id"), nullable=True, unique=True)

    deactivated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deactivation_reason = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    organization = db.relationship("Organization", backref=db.backref("staff_members", lazy=True))
    principal = db.relationship("Principal", backref=db.backref("staff_member", uselist=False, lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<StaffMember id={self.id} org_id={self.org_id} state={self.access_state}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "job_title": self.job_title,
            "notes": self.notes,
            "access_state": self.access_state,
            "principal_id": self.principal_id,
            "deactivated_at": to_utc_z(self.deactivated_at) if self.deactivated_at else None,
            "deactivation_reason": self.deactivation_reason,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
