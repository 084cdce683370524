# Overview: Staff record CRUD scoped to one organization.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import AccessState, StaffMember
from .concurrency import principal_lock
from .persistence import store_call
from .tenant_service import require_staff_in_org


EDITABLE_FIELDS = ("full_name", "email", "phone", "job_title", "notes")


def _clean(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _normalize(fields: dict) -> dict:
    cleaned = {key: _clean(fields.get(key)) for key in EDITABLE_FIELDS if key in fields}
    if cleaned.get("email"):
        cleaned["email"] = cleaned["email"].lower()
    return cleaned


def list_staff(org_id: int, access_state: str | None = None) -> list[StaffMember]:
    with store_call("list staff"):
        query = db.session.query(StaffMember).filter_by(org_id=org_id)
        if access_state:
            query = query.filter_by(access_state=access_state)
        return query.order_by(StaffMember.full_name).all()


def get_staff(org_id: int, staff_id: int) -> StaffMember:
    return require_staff_in_org(staff_id, org_id)


def create_staff(org_id: int, **fields) -> StaffMember:
    """
    Create a staff record with no system access.

    Raises ValueError when full_name is missing or the email is already used
    in the organization.
    """
    values = _normalize(fields)
    if not values.get("full_name"):
        raise ValueError("full_name is required")

    staff = StaffMember(org_id=org_id, access_state=AccessState.NO_ACCESS, **values)
    try:
        with store_call("create staff"):
            db.session.add(staff)
            db.session.commit()
    except IntegrityError as exc:
        raise ValueError("A staff member with this email already exists") from exc
    return staff


def update_staff(org_id: int, staff_id: int, **fields) -> StaffMember:
    """
    Update contact and job fields. Access state only changes through the
    access lifecycle, and a credentialed record keeps its email.
    """
    values = _normalize(fields)
    if "full_name" in values and not values["full_name"]:
        raise ValueError("full_name cannot be empty")

    with principal_lock(org_id, "staff", staff_id):
        staff = require_staff_in_org(staff_id, org_id)
        if staff.principal_id and "email" in values and values["email"] != staff.email:
            raise ValueError("Email cannot change while the staff member has credentials")

        for key, value in values.items():
            setattr(staff, key, value)
        try:
            with store_call("update staff"):
                db.session.commit()
        except IntegrityError as exc:
            raise ValueError("A staff member with this email already exists") from exc
    return staff
