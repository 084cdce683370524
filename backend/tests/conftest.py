"""
Pytest fixtures for back office access control tests.

Provides an in-memory database, two tenants for isolation tests,
principal/staff/session factories and the test client.
"""

from contextlib import contextmanager

import pytest
from sqlalchemy import event
from sqlalchemy.exc import ProgrammingError

from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import (
    AssignmentSource,
    AssignmentStatus,
    CredentialStatus,
    Organization,
    Principal,
    RoleAssignment,
    StaffMember,
)
from backoffice.services.auth_service import hash_password
from backoffice.services.credential_service import EXTENSION_KEY
from backoffice.services.session_service import create_session


PASSWORD = "Password123!"
SUPERUSER_EMAIL = "root@backoffice.test"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'SUPERUSER_EMAIL': SUPERUSER_EMAIL,
        'CREDENTIAL_ISSUER': 'local',
        'REMOVAL_CONFIRMATION': 'REMOVE',
    })

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh tables and a fresh app context (and g) for each test."""
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def issuer(app):
    return app.extensions[EXTENSION_KEY]


@pytest.fixture(scope='function')
def org_a(db_session):
    """Create Organization A (first tenant)."""
    org = Organization(name="Bar A", code="BARA", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Create Organization B (second tenant)."""
    org = Organization(name="Bar B", code="BARB", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


def make_principal(
    org,
    email,
    role=None,
    *,
    password=PASSWORD,
    credential_status=CredentialStatus.ACTIVE,
    assignment_status=AssignmentStatus.ACTIVE,
    job_title=None,
    with_assignment=True,
):
    """
    Create a principal, optionally with a canonical role assignment.

    role=None with with_assignment=True creates a record with no role, which
    sends resolution to the job title keyword step.
    """
    principal = Principal(
        org_id=org.id,
        email=email,
        password_hash=hash_password(password),
        credential_status=credential_status,
    )
    db.session.add(principal)
    db.session.commit()

    if with_assignment:
        db.session.add(RoleAssignment(
            org_id=org.id,
            principal_id=principal.id,
            role=role,
            job_title=job_title,
            status=assignment_status,
            source=AssignmentSource.GRANT,
        ))
        db.session.commit()
    return principal


def make_staff(org, full_name, email=None, job_title=None, **fields):
    staff = StaffMember(org_id=org.id, full_name=full_name, email=email, job_title=job_title, **fields)
    db.session.add(staff)
    db.session.commit()
    return staff


def login(principal) -> str:
    """Session token for a principal, bypassing the password check."""
    _, token = create_session(principal.id)
    return token


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_a(db_session, org_a):
    return make_principal(org_a, "owner@bar-a.test", "administrator")


@pytest.fixture(scope='function')
def manager_a(db_session, org_a):
    return make_principal(org_a, "boss@bar-a.test", "manager")


@pytest.fixture(scope='function')
def admin_b(db_session, org_b):
    return make_principal(org_b, "owner@bar-b.test", "administrator")


class _DriverPermissionError(Exception):
    """Stands in for the driver error PostgreSQL raises on a refused row (SQLSTATE 42501)."""

    def __init__(self, message):
        super().__init__(message)
        self.pgcode = "42501"


@contextmanager
def refuse_reads(table_name: str):
    """Make every SELECT from table_name fail with a permission-denied ProgrammingError."""
    engine = db.engine

    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        sql = statement.lstrip().upper()
        if sql.startswith("SELECT") and f"FROM {table_name.upper()}" in sql:
            raise ProgrammingError(
                statement, parameters, _DriverPermissionError(f"permission denied for table {table_name}"),
            )

    event.listen(engine, "before_cursor_execute", before_cursor_execute)
    try:
        yield
    finally:
        event.remove(engine, "before_cursor_execute", before_cursor_execute)
