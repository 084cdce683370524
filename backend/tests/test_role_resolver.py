# Overview: Pytest coverage for role precedence, cache fill and access state derivation.

"""
Role/Identity Resolver Tests

The strategy chain is tested as pure functions over ResolutionContext;
resolve() is tested end to end against the in-memory database.
"""

import pytest

from backoffice.errors import AuthenticationFailure, RecordInaccessible, StoreUnavailable
from backoffice.extensions import db
from backoffice.models import (
    AccessState,
    AdminRoleOverride,
    AssignmentSource,
    AssignmentStatus,
    CredentialStatus,
    RoleAssignment,
)
from backoffice.services import role_resolver
from backoffice.services.role_resolver import (
    CANONICAL,
    TERMINAL_DEFAULT,
    AssignmentSnapshot,
    ResolutionContext,
    decide_role,
    derive_access_state,
    resolve,
)

from conftest import SUPERUSER_EMAIL, login, make_principal, make_staff, refuse_reads


def _assignment(role=None, status=AssignmentStatus.ACTIVE, job_title=None):
    return AssignmentSnapshot(role=role, status=status, job_title=job_title)


class TestRolePrecedence:
    """First strategy that answers wins."""

    def test_superuser_beats_everything(self):
        context = ResolutionContext(
            email="Root@Backoffice.test",
            superuser_email=SUPERUSER_EMAIL,
            admin_list_role="cashier",
            assignment=_assignment("server"),
        )
        decision = decide_role(context)
        assert decision.role == "administrator"
        assert decision.source == AssignmentSource.SUPERUSER

    def test_admin_list_beats_canonical(self):
        context = ResolutionContext(
            email="ana@bar.test",
            admin_list_role="manager",
            assignment=_assignment("server"),
        )
        decision = decide_role(context)
        assert (decision.role, decision.source) == ("manager", AssignmentSource.ADMIN_LIST)

    def test_admin_list_unknown_role_ignored(self):
        context = ResolutionContext(email="ana@bar.test", admin_list_role="owner", assignment=_assignment("server"))
        assert decide_role(context).role == "server"

    def test_canonical_role_used_verbatim(self):
        context = ResolutionContext(
            email="gerente@bar.test",
            assignment=_assignment("cook", job_title="Gerente"),
        )
        decision = decide_role(context)
        assert (decision.role, decision.source) == ("cook", CANONICAL)

    def test_inactive_canonical_role_not_used(self):
        """An inactive record with a role is not a title or email case either."""
        context = ResolutionContext(
            email="cashier@bar.test",
            assignment=_assignment("manager", status=AssignmentStatus.INACTIVE),
        )
        decision = decide_role(context)
        assert (decision.role, decision.source) == ("staff", TERMINAL_DEFAULT)

    def test_record_without_role_uses_job_title(self):
        context = ResolutionContext(email="ana@bar.test", assignment=_assignment(job_title="Caixa"))
        decision = decide_role(context)
        assert (decision.role, decision.source) == ("cashier", AssignmentSource.TITLE_KEYWORD)

    def test_job_title_falls_back_to_staff_record_title(self):
        context = ResolutionContext(
            email="ana@bar.test",
            assignment=_assignment(),
            staff_job_title="Barman",
        )
        assert decide_role(context).role == "bartender"

    def test_record_without_role_and_no_match_is_lowest(self):
        """Email keywords are not consulted once a record exists."""
        context = ResolutionContext(email="chef@bar.test", assignment=_assignment(job_title="Sommelier"))
        decision = decide_role(context)
        assert (decision.role, decision.source) == ("staff", AssignmentSource.TITLE_KEYWORD)

    def test_no_record_uses_email_local_part(self):
        context = ResolutionContext(email="maria.cashier@example.com")
        decision = decide_role(context)
        assert (decision.role, decision.source) == ("cashier", AssignmentSource.EMAIL_KEYWORD)

    def test_email_domain_is_ignored(self):
        context = ResolutionContext(email="ana@manager.example.com")
        assert decide_role(context).source == TERMINAL_DEFAULT

    def test_record_inaccessible_treated_as_absent(self):
        context = ResolutionContext(email="maria.cashier@example.com", record_inaccessible=True)
        assert decide_role(context).role == "cashier"

    def test_terminal_default(self):
        decision = decide_role(ResolutionContext(email="ana@bar.test"))
        assert (decision.role, decision.source) == ("staff", TERMINAL_DEFAULT)


class TestAccessState:
    """Most restrictive state wins."""

    @pytest.mark.parametrize("credential,staff,assignment,expected", [
        (CredentialStatus.ACTIVE, None, None, AccessState.ACTIVE),
        (CredentialStatus.ACTIVE, AccessState.ACTIVE, AssignmentStatus.ACTIVE, AccessState.ACTIVE),
        (CredentialStatus.SUSPENDED, AccessState.ACTIVE, AssignmentStatus.ACTIVE, AccessState.DEACTIVATED),
        (CredentialStatus.ACTIVE, AccessState.DEACTIVATED, AssignmentStatus.ACTIVE, AccessState.DEACTIVATED),
        (CredentialStatus.ACTIVE, None, AssignmentStatus.INACTIVE, AccessState.DEACTIVATED),
        (CredentialStatus.ACTIVE, None, AssignmentStatus.REMOVED, AccessState.REMOVED),
        (CredentialStatus.REVOKED, AccessState.ACTIVE, None, AccessState.REMOVED),
        (CredentialStatus.ACTIVE, AccessState.NO_ACCESS, None, AccessState.NO_ACCESS),
    ])
    def test_derive_access_state(self, credential, staff, assignment, expected):
        assert derive_access_state(credential, staff, assignment) == expected


class TestResolve:
    """End-to-end resolution against the store."""

    def test_invalid_token_fails_authentication(self, db_session):
        with pytest.raises(AuthenticationFailure):
            resolve("not-a-token")
        with pytest.raises(AuthenticationFailure):
            resolve(None)

    def test_canonical_role(self, db_session, org_a):
        principal = make_principal(org_a, "ana@bar-a.test", "bartender")
        resolved = resolve(login(principal))

        assert resolved.principal_id == principal.id
        assert resolved.org_id == org_a.id
        assert resolved.role == "bartender"
        assert resolved.role_source == CANONICAL
        assert resolved.access_state == AccessState.ACTIVE

    def test_superuser_email(self, db_session, org_a):
        principal = make_principal(org_a, SUPERUSER_EMAIL, "staff")
        assert resolve(login(principal)).role == "administrator"

    def test_email_keyword_fills_cache(self, db_session, org_a):
        principal = make_principal(org_a, "joao.cozinha@bar-a.test", with_assignment=False)
        token = login(principal)

        first = resolve(token)
        assert (first.role, first.role_source) == ("cook", AssignmentSource.EMAIL_KEYWORD)

        cached = db_session.query(RoleAssignment).filter_by(org_id=org_a.id, principal_id=principal.id).one()
        assert cached.role == "cook"
        assert cached.status == AssignmentStatus.ACTIVE
        assert cached.source == AssignmentSource.EMAIL_KEYWORD

        second = resolve(token)
        assert (second.role, second.role_source) == ("cook", CANONICAL)

    def test_title_keyword_fills_null_role(self, db_session, org_a):
        principal = make_principal(org_a, "ana@bar-a.test", None, job_title="Garçom")
        resolved = resolve(login(principal))
        assert resolved.role == "server"

        db_session.expire_all()
        cached = db_session.query(RoleAssignment).filter_by(principal_id=principal.id).one()
        assert cached.role == "server"
        assert cached.source == AssignmentSource.TITLE_KEYWORD

    def test_staff_job_title_used_when_record_has_none(self, db_session, org_a):
        principal = make_principal(org_a, "ana@bar-a.test", None)
        make_staff(org_a, "Ana", "ana@bar-a.test", job_title="Atendente", principal_id=principal.id,
                   access_state=AccessState.ACTIVE)
        resolved = resolve(login(principal))
        assert resolved.role == "front_of_house_cashier"
        assert resolved.staff_id is not None

    def test_terminal_default_not_cached(self, db_session, org_a):
        principal = make_principal(org_a, "ana@bar-a.test", with_assignment=False)
        resolved = resolve(login(principal))

        assert (resolved.role, resolved.role_source) == ("staff", TERMINAL_DEFAULT)
        assert db_session.query(RoleAssignment).filter_by(principal_id=principal.id).count() == 0

    def test_repeated_resolution_is_stable(self, db_session, org_a):
        principal = make_principal(org_a, "pedro.barman@bar-a.test", with_assignment=False)
        token = login(principal)
        roles = {resolve(token).role for _ in range(3)}
        assert roles == {"bartender"}

    def test_admin_list_org_entry_beats_global(self, db_session, org_a, org_b):
        principal = make_principal(org_a, "ana@bar-a.test", "server")
        db_session.add(AdminRoleOverride(org_id=None, email="ana@bar-a.test", role="cashier"))
        db_session.add(AdminRoleOverride(org_id=org_a.id, email="ana@bar-a.test", role="manager"))
        db_session.add(AdminRoleOverride(org_id=org_b.id, email="ana@bar-a.test", role="cook"))
        db_session.commit()

        resolved = resolve(login(principal))
        assert (resolved.role, resolved.role_source) == ("manager", AssignmentSource.ADMIN_LIST)

    def test_admin_list_fill_never_overwrites_recorded_role(self, db_session, org_a):
        principal = make_principal(org_a, "ana@bar-a.test", "server")
        db_session.add(AdminRoleOverride(org_id=None, email="ana@bar-a.test", role="manager"))
        db_session.commit()

        resolve(login(principal))

        db_session.expire_all()
        assert db_session.query(RoleAssignment).filter_by(principal_id=principal.id).one().role == "server"

    def test_suspended_principal_resolves_deactivated(self, db_session, org_a):
        principal = make_principal(org_a, "ana@bar-a.test", "cashier")
        token = login(principal)
        principal.credential_status = CredentialStatus.SUSPENDED
        db_session.commit()

        resolved = resolve(token)
        assert resolved.role == "cashier"
        assert resolved.access_state == AccessState.DEACTIVATED

    def test_revoked_principal_fails_authentication(self, db_session, org_a):
        principal = make_principal(org_a, "ana@bar-a.test", "cashier")
        token = login(principal)
        principal.credential_status = CredentialStatus.REVOKED
        db_session.commit()

        with pytest.raises(AuthenticationFailure):
            resolve(token)

    def test_inaccessible_record_uses_email_heuristic(self, db_session, org_a, monkeypatch):
        principal = make_principal(org_a, "maria.cashier@bar-a.test", "manager")
        token = login(principal)

        def refuse(*args, **kwargs):
            raise RecordInaccessible("row-level security")

        monkeypatch.setattr(role_resolver, "lookup_assignment", refuse)
        monkeypatch.setattr(role_resolver, "fill_mapping", refuse)

        resolved = resolve(token)
        assert (resolved.role, resolved.role_source) == ("cashier", AssignmentSource.EMAIL_KEYWORD)

    def test_store_unavailable_propagates(self, db_session, org_a, monkeypatch):
        """Transport failure is never downgraded to the default role."""
        principal = make_principal(org_a, "ana@bar-a.test", "manager")
        token = login(principal)

        def unavailable(*args, **kwargs):
            raise StoreUnavailable("timeout")

        monkeypatch.setattr(role_resolver, "lookup_assignment", unavailable)

        with pytest.raises(StoreUnavailable):
            resolve(token)

    def test_session_is_tenant_bound(self, db_session, org_a, org_b):
        principal = make_principal(org_a, "ana@bar-a.test", "manager")
        token = login(principal)

        principal.org_id = org_b.id
        db.session.commit()

        with pytest.raises(AuthenticationFailure):
            resolve(token)

    def test_admin_list_with_recorded_role_skips_fill(self, db_session, org_a, monkeypatch):
        principal = make_principal(org_a, "ana@bar-a.test", "server")
        db_session.add(AdminRoleOverride(org_id=None, email="ana@bar-a.test", role="manager"))
        db_session.commit()
        token = login(principal)
        fills = []
        monkeypatch.setattr(role_resolver, "fill_mapping", lambda *args, **kwargs: fills.append(args))

        for _ in range(3):
            assert resolve(token).role == "manager"
        assert fills == []

    def test_admin_list_without_record_fills_once(self, db_session, org_a):
        principal = make_principal(org_a, "ana@bar-a.test", with_assignment=False)
        db_session.add(AdminRoleOverride(org_id=org_a.id, email="ana@bar-a.test", role="manager"))
        db_session.commit()
        token = login(principal)

        resolve(token)
        resolve(token)

        db_session.expire_all()
        assignment = db_session.query(RoleAssignment).filter_by(principal_id=principal.id).one()
        assert (assignment.role, assignment.source) == ("manager", AssignmentSource.ADMIN_LIST)


class TestRefusedLookups:
    """Row-level refusals from the store are treated as missing entries."""

    def test_refused_admin_list_is_no_entry(self, db_session, org_a):
        principal = make_principal(org_a, "ana@bar-a.test", "cook")
        db_session.add(AdminRoleOverride(org_id=org_a.id, email="ana@bar-a.test", role="administrator"))
        db_session.commit()
        token = login(principal)

        with refuse_reads("admin_role_overrides"):
            resolved = resolve(token)

        assert (resolved.role, resolved.role_source) == ("cook", CANONICAL)

    def test_refused_staff_lookup_is_no_record(self, db_session, org_a):
        principal = make_principal(org_a, "ana@bar-a.test", "cashier")
        make_staff(
            org_a, "Ana Souza", "ana@bar-a.test", job_title="Caixa",
            principal_id=principal.id, access_state=AccessState.ACTIVE,
        )
        token = login(principal)

        with refuse_reads("staff_members"):
            resolved = resolve(token)

        assert resolved.role == "cashier"
        assert resolved.staff_id is None

    def test_refused_assignment_uses_email_heuristic(self, db_session, org_a):
        principal = make_principal(org_a, "joao.garcom@bar-a.test", "manager")
        token = login(principal)

        with refuse_reads("role_assignments"):
            resolved = resolve(token)

        assert (resolved.role, resolved.role_source) == ("server", AssignmentSource.EMAIL_KEYWORD)
