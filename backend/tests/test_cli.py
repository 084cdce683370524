# Overview: Pytest coverage for the Flask CLI command groups.

from backoffice.models import AdminRoleOverride, AssignmentStatus, Organization, Principal, RoleAssignment

from conftest import make_principal


class TestCli:
    """Bootstrap, role override list and inspection commands."""

    def test_system_init_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()
        args = ["system", "init", "--org", "Bar do Ze", "--org-code", "BAR01", "--admin-email", "Owner@Bar.test"]

        first = runner.invoke(args=args)
        second = runner.invoke(args=args)

        assert first.exit_code == 0, first.output
        assert "DONE" in second.output
        org = db_session.query(Organization).filter_by(code="BAR01").one()
        principal = db_session.query(Principal).filter_by(org_id=org.id).one()
        assert principal.email == "owner@bar.test"
        assignment = db_session.query(RoleAssignment).filter_by(principal_id=principal.id).one()
        assert (assignment.role, assignment.status) == ("administrator", AssignmentStatus.ACTIVE)

    def test_orgs_create_rejects_duplicate_code(self, app, db_session, org_a):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["orgs", "create", "--name", "Copy", "--code", org_a.code])
        assert "FAIL" in result.output
        assert db_session.query(Organization).count() == 1

    def test_role_overrides_add_and_remove(self, app, db_session, org_a):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["role-overrides", "add", "--email", "Ana@Bar-A.test", "--role", "manager"])
        assert result.exit_code == 0, result.output
        entry = db_session.query(AdminRoleOverride).one()
        assert (entry.email, entry.role, entry.org_id) == ("ana@bar-a.test", "manager", None)

        listed = runner.invoke(args=["role-overrides", "list"])
        assert "ana@bar-a.test" in listed.output

        runner.invoke(args=["role-overrides", "remove", "--email", "ana@bar-a.test"])
        assert db_session.query(AdminRoleOverride).count() == 0

    def test_role_overrides_reject_unknown_role(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["role-overrides", "add", "--email", "a@b.test", "--role", "owner"])
        assert result.exit_code != 0

    def test_perms_show(self, app, db_session, org_a):
        make_principal(org_a, "rui@bar-a.test", "cook")
        result = app.test_cli_runner().invoke(args=["perms", "show", "--org-id", str(org_a.id), "--email", "rui@bar-a.test"])

        assert result.exit_code == 0, result.output
        assert "role=cook" in result.output
        assert "kitchen_monitor" in result.output
