# Overview: Pytest coverage for the HTTP surface: auth, permissions and staff lifecycle routes.

"""
API Route Tests

Exercises the Flask blueprints end to end through the test client:
status codes, tenant isolation at the HTTP boundary and error mapping.
"""

import pytest

from backoffice import READY_KEY
from backoffice.errors import StoreUnavailable
from backoffice.extensions import db
from backoffice.models import CredentialStatus, SecurityEvent
from backoffice.permissions import Action, Module, MODULES
from backoffice.services import employee_access_service, permission_service, role_resolver
from backoffice.services.override_store import replace_module_override

from conftest import PASSWORD, auth_headers, login, make_principal, make_staff, refuse_reads


@pytest.fixture
def admin_headers(admin_a):
    return auth_headers(login(admin_a))


class TestSystemRoutes:
    """Health and startup gating."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.get_json()
        assert data["credential_issuer"] == "local"

    def test_not_ready_returns_503(self, app, client):
        app.extensions[READY_KEY] = False
        try:
            response = client.get("/health")
            assert response.status_code == 503
        finally:
            app.extensions[READY_KEY] = True


class TestAuthRoutes:
    """Login, validate, logout, change password."""

    def test_login_success(self, client, org_a, manager_a):
        response = client.post("/api/auth/login", json={
            "email": "boss@bar-a.test",
            "password": PASSWORD,
            "org_code": org_a.code,
        })
        assert response.status_code == 200
        data = response.get_json()
        assert data["token"]
        assert data["org_id"] == org_a.id
        assert data["permissions"]["role"] == "manager"

    def test_login_wrong_org(self, client, org_b, manager_a):
        response = client.post("/api/auth/login", json={
            "email": "boss@bar-a.test",
            "password": PASSWORD,
            "org_code": org_b.code,
        })
        assert response.status_code == 401

    def test_login_bad_password_logged(self, client, db_session, org_a, manager_a):
        response = client.post("/api/auth/login", json={
            "email": "boss@bar-a.test",
            "password": "WrongPassword1!",
            "org_code": org_a.code,
        })
        assert response.status_code == 401
        assert db_session.query(SecurityEvent).filter_by(event_type="LOGIN_FAILED").count() == 1

    def test_login_missing_fields(self, client):
        assert client.post("/api/auth/login", json={"email": "x@y.test"}).status_code == 400

    def test_validate_and_logout(self, client, manager_a):
        headers = auth_headers(login(manager_a))

        assert client.post("/api/auth/validate", headers=headers).status_code == 200
        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.post("/api/auth/validate", headers=headers).status_code == 401

    def test_change_password(self, client, manager_a):
        headers = auth_headers(login(manager_a))
        response = client.post("/api/auth/change-password", headers=headers, json={
            "current_password": PASSWORD,
            "new_password": "Weak",
        })
        assert response.status_code == 400

        response = client.post("/api/auth/change-password", headers=headers, json={
            "current_password": PASSWORD,
            "new_password": "BetterPassword9!",
        })
        assert response.status_code == 200


class TestPermissionRoutes:
    """Effective permissions and override editing."""

    def test_me_requires_token(self, client):
        assert client.get("/api/permissions/me").status_code == 401
        assert client.get("/api/permissions/me", headers=auth_headers("bogus")).status_code == 401

    def test_me(self, client, org_a):
        cook = make_principal(org_a, "rui@bar-a.test", "cook")
        response = client.get("/api/permissions/me", headers=auth_headers(login(cook)))

        assert response.status_code == 200
        data = response.get_json()
        assert data["role"] == "cook"
        assert data["matrix"][Module.KITCHEN_MONITOR][Action.EDIT] is True
        assert data["is_administrator"] is False

    def test_me_degraded_is_503(self, client, org_a, manager_a, monkeypatch):
        headers = auth_headers(login(manager_a))

        def unavailable(*args, **kwargs):
            raise StoreUnavailable("timeout")

        monkeypatch.setattr(role_resolver, "lookup_assignment", unavailable)
        assert client.get("/api/permissions/me", headers=headers).status_code == 503

    def test_refused_override_rows_answer_degraded(self, client, org_a, manager_a):
        headers = auth_headers(login(manager_a))

        with refuse_reads("permission_overrides"):
            response = client.get("/api/permissions/me", headers=headers)

        assert response.status_code == 200
        data = response.get_json()
        assert data["degraded"] is True
        assert data["granted"] == []

    def test_refused_admin_list_keeps_recorded_role(self, client, org_a, manager_a):
        headers = auth_headers(login(manager_a))

        with refuse_reads("admin_role_overrides"):
            response = client.get("/api/permissions/me", headers=headers)

        assert response.status_code == 200
        assert response.get_json()["role"] == "manager"

    def test_modules_catalog(self, client, manager_a):
        response = client.get("/api/permissions/modules", headers=auth_headers(login(manager_a)))
        assert response.status_code == 200
        data = response.get_json()
        assert {module["code"] for module in data["modules"]} == set(MODULES)

    def test_presets_require_staff_manager(self, client, org_a, admin_headers):
        cook = make_principal(org_a, "rui@bar-a.test", "cook")
        assert client.get("/api/permissions/presets", headers=auth_headers(login(cook))).status_code == 403
        assert client.get("/api/permissions/presets", headers=admin_headers).status_code == 200

    def test_set_and_clear_module_override(self, client, org_a, admin_headers):
        cook = make_principal(org_a, "rui@bar-a.test", "cook")
        url = f"/api/permissions/principals/{cook.id}/modules/{Module.REPORTING}"

        response = client.put(url, headers=admin_headers, json={"view": True})
        assert response.status_code == 200
        assert response.get_json()["override"]["cells"]["view"] is True

        response = client.get(f"/api/permissions/principals/{cook.id}", headers=admin_headers)
        assert response.get_json()["matrix"][Module.REPORTING]["view"] is True

        response = client.delete(url, headers=admin_headers)
        assert response.get_json() == {"removed": True}

    def test_unknown_module_is_400(self, client, org_a, admin_headers):
        cook = make_principal(org_a, "rui@bar-a.test", "cook")
        response = client.put(
            f"/api/permissions/principals/{cook.id}/modules/payroll", headers=admin_headers, json={"view": True},
        )
        assert response.status_code == 400

    def test_non_object_cells_is_400(self, client, org_a, admin_headers):
        cook = make_principal(org_a, "rui@bar-a.test", "cook")
        response = client.put(
            f"/api/permissions/principals/{cook.id}/modules/{Module.REPORTING}",
            headers=admin_headers,
            json={"cells": [True]},
        )
        assert response.status_code == 400

    def test_cross_tenant_edit_is_403(self, client, admin_headers, admin_b):
        response = client.put(
            f"/api/permissions/principals/{admin_b.id}/modules/{Module.REPORTING}",
            headers=admin_headers,
            json={"view": False},
        )
        assert response.status_code == 403

    def test_apply_preset(self, client, org_a, admin_headers):
        cook = make_principal(org_a, "rui@bar-a.test", "cook")
        response = client.post(
            f"/api/permissions/principals/{cook.id}/preset", headers=admin_headers, json={"preset": "no_access"},
        )
        assert response.status_code == 200
        assert len(response.get_json()["overrides"]) == len(MODULES)

        me = client.get("/api/permissions/me", headers=auth_headers(login(cook))).get_json()
        assert me["granted"] == []

        response = client.delete(f"/api/permissions/principals/{cook.id}/overrides", headers=admin_headers)
        assert response.get_json() == {"removed": len(MODULES)}


class TestStaffRoutes:
    """Staff records and the access lifecycle over HTTP."""

    def _create(self, client, headers, **fields):
        payload = {"full_name": "Ana Souza", "email": "ana@bar-a.test", "job_title": "Caixa"}
        payload.update(fields)
        response = client.post("/api/staff", headers=headers, json=payload)
        assert response.status_code == 201
        return response.get_json()["staff"]

    def test_staff_routes_require_permission(self, client, org_a):
        cook = make_principal(org_a, "rui@bar-a.test", "cook")
        response = client.get("/api/staff", headers=auth_headers(login(cook)))
        assert response.status_code == 403
        assert response.get_json()["required_permission"] == "employee_administration.view"

    def test_create_and_list(self, client, admin_headers):
        staff = self._create(client, admin_headers)
        assert staff["access_state"] == "no_access"

        listed = client.get("/api/staff", headers=admin_headers).get_json()["staff"]
        assert [member["id"] for member in listed] == [staff["id"]]

    def test_create_requires_name(self, client, admin_headers):
        response = client.post("/api/staff", headers=admin_headers, json={"email": "x@bar-a.test"})
        assert response.status_code == 400

    def test_update(self, client, admin_headers):
        staff = self._create(client, admin_headers)
        response = client.patch(f"/api/staff/{staff['id']}", headers=admin_headers, json={"phone": "555-0101"})
        assert response.status_code == 200
        assert response.get_json()["staff"]["phone"] == "555-0101"

    def test_other_tenant_staff_is_403(self, client, org_b, admin_headers):
        foreign = make_staff(org_b, "Bruno", "bruno@bar-b.test")
        assert client.get(f"/api/staff/{foreign.id}", headers=admin_headers).status_code == 403

    def test_missing_staff_is_404(self, client, admin_headers):
        assert client.get("/api/staff/99999", headers=admin_headers).status_code == 404

    def test_full_lifecycle(self, client, org_a, admin_headers):
        staff = self._create(client, admin_headers)
        base = f"/api/staff/{staff['id']}"

        response = client.post(f"{base}/credentials", headers=admin_headers, json={})
        assert response.status_code == 201
        granted = response.get_json()
        assert granted["role"] == "cashier"
        temporary_password = granted["credential"]["temporary_password"]

        login_response = client.post("/api/auth/login", json={
            "email": "ana@bar-a.test",
            "password": temporary_password,
            "org_code": org_a.code,
        })
        assert login_response.status_code == 200
        assert login_response.get_json()["must_change_password"] is True
        employee_headers = auth_headers(login_response.get_json()["token"])

        assert client.post(f"{base}/credentials", headers=admin_headers).status_code == 409

        assert client.post(f"{base}/suspend", headers=admin_headers, json={"reason": "Leave"}).status_code == 200
        me = client.get("/api/permissions/me", headers=employee_headers).get_json()
        assert me["granted"] == []

        assert client.post(f"{base}/reactivate", headers=admin_headers).status_code == 200
        me = client.get("/api/permissions/me", headers=employee_headers).get_json()
        assert "cash_management.view" in me["granted"]

        response = client.delete(base, headers=admin_headers, json={"confirmation": "yes"})
        assert response.status_code == 400
        assert response.get_json()["code"] == "ConfirmationRequired"

        response = client.delete(base, headers=admin_headers, json={"confirmation": "REMOVE", "reason": "Left"})
        assert response.status_code == 200
        assert response.get_json()["state"] == "removed"

        assert client.get("/api/permissions/me", headers=employee_headers).status_code == 401
        assert client.get(base, headers=admin_headers).status_code == 404

    def test_suspend_without_credentials_is_409(self, client, admin_headers):
        staff = self._create(client, admin_headers)
        response = client.post(f"/api/staff/{staff['id']}/suspend", headers=admin_headers)
        assert response.status_code == 409
        assert response.get_json()["code"] == "NotCredentialed"

    def test_partial_failure_is_500(self, client, admin_headers, monkeypatch):
        staff = self._create(client, admin_headers)

        def unavailable(*args, **kwargs):
            raise StoreUnavailable("timeout")

        monkeypatch.setattr(employee_access_service, "write_mapping", unavailable)

        response = client.post(f"/api/staff/{staff['id']}/credentials", headers=admin_headers)
        assert response.status_code == 500
        assert response.get_json() == {
            "error": "Operation failed",
            "operation": "grant credentials",
            "rolled_back": True,
        }

    def test_suspended_manager_denied(self, client, org_a, manager_a):
        headers = auth_headers(login(manager_a))
        manager_a.credential_status = CredentialStatus.SUSPENDED
        db.session.commit()

        assert client.get("/api/staff", headers=headers).status_code == 403
        permissions = permission_service.get_effective_permissions(headers["Authorization"].split(" ", 1)[1])
        assert permissions.role == "manager"

    def test_delegated_manager_cannot_grant_above_own_rank(self, client, db_session, org_a):
        server = make_principal(org_a, "joao@bar-a.test", "server")
        replace_module_override(
            org_a.id, server.id, Module.EMPLOYEE_ADMINISTRATION, {Action.VIEW: True, Action.EDIT: True},
        )
        headers = auth_headers(login(server))
        staff = make_staff(org_a, "Ana Souza", "ana@bar-a.test", job_title="Ajudante")
        url = f"/api/staff/{staff.id}/credentials"

        response = client.post(url, headers=headers, json={"role": "administrator"})
        assert response.status_code == 403
        assert db_session.query(SecurityEvent).filter_by(event_type="PERMISSION_DENIED").count() == 1

        response = client.post(url, headers=headers, json={"role": "cook"})
        assert response.status_code == 403

        response = client.post(url, headers=headers, json={"role": "staff"})
        assert response.status_code == 201
        assert response.get_json()["role"] == "staff"
