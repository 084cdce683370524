# Overview: Credential-issuance collaborator: issue, suspend, reinstate and revoke principal credentials.

"""
Credential Issuance

Two issuers share one interface:
- LocalCredentialIssuer: principals and bcrypt hashes live in our database
- RemoteCredentialIssuer: additionally mirrors every change to a hosted
  auth admin API over HTTP (httpx), bounded by COLLABORATOR_TIMEOUT_SECONDS

The issuer is built once at startup and stored on the application; see
build_credential_issuer / get_credential_issuer.

Every method either completes with positive confirmation or raises.
Network failures and timeouts raise CredentialServiceUnavailable.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
from flask import current_app

from ..errors import AlreadyCredentialed, CredentialServiceUnavailable, NotCredentialed, ServiceNotReady
from ..extensions import db
from ..models import CredentialStatus, Principal
from .auth_service import generate_temporary_password, set_password
from .persistence import store_call
from .session_service import revoke_all_principal_sessions
from backoffice.time_utils import utcnow


EXTENSION_KEY = "backoffice.credential_issuer"

# Hosted auth APIs express suspension as a very long ban
SUSPEND_BAN_DURATION = "876000h"


@dataclass(frozen=True)
class IssuedCredential:
    principal_id: int
    email: str
    temporary_password: str
    external_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "principal_id": self.principal_id,
            "email": self.email,
            "temporary_password": self.temporary_password,
            "must_change_password": True,
        }


class LocalCredentialIssuer:
    """Issues credentials stored in the principals table."""

    name = "local"

    def issue(self, org_id: int, email: str, display_name: str | None = None) -> IssuedCredential:
        """
        Create (or re-create after revocation) credentials for email in org.

        Raises AlreadyCredentialed if the email holds non-revoked credentials.
        """
        email = email.strip().lower()
        password = generate_temporary_password()

        with store_call("issue credential"):
            principal = db.session.query(Principal).filter_by(org_id=org_id, email=email).first()
            if principal is not None and principal.credential_status != CredentialStatus.REVOKED:
                raise AlreadyCredentialed(f"{email} already has credentials")

            external_id = self._register_external(email, password)
            if principal is None:
                principal = Principal(org_id=org_id, email=email)
                db.session.add(principal)

            principal.display_name = display_name
            principal.credential_status = CredentialStatus.ACTIVE
            principal.revoked_at = None
            principal.external_id = external_id
            set_password(principal, password, must_change=True)

            try:
                db.session.commit()
            except Exception:
                db.session.rollback()
                self._discard_external(external_id)
                raise

        return IssuedCredential(
            principal_id=principal.id,
            email=email,
            temporary_password=password,
            external_id=external_id,
        )

    def revoke(self, principal_id: int, reason: str = "Credentials revoked") -> None:
        """Invalidate credentials and every session. Revoking twice is a no-op."""
        principal = self._principal(principal_id)
        if principal.credential_status == CredentialStatus.REVOKED:
            return

        self._discard_external(principal.external_id)
        with store_call("revoke credential"):
            principal.credential_status = CredentialStatus.REVOKED
            principal.revoked_at = utcnow()
            revoke_all_principal_sessions(principal.id, reason=reason, commit=False)
            db.session.commit()

    def suspend(self, principal_id: int) -> None:
        """Block new logins; idempotent for already suspended credentials."""
        principal = self._principal(principal_id)
        if principal.credential_status == CredentialStatus.REVOKED:
            raise NotCredentialed("Credentials were revoked")
        if principal.credential_status == CredentialStatus.SUSPENDED:
            return

        self._suspend_external(principal.external_id)
        with store_call("suspend credential"):
            principal.credential_status = CredentialStatus.SUSPENDED
            db.session.commit()

    def reinstate(self, principal_id: int) -> None:
        """Lift a suspension; idempotent for active credentials."""
        principal = self._principal(principal_id)
        if principal.credential_status == CredentialStatus.REVOKED:
            raise NotCredentialed("Credentials were revoked")
        if principal.credential_status == CredentialStatus.ACTIVE:
            return

        self._reinstate_external(principal.external_id)
        with store_call("reinstate credential"):
            principal.credential_status = CredentialStatus.ACTIVE
            db.session.commit()

    def _principal(self, principal_id: int) -> Principal:
        with store_call("credential lookup"):
            principal = db.session.get(Principal, principal_id)
        if principal is None:
            raise NotCredentialed(f"Principal {principal_id} not found")
        return principal

    # Hosted identity hooks; the local issuer has nothing to mirror
    def _register_external(self, email: str, password: str) -> str | None:
        return None

    def _suspend_external(self, external_id: str | None) -> None:
        return None

    def _reinstate_external(self, external_id: str | None) -> None:
        return None

    def _discard_external(self, external_id: str | None) -> None:
        return None


class RemoteCredentialIssuer(LocalCredentialIssuer):
    """
    Mirrors credentials to a hosted auth admin API.

    The remote call runs first; the local row changes only after the
    remote side confirmed. A 409/422 on create means the email is taken.
    """

    name = "remote"

    def __init__(self, client: httpx.Client):
        self.client = client

    @classmethod
    def from_config(cls, config) -> "RemoteCredentialIssuer":
        base_url = config.get("CREDENTIAL_API_URL")
        api_key = config.get("CREDENTIAL_API_KEY")
        if not base_url or not api_key:
            raise RuntimeError("CREDENTIAL_API_URL and CREDENTIAL_API_KEY are required for the remote issuer")

        client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=config.get("COLLABORATOR_TIMEOUT_SECONDS", 5),
            headers={"Authorization": f"Bearer {api_key}", "apikey": api_key},
        )
        return cls(client)

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = self.client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise CredentialServiceUnavailable(f"Credential service {method} {path} failed: {exc}") from exc
        if response.status_code >= 500:
            raise CredentialServiceUnavailable(
                f"Credential service {method} {path} answered {response.status_code}"
            )
        return response

    def _register_external(self, email: str, password: str) -> str | None:
        response = self._request(
            "POST",
            "/admin/users",
            json={"email": email, "password": password, "email_confirm": True},
        )
        if response.status_code in (409, 422):
            raise AlreadyCredentialed(f"{email} already registered with the credential service")
        if response.status_code >= 400:
            raise CredentialServiceUnavailable(f"Credential service rejected create ({response.status_code})")
        external_id = response.json().get("id")
        if not external_id:
            raise CredentialServiceUnavailable("Credential service did not return an identity id")
        return str(external_id)

    def _set_ban(self, external_id: str | None, duration: str) -> None:
        if not external_id:
            return
        response = self._request("PUT", f"/admin/users/{external_id}", json={"ban_duration": duration})
        if response.status_code >= 400:
            raise CredentialServiceUnavailable(f"Credential service rejected update ({response.status_code})")

    def _suspend_external(self, external_id: str | None) -> None:
        self._set_ban(external_id, SUSPEND_BAN_DURATION)

    def _reinstate_external(self, external_id: str | None) -> None:
        self._set_ban(external_id, "none")

    def _discard_external(self, external_id: str | None) -> None:
        if not external_id:
            return
        response = self._request("DELETE", f"/admin/users/{external_id}")
        # Already gone counts as revoked
        if response.status_code >= 400 and response.status_code != 404:
            raise CredentialServiceUnavailable(f"Credential service rejected delete ({response.status_code})")

    def close(self) -> None:
        self.client.close()


def build_credential_issuer(config) -> LocalCredentialIssuer:
    kind = config.get("CREDENTIAL_ISSUER", "local")
    if kind == "local":
        return LocalCredentialIssuer()
    if kind == "remote":
        return RemoteCredentialIssuer.from_config(config)
    raise RuntimeError(f"Unsupported credential issuer: {kind!r}")


def get_credential_issuer() -> LocalCredentialIssuer:
    issuer = current_app.extensions.get(EXTENSION_KEY)
    if issuer is None:
        raise ServiceNotReady("Credential issuer not constructed")
    return issuer
