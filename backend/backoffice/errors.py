# Overview: Error taxonomy shared by the resolver, engine, stores and lifecycle.

"""
Access control errors.

PROPAGATION RULES:
- Role heuristics never raise; "role undetermined" falls through to the
  lowest-privilege role.
- TenantMismatch and StoreUnavailable always propagate. They are never
  downgraded to a permissive or default-role outcome.
- Lifecycle precondition errors are reported to the caller, not retried.
"""


class AccessControlError(Exception):
    """Base class for authorization and access lifecycle failures."""


class AuthenticationFailure(AccessControlError):
    """No valid session: missing, expired, revoked, or identity gone."""


class TenantMismatch(AccessControlError):
    """Caller's resolved tenant does not own the target record."""


class StoreUnavailable(AccessControlError):
    """Transient persistence or network failure (including timeouts)."""


class CredentialServiceUnavailable(StoreUnavailable):
    """Credential-issuance collaborator failed or timed out."""


class ConcurrentModification(StoreUnavailable):
    """Optimistic version check failed; another writer got there first."""


class RecordInaccessible(AccessControlError):
    """The store refused to expose a row (row-level permission failure)."""


class LifecycleError(ValueError):
    """
    Raised when an invalid access lifecycle transition is attempted.

    This is a domain error, not a technical error.
    """
    pass


class AlreadyCredentialed(LifecycleError):
    """Credentials were already granted and not revoked since."""


class NotCredentialed(LifecycleError):
    """Operation requires credentials the staff record does not have."""


class ConfirmationRequired(LifecycleError):
    """Irreversible operation invoked without the literal confirmation."""


class StaffNotFound(LifecycleError):
    """Staff record does not exist."""


class AggregatedPartialFailure(AccessControlError):
    """
    A lifecycle transition failed midway.

    errors holds the original failure followed by any failure of the
    compensating action; rolled_back tells whether compensation succeeded.
    """

    def __init__(self, operation: str, errors: list[Exception], rolled_back: bool):
        self.operation = operation
        self.errors = list(errors)
        self.rolled_back = rolled_back
        details = "; ".join(f"{type(e).__name__}: {e}" for e in self.errors)
        state = "rolled back" if rolled_back else "rollback incomplete"
        super().__init__(f"{operation} failed ({state}): {details}")


class ServiceNotReady(AccessControlError):
    """Request arrived before startup finished constructing collaborators."""
