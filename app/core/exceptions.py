"""
Application error taxonomy.

Auth failures are typed internally (AuthenticationError + AuthFailureReason)
so they can be logged with their cause, but every one of them reaches the
caller as the same ForbiddenError. The exception handlers that turn these
into HTTP responses are registered in app.main.
"""

from enum import Enum


class AuthFailureReason(str, Enum):
    MISSING_CREDENTIAL = "missing_credential"
    INVALID_TOKEN = "invalid_token"
    USER_NOT_FOUND = "user_not_found"
    USER_NOT_ACTIVATED = "user_not_activated"
    NO_ORGANIZATION = "no_organization"
    MISSING_ROLE = "missing_role"
    LOOKUP_FAILED = "lookup_failed"
    PROVISIONING_CONFLICT = "provisioning_conflict"


class ForbiddenError(Exception):
    """Uniform 403. Carries no detail about which check failed."""

    detail = "Forbidden"


class AuthenticationError(Exception):
    def __init__(self, reason: AuthFailureReason, message: str = "") -> None:
        self.reason = reason
        super().__init__(message or reason.value)


class ConfigurationError(Exception):
    """A required setting is missing. Raised on first use of the feature."""

    def __init__(self, setting: str) -> None:
        self.setting = setting
        super().__init__(f"{setting} is not configured")


class UpstreamError(Exception):
    """An external HTTP collaborator failed or rejected the call."""


class SsoError(UpstreamError):
    def __init__(self, detail: str, status_code: int = 502) -> None:
        self.detail = detail
        self.status_code = status_code
        super().__init__(detail)


class AnalyticsFetchError(UpstreamError):
    def __init__(self, integration_id: str, message: str) -> None:
        self.integration_id = integration_id
        super().__init__(f"integration {integration_id}: {message}")


class ProvisioningConflictError(Exception):
    """The email of a new identity already belongs to a different local user."""

    def __init__(self, user_id: str, email: str) -> None:
        self.user_id = user_id
        self.email = email
        super().__init__(f"email {email} already belongs to another user (new id {user_id})")
