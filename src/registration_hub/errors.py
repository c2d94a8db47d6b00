"""Error taxonomy of the hub controllers."""

from __future__ import annotations


class RegistrationHubError(Exception):
    """Base class for hub controller errors."""

    pass


class DiscoveryError(RegistrationHubError):
    """Raised when the request API cannot be selected at startup. Fatal."""

    pass


class ConflictError(RegistrationHubError):
    """Raised when a conditional write lost against a newer object version."""

    pass


class NotFoundError(RegistrationHubError):
    """Raised when the object no longer exists."""

    pass


class TransientIOError(RegistrationHubError):
    """Raised when the hub API is unavailable or rejected a call."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class PolicyAmbiguity(RegistrationHubError):
    """Raised when a request's claims do not exactly match a known profile."""

    pass
