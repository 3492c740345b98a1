from __future__ import annotations


class DomainError(Exception):
    code = "DOMAIN_ERROR"

    def __init__(self, message: str = "", **details):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details


class NotAuthenticated(DomainError):
    code = "AUTH_REQUIRED"


class NotFound(DomainError):
    code = "NOT_FOUND"


class AuthorizationError(DomainError):
    code = "FORBIDDEN"


class InvalidState(DomainError):
    code = "INVALID_STATE"


class ConcurrencyConflict(InvalidState):
    code = "CONCURRENT_MODIFICATION"


class StaleReference(DomainError):
    """An override points at a template id that no longer exists."""

    code = "STALE_REFERENCE"
