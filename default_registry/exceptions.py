from fastapi import status


class RegistryError(Exception):
    """Base class for exceptions from within this application."""

    #: The HTTP status code to which the exception is mapped by :mod:`default_registry.main`.
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BusinessRuleError(RegistryError):
    """Raised if a workflow precondition doesn't hold, like renewing a customer that isn't in default."""

    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(BusinessRuleError):
    """Raised if an application or renewal is no longer PENDING, or if the customer is already in default."""


class PermissionDeniedError(RegistryError):
    """Raised if the caller may not see a record that exists (unlike not-found, which hides its existence)."""

    status_code = status.HTTP_403_FORBIDDEN
