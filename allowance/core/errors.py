"""Typed error hierarchy shared by services and routers.

Services raise these internally and hand them back inside a
:class:`~allowance.core.result.Result`; routers turn them into HTTP
responses using ``status_code``.
"""

from fastapi import status


class AllowanceError(Exception):
    """Base class for all allowance tracker errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class ValidationError(AllowanceError):
    """Input rejected before any I/O."""

    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT
    code = "validation_error"


class ConfigurationMissing(AllowanceError):
    """Family settings are missing."""

    status_code = status.HTTP_409_CONFLICT
    code = "configuration_missing"


class PersistenceError(AllowanceError):
    """The data store rejected a read or write."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "persistence_error"


class NotFoundError(AllowanceError):
    """The requested record does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class AuthRequired(AllowanceError):
    """Authentication required."""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "auth_required"


class PermissionDenied(AllowanceError):
    """Not allowed for this family."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "permission_denied"


class ConflictError(AllowanceError):
    """The record already exists."""

    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class RateLimited(AllowanceError):
    """Too many login attempts. Please try again later."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "rate_limited"
