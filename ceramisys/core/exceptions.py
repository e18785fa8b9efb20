"""
Domain exceptions raised by the service layer.

Routers never translate error messages into status codes; each exception
carries its own status and the handlers registered in ``ceramisys.main``
render it inside the standard ``{success, message, data}`` envelope.
"""
from fastapi import status


class CeramiSysError(Exception):
    """Base business error. Defaults to 400."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, data=None):
        super().__init__(message)
        self.message = message
        self.data = data


class NotFoundError(CeramiSysError):
    status_code = status.HTTP_404_NOT_FOUND


class InsufficientStockError(CeramiSysError):
    """A line asks for more boxes than the stock holds."""

    status_code = status.HTTP_400_BAD_REQUEST


class BusinessRuleError(CeramiSysError):
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(CeramiSysError):
    """Duplicated codes, or a state change somebody else already made."""

    status_code = status.HTTP_409_CONFLICT


class PermissionDeniedError(CeramiSysError):
    status_code = status.HTTP_403_FORBIDDEN


class AuthenticationError(CeramiSysError):
    status_code = status.HTTP_401_UNAUTHORIZED
